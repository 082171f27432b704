"""
PeerRanker - verify industry membership and rank by market-cap proximity.

A candidate is kept when its provider-reported industry matches the
target's, or when the static table puts both in the same industry group.
Either signal is enough, since Yahoo and the table often disagree on naming.
Verified peers are ordered by how close their market cap is to the target's.
"""

import asyncio
import structlog
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from peerbeta.data.industry_reference import IndustryReference
from peerbeta.data.provider import CompanyProfile, MarketDataProvider
from peerbeta.peers.candidates import CandidateSource, PeerCandidate

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VerifiedPeer:
    """A candidate confirmed to share the target's industry."""

    symbol: str
    display_name: str
    sector_path: str
    market_cap: float
    cap_distance: float
    source: Optional[CandidateSource] = None


def cap_distance(peer_cap: float, target_cap: float) -> float:
    """Relative absolute market-cap difference; 0 when the target cap is unknown."""
    if target_cap > 0:
        return abs(peer_cap - target_cap) / target_cap
    return 0.0


def rank_by_cap_proximity(
    peers: Sequence[VerifiedPeer], limit: int = 10
) -> List[VerifiedPeer]:
    """Closest market caps first; ties keep their input order."""
    return sorted(peers, key=lambda p: p.cap_distance)[:limit]


class PeerRanker:
    """
    Verify peer candidates and select the closest by market cap.

    Example:
        ranker = PeerRanker(provider, reference, max_peers=10)
        peers = await ranker.verify_and_rank(candidates, "TCS.NS", target_profile)
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        industry_reference: IndustryReference,
        max_peers: int = 10,
        max_concurrency: int = 8,
    ):
        """
        Args:
            provider: Market data provider for candidate profiles
            industry_reference: Static industry classification table
            max_peers: Maximum number of peers to return
            max_concurrency: Maximum concurrent profile fetches
        """
        self._provider = provider
        self._reference = industry_reference
        self._max_peers = max_peers
        self._max_concurrency = max_concurrency

    async def verify_and_rank(
        self,
        candidates: Sequence[PeerCandidate],
        target_symbol: str,
        target_profile: CompanyProfile,
    ) -> List[VerifiedPeer]:
        """
        Keep same-industry candidates and rank them by market-cap proximity.

        Args:
            candidates: Deduplicated candidates from the aggregator
            target_symbol: Resolved target symbol, never returned as a peer
            target_profile: Provider profile of the target

        Returns:
            Up to ``max_peers`` peers, closest market cap first
        """
        pending = [c for c in candidates if c.symbol != target_symbol]
        profiles = await self._batch_fetch_profiles(pending)

        target_industry = target_profile.industry
        target_table_industry = self._reference.industry_of(target_symbol)
        target_cap = target_profile.market_cap or 0.0

        verified: List[VerifiedPeer] = []
        rejected = 0
        for candidate, profile in profiles:
            if profile is None or not profile.industry:
                continue

            same_industry = bool(target_industry) and profile.industry == target_industry
            same_table_industry = (
                bool(target_table_industry)
                and self._reference.industry_of(candidate.symbol) == target_table_industry
            )
            if not (same_industry or same_table_industry):
                rejected += 1
                continue

            peer_cap = profile.market_cap or 0.0
            entry = self._reference.get(candidate.symbol)
            verified.append(
                VerifiedPeer(
                    symbol=candidate.symbol,
                    display_name=(entry.name if entry and entry.name else candidate.symbol),
                    sector_path=profile.sector_path,
                    market_cap=peer_cap,
                    cap_distance=cap_distance(peer_cap, target_cap),
                    source=candidate.source,
                )
            )

        ranked = rank_by_cap_proximity(verified, self._max_peers)

        logger.info(
            "peers_ranked",
            ticker=target_symbol,
            industry=target_industry,
            table_industry=target_table_industry,
            candidates=len(pending),
            profiles_missing=sum(1 for _, p in profiles if p is None or not p.industry),
            rejected=rejected,
            verified=len(verified),
            peers_returned=len(ranked),
        )
        return ranked

    async def _batch_fetch_profiles(
        self, candidates: Sequence[PeerCandidate]
    ) -> List[Tuple[PeerCandidate, Optional[CompanyProfile]]]:
        """
        Fetch profiles concurrently, bounded by ``max_concurrency``.

        Returns:
            ``(candidate, profile)`` in candidate order; profile is None on failure
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch_with_semaphore(candidate: PeerCandidate):
            async with semaphore:
                try:
                    return candidate, await self._provider.fetch_profile(candidate.symbol)
                except Exception as e:
                    logger.warning(
                        "profile_fetch_failed",
                        ticker=candidate.symbol,
                        error=str(e),
                    )
                    return candidate, None

        return list(await asyncio.gather(*(fetch_with_semaphore(c) for c in candidates)))
