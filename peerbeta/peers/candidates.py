"""
Candidate Aggregator - collect unverified peer symbols from several sources.

Sources are queried in a fixed order and each one is best-effort:
1. Yahoo's related-symbol recommendations for the target
2. The static industry table (same industry group as the target)
3. A keyword search on the target's industry name, only when sources 1-2
   produced fewer candidates than the search threshold

Nothing here is verified yet; the ranker decides which candidates are real
industry peers.
"""

import structlog
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from peerbeta.data.industry_reference import IndustryReference
from peerbeta.data.provider import MarketDataProvider
from peerbeta.exchanges import Exchange, has_national_suffix, split_symbol

logger = structlog.get_logger(__name__)


class CandidateSource(Enum):
    """Where a peer candidate was suggested from."""

    RECOMMENDATION = "recommendation"
    INDUSTRY_TABLE = "industry_table"
    KEYWORD_SEARCH = "keyword_search"


@dataclass(frozen=True)
class PeerCandidate:
    """An unverified peer suggestion."""

    symbol: str
    source: CandidateSource


class CandidateAggregator:
    """
    Merge peer suggestions into a deduplicated candidate list.

    Example:
        aggregator = CandidateAggregator(provider, reference)
        candidates = await aggregator.gather_candidates(
            "TCS.NS", "Information Technology Services", Exchange.NSE
        )
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        industry_reference: IndustryReference,
        search_threshold: int = 10,
        search_limit: int = 20,
    ):
        """
        Args:
            provider: Market data provider for recommendations and search
            industry_reference: Static industry classification table
            search_threshold: Keyword search runs only below this many candidates
            search_limit: Maximum search results to request
        """
        self._provider = provider
        self._reference = industry_reference
        self._search_threshold = search_threshold
        self._search_limit = search_limit

    async def gather_candidates(
        self,
        target_symbol: str,
        industry: Optional[str],
        exchange: Exchange,
    ) -> List[PeerCandidate]:
        """
        Collect candidates for ``target_symbol``.

        Args:
            target_symbol: Resolved target symbol, e.g. "TCS.NS"
            industry: Provider-reported industry of the target (search query)
            exchange: Exchange of the request; its suffix is used for table
                peers when the target symbol has none

        Returns:
            Candidates deduplicated by symbol; each keeps its first source
        """
        candidates: Dict[str, PeerCandidate] = {}

        def add(symbols: List[str], source: CandidateSource) -> int:
            added = 0
            for symbol in symbols:
                if symbol and symbol not in candidates:
                    candidates[symbol] = PeerCandidate(symbol=symbol, source=source)
                    added += 1
            return added

        recommended = await self._from_recommendations(target_symbol)
        add(recommended, CandidateSource.RECOMMENDATION)

        table_peers = self._from_industry_table(target_symbol, exchange)
        add(table_peers, CandidateSource.INDUSTRY_TABLE)

        searched: List[str] = []
        if len(candidates) < self._search_threshold and industry:
            searched = await self._from_search(industry)
            add(searched, CandidateSource.KEYWORD_SEARCH)

        logger.info(
            "peer_candidates_gathered",
            ticker=target_symbol,
            recommended=len(recommended),
            industry_table=len(table_peers),
            searched=len(searched),
            total=len(candidates),
        )
        return list(candidates.values())

    async def _from_recommendations(self, target_symbol: str) -> List[str]:
        try:
            return await self._provider.related_symbols(target_symbol)
        except Exception as e:
            logger.warning(
                "recommendation_source_failed",
                ticker=target_symbol,
                error_type=type(e).__name__,
                error=str(e),
            )
            return []

    def _from_industry_table(self, target_symbol: str, exchange: Exchange) -> List[str]:
        industry = self._reference.industry_of(target_symbol)
        if not industry:
            return []

        _, suffix = split_symbol(target_symbol)
        suffix = suffix or exchange.suffix
        return [
            f"{symbol}{suffix}"
            for symbol in self._reference.symbols_in_industry(industry, exclude=target_symbol)
        ]

    async def _from_search(self, industry: str) -> List[str]:
        try:
            results = await self._provider.search(industry, limit=self._search_limit)
        except Exception as e:
            logger.warning(
                "search_source_failed",
                industry=industry,
                error_type=type(e).__name__,
                error=str(e),
            )
            return []
        return [symbol for symbol in results if has_national_suffix(symbol)]
