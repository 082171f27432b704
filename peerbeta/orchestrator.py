"""
BetaOrchestrator - coordinate one beta calculation end to end.

Stages:
    RESOLVE_TICKER -> FETCH_TARGET_AND_BENCHMARK -> COMPUTE_TARGET_METRICS
    -> DISCOVER_PEERS -> VERIFY_AND_RANK_PEERS -> COMPUTE_PEER_METRICS
    -> ASSEMBLE_REPORT

Failures of the target ticker end the request. Failures of a peer only
affect that peer: no history on either exchange drops it, while too few
aligned dates or an undefined regression keep it with null metrics.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Protocol, Tuple

import structlog

from peerbeta.data.industry_reference import IndustryReference
from peerbeta.data.provider import MarketDataProvider, PriceSeries, Quote
from peerbeta.exceptions import (
    BenchmarkUnavailableError,
    InsufficientDataError,
    UpstreamUnavailableError,
)
from peerbeta.exchanges import Exchange, fallback_symbol, resolve_ticker
from peerbeta.metrics.alignment import PriceLookup, align_series, build_price_lookup
from peerbeta.metrics.regression import RegressionResult, calculate_metrics
from peerbeta.models import BetaReport, BetaRequest, PeerReport
from peerbeta.peers.candidates import CandidateAggregator
from peerbeta.peers.ranker import PeerRanker, VerifiedPeer

logger = structlog.get_logger(__name__)


class BetaStage(Enum):
    """Stages of a beta calculation, in order."""

    RESOLVE_TICKER = "resolve_ticker"
    FETCH_TARGET_AND_BENCHMARK = "fetch_target_and_benchmark"
    COMPUTE_TARGET_METRICS = "compute_target_metrics"
    DISCOVER_PEERS = "discover_peers"
    VERIFY_AND_RANK_PEERS = "verify_and_rank_peers"
    COMPUTE_PEER_METRICS = "compute_peer_metrics"
    ASSEMBLE_REPORT = "assemble_report"


class ReportSink(Protocol):
    """Anything that can store a finished report, e.g. SearchHistoryStorage."""

    def save_report(self, report: BetaReport) -> int:
        ...


@dataclass(frozen=True)
class InstrumentHistory:
    """Price history for the symbol that actually returned data."""

    symbol: str
    series: PriceSeries
    quote: Optional[Quote] = None


class BetaOrchestrator:
    """
    Compute a stock's beta against its exchange index, with ranked peers.

    Example:
        async with YFinanceProvider() as provider:
            orchestrator = BetaOrchestrator(provider, reference, sink=storage)
            report = await orchestrator.calculate(
                BetaRequest.for_period("TCS", Exchange.NSE, "1Y")
            )
            print(report.metrics.beta, report.peer_tickers())
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        industry_reference: Optional[IndustryReference] = None,
        sink: Optional[ReportSink] = None,
        max_peers: int = 10,
        max_concurrency: int = 8,
        search_threshold: int = 10,
        search_limit: int = 20,
    ):
        """
        Args:
            provider: Market data provider
            industry_reference: Static industry table (empty if not provided)
            sink: Optional store for finished reports
            max_peers: Maximum number of peers in the report
            max_concurrency: Maximum concurrent provider calls per fan-out stage
            search_threshold: Keyword search runs below this many candidates
            search_limit: Maximum keyword search results
        """
        reference = industry_reference or IndustryReference.empty()
        self._provider = provider
        self._sink = sink
        self._max_concurrency = max_concurrency
        self._aggregator = CandidateAggregator(
            provider, reference, search_threshold=search_threshold, search_limit=search_limit
        )
        self._ranker = PeerRanker(
            provider, reference, max_peers=max_peers, max_concurrency=max_concurrency
        )
        logger.info(
            "beta_orchestrator_initialized",
            max_peers=max_peers,
            max_concurrency=max_concurrency,
            industry_table_size=len(reference),
            persistence=sink is not None,
        )

    async def calculate(self, request: BetaRequest) -> BetaReport:
        """
        Run the full calculation for one request.

        Raises:
            UpstreamUnavailableError: If the target has no history on either exchange
            BenchmarkUnavailableError: If the index history cannot be fetched
            InsufficientDataError: If the target's beta cannot be computed
        """
        log = logger.bind(ticker=request.ticker, exchange=request.exchange.value)

        log.info("beta_stage", stage=BetaStage.RESOLVE_TICKER.value)
        primary = resolve_ticker(request.ticker, request.exchange)

        log.info("beta_stage", stage=BetaStage.FETCH_TARGET_AND_BENCHMARK.value, symbol=primary)
        benchmark_series, target = await asyncio.gather(
            self._provider.fetch_history(
                request.exchange.benchmark_symbol, request.start_date, request.end_date
            ),
            self._fetch_with_fallback(primary, request.exchange, request.start_date, request.end_date),
        )

        if target is None:
            raise UpstreamUnavailableError(
                f"Failed to fetch data for {primary}. Check ticker or date range.",
                source="market_data",
                ticker=primary,
                details={
                    "start_date": request.start_date.isoformat(),
                    "end_date": request.end_date.isoformat(),
                },
            )
        if benchmark_series is None or not benchmark_series.is_usable():
            raise BenchmarkUnavailableError(
                "Failed to fetch market index data",
                source="market_data",
                ticker=request.exchange.benchmark_symbol,
            )

        log.info("beta_stage", stage=BetaStage.COMPUTE_TARGET_METRICS.value, symbol=target.symbol)
        benchmark = build_price_lookup(benchmark_series)
        pair = align_series(target.series, benchmark)
        metrics = calculate_metrics(pair)
        if metrics is None:
            raise InsufficientDataError(
                "Insufficient data points to calculate metrics",
                ticker=target.symbol,
                data_points=len(pair),
            )

        peers, candidate_count = await self._discover_peers(target.symbol, request.exchange, log)

        log.info("beta_stage", stage=BetaStage.COMPUTE_PEER_METRICS.value, peers=len(peers))
        peer_reports = await self._compute_peer_metrics(peers, request, benchmark)

        log.info("beta_stage", stage=BetaStage.ASSEMBLE_REPORT.value)
        report = BetaReport(
            ticker=target.symbol,
            name=(target.quote.display_name if target.quote else None) or request.ticker,
            exchange=request.exchange,
            start_date=request.start_date,
            end_date=request.end_date,
            period=request.period,
            metrics=metrics,
            peers=tuple(peer_reports),
            candidates_considered=candidate_count,
        )

        log.info(
            "beta_calculated",
            symbol=report.ticker,
            beta=round(metrics.beta, 4),
            aligned_points=len(pair),
            candidates=candidate_count,
            verified_peers=len(peers),
            reported_peers=len(report.peers),
        )

        await self._persist(report)
        return report

    async def _fetch_with_fallback(
        self, symbol: str, exchange: Exchange, start: date, end: date
    ) -> Optional[InstrumentHistory]:
        """
        Fetch history and quote for ``symbol``, retrying once on the other exchange.

        Returns:
            InstrumentHistory for whichever symbol had usable data, or None
        """
        attempts = (symbol, fallback_symbol(symbol, exchange))
        for attempt, candidate in enumerate(attempts):
            series, quote = await asyncio.gather(
                self._provider.fetch_history(candidate, start, end),
                self._provider.fetch_quote(candidate),
            )
            if series is not None and series.is_usable():
                return InstrumentHistory(symbol=candidate, series=series, quote=quote)

            if attempt == 0:
                logger.info(
                    "history_fallback",
                    symbol=candidate,
                    fallback=attempts[1],
                    points=len(series) if series is not None else 0,
                )

        logger.warning("history_unavailable", symbol=symbol, attempted=list(attempts))
        return None

    async def _discover_peers(
        self, target_symbol: str, exchange: Exchange, log
    ) -> Tuple[List[VerifiedPeer], int]:
        log.info("beta_stage", stage=BetaStage.DISCOVER_PEERS.value, symbol=target_symbol)
        profile = await self._provider.fetch_profile(target_symbol)
        if profile is None:
            log.warning("target_profile_unavailable", symbol=target_symbol)
            return [], 0

        candidates = await self._aggregator.gather_candidates(
            target_symbol, profile.industry, exchange
        )

        log.info("beta_stage", stage=BetaStage.VERIFY_AND_RANK_PEERS.value, candidates=len(candidates))
        peers = await self._ranker.verify_and_rank(candidates, target_symbol, profile)
        return peers, len(candidates)

    async def _compute_peer_metrics(
        self,
        peers: List[VerifiedPeer],
        request: BetaRequest,
        benchmark: PriceLookup,
    ) -> List[PeerReport]:
        """
        Compute each peer's metrics concurrently.

        Results are collected per peer and returned in ranking order; dropped
        peers are left out entirely.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def compute_with_semaphore(peer: VerifiedPeer) -> Optional[PeerReport]:
            async with semaphore:
                try:
                    return await self._peer_report(peer, request, benchmark)
                except Exception as e:
                    logger.error(
                        "peer_metrics_failed",
                        ticker=peer.symbol,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return None

        results = await asyncio.gather(*(compute_with_semaphore(p) for p in peers))
        reports = [r for r in results if r is not None]

        logger.info(
            "peer_metrics_complete",
            total=len(peers),
            reported=len(reports),
            dropped=len(peers) - len(reports),
            without_metrics=sum(1 for r in reports if r.metrics is None),
        )
        return reports

    async def _peer_report(
        self,
        peer: VerifiedPeer,
        request: BetaRequest,
        benchmark: PriceLookup,
    ) -> Optional[PeerReport]:
        history = await self._fetch_with_fallback(
            resolve_ticker(peer.symbol, request.exchange),
            request.exchange,
            request.start_date,
            request.end_date,
        )
        if history is None:
            logger.info("peer_dropped_no_history", ticker=peer.symbol)
            return None

        name = (history.quote.short_display_name if history.quote else None) or peer.display_name
        metrics: Optional[RegressionResult] = None
        try:
            metrics = calculate_metrics(align_series(history.series, benchmark))
        except InsufficientDataError as e:
            logger.info("peer_metrics_insufficient", ticker=peer.symbol, details=e.details)

        return PeerReport(peer=peer, name=name, metrics=metrics)

    async def _persist(self, report: BetaReport) -> None:
        """Hand the report to the sink; storage problems never fail the request."""
        if self._sink is None:
            return
        try:
            record_id = await asyncio.to_thread(self._sink.save_report, report)
            logger.debug("beta_report_persisted", ticker=report.ticker, id=record_id)
        except Exception as e:
            logger.error(
                "beta_report_persist_failed",
                ticker=report.ticker,
                error_type=type(e).__name__,
                error=str(e),
            )
