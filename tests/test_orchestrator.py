"""
Unit tests for BetaOrchestrator.

Tests cover:
- End-to-end report assembly against an in-memory provider
- Ticker resolution and the single cross-exchange fallback
- Fatal target errors versus per-peer degradation
- Ranking order of peer results and fire-and-forget persistence
"""

from datetime import date
from unittest.mock import MagicMock

import pytest

from peerbeta.data.provider import CompanyProfile, Quote
from peerbeta.exceptions import (
    BenchmarkUnavailableError,
    InsufficientDataError,
    StorageError,
    UpstreamUnavailableError,
)
from peerbeta.exchanges import Exchange
from peerbeta.metrics import align_series, calculate_metrics
from peerbeta.models import BetaRequest
from peerbeta.orchestrator import BetaOrchestrator

from tests.helpers import FakeMarketDataProvider, make_reference, make_series

MARKET = [100, 101, 99, 102, 104, 103, 105, 107, 106, 108]
TARGET = [50, 51, 50.5, 52, 53, 52.5, 54, 55.5, 55, 56]
PEER_PRICES = {
    "INFY.NS": [20, 20.5, 20.2, 20.8, 21.5, 21.2, 21.9, 22.4, 22.1, 22.8],
    "WIPRO.NS": [8, 8.1, 7.9, 8.3, 8.2, 8.4, 8.6, 8.5, 8.8, 8.9],
    "HCL.NS": [30, 30.9, 29.5, 31, 31.8, 31.1, 32.2, 33, 32.5, 33.4],
}


def _request(ticker="TCS", exchange=Exchange.NSE):
    return BetaRequest(
        ticker=ticker,
        exchange=exchange,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
        period="1Y",
    )


def _profile(symbol, cap):
    return CompanyProfile(symbol=symbol, industry="IT Services", sector="Technology", market_cap=cap)


def _provider(**overrides):
    """A small NSE market: TCS plus three same-industry peers."""
    histories = {
        "^NSEI": make_series("^NSEI", MARKET),
        "TCS.NS": make_series("TCS.NS", TARGET),
    }
    histories.update({s: make_series(s, p) for s, p in PEER_PRICES.items()})
    options = dict(
        histories=histories,
        quotes={
            "TCS.NS": Quote("TCS.NS", long_name="Tata Consultancy Services Limited"),
            "INFY.NS": Quote("INFY.NS", long_name="Infosys Limited"),
        },
        profiles={
            "TCS.NS": _profile("TCS.NS", 1000),
            "INFY.NS": _profile("INFY.NS", 900),
            "WIPRO.NS": _profile("WIPRO.NS", 1100),
            "HCL.NS": _profile("HCL.NS", 5000),
        },
        related={"TCS.NS": ["HCL.NS", "INFY.NS", "WIPRO.NS"]},
    )
    options.update(overrides)
    return FakeMarketDataProvider(**options)


# ============================================================================
# Happy Path Tests
# ============================================================================


class TestCalculate:
    """Tests for a complete calculation."""

    @pytest.mark.asyncio
    async def test_full_report(self):
        """Target metrics, index label and ranked peers are assembled."""
        provider = _provider()
        orchestrator = BetaOrchestrator(provider)

        report = await orchestrator.calculate(_request())

        expected = calculate_metrics(
            align_series(make_series("TCS.NS", TARGET), make_series("^NSEI", MARKET))
        )
        assert report.ticker == "TCS.NS"
        assert report.name == "Tata Consultancy Services Limited"
        assert report.market_index_label == "NIFTY 50"
        assert report.metrics.beta == pytest.approx(expected.beta)
        assert report.metrics.r_squared == pytest.approx(expected.r_squared)
        assert report.peer_tickers() == ["INFY.NS", "WIPRO.NS", "HCL.NS"]
        assert report.candidates_considered == 3
        assert all(p.metrics is not None for p in report.peers)

    @pytest.mark.asyncio
    async def test_peer_names(self):
        """Peer names come from the quote, falling back to the display name."""
        report = await BetaOrchestrator(_provider()).calculate(_request())
        names = {p.ticker: p.name for p in report.peers}

        assert names["INFY.NS"] == "Infosys Limited"
        assert names["WIPRO.NS"] == "WIPRO.NS"

    @pytest.mark.asyncio
    async def test_peer_name_prefers_short_name(self):
        """Peer rows use the short name; the target keeps its long name."""
        provider = _provider()
        provider.quotes["TCS.NS"] = Quote("TCS.NS", long_name="Tata Consultancy Services Limited", short_name="TCS")
        provider.quotes["INFY.NS"] = Quote("INFY.NS", long_name="Infosys Limited", short_name="INFOSYS")

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.name == "Tata Consultancy Services Limited"
        assert report.peers[0].name == "INFOSYS"

    @pytest.mark.asyncio
    async def test_name_falls_back_to_ticker(self):
        """Without a quote the requested ticker is used as the name."""
        report = await BetaOrchestrator(_provider(quotes={})).calculate(_request())

        assert report.name == "TCS"

    @pytest.mark.asyncio
    async def test_peer_order_follows_rank_not_completion(self):
        """The closest peer stays first even when its data arrives last."""
        provider = _provider(delays={"INFY.NS": 0.05, "HCL.NS": 0.0})

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.peer_tickers() == ["INFY.NS", "WIPRO.NS", "HCL.NS"]

    @pytest.mark.asyncio
    async def test_industry_table_peers_included(self):
        """Peers from the static table are verified through the table industry."""
        provider = _provider(related={})
        provider.profiles["SUN.NS"] = CompanyProfile("SUN.NS", industry="Consulting", market_cap=1200)
        provider.histories["SUN.NS"] = make_series("SUN.NS", PEER_PRICES["HCL.NS"])
        reference = make_reference([("TCS", "TCS", "IT"), ("SUN", "Sun Tech", "IT")])

        report = await BetaOrchestrator(provider, reference).calculate(_request())

        assert report.peer_tickers() == ["SUN.NS"]
        assert report.peers[0].name == "Sun Tech"


# ============================================================================
# Ticker Resolution Tests
# ============================================================================


class TestResolution:
    """Tests for ticker resolution and exchange fallback."""

    @pytest.mark.asyncio
    async def test_bse_ticker_resolved_before_fetch(self):
        """A bare BSE ticker is fetched as .BO against the SENSEX."""
        provider = FakeMarketDataProvider(histories={
            "^BSESN": make_series("^BSESN", MARKET),
            "RELIANCE.BO": make_series("RELIANCE.BO", TARGET),
        })

        report = await BetaOrchestrator(provider).calculate(_request("RELIANCE", Exchange.BSE))

        history_calls = provider.calls_for("history")
        assert set(history_calls) == {"^BSESN", "RELIANCE.BO"}
        assert "RELIANCE" not in [s for _, s in provider.calls]
        assert report.ticker == "RELIANCE.BO"
        assert report.market_index_label == "BSE SENSEX"

    @pytest.mark.asyncio
    async def test_fallback_to_other_exchange(self):
        """No NSE history: the BSE listing is used instead."""
        provider = _provider()
        provider.histories["TCS.BO"] = make_series("TCS.BO", TARGET)
        del provider.histories["TCS.NS"]

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.ticker == "TCS.BO"

    @pytest.mark.asyncio
    async def test_fallback_attempted_exactly_once(self):
        """Both listings missing is fatal after exactly two attempts."""
        provider = _provider()
        del provider.histories["TCS.NS"]

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await BetaOrchestrator(provider).calculate(_request())

        target_calls = [s for s in provider.calls_for("history") if s.startswith("TCS")]
        assert target_calls == ["TCS.NS", "TCS.BO"]
        assert "TCS.NS" in exc_info.value.message
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_single_point_history_triggers_fallback(self):
        """A series with one priced day is treated as missing."""
        provider = _provider()
        provider.histories["TCS.NS"] = make_series("TCS.NS", [50])
        provider.histories["TCS.BO"] = make_series("TCS.BO", TARGET)

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.ticker == "TCS.BO"


# ============================================================================
# Failure Tests
# ============================================================================


class TestTargetFailures:
    """Conditions that end the request."""

    @pytest.mark.asyncio
    async def test_benchmark_unavailable(self):
        provider = _provider()
        del provider.histories["^NSEI"]

        with pytest.raises(BenchmarkUnavailableError):
            await BetaOrchestrator(provider).calculate(_request())

    @pytest.mark.asyncio
    async def test_constant_benchmark(self):
        """Zero benchmark variance makes the target beta undefined."""
        provider = _provider()
        provider.histories["^NSEI"] = make_series("^NSEI", [100] * len(MARKET))

        with pytest.raises(InsufficientDataError):
            await BetaOrchestrator(provider).calculate(_request())

    @pytest.mark.asyncio
    async def test_too_few_shared_dates(self):
        """Target and benchmark overlapping on a single day."""
        provider = _provider()
        provider.histories["TCS.NS"] = make_series("TCS.NS", [50, 51], start=date(2024, 1, 10))

        with pytest.raises(InsufficientDataError) as exc_info:
            await BetaOrchestrator(provider).calculate(_request())

        assert exc_info.value.status_code == 400


class TestPeerDegradation:
    """Per-peer failures never fail the request."""

    @pytest.mark.asyncio
    async def test_failed_peer_profile_excluded(self):
        """A peer whose profile fetch fails is absent from the report."""
        provider = _provider(failing={("profile", "WIPRO.NS")})

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.peer_tickers() == ["INFY.NS", "HCL.NS"]

    @pytest.mark.asyncio
    async def test_peer_without_history_dropped(self):
        provider = _provider()
        del provider.histories["WIPRO.NS"]

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.peer_tickers() == ["INFY.NS", "HCL.NS"]
        assert "WIPRO.BO" in provider.calls_for("history")

    @pytest.mark.asyncio
    async def test_peer_with_undefined_regression_kept(self):
        """A flat-priced peer is reported with null metrics."""
        provider = _provider()
        provider.histories["WIPRO.NS"] = make_series("WIPRO.NS", [8] * len(MARKET))

        report = await BetaOrchestrator(provider).calculate(_request())
        peers = {p.ticker: p for p in report.peers}

        assert report.peer_tickers() == ["INFY.NS", "WIPRO.NS", "HCL.NS"]
        assert peers["WIPRO.NS"].metrics is None
        assert peers["WIPRO.NS"].to_dict()["beta"] is None

    @pytest.mark.asyncio
    async def test_peer_with_no_shared_dates_kept(self):
        provider = _provider()
        provider.histories["HCL.NS"] = make_series("HCL.NS", [1, 2, 3], start=date(2020, 1, 1))

        report = await BetaOrchestrator(provider).calculate(_request())
        peers = {p.ticker: p for p in report.peers}

        assert peers["HCL.NS"].metrics is None

    @pytest.mark.asyncio
    async def test_target_profile_unavailable(self):
        """Without a target profile no peers are discovered."""
        provider = _provider()
        del provider.profiles["TCS.NS"]

        report = await BetaOrchestrator(provider).calculate(_request())

        assert report.peers == ()
        assert report.candidates_considered == 0
        assert provider.calls_for("related_symbols") == []


# ============================================================================
# Persistence Tests
# ============================================================================


class TestPersistence:
    """Tests for the optional report sink."""

    @pytest.mark.asyncio
    async def test_report_saved(self):
        sink = MagicMock()
        sink.save_report.return_value = 1

        report = await BetaOrchestrator(_provider(), sink=sink).calculate(_request())

        sink.save_report.assert_called_once_with(report)

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_request(self):
        sink = MagicMock()
        sink.save_report.side_effect = StorageError("disk full")

        report = await BetaOrchestrator(_provider(), sink=sink).calculate(_request())

        assert report.ticker == "TCS.NS"


# ============================================================================
# Concurrency Tests
# ============================================================================


class TestPeerConcurrency:
    """Tests for the bounded peer-metrics fan-out."""

    @pytest.mark.asyncio
    async def test_peer_metrics_fan_out_is_bounded(self):
        """Peer history work never exceeds max_concurrency peers at once."""
        symbols = [f"P{i}.NS" for i in range(12)]
        provider = _provider(
            related={"TCS.NS": symbols},
            profiles={
                "TCS.NS": _profile("TCS.NS", 1000),
                **{s: _profile(s, 1000 + i) for i, s in enumerate(symbols)},
            },
        )
        provider.histories.update({s: make_series(s, PEER_PRICES["INFY.NS"]) for s in symbols})
        provider.delays.update({s: 0.01 for s in symbols})
        orchestrator = BetaOrchestrator(provider, max_peers=12, max_concurrency=2)

        report = await orchestrator.calculate(_request())

        assert report.peer_tickers() == symbols
        # Each peer runs its history and quote calls together
        assert provider.max_in_flight <= 2 * 2
        assert set(provider.calls_for("history")) >= set(symbols)
