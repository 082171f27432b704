"""
Request and report models for a beta calculation.

All models are immutable and live for a single request: the request is
validated once at the boundary, the report is assembled once by the
orchestrator and then handed to the response and the history store.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
import structlog

from peerbeta.config import VALID_PERIODS
from peerbeta.exceptions import ValidationError
from peerbeta.exchanges import Exchange
from peerbeta.metrics.regression import RegressionResult
from peerbeta.peers.ranker import VerifiedPeer

logger = structlog.get_logger(__name__)

DEFAULT_PERIOD = "5Y"


def _parse_iso_date(value: Any, field: str) -> date:
    """Parse an ISO-8601 date or datetime string ("Z" suffix accepted)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Expected an ISO-8601 date string", field=field, value=value)

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text).date()
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError("Invalid ISO-8601 date", field=field, value=value)


@dataclass(frozen=True)
class BetaRequest:
    """
    A validated beta calculation request.

    Example:
        >>> request = BetaRequest.from_dict({
        ...     "ticker": "TCS", "exchange": "NSE", "period": "1Y",
        ...     "start_date": "2023-01-01", "end_date": "2024-01-01",
        ... })
        >>> request.exchange
        <Exchange.NSE: 'NSE'>
    """

    ticker: str
    exchange: Exchange
    start_date: date
    end_date: date
    period: str = DEFAULT_PERIOD

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        default_period: str = DEFAULT_PERIOD,
    ) -> "BetaRequest":
        """
        Validate a raw request payload.

        Args:
            payload: Decoded request body
            default_period: Period used when the payload has none

        Raises:
            ValidationError: With the path of the first offending field
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be an object", field="")

        ticker = payload.get("ticker")
        if not isinstance(ticker, str):
            raise ValidationError("Ticker must be a string", field="ticker", value=ticker)
        if not ticker.strip():
            raise ValidationError("Ticker is required", field="ticker")

        if payload.get("exchange") is None:
            raise ValidationError("Exchange is required", field="exchange")
        exchange = Exchange.parse(payload["exchange"])

        period = payload.get("period")
        if period is None:
            period = default_period
        if period not in VALID_PERIODS:
            raise ValidationError(
                "Invalid enum value. Expected '1Y' | '3Y' | '5Y'",
                field="period",
                value=period,
            )

        start_date = _parse_iso_date(payload.get("start_date"), "start_date")
        end_date = _parse_iso_date(payload.get("end_date"), "end_date")
        if end_date < start_date:
            raise ValidationError(
                "End date must not be before start date",
                field="end_date",
                value=payload.get("end_date"),
            )

        return cls(
            ticker=ticker.strip().upper(),
            exchange=exchange,
            start_date=start_date,
            end_date=end_date,
            period=period,
        )

    @classmethod
    def for_period(
        cls,
        ticker: str,
        exchange: Exchange,
        period: str = DEFAULT_PERIOD,
        end_date: Optional[date] = None,
    ) -> "BetaRequest":
        """Build a request covering ``period`` whole years up to ``end_date`` (today)."""
        if period not in VALID_PERIODS:
            raise ValidationError(
                "Invalid enum value. Expected '1Y' | '3Y' | '5Y'",
                field="period",
                value=period,
            )
        end = end_date or date.today()
        years = int(period[0])
        start = (pd.Timestamp(end) - pd.DateOffset(years=years)).date()
        return cls(
            ticker=ticker.strip().upper(),
            exchange=exchange,
            start_date=start,
            end_date=end,
            period=period,
        )


@dataclass(frozen=True)
class PeerReport:
    """A verified peer with its own regression statistics (None if undefined)."""

    peer: VerifiedPeer
    name: str
    metrics: Optional[RegressionResult] = None

    @property
    def ticker(self) -> str:
        return self.peer.symbol

    def to_dict(self) -> Dict[str, Any]:
        metrics = self.metrics
        return {
            "ticker": self.peer.symbol,
            "name": self.name,
            "beta": metrics.beta if metrics else None,
            "volatility": metrics.volatility if metrics else None,
            "alpha": metrics.alpha if metrics else None,
            "correlation": metrics.correlation if metrics else None,
            "r_squared": metrics.r_squared if metrics else None,
            "market_cap": self.peer.market_cap,
            "sector": self.peer.sector_path,
        }


@dataclass(frozen=True)
class BetaReport:
    """
    Result of one beta calculation.

    Peers are in ranking order: closest market cap to the target first.
    """

    ticker: str
    name: str
    exchange: Exchange
    start_date: date
    end_date: date
    period: str
    metrics: RegressionResult
    peers: Tuple[PeerReport, ...] = ()
    candidates_considered: int = 0

    @property
    def benchmark_symbol(self) -> str:
        return self.exchange.benchmark_symbol

    @property
    def market_index_label(self) -> str:
        return self.exchange.index_label

    def peer_tickers(self) -> List[str]:
        return [p.ticker for p in self.peers]

    def to_response(self) -> Dict[str, Any]:
        """Response body for the caller."""
        return {
            "ticker": self.ticker,
            "name": self.name,
            "market_index_label": self.market_index_label,
            "beta": self.metrics.beta,
            "volatility": self.metrics.volatility,
            "alpha": self.metrics.alpha,
            "correlation": self.metrics.correlation,
            "r_squared": self.metrics.r_squared,
            "period": self.period,
            "peers": [p.to_dict() for p in self.peers],
        }
