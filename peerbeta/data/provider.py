"""
Market Data Provider Base Class

Defines the narrow result types exchanged with market-data providers and the
abstract provider contract used by the metrics and peer engines:
- Timeout handling per call
- Conversion of every provider failure into an absent result
- Logging of failures with the symbol that caused them
"""

import asyncio
import math
import structlog
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, List, Optional, Tuple

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 15


@dataclass(frozen=True)
class PricePoint:
    """Closing price for one trading day. ``close`` is None when missing."""

    date: date
    close: Optional[float]

    def has_price(self) -> bool:
        return self.close is not None and self.close > 0


@dataclass(frozen=True)
class PriceSeries:
    """Daily closing prices for one instrument, ascending by date."""

    symbol: str
    points: Tuple[PricePoint, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    @property
    def dates(self) -> Tuple[date, ...]:
        return tuple(p.date for p in self.points)

    @property
    def closes(self) -> Tuple[Optional[float], ...]:
        return tuple(p.close for p in self.points)

    def is_usable(self) -> bool:
        """At least two days with a price, the minimum for a single return."""
        return sum(1 for p in self.points if p.has_price()) >= 2

    @classmethod
    def from_pairs(cls, symbol: str, pairs) -> "PriceSeries":
        """Build a series from ``(date, close)`` pairs."""
        return cls(symbol=symbol, points=tuple(PricePoint(d, c) for d, c in pairs))


@dataclass(frozen=True)
class Quote:
    """Display information for a symbol."""

    symbol: str
    long_name: Optional[str] = None
    short_name: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.long_name or self.short_name or None

    @property
    def short_display_name(self) -> Optional[str]:
        """Short name first; used for compact peer rows."""
        return self.short_name or self.long_name or None


@dataclass(frozen=True)
class CompanyProfile:
    """Industry classification and size of a listed company."""

    symbol: str
    industry: Optional[str] = None
    sector: Optional[str] = None
    market_cap: Optional[float] = None

    @property
    def sector_path(self) -> str:
        return f"{self.sector or 'Unknown'} > {self.industry or 'Unknown'}"


def safe_float(value: Any) -> Optional[float]:
    """Safely convert value to float, returning None for invalid values."""
    if value is None:
        return None
    try:
        f_value = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(f_value) or math.isinf(f_value):
        return None
    return f_value


class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Subclasses implement the ``_fetch_*`` hooks and may raise freely. The
    public methods are best-effort: a timeout or any exception becomes
    ``None`` (or an empty list) so that no provider error reaches the core.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.logger = structlog.get_logger(self.__class__.__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        """Release any resources held by the provider."""
        return None

    @abstractmethod
    async def _fetch_history(
        self, symbol: str, start: date, end: date
    ) -> Optional[PriceSeries]:
        """Daily closes for ``symbol`` between ``start`` and ``end`` inclusive."""

    @abstractmethod
    async def _fetch_quote(self, symbol: str) -> Optional[Quote]:
        """Display names for ``symbol``."""

    @abstractmethod
    async def _fetch_profile(self, symbol: str) -> Optional[CompanyProfile]:
        """Industry, sector and market cap for ``symbol``."""

    @abstractmethod
    async def _search(self, query: str, limit: int) -> List[str]:
        """Symbols matching a free-text query."""

    @abstractmethod
    async def _related_symbols(self, symbol: str) -> List[str]:
        """Symbols the provider recommends alongside ``symbol``."""

    async def fetch_history(
        self, symbol: str, start: date, end: date
    ) -> Optional[PriceSeries]:
        series = await self._guarded("history", symbol, self._fetch_history(symbol, start, end))
        if series is not None and len(series) == 0:
            return None
        return series

    async def fetch_quote(self, symbol: str) -> Optional[Quote]:
        return await self._guarded("quote", symbol, self._fetch_quote(symbol))

    async def fetch_profile(self, symbol: str) -> Optional[CompanyProfile]:
        return await self._guarded("profile", symbol, self._fetch_profile(symbol))

    async def search(self, query: str, limit: int = 20) -> List[str]:
        return await self._guarded("search", query, self._search(query, limit)) or []

    async def related_symbols(self, symbol: str) -> List[str]:
        return await self._guarded("related_symbols", symbol, self._related_symbols(symbol)) or []

    async def _guarded(self, call: str, symbol: str, coro: Awaitable[Any]) -> Any:
        """Run a provider call with timeout protection."""
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)

        except asyncio.TimeoutError:
            self.logger.warning(
                "provider_call_timeout",
                call=call,
                symbol=symbol,
                timeout=self.timeout,
            )
            return None

        except asyncio.CancelledError:
            self.logger.warning("provider_call_cancelled", call=call, symbol=symbol)
            raise

        except Exception as e:
            self.logger.warning(
                "provider_call_failed",
                call=call,
                symbol=symbol,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
