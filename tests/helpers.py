"""
Test helpers: an in-memory market data provider and series builders.
"""

import asyncio
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from peerbeta.data.industry_reference import IndustryEntry, IndustryReference
from peerbeta.data.provider import (
    CompanyProfile,
    MarketDataProvider,
    PriceSeries,
    Quote,
)

START = date(2024, 1, 1)


def make_series(
    symbol: str,
    prices: Sequence[Optional[float]],
    start: date = START,
    dates: Optional[Sequence[date]] = None,
) -> PriceSeries:
    """Series with one price per consecutive day (or per given date)."""
    if dates is None:
        dates = [start + timedelta(days=i) for i in range(len(prices))]
    return PriceSeries.from_pairs(symbol, zip(dates, prices))


def make_reference(rows: Iterable[Tuple[str, str, str]]) -> IndustryReference:
    """Reference table from ``(symbol, name, industry)`` rows."""
    return IndustryReference(IndustryEntry(s, n, i) for s, n, i in rows)


class FakeMarketDataProvider(MarketDataProvider):
    """
    Provider backed by dictionaries.

    Unknown symbols return nothing. Calls listed in ``failing`` as
    ``(call, symbol)`` raise, exercising the base-class error handling.
    """

    def __init__(
        self,
        histories: Optional[Dict[str, PriceSeries]] = None,
        quotes: Optional[Dict[str, Quote]] = None,
        profiles: Optional[Dict[str, CompanyProfile]] = None,
        search_results: Optional[Dict[str, List[str]]] = None,
        related: Optional[Dict[str, List[str]]] = None,
        failing: Optional[Set[Tuple[str, str]]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        super().__init__(timeout=5)
        self.histories = histories or {}
        self.quotes = quotes or {}
        self.profiles = profiles or {}
        self.search_results = search_results or {}
        self.related = related or {}
        self.failing = failing or set()
        self.delays = delays or {}
        self.calls: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, call: str, symbol: str) -> None:
        self.calls.append((call, symbol))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(symbol, 0))
        finally:
            self.in_flight -= 1
        if (call, symbol) in self.failing:
            raise RuntimeError(f"{call} failed for {symbol}")

    def calls_for(self, call: str) -> List[str]:
        return [s for c, s in self.calls if c == call]

    async def _fetch_history(self, symbol, start, end):
        await self._enter("history", symbol)
        return self.histories.get(symbol)

    async def _fetch_quote(self, symbol):
        await self._enter("quote", symbol)
        return self.quotes.get(symbol)

    async def _fetch_profile(self, symbol):
        await self._enter("profile", symbol)
        return self.profiles.get(symbol)

    async def _search(self, query, limit):
        await self._enter("search", query)
        return list(self.search_results.get(query, []))[:limit]

    async def _related_symbols(self, symbol):
        await self._enter("related_symbols", symbol)
        return list(self.related.get(symbol, []))
