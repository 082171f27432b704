"""
YFinance-backed market data provider.

Handles all Yahoo Finance access for the beta service:
- Daily price history (unadjusted closes)
- Display names, industry classification and market cap from ``Ticker.info``
- Free-text symbol search
- Related-symbol recommendations via ``YahooRecommendationClient``

yfinance is synchronous, so every call runs on a worker thread.
"""

import asyncio
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd
import structlog
import yfinance as yf

from peerbeta.data.provider import (
    CompanyProfile,
    MarketDataProvider,
    PricePoint,
    PriceSeries,
    Quote,
    safe_float,
)
from peerbeta.data.recommendations import YahooRecommendationClient
from peerbeta.exceptions import DataParsingError

logger = structlog.get_logger(__name__)


class YFinanceProvider(MarketDataProvider):
    """
    Market data provider using yfinance.

    Example:
        async with YFinanceProvider() as provider:
            series = await provider.fetch_history(
                "TCS.NS", date(2023, 1, 1), date(2024, 1, 1)
            )
            profile = await provider.fetch_profile("TCS.NS")
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        recommendations: Optional[YahooRecommendationClient] = None,
    ):
        super().__init__(timeout)
        self._recommendations = recommendations or YahooRecommendationClient(
            timeout=int(self.timeout)
        )

    async def close(self) -> None:
        await self._recommendations.close()

    async def _fetch_history(
        self, symbol: str, start: date, end: date
    ) -> Optional[PriceSeries]:
        # yfinance uses exclusive end dates, so add 1 day
        yf_end = end + timedelta(days=1)

        def download() -> pd.DataFrame:
            return yf.Ticker(symbol).history(
                start=start.isoformat(),
                end=yf_end.isoformat(),
                interval="1d",
                auto_adjust=False,
            )

        frame = await asyncio.to_thread(download)
        return self.frame_to_series(symbol, frame)

    @staticmethod
    def frame_to_series(symbol: str, frame: Optional[pd.DataFrame]) -> PriceSeries:
        """
        Convert a yfinance history frame into a PriceSeries.

        Raises:
            DataParsingError: If a non-empty frame has no Close column
        """
        if frame is None or frame.empty:
            return PriceSeries(symbol=symbol)

        if "Close" not in frame.columns:
            raise DataParsingError(
                f"History for {symbol} has no Close column",
                raw_data=", ".join(str(c) for c in frame.columns),
                expected_type="DataFrame[Close]",
            )

        closes = frame["Close"].sort_index()
        points = tuple(
            PricePoint(date=pd.Timestamp(ts).date(), close=safe_float(close))
            for ts, close in closes.items()
        )
        return PriceSeries(symbol=symbol, points=points)

    async def _get_info(self, symbol: str) -> Dict[str, Any]:
        info = await asyncio.to_thread(lambda: yf.Ticker(symbol).info)
        if info is not None and not isinstance(info, dict):
            raise DataParsingError(
                f"Ticker info for {symbol} is not a mapping",
                raw_data=str(info),
                expected_type="dict",
            )
        return info or {}

    async def _fetch_quote(self, symbol: str) -> Optional[Quote]:
        info = await self._get_info(symbol)
        if not info:
            return None
        return Quote(
            symbol=symbol,
            long_name=info.get("longName"),
            short_name=info.get("shortName"),
        )

    async def _fetch_profile(self, symbol: str) -> Optional[CompanyProfile]:
        info = await self._get_info(symbol)
        if not info:
            return None

        profile = CompanyProfile(
            symbol=symbol,
            industry=info.get("industry") or None,
            sector=info.get("sector") or None,
            market_cap=safe_float(info.get("marketCap")),
        )
        logger.debug(
            "profile_fetched",
            symbol=symbol,
            industry=profile.industry,
            market_cap=profile.market_cap,
        )
        return profile

    async def _search(self, query: str, limit: int) -> List[str]:
        def run_search() -> List[Dict[str, Any]]:
            return yf.Search(query, max_results=limit, news_count=0).quotes

        quotes = await asyncio.to_thread(run_search)
        return [q["symbol"] for q in quotes or [] if isinstance(q, dict) and q.get("symbol")]

    async def _related_symbols(self, symbol: str) -> List[str]:
        return await self._recommendations.related_symbols(symbol)
