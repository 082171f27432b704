"""
Yahoo Finance "recommended symbols" feed.

yfinance does not expose this endpoint, so it is called directly over
aiohttp. The session is opened lazily and can be shared across calls by
using the client as an async context manager.
"""

from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from peerbeta.exceptions import DataParsingError

logger = structlog.get_logger(__name__)

YAHOO_QUERY_BASE_URL = "https://query2.finance.yahoo.com"
RECOMMENDATIONS_PATH = "v6/finance/recommendationsbysymbol"

# Yahoo rejects requests without a browser-like user agent
DEFAULT_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; peerbeta/0.1)"}


class YahooRecommendationClient:
    """
    Fetch symbols Yahoo recommends alongside a given symbol.

    Example:
        async with YahooRecommendationClient() as client:
            symbols = await client.related_symbols("TCS.NS")
            # ["INFY.NS", "WIPRO.NS", ...]
    """

    def __init__(self, base_url: str = YAHOO_QUERY_BASE_URL, timeout: int = 15):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=DEFAULT_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str) -> Optional[Dict[str, Any]]:
        """GET a JSON document, returning None for missing symbols or network errors."""
        session = self._session or self._ensure_session()
        url = f"{self.base_url}/{path}"

        try:
            async with session.get(url) as response:
                if response.status == 404:
                    logger.debug("yahoo_recommendations_not_found", url=url)
                    return None
                if response.status != 200:
                    logger.warning(
                        "yahoo_recommendations_http_error",
                        url=url,
                        status=response.status,
                    )
                    return None
                return await response.json()

        except aiohttp.ClientError as e:
            logger.warning(
                "yahoo_recommendations_network_error",
                url=url,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def related_symbols(self, symbol: str) -> List[str]:
        """
        Symbols recommended for ``symbol``, in feed order.

        Raises:
            DataParsingError: If the payload does not have the expected shape
        """
        payload = await self._get(f"{RECOMMENDATIONS_PATH}/{symbol}")
        if payload is None:
            return []

        return self.parse_recommendations(payload)

    @staticmethod
    def parse_recommendations(payload: Any) -> List[str]:
        try:
            results = payload["finance"]["result"]
        except (KeyError, TypeError):
            raise DataParsingError(
                "Unexpected recommendations payload",
                raw_data=str(payload),
                expected_type="{'finance': {'result': [...]}}",
            )

        if not results:
            return []
        if not isinstance(results, list) or not isinstance(results[0], dict):
            raise DataParsingError(
                "Recommendations result is not a list of objects",
                raw_data=str(results),
                expected_type="list[dict]",
            )

        recommended = results[0].get("recommendedSymbols") or []
        return [
            item["symbol"]
            for item in recommended
            if isinstance(item, dict) and item.get("symbol")
        ]
