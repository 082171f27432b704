"""
Service wiring: builds a ready-to-use orchestrator from configuration.

Usage:
    from peerbeta.service import calculate_beta

    status, body = await calculate_beta({
        "ticker": "TCS", "exchange": "NSE", "period": "1Y",
        "start_date": "2023-01-01", "end_date": "2024-01-01",
    })
"""

from typing import Any, Dict, Mapping, Optional, Tuple

import structlog

from peerbeta.api import handle_beta_request
from peerbeta.config import Config, config
from peerbeta.data.industry_reference import IndustryReference
from peerbeta.data.provider import MarketDataProvider
from peerbeta.data.yfinance_provider import YFinanceProvider
from peerbeta.orchestrator import BetaOrchestrator
from peerbeta.storage import SearchHistoryStorage

logger = structlog.get_logger(__name__)


def build_orchestrator(
    provider: MarketDataProvider,
    cfg: Optional[Config] = None,
) -> BetaOrchestrator:
    """
    Create an orchestrator over ``provider`` with the industry table and history store.

    The caller owns ``provider`` and is responsible for closing it.
    """
    cfg = cfg or config
    reference = IndustryReference.from_excel(cfg.industry_table_path)
    storage = SearchHistoryStorage(str(cfg.history_db_path))

    return BetaOrchestrator(
        provider,
        reference,
        sink=storage,
        max_peers=cfg.max_peers,
        max_concurrency=cfg.peer_max_concurrency,
        search_threshold=cfg.peer_search_threshold,
        search_limit=cfg.search_result_limit,
    )


async def calculate_beta(
    payload: Mapping[str, Any],
    cfg: Optional[Config] = None,
) -> Tuple[int, Dict[str, Any]]:
    """Convenience function: handle one request with a freshly wired yfinance provider."""
    cfg = cfg or config
    async with YFinanceProvider(timeout=cfg.provider_timeout) as provider:
        orchestrator = build_orchestrator(provider, cfg)
        return await handle_beta_request(
            payload, orchestrator, default_period=cfg.default_period
        )
