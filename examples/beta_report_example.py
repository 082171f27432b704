"""
Example usage of the beta calculation service.

This script computes a stock's beta against its exchange index and prints
the ranked industry peers with their own betas.
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from peerbeta.config import config
from peerbeta.data import IndustryReference, YFinanceProvider
from peerbeta.exceptions import PeerBetaError
from peerbeta.exchanges import Exchange
from peerbeta.models import BetaRequest
from peerbeta.orchestrator import BetaOrchestrator


def _fmt(value, digits: int = 3) -> str:
    return "N/A" if value is None else f"{value:.{digits}f}"


async def beta_report(ticker: str, exchange: Exchange, period: str = "1Y"):
    """
    Print a beta report for a ticker.

    Args:
        ticker: Ticker symbol, with or without exchange suffix
        exchange: Exchange whose index is the benchmark
        period: Look-back period (1Y, 3Y or 5Y)
    """
    print(f"\n{'='*80}")
    print(f"{period} Beta for {ticker} vs {exchange.index_label}")
    print(f"{'='*80}\n")

    reference = IndustryReference.from_excel(config.industry_table_path)
    request = BetaRequest.for_period(ticker, exchange, period)

    async with YFinanceProvider(timeout=config.provider_timeout) as provider:
        orchestrator = BetaOrchestrator(provider, reference, max_peers=config.max_peers)
        try:
            report = await orchestrator.calculate(request)
        except PeerBetaError as e:
            print(f"✗ {e.message}")
            return

    m = report.metrics
    print(f"✓ {report.name} ({report.ticker})")
    print(f"  Beta        {_fmt(m.beta)}")
    print(f"  Alpha       {_fmt(m.alpha, 5)}")
    print(f"  Correlation {_fmt(m.correlation)}")
    print(f"  R²          {_fmt(m.r_squared)}")
    print(f"  Volatility  {_fmt(m.volatility * 100, 2)}%")

    print(f"\nPeers ({len(report.peers)} of {report.candidates_considered} candidates):")
    print("-" * 80)
    for peer in report.peers:
        beta = peer.metrics.beta if peer.metrics else None
        print(
            f"  {peer.ticker:<16} {peer.name[:30]:<30} "
            f"beta {_fmt(beta):>7}  cap {peer.peer.market_cap / 1e7:>12,.0f} Cr"
        )


if __name__ == "__main__":
    symbol = sys.argv[1] if len(sys.argv) > 1 else "TCS"
    exchange = Exchange.parse(sys.argv[2].upper()) if len(sys.argv) > 2 else Exchange.NSE
    period = sys.argv[3] if len(sys.argv) > 3 else config.default_period
    asyncio.run(beta_report(symbol, exchange, period))
