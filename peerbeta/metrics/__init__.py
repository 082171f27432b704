"""
Financial Metrics Engine.

Aligns a stock's price series with its benchmark and derives beta, alpha,
correlation, R² and annualized volatility from the daily returns.

Usage:
    from peerbeta.metrics import align_series, calculate_metrics

    pair = align_series(stock_series, benchmark_series)
    result = calculate_metrics(pair)  # None when undefined
"""

from peerbeta.metrics.alignment import (
    AlignedReturnPair,
    MIN_ALIGNED_POINTS,
    align_series,
    build_price_lookup,
)
from peerbeta.metrics.regression import (
    RegressionResult,
    TRADING_DAYS_PER_YEAR,
    calculate_metrics,
    calculate_regression,
)

__all__ = [
    "AlignedReturnPair",
    "MIN_ALIGNED_POINTS",
    "align_series",
    "build_price_lookup",
    "RegressionResult",
    "TRADING_DAYS_PER_YEAR",
    "calculate_metrics",
    "calculate_regression",
]
