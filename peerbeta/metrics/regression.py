"""
Regression statistics of a stock against its benchmark.

Beta is the OLS slope of daily stock returns on daily benchmark returns:

    beta        = cov(stock, market) / var(market)
    alpha       = mean(stock) - beta * mean(market)     (daily, not annualized)
    correlation = cov / (std(stock) * std(market))
    r_squared   = correlation ** 2
    volatility  = sample std(stock) * sqrt(252)

The sums of squared deviations share a denominator, so it cancels in beta
and correlation and is only applied (n - 1) for volatility.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence

import numpy as np
import structlog

from peerbeta.metrics.alignment import AlignedReturnPair

logger = structlog.get_logger(__name__)

TRADING_DAYS_PER_YEAR = 252
MIN_RETURNS = 2


@dataclass(frozen=True)
class RegressionResult:
    """Beta, alpha, correlation, R² and annualized volatility for one stock."""

    beta: float
    alpha: float
    correlation: float
    r_squared: float
    volatility: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def calculate_regression(
    stock_returns: Sequence[float],
    market_returns: Sequence[float],
    trading_days: int = TRADING_DAYS_PER_YEAR,
) -> Optional[RegressionResult]:
    """
    Regress stock returns on market returns.

    Returns:
        RegressionResult, or None when the statistics are undefined: the
        sequences differ in length, hold fewer than two returns, or either
        has zero variance.
    """
    stock = np.asarray(stock_returns, dtype=float)
    market = np.asarray(market_returns, dtype=float)

    if stock.shape != market.shape:
        logger.warning(
            "regression_length_mismatch",
            stock_returns=stock.size,
            market_returns=market.size,
        )
        return None

    n = stock.size
    if n < MIN_RETURNS:
        return None

    diff_stock = stock - stock.mean()
    diff_market = market - market.mean()

    covariance = float(np.sum(diff_stock * diff_market))
    variance_market = float(np.sum(diff_market ** 2))
    variance_stock = float(np.sum(diff_stock ** 2))

    if variance_market == 0 or variance_stock == 0:
        logger.info(
            "regression_undefined_zero_variance",
            variance_market=variance_market,
            variance_stock=variance_stock,
            returns=n,
        )
        return None

    beta = covariance / variance_market
    alpha = float(stock.mean()) - beta * float(market.mean())
    correlation = covariance / (np.sqrt(variance_stock) * np.sqrt(variance_market))
    volatility = np.sqrt(variance_stock / (n - 1)) * np.sqrt(trading_days)

    return RegressionResult(
        beta=float(beta),
        alpha=float(alpha),
        correlation=float(correlation),
        r_squared=float(correlation ** 2),
        volatility=float(volatility),
    )


def calculate_metrics(pair: AlignedReturnPair) -> Optional[RegressionResult]:
    """Regression statistics for an aligned price pair."""
    return calculate_regression(pair.stock_returns, pair.market_returns)
