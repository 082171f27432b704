"""
Return series alignment.

Pairs a stock's daily closes with the benchmark's closes on the same
calendar dates. Dates present in only one series are dropped; nothing is
interpolated or forward-filled. Inputs are expected in ascending date order
and are not re-sorted.
"""

from dataclasses import dataclass
from datetime import date
from functools import cached_property
from types import MappingProxyType
from typing import Mapping, Tuple, Union

import structlog

from peerbeta.data.provider import PriceSeries
from peerbeta.exceptions import InsufficientDataError

logger = structlog.get_logger(__name__)

MIN_ALIGNED_POINTS = 2

PriceLookup = Mapping[date, float]


@dataclass(frozen=True)
class AlignedReturnPair:
    """
    Stock and benchmark prices on matching dates, with their daily returns.

    ``stock_returns[i]`` uses the aligned prices at ``i + 1`` and ``i``, so
    both return tuples are one shorter than the aligned price tuples.
    """

    dates: Tuple[date, ...]
    stock_prices: Tuple[float, ...]
    market_prices: Tuple[float, ...]

    def __post_init__(self):
        if not (len(self.dates) == len(self.stock_prices) == len(self.market_prices)):
            raise ValueError("Aligned dates and prices must have equal length")

    def __len__(self) -> int:
        return len(self.dates)

    @cached_property
    def stock_returns(self) -> Tuple[float, ...]:
        return _simple_returns(self.stock_prices)

    @cached_property
    def market_returns(self) -> Tuple[float, ...]:
        return _simple_returns(self.market_prices)


def _simple_returns(prices: Tuple[float, ...]) -> Tuple[float, ...]:
    return tuple(
        (prices[i] - prices[i - 1]) / prices[i - 1] for i in range(1, len(prices))
    )


def build_price_lookup(series: PriceSeries) -> PriceLookup:
    """
    Read-only ``date -> close`` mapping for a benchmark series.

    Days without a positive close are left out. The mapping is safe to share
    between concurrent alignments.
    """
    return MappingProxyType({p.date: p.close for p in series if p.has_price()})


def align_series(
    target: PriceSeries,
    benchmark: Union[PriceSeries, PriceLookup],
) -> AlignedReturnPair:
    """
    Align ``target`` to ``benchmark`` on matching calendar dates.

    Args:
        target: Stock price series, ascending by date
        benchmark: Benchmark series or a lookup from build_price_lookup

    Returns:
        AlignedReturnPair in the target's date order

    Raises:
        InsufficientDataError: If fewer than two dates align
    """
    lookup = build_price_lookup(benchmark) if isinstance(benchmark, PriceSeries) else benchmark

    dates = []
    stock_prices = []
    market_prices = []
    for point in target:
        if not point.has_price():
            continue
        market_price = lookup.get(point.date)
        if not market_price:
            continue
        dates.append(point.date)
        stock_prices.append(point.close)
        market_prices.append(market_price)

    if len(dates) < MIN_ALIGNED_POINTS:
        logger.warning(
            "insufficient_aligned_points",
            ticker=target.symbol,
            target_points=len(target),
            aligned_points=len(dates),
        )
        raise InsufficientDataError(
            "Insufficient data points to calculate metrics",
            ticker=target.symbol,
            data_points=len(dates),
            required=MIN_ALIGNED_POINTS,
        )

    logger.debug(
        "series_aligned",
        ticker=target.symbol,
        target_points=len(target),
        aligned_points=len(dates),
    )
    return AlignedReturnPair(
        dates=tuple(dates),
        stock_prices=tuple(stock_prices),
        market_prices=tuple(market_prices),
    )
