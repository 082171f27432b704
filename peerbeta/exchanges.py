"""
Exchange and ticker utilities for Indian equities.

Yahoo Finance lists NSE stocks with a ``.NS`` suffix and BSE stocks with a
``.BO`` suffix. Most large companies trade on both, so a ticker that has no
history on one exchange is retried once on the other.
"""

from enum import Enum
from typing import Optional, Tuple

import structlog

from peerbeta.exceptions import ValidationError

logger = structlog.get_logger(__name__)


class Exchange(Enum):
    """National exchanges supported for beta calculation."""

    NSE = "NSE"
    BSE = "BSE"

    @property
    def suffix(self) -> str:
        return _EXCHANGE_DETAILS[self][0]

    @property
    def benchmark_symbol(self) -> str:
        return _EXCHANGE_DETAILS[self][1]

    @property
    def index_label(self) -> str:
        return _EXCHANGE_DETAILS[self][2]

    @property
    def alternate(self) -> "Exchange":
        return Exchange.BSE if self is Exchange.NSE else Exchange.NSE

    @classmethod
    def parse(cls, value: str) -> "Exchange":
        """Parse an exchange code exactly as written ("NSE" or "BSE")."""
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                "Invalid enum value. Expected 'NSE' | 'BSE'",
                field="exchange",
                value=value,
            )


# Format: Exchange: (yfinance_suffix, benchmark_index, index_label)
_EXCHANGE_DETAILS = {
    Exchange.NSE: (".NS", "^NSEI", "NIFTY 50"),
    Exchange.BSE: (".BO", "^BSESN", "BSE SENSEX"),
}

NATIONAL_SUFFIXES = tuple(details[0] for details in _EXCHANGE_DETAILS.values())


def split_symbol(symbol: str) -> Tuple[str, Optional[str]]:
    """
    Split a Yahoo symbol into base and suffix.

    Example:
        "TCS.NS" -> ("TCS", ".NS")
        "TCS" -> ("TCS", None)
    """
    symbol = symbol.strip().upper()
    if "." not in symbol:
        return symbol, None
    base, _, suffix = symbol.rpartition(".")
    return base, f".{suffix}"


def base_symbol(symbol: str) -> str:
    """Return the symbol without its exchange suffix."""
    return split_symbol(symbol)[0]


def has_national_suffix(symbol: str) -> bool:
    """True if the symbol trades on NSE or BSE according to its suffix."""
    return symbol.strip().upper().endswith(NATIONAL_SUFFIXES)


def exchange_for_suffix(suffix: Optional[str]) -> Optional[Exchange]:
    """Map a ``.NS``/``.BO`` suffix back to its exchange."""
    for exchange, details in _EXCHANGE_DETAILS.items():
        if suffix and suffix.upper() == details[0]:
            return exchange
    return None


def resolve_ticker(ticker: str, exchange: Exchange) -> str:
    """
    Resolve user input to a tradable Yahoo symbol.

    Appends the exchange's default suffix when the ticker carries none.
    Tickers that already have a suffix are returned unchanged.

    Example:
        resolve_ticker("reliance", Exchange.BSE) -> "RELIANCE.BO"
        resolve_ticker("TCS.NS", Exchange.BSE) -> "TCS.NS"
    """
    cleaned = ticker.strip().upper()
    if not cleaned:
        raise ValidationError("Ticker is required", field="ticker")

    _, suffix = split_symbol(cleaned)
    if suffix:
        return cleaned
    return f"{cleaned}{exchange.suffix}"


def fallback_symbol(symbol: str, exchange: Exchange) -> str:
    """
    Symbol to try when ``symbol`` has no usable history.

    The base symbol is re-suffixed for the other national exchange. For a
    symbol already on a national exchange "other" is relative to its own
    suffix; otherwise it is relative to ``exchange``.
    """
    base, suffix = split_symbol(symbol)
    listed_on = exchange_for_suffix(suffix) or exchange
    return f"{base}{listed_on.alternate.suffix}"
