"""
Unit tests for exchange and ticker utilities.
"""

import pytest

from peerbeta.exceptions import ValidationError
from peerbeta.exchanges import (
    Exchange,
    base_symbol,
    exchange_for_suffix,
    fallback_symbol,
    has_national_suffix,
    resolve_ticker,
    split_symbol,
)


class TestExchange:
    """Tests for the Exchange enum."""

    def test_nse_details(self):
        assert Exchange.NSE.suffix == ".NS"
        assert Exchange.NSE.benchmark_symbol == "^NSEI"
        assert Exchange.NSE.index_label == "NIFTY 50"

    def test_bse_details(self):
        assert Exchange.BSE.suffix == ".BO"
        assert Exchange.BSE.benchmark_symbol == "^BSESN"
        assert Exchange.BSE.index_label == "BSE SENSEX"

    def test_alternate(self):
        assert Exchange.NSE.alternate is Exchange.BSE
        assert Exchange.BSE.alternate is Exchange.NSE

    def test_parse(self):
        assert Exchange.parse("NSE") is Exchange.NSE
        assert Exchange.parse("BSE") is Exchange.BSE

    @pytest.mark.parametrize("raw", ["nse", " NSE ", "Bse"])
    def test_parse_is_case_sensitive(self, raw):
        """Only the canonical upper-case codes are accepted."""
        with pytest.raises(ValidationError) as exc_info:
            Exchange.parse(raw)

        assert exc_info.value.field == "exchange"

    def test_parse_unknown(self):
        with pytest.raises(ValidationError) as exc_info:
            Exchange.parse("NYSE")

        assert exc_info.value.field == "exchange"


class TestSymbols:
    """Tests for symbol splitting and suffix checks."""

    def test_split_symbol(self):
        assert split_symbol("tcs.ns") == ("TCS", ".NS")
        assert split_symbol("TCS") == ("TCS", None)
        assert split_symbol("BAJAJ-AUTO.BO") == ("BAJAJ-AUTO", ".BO")

    def test_base_symbol(self):
        assert base_symbol("INFY.BO") == "INFY"

    @pytest.mark.parametrize(
        "symbol, expected",
        [("INFY.NS", True), ("infy.bo", True), ("MSFT", False), ("SAP.DE", False)],
    )
    def test_has_national_suffix(self, symbol, expected):
        assert has_national_suffix(symbol) is expected

    def test_exchange_for_suffix(self):
        assert exchange_for_suffix(".NS") is Exchange.NSE
        assert exchange_for_suffix(".bo") is Exchange.BSE
        assert exchange_for_suffix(".DE") is None
        assert exchange_for_suffix(None) is None


class TestResolveTicker:
    """Tests for resolve_ticker and fallback_symbol."""

    def test_appends_exchange_suffix(self):
        """A bare BSE ticker resolves to its .BO symbol."""
        assert resolve_ticker("reliance", Exchange.BSE) == "RELIANCE.BO"
        assert resolve_ticker("TCS", Exchange.NSE) == "TCS.NS"

    def test_keeps_existing_suffix(self):
        assert resolve_ticker("TCS.NS", Exchange.BSE) == "TCS.NS"

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_ticker(self, raw):
        with pytest.raises(ValidationError) as exc_info:
            resolve_ticker(raw, Exchange.NSE)

        assert exc_info.value.field == "ticker"

    def test_fallback_switches_exchange(self):
        assert fallback_symbol("TCS.NS", Exchange.NSE) == "TCS.BO"
        assert fallback_symbol("TCS.BO", Exchange.NSE) == "TCS.NS"

    def test_fallback_for_foreign_suffix_uses_request_exchange(self):
        assert fallback_symbol("TCS", Exchange.NSE) == "TCS.BO"
        assert fallback_symbol("TCS.XX", Exchange.BSE) == "TCS.NS"
