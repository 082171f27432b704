"""
Static industry classification table.

A spreadsheet of listed companies (name, ``EXCHANGE:TICKER``, industry
group) is loaded once at startup into an immutable mapping. It is injected
into the peer engines so tests can substitute a small in-memory table.
"""

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

import pandas as pd
import structlog

from peerbeta.exceptions import ConfigurationError
from peerbeta.exchanges import base_symbol

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IndustryEntry:
    """One row of the classification table, keyed by base symbol (no suffix)."""

    symbol: str
    name: str
    industry: str


class IndustryReference:
    """
    Read-only ``symbol -> IndustryEntry`` lookup.

    Example:
        reference = IndustryReference.from_excel("attached_assets/companies.xlsx")
        reference.industry_of("TCS.NS")
        # "IT Consulting & Software"
        reference.symbols_in_industry("IT Consulting & Software", exclude="TCS")
        # ["INFY", "WIPRO", ...]
    """

    def __init__(self, entries: Iterable[IndustryEntry] = ()):
        table: Dict[str, IndustryEntry] = {}
        for entry in entries:
            # First occurrence wins for duplicated symbols
            table.setdefault(entry.symbol, entry)
        self._entries: Mapping[str, IndustryEntry] = MappingProxyType(table)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and base_symbol(symbol) in self._entries

    def __iter__(self) -> Iterator[IndustryEntry]:
        return iter(self._entries.values())

    def get(self, symbol: str) -> Optional[IndustryEntry]:
        return self._entries.get(base_symbol(symbol))

    def industry_of(self, symbol: str) -> Optional[str]:
        """Industry of ``symbol`` (suffix ignored), or None if unlisted or blank."""
        entry = self.get(symbol)
        if entry is None or not entry.industry:
            return None
        return entry.industry

    def symbols_in_industry(
        self, industry: str, exclude: Optional[str] = None
    ) -> List[str]:
        """
        Base symbols whose industry equals ``industry`` exactly.

        Matching is case-sensitive, as stored. Results are in table order.
        """
        excluded = base_symbol(exclude) if exclude else None
        return [
            entry.symbol
            for entry in self._entries.values()
            if entry.industry == industry and entry.symbol != excluded
        ]

    @classmethod
    def empty(cls) -> "IndustryReference":
        return cls()

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, str]]) -> "IndustryReference":
        """Build from dicts with ``symbol``, ``name`` and ``industry`` keys."""
        entries = []
        for record in records:
            symbol = _clean_symbol(record.get("symbol"))
            if not symbol:
                continue
            entries.append(
                IndustryEntry(
                    symbol=symbol,
                    name=str(record.get("name") or "").strip(),
                    industry=str(record.get("industry") or "").strip(),
                )
            )
        return cls(entries)

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame) -> "IndustryReference":
        """
        Build from a spreadsheet frame, detecting columns by header name.

        Recognised headers (case-insensitive): a column containing "ticker"
        or named "symbol"; a column containing "company" or named "name";
        "industry group", "industry" or "sector".

        Raises:
            ConfigurationError: If no ticker column can be found
        """
        headers = [str(c).strip().lower() for c in frame.columns]

        ticker_col = _find_column(headers, lambda h: "ticker" in h or h == "symbol")
        if ticker_col is None:
            raise ConfigurationError(
                "Industry table has no ticker column",
                config_key="INDUSTRY_TABLE_PATH",
                expected="a 'Ticker' or 'Symbol' header",
            )
        name_col = _find_column(headers, lambda h: "company" in h or h == "name")
        industry_col = _find_column(
            headers, lambda h: h in ("industry group", "industry", "sector")
        )

        columns = list(frame.columns)
        records = []
        for row in frame.itertuples(index=False):
            values = dict(zip(columns, row))
            records.append({
                "symbol": values[columns[ticker_col]],
                "name": _cell(values, columns, name_col),
                "industry": _cell(values, columns, industry_col),
            })

        reference = cls.from_records(records)
        logger.info(
            "industry_reference_loaded",
            rows=len(frame),
            companies=len(reference),
            ticker_column=columns[ticker_col],
            industry_column=columns[industry_col] if industry_col is not None else None,
        )
        return reference

    @classmethod
    def from_excel(cls, path: Union[str, Path]) -> "IndustryReference":
        """Load the first sheet of an Excel workbook; a missing file gives an empty table."""
        path = Path(path)
        if not path.exists():
            logger.warning("industry_table_missing", path=str(path))
            return cls.empty()

        frame = pd.read_excel(path, sheet_name=0, dtype=str)
        return cls.from_dataframe(frame)


def _find_column(headers: List[str], predicate) -> Optional[int]:
    for idx, header in enumerate(headers):
        if predicate(header):
            return idx
    return None


def _cell(values: Dict, columns: List, idx: Optional[int]) -> str:
    if idx is None:
        return ""
    value = values[columns[idx]]
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value)


def _clean_symbol(raw) -> str:
    """Strip whitespace and an ``EXCHANGE:`` prefix ("NSE:TCS" -> "TCS")."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return ""
    symbol = str(raw).strip()
    if ":" in symbol:
        symbol = symbol.split(":", 1)[1].strip()
    return symbol.upper()
