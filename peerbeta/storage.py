"""
Search history persistence layer.

Stores one row per completed beta calculation so past searches can be
listed later. The orchestrator treats this store as fire-and-forget.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import structlog

from peerbeta.exceptions import StorageError
from peerbeta.models import BetaReport

logger = structlog.get_logger(__name__)


@dataclass
class SearchRecord:
    """
    A stored beta search.

    Attributes:
        ticker: Resolved ticker symbol, e.g. "TCS.NS"
        exchange: "NSE" or "BSE"
        start_date: First day of the window
        end_date: Last day of the window
        beta: Target beta
        peers: Peer rows as returned to the caller
        id: Database ID (set after save)
        created_at: Record creation timestamp
    """

    ticker: str
    exchange: str
    start_date: date
    end_date: date
    beta: Optional[float]
    peers: List[Dict[str, Any]] = field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_report(cls, report: BetaReport) -> "SearchRecord":
        return cls(
            ticker=report.ticker,
            exchange=report.exchange.value,
            start_date=report.start_date,
            end_date=report.end_date,
            beta=report.metrics.beta,
            peers=[p.to_dict() for p in report.peers],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "ticker": self.ticker,
            "exchange": self.exchange,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "beta": self.beta,
            "peers": self.peers,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SearchHistoryStorage:
    """
    Persistent storage for beta searches using SQLite.

    Example:
        >>> storage = SearchHistoryStorage("data/beta_history.db")
        >>> search_id = storage.save_report(report)
        >>> recent = storage.get_recent_searches(limit=10)
    """

    def __init__(self, db_path: str = "beta_history.db"):
        """
        Initialize search history storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)
        self._connection = None

        # For in-memory databases, keep persistent connection
        if self.db_path == ":memory:":
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)

        self._init_database()
        logger.info("search_history_storage_initialized", db_path=self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection (reuse for in-memory DBs)."""
        if self._connection:
            return self._connection
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        """Initialize database schema for search history."""
        try:
            conn = self._get_connection()
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS searches (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ticker TEXT NOT NULL,
                        exchange TEXT NOT NULL,
                        start_date TEXT NOT NULL,
                        end_date TEXT NOT NULL,
                        beta REAL,
                        peers TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_searches_created_at
                    ON searches(created_at)
                """)
            logger.debug("search_history_schema_initialized")

        except sqlite3.Error as e:
            raise StorageError(
                "Failed to initialize search history database",
                details={"db_path": self.db_path},
                cause=e
            )

    def save_report(self, report: BetaReport) -> int:
        """Save a finished report; returns the new search ID."""
        return self.save_search(SearchRecord.from_report(report))

    def save_search(self, record: SearchRecord) -> int:
        """
        Save a search record to the database.

        Raises:
            StorageError: If save fails
        """
        created_at = record.created_at or datetime.now()
        try:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute("""
                    INSERT INTO searches (
                        ticker, exchange, start_date, end_date, beta, peers, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.ticker,
                    record.exchange,
                    record.start_date.isoformat(),
                    record.end_date.isoformat(),
                    record.beta,
                    json.dumps(record.peers),
                    created_at.isoformat(),
                ))
                search_id = cursor.lastrowid

            record.id = search_id
            record.created_at = created_at
            logger.info("search_saved", id=search_id, ticker=record.ticker)
            return search_id

        except sqlite3.Error as e:
            raise StorageError(
                "Failed to save search",
                details={"ticker": record.ticker},
                cause=e
            )

    def get_recent_searches(self, limit: int = 10) -> List[SearchRecord]:
        """Most recent searches first."""
        try:
            conn = self._get_connection()
            rows = conn.execute("""
                SELECT id, ticker, exchange, start_date, end_date, beta, peers, created_at
                FROM searches
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            """, (limit,)).fetchall()
        except sqlite3.Error as e:
            raise StorageError("Failed to load recent searches", cause=e)

        return [self._row_to_record(row) for row in rows]

    def get_search(self, search_id: int) -> Optional[SearchRecord]:
        try:
            conn = self._get_connection()
            row = conn.execute("""
                SELECT id, ticker, exchange, start_date, end_date, beta, peers, created_at
                FROM searches WHERE id = ?
            """, (search_id,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError("Failed to load search", details={"id": search_id}, cause=e)

        return self._row_to_record(row) if row else None

    def delete_search(self, search_id: int) -> bool:
        """Delete a search; returns True if a row was removed."""
        try:
            conn = self._get_connection()
            with conn:
                cursor = conn.execute("DELETE FROM searches WHERE id = ?", (search_id,))
            deleted = cursor.rowcount > 0
            logger.info("search_deleted", id=search_id, deleted=deleted)
            return deleted
        except sqlite3.Error as e:
            raise StorageError("Failed to delete search", details={"id": search_id}, cause=e)

    @staticmethod
    def _row_to_record(row) -> SearchRecord:
        search_id, ticker, exchange, start_date, end_date, beta, peers, created_at = row
        return SearchRecord(
            id=search_id,
            ticker=ticker,
            exchange=exchange,
            start_date=date.fromisoformat(start_date),
            end_date=date.fromisoformat(end_date),
            beta=beta,
            peers=json.loads(peers) if peers else [],
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )
