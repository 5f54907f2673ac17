"""SQLite persistence for audit facts and trade lifecycle records."""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import structlog

from ..errors import PersistenceError
from ..execution.journal import AuditSink, TradeRecordSink
from ..execution.models import AuditEvent, ExitReason, TradeState
from ..utils.time import format_timestamp, utc_now


@dataclass
class StoredEvent:
    """Stored audit fact."""
    id: int
    symbol: str
    event_type: str
    message: str
    order_id: Optional[str]
    payload: Optional[str]
    created_at: str


@dataclass
class StoredTrade:
    """Stored trade lifecycle record."""
    id: int
    symbol: str
    state: str
    trigger_price: Decimal
    stop_loss: Decimal
    entry_price: Optional[Decimal]
    quantity: Optional[int]
    buy_order_id: Optional[str]
    exit_price: Optional[Decimal]
    exit_reason: Optional[str]
    created_at: str
    filled_at: Optional[str]
    closed_at: Optional[str]

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


class TradeStore(AuditSink, TradeRecordSink):
    """SQLite-based audit and trade-record store."""

    def __init__(self, db_path: str = "tradebot.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("trade.store")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS audit_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    order_id TEXT,
                    payload TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS trade_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    state TEXT NOT NULL,
                    trigger_price TEXT NOT NULL,
                    stop_loss TEXT NOT NULL,
                    entry_price TEXT,
                    quantity INTEGER,
                    buy_order_id TEXT,
                    exit_price TEXT,
                    exit_reason TEXT,
                    created_at TEXT NOT NULL,
                    filled_at TEXT,
                    closed_at TEXT
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_events_symbol ON audit_events(symbol)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_trade_records_symbol ON trade_records(symbol, closed_at)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", error=str(e), db_path=str(self.db_path))
            raise PersistenceError(
                f"Database error: {e}", operation="sqlite", target=str(self.db_path)
            ) from e
        finally:
            if conn:
                conn.close()

    # ---- Audit sink ----

    def record(self, event: AuditEvent) -> int:
        """Append an audit fact; returns its row id."""
        with self._lock, self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO audit_events (
                    symbol, event_type, message, order_id, payload, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, (
                event.symbol,
                event.event_type.value,
                event.message,
                event.order_id,
                event.payload,
                format_timestamp(event.created_at)
            ))
            conn.commit()
            return cursor.lastrowid

    # ---- Trade-record sink ----

    def record_signal(self, symbol: str, trigger: Decimal, stop_loss: Decimal) -> int:
        """Open a trade record in state ARMED."""
        with self._lock, self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO trade_records (symbol, state, trigger_price, stop_loss, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                symbol,
                TradeState.ARMED.value,
                str(trigger),
                str(stop_loss),
                format_timestamp(utc_now())
            ))
            conn.commit()
            self.logger.info("Trade record opened", symbol=symbol, trade_id=cursor.lastrowid)
            return cursor.lastrowid

    def record_entry(self, symbol: str, entry_price: Decimal, qty: int, buy_order_id: str) -> None:
        """Mark the latest open ARMED record for ``symbol`` as FILLED."""
        with self._lock, self._get_connection() as conn:
            row = self._latest_open(conn, symbol, TradeState.ARMED)
            if row is None:
                raise PersistenceError(
                    f"No armed trade record for {symbol}",
                    operation="record_entry",
                    target=symbol
                )
            conn.execute("""
                UPDATE trade_records
                SET state = ?, entry_price = ?, quantity = ?, buy_order_id = ?, filled_at = ?
                WHERE id = ?
            """, (
                TradeState.FILLED.value,
                str(entry_price),
                qty,
                buy_order_id,
                format_timestamp(utc_now()),
                row["id"]
            ))
            conn.commit()

    def record_exit(self, symbol: str, exit_price: Decimal, reason: ExitReason) -> bool:
        """
        Close the latest FILLED record for ``symbol``.

        Returns:
            False when no filled trade is open for the symbol, for example
            a position opened outside this system
        """
        with self._lock, self._get_connection() as conn:
            row = self._latest_open(conn, symbol, TradeState.FILLED)
            if row is None:
                self.logger.warning("No open trade to close", symbol=symbol, reason=reason.value)
                return False
            conn.execute("""
                UPDATE trade_records
                SET state = ?, exit_price = ?, exit_reason = ?, closed_at = ?
                WHERE id = ?
            """, (
                TradeState.for_exit(reason).value,
                str(exit_price),
                reason.value,
                format_timestamp(utc_now()),
                row["id"]
            ))
            conn.commit()
            return True

    # ---- Queries ----

    def get_events(self, symbol: Optional[str] = None, limit: int = 100) -> list[StoredEvent]:
        """Audit facts, newest first."""
        query = "SELECT * FROM audit_events"
        params: list[Any] = []
        if symbol:
            query += " WHERE symbol = ?"
            params.append(symbol)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            StoredEvent(
                id=row["id"],
                symbol=row["symbol"],
                event_type=row["event_type"],
                message=row["message"],
                order_id=row["order_id"],
                payload=row["payload"],
                created_at=row["created_at"]
            )
            for row in rows
        ]

    def get_open_trade(self, symbol: str) -> Optional[StoredTrade]:
        """Latest trade record for ``symbol`` that has not been closed."""
        with self._get_connection() as conn:
            row = self._latest_open(conn, symbol)
        return self._to_trade(row) if row is not None else None

    def get_trades(self, symbol: Optional[str] = None, limit: int = 100) -> list[StoredTrade]:
        """Trade records, newest first."""
        query = "SELECT * FROM trade_records"
        params: list[Any] = []
        if symbol:
            query += " WHERE symbol = ?"
            params.append(symbol)
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._to_trade(row) for row in rows]

    def _latest_open(self, conn: sqlite3.Connection, symbol: str,
                     state: Optional[TradeState] = None) -> Optional[sqlite3.Row]:
        query = "SELECT * FROM trade_records WHERE symbol = ? AND closed_at IS NULL"
        params: list[Any] = [symbol]
        if state is not None:
            query += " AND state = ?"
            params.append(state.value)
        query += " ORDER BY id DESC LIMIT 1"
        return conn.execute(query, params).fetchone()

    @staticmethod
    def _to_trade(row: sqlite3.Row) -> StoredTrade:
        return StoredTrade(
            id=row["id"],
            symbol=row["symbol"],
            state=row["state"],
            trigger_price=Decimal(row["trigger_price"]),
            stop_loss=Decimal(row["stop_loss"]),
            entry_price=_decimal(row["entry_price"]),
            quantity=row["quantity"],
            buy_order_id=row["buy_order_id"],
            exit_price=_decimal(row["exit_price"]),
            exit_reason=row["exit_reason"],
            created_at=row["created_at"],
            filled_at=row["filled_at"],
            closed_at=row["closed_at"]
        )
