"""
Audit and trade-record journal.

The stores behind ``AuditSink`` and ``TradeRecordSink`` are external
collaborators. ``TradeJournal`` is the only way the core writes to them
and it swallows and logs sink failures: a failed write must never abort
the order flow that produced it.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import orjson
import structlog

from .models import AuditEvent, AuditEventType, ExitReason

logger = structlog.get_logger(__name__)


class AuditSink(ABC):
    """Append-only store for audit facts."""

    @abstractmethod
    def record(self, event: AuditEvent) -> None:
        """Append one audit fact."""


class TradeRecordSink(ABC):
    """Store of one record per signal-to-close lifecycle."""

    @abstractmethod
    def record_signal(self, symbol: str, trigger: Decimal, stop_loss: Decimal) -> None:
        """Open a record in state ARMED."""

    @abstractmethod
    def record_entry(self, symbol: str, entry_price: Decimal, qty: int, buy_order_id: str) -> None:
        """Mark the open record for ``symbol`` FILLED."""

    @abstractmethod
    def record_exit(self, symbol: str, exit_price: Decimal, reason: ExitReason) -> None:
        """Close the open record for ``symbol`` with the exit reason."""


class TradeJournal:
    """Failure-tolerant facade over the audit and trade-record sinks."""

    def __init__(self, audit_sink: Optional[AuditSink] = None,
                 trade_records: Optional[TradeRecordSink] = None):
        self.audit_sink = audit_sink
        self.trade_records = trade_records
        self.logger = logger

    def audit(
        self,
        symbol: str,
        event_type: AuditEventType,
        message: str,
        order_id: Optional[str] = None,
        payload: Optional[object] = None
    ) -> Optional[AuditEvent]:
        """Record an audit fact; returns it, or None if the sink failed."""
        if payload is not None and not isinstance(payload, str):
            payload = orjson.dumps(payload, default=str).decode("utf-8")

        event = AuditEvent(
            symbol=symbol,
            event_type=event_type,
            message=message,
            order_id=order_id,
            payload=payload
        )

        self.logger.info(
            f"[AUDIT:{event_type.value}]",
            symbol=symbol,
            order_id=order_id,
            msg=message
        )

        if self.audit_sink is None:
            return event
        try:
            self.audit_sink.record(event)
        except Exception as e:
            self.logger.error(
                "[AUDIT:ERROR] Failed to persist audit event",
                symbol=symbol,
                event_type=event_type.value,
                error=str(e)
            )
            return None
        return event

    def signal_armed(self, symbol: str, trigger: Decimal, stop_loss: Decimal) -> bool:
        return self._write("record_signal", symbol, trigger, stop_loss)

    def entry_filled(self, symbol: str, entry_price: Decimal, qty: int, buy_order_id: str) -> bool:
        return self._write("record_entry", symbol, entry_price, qty, buy_order_id)

    def exit_recorded(self, symbol: str, exit_price: Decimal, reason: ExitReason) -> bool:
        return self._write("record_exit", symbol, exit_price, reason)

    def _write(self, operation: str, symbol: str, *args) -> bool:
        if self.trade_records is None:
            return False
        try:
            getattr(self.trade_records, operation)(symbol, *args)
        except Exception as e:
            self.logger.error(
                "Failed to write trade record",
                operation=operation,
                symbol=symbol,
                error=str(e)
            )
            return False
        return True
