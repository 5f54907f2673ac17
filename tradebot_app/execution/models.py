"""
Execution data models: audit facts, trade-record states and results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..utils.time import utc_now


class AuditEventType(str, Enum):
    """Append-only audit fact types."""
    ARMED = "ARMED"
    FIRING = "FIRING"
    SKIPPED = "SKIPPED"
    ENTRY_FILLED = "ENTRY_FILLED"
    EXIT_PLACED = "EXIT_PLACED"
    ERROR = "ERROR"


class ExitReason(str, Enum):
    """Why a position was closed."""
    TAKE_PROFIT = "TP"
    STOP_LOSS = "SL"


class TradeState(str, Enum):
    """Trade-record lifecycle states."""
    ARMED = "ARMED"
    FILLED = "FILLED"
    TAKE_PROFIT = "TP"
    STOP_LOSS = "SL"

    @classmethod
    def for_exit(cls, reason: ExitReason) -> "TradeState":
        return cls(reason.value)


@dataclass(frozen=True)
class AuditEvent:
    """Append-only observability fact; never updated or deleted."""
    symbol: str
    event_type: AuditEventType
    message: str
    order_id: Optional[str] = None
    payload: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one completed execution."""
    symbol: str
    quantity: int
    entry_order_id: str
    fill_price: Decimal
    fill_estimated: bool          # True when the last trade price stood in for the fill
    take_profit: Decimal
    stop_loss: Decimal
    exit_order_id: str
    spread_bps: int
