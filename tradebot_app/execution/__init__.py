"""
Order execution: audit/trade-record journal and the execution coordinator.
"""
from .coordinator import ExecutionCoordinator, StopLossPolicy
from .journal import AuditSink, TradeJournal, TradeRecordSink
from .models import AuditEvent, AuditEventType, ExecutionResult, ExitReason, TradeState

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSink",
    "ExecutionCoordinator",
    "ExecutionResult",
    "ExitReason",
    "StopLossPolicy",
    "TradeJournal",
    "TradeRecordSink",
    "TradeState",
]
