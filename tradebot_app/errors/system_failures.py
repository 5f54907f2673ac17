"""
System-level error classifications.

These exceptions cover configuration problems, failures raised from user
callbacks and persistence failures of the audit/trade-record store.
"""

from typing import Any, Optional


class TradeBotError(Exception):
    """Base class for all TradeBot errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None,
                 recoverable: bool = False):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = recoverable


class ConfigurationError(TradeBotError):
    """Required settings are missing or invalid.

    Fatal for the affected subsystem; never retried at runtime.
    """

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class CallbackError(TradeBotError):
    """An ``on_cross`` callback raised while handling a fired watch."""

    def __init__(self, message: str, watch_id: Optional[str] = None,
                 symbol: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.watch_id = watch_id
        self.symbol = symbol


class PersistenceError(TradeBotError):
    """Database failures in the audit/trade-record store."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target
