"""
Error classification system for the signal-to-order pipeline.

Parse misses are not errors: extractors return ``None`` for text that is
not a trade signal. Everything else that can go wrong is one of the
exceptions below.
"""

from .broker import (
    BrokerError,
    BrokerResponseError,
    BrokerUnreachableError,
)
from .system_failures import (
    TradeBotError,
    ConfigurationError,
    CallbackError,
    PersistenceError,
)

__all__ = [
    # Base
    "TradeBotError",
    # Configuration
    "ConfigurationError",
    # Broker
    "BrokerError",
    "BrokerResponseError",
    "BrokerUnreachableError",
    # Watcher / persistence
    "CallbackError",
    "PersistenceError",
]
