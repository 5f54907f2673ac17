"""
Brokerage API error classifications.

Both errors are raised only after the retry policy is exhausted; the
caller turns them into an audit fact and aborts the current execution.
"""

from typing import Optional

from .system_failures import TradeBotError


class BrokerError(TradeBotError):
    """Non-2xx brokerage response after retries were exhausted."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 body: Optional[str] = None, method: Optional[str] = None,
                 url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url


class BrokerResponseError(BrokerError):
    """2xx brokerage response whose payload lacks a required field."""


class BrokerUnreachableError(TradeBotError):
    """Transient I/O failure that persisted through every retry attempt."""

    def __init__(self, message: str, method: Optional[str] = None,
                 url: Optional[str] = None, attempts: int = 0, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)
        self.method = method
        self.url = url
        self.attempts = attempts
