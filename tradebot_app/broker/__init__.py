"""
Brokerage REST client with bounded retries and idempotent mutations.
"""
from .client import BrokerClient
from .models import Quote, format_price, normalize_price
from .retry import RetryPolicy

__all__ = ["BrokerClient", "Quote", "RetryPolicy", "format_price", "normalize_price"]
