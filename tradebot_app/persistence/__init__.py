"""
Persistence layer for audit facts and trade records.
"""
from .trade_store import StoredEvent, StoredTrade, TradeStore

__all__ = ["StoredEvent", "StoredTrade", "TradeStore"]
