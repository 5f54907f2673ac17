"""Bounded set of already-reconciled order ids."""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional


class SeenOrderCache:
    """
    Insertion-ordered id set with a capacity bound and entry TTL.

    Entries older than ``ttl_seconds`` are dropped on access; past
    ``capacity`` the oldest entry is evicted. The TTL should be at least
    the reconciler's lookback window so an order still being listed by
    the broker is never seen twice.
    """

    def __init__(self, capacity: int = 10000, ttl_seconds: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def add(self, order_id: str) -> bool:
        """Remember ``order_id``; False if it was already present."""
        with self._lock:
            now = self._clock()
            self._expire(now)
            if order_id in self._entries:
                return False
            self._entries[order_id] = now
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
            return True

    def __contains__(self, order_id: str) -> bool:
        with self._lock:
            self._expire(self._clock())
            return order_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expire(self, now: float) -> None:
        if self.ttl_seconds is None:
            return
        cutoff = now - self.ttl_seconds
        while self._entries:
            oldest_id, added_at = next(iter(self._entries.items()))
            if added_at > cutoff:
                break
            del self._entries[oldest_id]
