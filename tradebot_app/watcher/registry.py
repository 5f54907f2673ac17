"""
Active-watch registry.

An explicitly owned map from watch key to handle offering the two atomic
operations the watcher relies on: insert-if-absent for de-duplication and
remove-and-return for at-most-once settlement. The internal lock guards
only the dictionary operations themselves and is never held across I/O.
"""

import threading
from typing import Optional

from .models import WatchHandle


class WatchRegistry:
    """Concurrent key -> WatchHandle map."""

    def __init__(self):
        self._watches: dict[str, WatchHandle] = {}
        self._lock = threading.Lock()

    def put_if_absent(self, key: str, handle: WatchHandle) -> Optional[WatchHandle]:
        """Insert ``handle`` unless ``key`` is taken; returns the existing handle if so."""
        with self._lock:
            existing = self._watches.get(key)
            if existing is not None:
                return existing
            self._watches[key] = handle
            return None

    def remove(self, key: str, expected: Optional[WatchHandle] = None) -> Optional[WatchHandle]:
        """Remove and return the handle under ``key``.

        With ``expected``, removal only happens if that exact handle is
        still registered. ``None`` means another path got there first.
        """
        with self._lock:
            current = self._watches.get(key)
            if current is None or (expected is not None and current is not expected):
                return None
            del self._watches[key]
            return current

    def get(self, key: str) -> Optional[WatchHandle]:
        with self._lock:
            return self._watches.get(key)

    def find_by_id(self, watch_id: str) -> Optional[WatchHandle]:
        with self._lock:
            for handle in self._watches.values():
                if handle.id == watch_id:
                    return handle
        return None

    def handles(self) -> list[WatchHandle]:
        """Snapshot of registered handles."""
        with self._lock:
            return list(self._watches.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._watches)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._watches
