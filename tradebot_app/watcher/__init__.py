"""
Price-trigger watches: arm, poll, fire once, expire or cancel.
"""
from .models import TriggerEvent, WatchHandle, WatchState, watch_key
from .registry import WatchRegistry
from .trigger_watcher import TriggerWatcher

__all__ = [
    "TriggerEvent",
    "TriggerWatcher",
    "WatchHandle",
    "WatchRegistry",
    "WatchState",
    "watch_key",
]
