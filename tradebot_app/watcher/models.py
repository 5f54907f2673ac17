"""
Watch lifecycle models.

A watch starts ARMED and ends in exactly one terminal state. The handle
doubles as a one-shot outcome channel: ``wait()`` returns the
``TriggerEvent`` once the watch fires, or ``None`` if it expired or was
cancelled.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from ..utils.scheduler import ScheduledTask

TRIGGER_KEY_QUANTUM = Decimal("0.000001")


class WatchState(str, Enum):
    """Watch lifecycle states."""
    ARMED = "armed"
    FIRED = "fired"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not WatchState.ARMED


@dataclass(frozen=True)
class TriggerEvent:
    """Price crossing observed for an armed watch."""
    watch_id: str
    symbol: str
    trigger: Decimal
    last_price: Decimal
    crossed_at: datetime


def normalize_trigger(trigger: Decimal) -> Decimal:
    """Trigger rounded half-up to 6 decimals, as used in watch keys."""
    return trigger.quantize(TRIGGER_KEY_QUANTUM, rounding=ROUND_HALF_UP)


def watch_key(symbol: str, trigger: Decimal) -> str:
    """De-duplication key: ``SYMBOL|trigger`` with the trigger at 6 decimals."""
    return f"{symbol.strip().upper()}|{format(normalize_trigger(trigger), 'f')}"


OnCross = Callable[[TriggerEvent], None]


class WatchHandle:
    """Handle for one armed watch."""

    def __init__(
        self,
        watch_id: str,
        key: str,
        symbol: str,
        trigger: Decimal,
        expires_at: float,
        callback: OnCross,
        canceller: Callable[[str], bool]
    ):
        self.id = watch_id
        self.key = key
        self.symbol = symbol
        self.trigger = trigger
        self.expires_at = expires_at
        self.callback = callback
        self._canceller = canceller
        self._state = WatchState.ARMED
        self._event: Optional[TriggerEvent] = None
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._tasks: list["ScheduledTask"] = []

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def event(self) -> Optional[TriggerEvent]:
        return self._event

    def is_active(self) -> bool:
        return self._state is WatchState.ARMED

    def cancel(self) -> bool:
        """Cancel this watch; a no-op once it is terminal."""
        return self._canceller(self.id)

    def wait(self, timeout: Optional[float] = None) -> Optional[TriggerEvent]:
        """Block until the watch settles; the event if it fired, else None."""
        self._settled.wait(timeout)
        return self._event

    def attach_tasks(self, *tasks: "ScheduledTask") -> None:
        """Bind scheduled tasks; cancelled at once if the watch already settled."""
        with self._lock:
            self._tasks.extend(tasks)
            settled = self._state.is_terminal
        if settled:
            for task in tasks:
                task.cancel()

    def settle(self, state: WatchState, event: Optional[TriggerEvent] = None) -> bool:
        """Move to a terminal state once; stops future scheduling without interrupting."""
        if not state.is_terminal:
            raise ValueError(f"{state} is not a terminal state")
        with self._lock:
            if self._state.is_terminal:
                return False
            self._state = state
            self._event = event
            tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        self._settled.set()
        return True

    def __repr__(self) -> str:
        return f"WatchHandle(id={self.id!r}, key={self.key!r}, state={self._state.value})"
