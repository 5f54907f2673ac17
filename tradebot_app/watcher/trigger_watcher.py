"""
Concurrent price-trigger watcher.

Each armed watch gets its own fixed-rate poll on the shared scheduler plus
an independent one-shot expiry backstop. A poll tick first checks the
absolute deadline, then reads the last trade price; when the price
reaches the trigger the watch is removed from the registry (first remover
wins), its polling stops, and the callback is dispatched on a separate
worker so the poll never blocks on it.
"""

import time
import uuid
from decimal import Decimal
from typing import Any, Callable, Optional

from ..config.defaults import WatcherParams
from ..errors import BrokerError, BrokerUnreachableError, CallbackError
from ..logging.config import get_watch_logger, log_watch_transition
from ..parsing.models import to_decimal
from ..utils.scheduler import TaskScheduler
from ..utils.time import has_expired, utc_now
from .models import (
    OnCross,
    TriggerEvent,
    WatchHandle,
    WatchState,
    normalize_trigger,
    watch_key,
)
from .registry import WatchRegistry

logger = get_watch_logger(__name__)


class TriggerWatcher:
    """Arms "notify when price >= X, expire after T" watches."""

    def __init__(
        self,
        broker: Any,
        scheduler: Optional[TaskScheduler] = None,
        registry: Optional[WatchRegistry] = None,
        params: Optional[WatcherParams] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.broker = broker
        self.params = params or WatcherParams()
        self.registry = registry if registry is not None else WatchRegistry()
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or TaskScheduler(
            max_workers=self.params.max_workers, name="price-watcher", clock=clock
        )
        self._clock = clock
        self.logger = logger

    def arm(
        self,
        symbol: str,
        trigger: Any,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        on_cross: Optional[OnCross] = None,
        on_armed: Optional[Callable[[WatchHandle], None]] = None
    ) -> WatchHandle:
        """
        Arm a watch on ``symbol`` crossing ``trigger``.

        A second arm for the same key while the first is still armed
        returns the existing handle; no second poll job is created.

        Args:
            symbol: Ticker; trimmed and uppercased
            trigger: Trigger price; rounded to 6 decimals for the key
            poll_interval: Seconds between polls, floored at the minimum interval
            timeout: Seconds until the watch expires
            on_cross: Callback invoked at most once with the TriggerEvent
            on_armed: Called once for a newly armed watch, before its first
                poll is scheduled; not called when the key is already armed

        Returns:
            Handle of the new or already-armed watch
        """
        if on_cross is None:
            raise ValueError("on_cross callback is required")

        if self.scheduler.is_shutdown:
            raise RuntimeError("Scheduler is shut down")

        sym = symbol.strip().upper()
        trg = normalize_trigger(to_decimal(trigger))
        key = watch_key(sym, trg)

        poll = max(
            poll_interval if poll_interval is not None else self.params.poll_interval_seconds,
            self.params.min_poll_interval_seconds
        )
        ttl = timeout if timeout is not None else self.params.timeout_seconds

        handle = WatchHandle(
            watch_id=str(uuid.uuid4()),
            key=key,
            symbol=sym,
            trigger=trg,
            expires_at=self._clock() + ttl,
            callback=on_cross,
            canceller=self.cancel
        )

        existing = self.registry.put_if_absent(key, handle)
        if existing is not None:
            self.logger.warning("Watch already active", watch_key=key, watch_id=existing.id)
            return existing

        if on_armed is not None:
            on_armed(handle)

        try:
            poll_task = self.scheduler.schedule_at_fixed_rate(
                lambda: self._poll(handle), initial_delay=0.0, period=poll, name=f"poll:{key}"
            )
            expiry_task = self.scheduler.schedule(
                lambda: self._backstop_expire(handle), delay=ttl, name=f"expiry:{key}"
            )
        except RuntimeError:
            self.registry.remove(key, handle)
            handle.settle(WatchState.CANCELLED)
            raise
        handle.attach_tasks(poll_task, expiry_task)

        self.logger.info(
            "Armed trigger",
            symbol=sym,
            trigger=str(trg),
            poll_seconds=poll,
            timeout_seconds=ttl,
            watch_id=handle.id
        )
        return handle

    def cancel(self, watch_id: str) -> bool:
        """Cancel an armed watch; unknown or settled watches are a no-op."""
        handle = self.registry.find_by_id(watch_id)
        if handle is None:
            return False
        return self._settle(handle, WatchState.CANCELLED, "cancelled")

    def get(self, key: str) -> Optional[WatchHandle]:
        return self.registry.get(key)

    def active_count(self) -> int:
        return len(self.registry)

    def active_watches(self) -> list[WatchHandle]:
        return self.registry.handles()

    def shutdown(self) -> None:
        """Cancel every armed watch and, if owned, tear the scheduler down."""
        self.logger.info("Stopping trigger watcher", active_watches=len(self.registry))
        for handle in self.registry.handles():
            self._settle(handle, WatchState.CANCELLED, "shutdown")
        if self._owns_scheduler:
            self.scheduler.shutdown(wait=False)

    # ---- Internals ----

    def _poll(self, handle: WatchHandle) -> None:
        """One poll tick for ``handle``."""
        if not handle.is_active():
            return

        if has_expired(handle.expires_at, self._clock):
            self._settle(handle, WatchState.EXPIRED, "timeout")
            return

        try:
            price = self.broker.get_last_trade_price(handle.symbol)
        except (BrokerError, BrokerUnreachableError) as e:
            self.logger.warning("Polling error", symbol=handle.symbol, watch_id=handle.id, error=str(e))
            return
        except Exception as e:
            self.logger.error(
                "Unexpected polling error",
                symbol=handle.symbol,
                watch_id=handle.id,
                error=str(e),
                exc_info=True
            )
            return

        if price is None:
            return
        price = to_decimal(price)
        if price >= handle.trigger:
            self._fire(handle, price)

    def _fire(self, handle: WatchHandle, price: Decimal) -> None:
        if self.registry.remove(handle.key, handle) is None:
            return

        event = TriggerEvent(
            watch_id=handle.id,
            symbol=handle.symbol,
            trigger=handle.trigger,
            last_price=price,
            crossed_at=utc_now()
        )
        if not handle.settle(WatchState.FIRED, event):
            return

        log_watch_transition(
            self.logger, handle.id, handle.key,
            WatchState.ARMED.value, WatchState.FIRED.value, "price_crossed",
            context={"last_price": str(price), "trigger": str(handle.trigger)}
        )

        try:
            self.scheduler.execute(lambda: self._run_callback(handle, event))
        except RuntimeError:
            self.logger.error("Callback dropped, scheduler is shut down", watch_id=handle.id, symbol=handle.symbol)

    def _run_callback(self, handle: WatchHandle, event: TriggerEvent) -> None:
        try:
            handle.callback(event)
        except Exception as e:
            error = CallbackError(
                f"on_cross callback failed: {e}",
                watch_id=handle.id,
                symbol=handle.symbol
            )
            self.logger.error(
                "onCross callback error",
                watch_id=error.watch_id,
                symbol=error.symbol,
                error=str(error),
                exc_info=True
            )

    def _backstop_expire(self, handle: WatchHandle) -> None:
        if handle.is_active():
            self._settle(handle, WatchState.EXPIRED, "timeout_backstop")

    def _settle(self, handle: WatchHandle, state: WatchState, reason: str) -> bool:
        if self.registry.remove(handle.key, handle) is None:
            return False
        if not handle.settle(state):
            return False
        log_watch_transition(
            self.logger, handle.id, handle.key,
            WatchState.ARMED.value, state.value, reason
        )
        return True
