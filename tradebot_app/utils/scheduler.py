"""
Task scheduler: a bounded worker pool fed by a timed dispatcher.

One dispatcher thread keeps timed tasks ordered on a heap and hands them
to a ``ThreadPoolExecutor`` when due. Recurring tasks run at a fixed
rate; if a previous run of the same task is still executing when its
next slot comes up, that slot is skipped rather than queued, so a slow
task only delays itself. Cancellation never interrupts a running task;
it only suppresses future runs.
"""

import heapq
import itertools
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class ScheduledTask:
    """Handle for a one-shot or recurring scheduled task."""

    def __init__(self, fn: Callable[[], None], next_run: float,
                 period: Optional[float] = None, name: str = ""):
        self.fn = fn
        self.next_run = next_run
        self.period = period
        self.name = name or getattr(fn, "__name__", "task")
        self.run_count = 0
        self.skipped_slots = 0
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._state_lock = threading.Lock()
        self._running = False

    @property
    def recurring(self) -> bool:
        return self.period is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def is_active(self) -> bool:
        return not self.cancelled and not self.done

    def cancel(self) -> bool:
        """Suppress future runs; returns False if already cancelled or finished."""
        with self._state_lock:
            if self.cancelled or self.done:
                return False
            self._cancelled.set()
            if not self._running:
                self._done.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the task is finished or cancelled (and idle)."""
        return self._done.wait(timeout)

    def _try_start(self) -> bool:
        with self._state_lock:
            if self._running or self.cancelled:
                return False
            self._running = True
            return True

    def _finish_run(self) -> None:
        with self._state_lock:
            self._running = False
            self.run_count += 1
            if not self.recurring or self.cancelled:
                self._done.set()


class TaskScheduler:
    """Timed and ad hoc task execution on a bounded pool of worker threads."""

    def __init__(self, max_workers: int = 4, name: str = "tradebot",
                 clock: Callable[[], float] = time.monotonic):
        self.name = name
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._sequence = itertools.count()
        self._condition = threading.Condition()
        self._shutdown = False
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name=f"{name}-dispatcher", daemon=True
        )
        self._dispatcher.start()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def schedule(self, fn: Callable[[], None], delay: float, name: str = "") -> ScheduledTask:
        """Run ``fn`` once after ``delay`` seconds."""
        task = ScheduledTask(fn, self._clock() + max(0.0, delay), name=name)
        self._push(task)
        return task

    def schedule_at_fixed_rate(self, fn: Callable[[], None], initial_delay: float,
                               period: float, name: str = "") -> ScheduledTask:
        """Run ``fn`` every ``period`` seconds, first after ``initial_delay``."""
        if period <= 0:
            raise ValueError("period must be positive")
        task = ScheduledTask(fn, self._clock() + max(0.0, initial_delay), period=period, name=name)
        self._push(task)
        return task

    def execute(self, fn: Callable[[], None]) -> Future:
        """Run ``fn`` as soon as a worker is free."""
        if self._shutdown:
            raise RuntimeError(f"Scheduler {self.name} is shut down")
        return self._executor.submit(fn)

    def shutdown(self, wait: bool = False) -> None:
        """Cancel pending tasks and stop the workers.

        In-flight tasks finish on their own; with ``wait`` the call blocks
        until they do.
        """
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            pending = [task for _, _, task in self._queue]
            self._queue.clear()
            self._condition.notify_all()

        for task in pending:
            task.cancel()

        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Scheduler shut down", scheduler=self.name, cancelled_tasks=len(pending))

    def _push(self, task: ScheduledTask) -> None:
        with self._condition:
            if self._shutdown:
                raise RuntimeError(f"Scheduler {self.name} is shut down")
            heapq.heappush(self._queue, (task.next_run, next(self._sequence), task))
            self._condition.notify()

    def _dispatch_loop(self) -> None:
        while True:
            with self._condition:
                task = None
                while not self._shutdown:
                    if not self._queue:
                        self._condition.wait()
                        continue
                    due, _, head = self._queue[0]
                    remaining = due - self._clock()
                    if remaining > 0:
                        self._condition.wait(remaining)
                        continue
                    heapq.heappop(self._queue)
                    task = head
                    break
                if self._shutdown:
                    return

            if task.cancelled:
                continue
            self._dispatch(task)

    def _dispatch(self, task: ScheduledTask) -> None:
        if task._try_start():
            try:
                self._executor.submit(self._run_task, task)
            except RuntimeError:
                # Executor already shut down
                task._finish_run()
                return
        else:
            task.skipped_slots += 1

        if task.recurring and not task.cancelled:
            now = self._clock()
            next_run = task.next_run + task.period
            if next_run <= now:
                # Fixed-rate slots that were missed are skipped, not replayed
                missed = int((now - next_run) // task.period) + 1
                next_run += missed * task.period
            task.next_run = next_run
            try:
                self._push(task)
            except RuntimeError:
                task.cancel()

    def _run_task(self, task: ScheduledTask) -> None:
        try:
            task.fn()
        except Exception as e:
            logger.error("Scheduled task failed", task=task.name, error=str(e), exc_info=True)
        finally:
            task._finish_run()
