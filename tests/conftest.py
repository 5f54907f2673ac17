"""Pytest configuration and shared fixtures."""

from concurrent.futures import Future
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import Mock

import pytest

from tradebot_app.broker.models import Quote
from tradebot_app.config.settings import CachedSettingsProvider, SettingsSource, TradingSettings
from tradebot_app.utils.scheduler import ScheduledTask


class ManualClock:
    """Monotonic clock stand-in advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Scheduler stand-in that records tasks and runs them only when told to."""

    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self.timed: list[ScheduledTask] = []
        self.executed: list[Callable[[], None]] = []
        self.run_inline = True
        self.is_shutdown = False

    def schedule(self, fn, delay, name=""):
        self._check()
        task = ScheduledTask(fn, self._clock() + delay, name=name)
        self.timed.append(task)
        return task

    def schedule_at_fixed_rate(self, fn, initial_delay, period, name=""):
        self._check()
        task = ScheduledTask(fn, self._clock() + initial_delay, period=period, name=name)
        self.timed.append(task)
        return task

    def execute(self, fn) -> Future:
        self._check()
        self.executed.append(fn)
        future: Future = Future()
        if self.run_inline:
            fn()
        future.set_result(None)
        return future

    def run(self, task: ScheduledTask) -> None:
        """Run one slot of ``task`` if it is still active."""
        if task.cancelled or task.done:
            return
        task.fn()

    def recurring(self) -> list[ScheduledTask]:
        return [t for t in self.timed if t.recurring]

    def one_shot(self) -> list[ScheduledTask]:
        return [t for t in self.timed if not t.recurring]

    def shutdown(self, wait: bool = False) -> None:
        self.is_shutdown = True
        for task in self.timed:
            task.cancel()

    def _check(self) -> None:
        if self.is_shutdown:
            raise RuntimeError("Scheduler is shut down")


class StaticSettingsSource(SettingsSource):
    """In-memory settings source."""

    def __init__(self, settings: TradingSettings):
        self.settings = settings
        self.loads = 0

    def load(self) -> TradingSettings:
        self.loads += 1
        return self.settings

    def save(self, settings: TradingSettings) -> None:
        self.settings = settings


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def trading_settings() -> TradingSettings:
    """Sample trading settings."""
    return TradingSettings(
        fixed_budget=Decimal("200.00"),
        take_profit_percent=Decimal("5.00"),
        regex_enabled=True,
        ai_enabled=False,
        extended_hours_allowed=True,
    )


@pytest.fixture
def broker() -> Mock:
    """Broker client double with a filled entry and a placed exit."""
    mock = Mock()
    mock.get_last_trade_price.return_value = Decimal("6.00")
    mock.get_last_quote.return_value = Quote(bid=Decimal("6.35"), ask=Decimal("6.37"))
    mock.place_marketable_limit_buy.return_value = {"id": "buy-1", "status": "accepted"}
    mock.get_order_avg_fill_price.return_value = Decimal("6.40")
    mock.place_bracket_exit.return_value = {"id": "oco-1", "status": "accepted"}
    mock.list_orders.return_value = []
    mock.ping.return_value = True
    return mock


@pytest.fixture
def astc_message() -> str:
    """Arabic-language signal message."""
    return "ASTC\nبتجاوز 6.36\nوقف 5.78\nاهداف 6.86 7.48"


@pytest.fixture
def make_order() -> Callable[..., dict[str, Any]]:
    """Factory for closed sell order payloads as listed by the broker."""

    def _make(**fields: Any) -> dict[str, Any]:
        base = {
            "id": "ord-1",
            "symbol": "ASTC",
            "side": "sell",
            "status": "filled",
            "type": "limit",
            "filled_avg_price": "6.72",
        }
        base.update(fields)
        return base

    return _make


@pytest.fixture
def settings_source(trading_settings: TradingSettings) -> StaticSettingsSource:
    return StaticSettingsSource(trading_settings)


@pytest.fixture
def settings_provider(settings_source: StaticSettingsSource) -> CachedSettingsProvider:
    return CachedSettingsProvider(settings_source, ttl_seconds=10.0)
