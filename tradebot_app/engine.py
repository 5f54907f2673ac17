"""
Trading engine.

Wires the pipeline together:

    message text -> SignalExtractor / AI fallback -> PositionSizer
                 -> ExecutionCoordinator.arm -> TriggerWatcher
                 -> on cross -> entry + bracketed exit

and runs the exit reconciler alongside it on the same scheduler.
"""

from typing import Any, Optional

import structlog

from .broker.client import BrokerClient
from .config.defaults import AppConfig, get_default_config
from .config.settings import CachedSettingsProvider, TradingSettings
from .errors import ConfigurationError
from .execution.coordinator import ExecutionCoordinator
from .execution.journal import TradeJournal
from .parsing.ai_parser import AiSignalParser
from .parsing.extractor import SignalExtractor
from .parsing.models import TradeSignal
from .reconcile.exit_reconciler import ExitReconciler
from .sizing.position_sizer import PositionSizer
from .utils.scheduler import TaskScheduler
from .watcher.models import WatchHandle
from .watcher.trigger_watcher import TriggerWatcher

logger = structlog.get_logger(__name__)


class TradingEngine:
    """
    Entry point for inbound message text.

    Owns the shared scheduler, the trigger watcher, the execution
    coordinator and the exit reconciler.
    """

    def __init__(
        self,
        broker: Any,
        settings: CachedSettingsProvider,
        journal: TradeJournal,
        config: Optional[AppConfig] = None,
        ai_parser: Optional[AiSignalParser] = None,
        extractor: Optional[SignalExtractor] = None,
        scheduler: Optional[TaskScheduler] = None
    ) -> None:
        self.logger = logger
        self.config = config or get_default_config()
        self.broker = broker
        self.settings = settings
        self.journal = journal
        self.extractor = extractor or SignalExtractor()
        self.ai_parser = ai_parser

        self.scheduler = scheduler or TaskScheduler(
            max_workers=self.config.watcher.max_workers, name="tradebot"
        )
        self.watcher = TriggerWatcher(broker, scheduler=self.scheduler, params=self.config.watcher)
        self.coordinator = ExecutionCoordinator(
            broker, self.watcher, journal, params=self.config.execution
        )
        self.reconciler = ExitReconciler(
            broker, journal, self.scheduler, params=self.config.reconciler
        )

        self.logger.info("Trading engine initialized", ai_fallback=ai_parser is not None)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        settings: CachedSettingsProvider,
        journal: TradeJournal,
        ai_parser: Optional[AiSignalParser] = None
    ) -> "TradingEngine":
        """Build an engine with a live broker client from configuration."""
        broker = BrokerClient(config.broker)
        return cls(broker, settings, journal, config=config, ai_parser=ai_parser)

    def on_text(self, text: str) -> Optional[WatchHandle]:
        """
        Handle one inbound message.

        Returns:
            Handle of the armed watch, or None when the text is not a
            signal or the signal could not be armed
        """
        try:
            settings = self.settings.get()
        except ConfigurationError as e:
            self.logger.error("Trading settings unavailable", error=str(e), field=e.field)
            return None

        signal = self.parse(text, settings)
        if signal is None:
            self.logger.debug("Message is not a trade signal")
            return None

        try:
            sizer = PositionSizer(settings.fixed_budget, settings.take_profit_percent)
            plan = sizer.build_plan(signal)
        except ConfigurationError as e:
            self.logger.error("Cannot size signal", symbol=signal.symbol, error=str(e), field=e.field)
            return None

        self.logger.info(
            "Signal accepted",
            symbol=signal.symbol,
            trigger=str(signal.trigger),
            stop=str(signal.stop),
            targets=[str(t) for t in signal.targets],
            quantity=plan.quantity,
            take_profit=str(plan.take_profit)
        )

        try:
            return self.coordinator.arm(
                signal,
                plan,
                settings.take_profit_percent,
                settings.extended_hours_allowed
            )
        except RuntimeError as e:
            self.logger.error("Cannot arm signal", symbol=signal.symbol, error=str(e))
            return None

    def parse(self, text: str, settings: TradingSettings) -> Optional[TradeSignal]:
        """Heuristic parser first, then the AI parser when enabled."""
        if settings.regex_enabled:
            signal = self.extractor.parse(text)
            if signal is not None:
                return signal

        if settings.ai_enabled and self.ai_parser is not None:
            signal = self.ai_parser.parse(text)
            if signal is not None:
                self.logger.info("Signal parsed by AI fallback", symbol=signal.symbol)
            return signal

        return None

    def start(self) -> bool:
        """
        Check broker connectivity and start background reconciliation.

        The engine starts even when the broker is unreachable; polling
        and reconciliation log and retry on their own schedules.

        Returns:
            Whether the broker health check passed
        """
        reachable = self.broker.ping()
        if not reachable:
            self.logger.warning("Starting with broker unreachable")
        self.reconciler.start()
        self.logger.info("Trading engine started", broker_reachable=reachable)
        return reachable

    def shutdown(self, wait: bool = False) -> None:
        """Cancel armed watches, stop reconciliation and the scheduler."""
        self.watcher.shutdown()
        self.reconciler.stop()
        self.scheduler.shutdown(wait=wait)
        self.logger.info("Trading engine stopped")

    def get_runtime_stats(self) -> dict[str, Any]:
        return {
            "active_watches": self.watcher.active_count(),
            "watch_keys": [handle.key for handle in self.watcher.active_watches()],
            "reconciler_running": self.reconciler.running,
            "reconciled_orders": len(self.reconciler.seen),
        }
