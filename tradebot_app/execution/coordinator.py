"""
Execution coordinator.

Arms a watch for each planned signal and, when the watch fires, runs the
entry/exit sequence against the broker:

    FIRING -> spread check -> marketable limit buy -> fill price
           -> ENTRY_FILLED -> take-profit off the fill -> OCO exit
           -> EXIT_PLACED

Each execution is an isolation boundary. Any failure aborts that one
execution with an ERROR audit fact; other watches and later signals are
unaffected.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from ..broker.models import normalize_price
from ..config.defaults import ExecutionParams
from ..logging.config import get_execution_logger
from ..parsing.models import TradeSignal, to_decimal
from ..sizing.position_sizer import HUNDRED, ExecutionPlan, compute_take_profit
from ..watcher.models import TriggerEvent, WatchHandle
from ..watcher.trigger_watcher import TriggerWatcher
from .journal import TradeJournal
from .models import AuditEventType, ExecutionResult

logger = get_execution_logger(__name__)


class StopLossPolicy(str, Enum):
    """How the exit stop price is derived."""
    SIGNAL = "signal"                      # the signal's stop, unchanged
    SHIFT_WITH_FILL = "shift_with_fill"    # keep the trigger-to-stop distance below the fill


def resolve_stop_loss(policy: StopLossPolicy, signal_stop: Decimal,
                      trigger: Decimal, fill_price: Decimal) -> Decimal:
    if policy is StopLossPolicy.SHIFT_WITH_FILL:
        shifted = fill_price - (trigger - signal_stop)
        return shifted if shifted > 0 else signal_stop
    return signal_stop


def _order_id(response: Any) -> str:
    order_id = response.get("id") if isinstance(response, dict) else None
    if not order_id:
        raise ValueError(f"Broker response has no order id: {response!r}")
    return str(order_id)


class ExecutionCoordinator:
    """Turns fired watches into an entry order plus a bracketed exit."""

    def __init__(
        self,
        broker: Any,
        watcher: TriggerWatcher,
        journal: TradeJournal,
        params: Optional[ExecutionParams] = None
    ):
        self.broker = broker
        self.watcher = watcher
        self.journal = journal
        self.params = params or ExecutionParams()
        self.stop_loss_policy = StopLossPolicy(self.params.stop_loss_policy)
        self.slippage_factor = 1 + to_decimal(self.params.slippage_pct) / HUNDRED
        self.logger = logger

    def arm(
        self,
        signal: TradeSignal,
        plan: ExecutionPlan,
        take_profit_percent: Decimal,
        extended_hours: bool,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> WatchHandle:
        """
        Arm the signal's price trigger and record it.

        The ARMED facts are written only for a newly armed watch; a repeat
        of an already armed signal returns the existing handle unrecorded.
        """
        def on_armed(handle: WatchHandle) -> None:
            self.journal.audit(
                signal.symbol,
                AuditEventType.ARMED,
                f"Armed trigger at {signal.trigger} qty={plan.quantity} "
                f"TP={plan.take_profit} SL={plan.stop_loss}",
                payload=signal.to_dict()
            )
            self.journal.signal_armed(signal.symbol, signal.trigger, signal.stop)

        def on_cross(event: TriggerEvent) -> None:
            self.execute(signal, plan, take_profit_percent, extended_hours, event)

        return self.watcher.arm(
            signal.symbol,
            signal.trigger,
            poll_interval=poll_interval,
            timeout=timeout,
            on_cross=on_cross,
            on_armed=on_armed
        )

    def execute(
        self,
        signal: TradeSignal,
        plan: ExecutionPlan,
        take_profit_percent: Decimal,
        extended_hours: bool,
        event: TriggerEvent
    ) -> Optional[ExecutionResult]:
        """
        Run the entry/exit sequence for a fired watch.

        Returns:
            The execution result, or None when skipped or failed
        """
        symbol = signal.symbol
        log = self.logger.bind(symbol=symbol, watch_id=event.watch_id)

        try:
            self.journal.audit(
                symbol,
                AuditEventType.FIRING,
                f"Trigger crossed: last={event.last_price} trigger={signal.trigger}"
            )

            quote = self.broker.get_last_quote(symbol)
            spread_bps = quote.spread_bps
            log.info("Spread check", bid=str(quote.bid), ask=str(quote.ask), spread_bps=spread_bps)

            max_spread = self.params.max_spread_bps
            if max_spread is not None and spread_bps > max_spread:
                self.journal.audit(
                    symbol,
                    AuditEventType.SKIPPED,
                    f"Spread {spread_bps}bps exceeds limit {max_spread}bps"
                )
                log.warning("Execution skipped on spread", spread_bps=spread_bps, max_spread_bps=max_spread)
                return None

            limit_price = signal.trigger * self.slippage_factor
            buy = self.broker.place_marketable_limit_buy(
                symbol, plan.quantity, limit_price, extended_hours
            )
            buy_id = _order_id(buy)

            fill_price = self.broker.get_order_avg_fill_price(buy_id)
            fill_estimated = fill_price is None
            if fill_estimated:
                fill_price = event.last_price
                log.info("Fill price not settled, using last trade", order_id=buy_id, estimate=str(fill_price))

            self.journal.audit(
                symbol,
                AuditEventType.ENTRY_FILLED,
                f"Entry filled qty={plan.quantity} avg={fill_price}"
                + (" (estimated)" if fill_estimated else ""),
                order_id=buy_id,
                payload=buy
            )
            self.journal.entry_filled(symbol, fill_price, plan.quantity, buy_id)

            # Rounded to the tick the broker is sent
            take_profit = normalize_price(compute_take_profit(fill_price, to_decimal(take_profit_percent)))
            stop_loss = normalize_price(
                resolve_stop_loss(self.stop_loss_policy, signal.stop, signal.trigger, fill_price)
            )

            exit_order = self.broker.place_bracket_exit(symbol, plan.quantity, take_profit, stop_loss)
            exit_id = _order_id(exit_order)

            self.journal.audit(
                symbol,
                AuditEventType.EXIT_PLACED,
                f"OCO placed TP={take_profit} SL={stop_loss}",
                order_id=exit_id,
                payload=exit_order
            )
        except Exception as e:
            self.journal.audit(symbol, AuditEventType.ERROR, f"Execution failed: {e}")
            log.error("Execution failed", error=str(e), exc_info=True)
            return None

        log.info(
            "Execution complete",
            quantity=plan.quantity,
            fill_price=str(fill_price),
            take_profit=str(take_profit),
            stop_loss=str(stop_loss)
        )
        return ExecutionResult(
            symbol=symbol,
            quantity=plan.quantity,
            entry_order_id=buy_id,
            fill_price=fill_price,
            fill_estimated=fill_estimated,
            take_profit=take_profit,
            stop_loss=stop_loss,
            exit_order_id=exit_id,
            spread_bps=spread_bps
        )
