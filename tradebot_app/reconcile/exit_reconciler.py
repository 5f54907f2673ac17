"""
Exit reconciler.

Polls the broker on a fixed cadence for sell orders closed within a
rolling lookback window and writes an exit record for each newly seen
filled one. The exit reason comes from the order type: a plain ``limit``
leg is the take-profit, any stop variant is the stop-loss.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

import structlog

from ..broker.models import decimal_or_none
from ..config.defaults import ReconcilerParams
from ..errors import BrokerError, BrokerUnreachableError
from ..execution.journal import TradeJournal
from ..execution.models import ExitReason
from ..utils.scheduler import ScheduledTask, TaskScheduler
from ..utils.time import lookback_start
from .seen_cache import SeenOrderCache

logger = structlog.get_logger(__name__)

FILLED_STATUSES = ("filled", "partially_filled")


@dataclass(frozen=True)
class ExitFill:
    """A reconciled exit."""
    order_id: str
    symbol: str
    fill_price: Decimal
    reason: ExitReason
    order_type: str


def classify_exit(order_type: Optional[str]) -> ExitReason:
    """``limit`` is a take-profit, any stop variant a stop-loss, anything else take-profit."""
    kind = (order_type or "").strip().lower()
    if kind == "limit":
        return ExitReason.TAKE_PROFIT
    if "stop" in kind:
        return ExitReason.STOP_LOSS
    return ExitReason.TAKE_PROFIT


def flatten_orders(orders: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Orders plus their nested legs, parents first."""
    flat = []
    for order in orders:
        if not isinstance(order, dict):
            continue
        flat.append(order)
        flat.extend(flatten_orders(order.get("legs") or []))
    return flat


class ExitReconciler:
    """Background poller that records broker-side exits."""

    def __init__(
        self,
        broker: Any,
        journal: TradeJournal,
        scheduler: TaskScheduler,
        params: Optional[ReconcilerParams] = None,
        seen: Optional[SeenOrderCache] = None
    ):
        self.broker = broker
        self.journal = journal
        self.scheduler = scheduler
        self.params = params or ReconcilerParams()
        self.seen = seen if seen is not None else SeenOrderCache(
            capacity=self.params.seen_capacity,
            ttl_seconds=self.params.lookback_minutes * 60 * 2
        )
        self._task: Optional[ScheduledTask] = None

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.is_active()

    def start(self) -> None:
        if self.running:
            return
        self._task = self.scheduler.schedule_at_fixed_rate(
            self._tick,
            initial_delay=self.params.initial_delay_seconds,
            period=self.params.interval_seconds,
            name="exit-reconciler"
        )
        logger.info(
            "Exit reconciler started",
            interval_seconds=self.params.interval_seconds,
            lookback_minutes=self.params.lookback_minutes
        )

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Exit reconciler stopped")

    def poll_once(self) -> list[ExitFill]:
        """Reconcile one page of recently closed sell orders."""
        orders = self.broker.list_orders(
            "closed",
            "sell",
            since=lookback_start(self.params.lookback_minutes),
            limit=self.params.list_limit
        )

        fills = []
        for order in flatten_orders(orders):
            fill = self._reconcile(order)
            if fill is not None:
                fills.append(fill)
        return fills

    def _tick(self) -> None:
        try:
            fills = self.poll_once()
        except (BrokerError, BrokerUnreachableError) as e:
            logger.warning("Exit reconciliation poll failed", error=str(e))
            return
        if fills:
            logger.info("Exits reconciled", count=len(fills))

    def _reconcile(self, order: dict[str, Any]) -> Optional[ExitFill]:
        order_id = order.get("id")
        if not order_id:
            return None
        order_id = str(order_id)
        if order_id in self.seen:
            return None

        if str(order.get("side") or "").lower() != "sell":
            return None
        if str(order.get("status") or "").lower() not in FILLED_STATUSES:
            return None

        symbol = order.get("symbol")
        if not symbol:
            return None

        fill_price = decimal_or_none(order.get("filled_avg_price"))
        if fill_price is None:
            logger.warning(
                "Skipping exit with unparsable fill price",
                order_id=order_id,
                symbol=symbol,
                filled_avg_price=order.get("filled_avg_price")
            )
            return None

        if not self.seen.add(order_id):
            return None

        order_type = str(order.get("type") or order.get("order_type") or "")
        reason = classify_exit(order_type)
        self.journal.exit_recorded(symbol, fill_price, reason)
        logger.info(
            "Exit recorded",
            order_id=order_id,
            symbol=symbol,
            fill_price=str(fill_price),
            reason=reason.value
        )
        return ExitFill(
            order_id=order_id,
            symbol=symbol,
            fill_price=fill_price,
            reason=reason,
            order_type=order_type
        )
