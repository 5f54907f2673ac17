"""
Position sizing for a parsed trade signal.

All arithmetic is Decimal. Quantity uses the ceiling of budget / trigger
so the budget is never under-deployed by truncation.
"""

from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from ..errors import ConfigurationError
from ..parsing.models import TradeSignal, to_decimal

HUNDRED = Decimal("100")
CENT = Decimal("0.01")
_PRECISION = 28


@dataclass(frozen=True)
class ExecutionPlan:
    """Derived order plan; recomputed per signal, never mutated."""
    quantity: int
    take_profit: Decimal
    stop_loss: Decimal


def compute_take_profit(price: Decimal, take_profit_percent: Decimal) -> Decimal:
    """``price * (1 + pct/100)`` at full precision; the broker normalizes on send."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return price * (1 + take_profit_percent / HUNDRED)


class PositionSizer:
    """Maps (budget, take-profit percent, signal) to an ExecutionPlan."""

    def __init__(self, budget: Any, take_profit_percent: Any):
        if budget is None:
            raise ConfigurationError("No sizing budget configured", field="fixed_budget")
        if take_profit_percent is None:
            raise ConfigurationError("No take-profit percent configured", field="take_profit_percent")

        self.budget = to_decimal(budget)
        self.take_profit_percent = to_decimal(take_profit_percent)

        if self.budget <= 0:
            raise ConfigurationError(f"Budget must be positive: {self.budget}", field="fixed_budget")
        if self.take_profit_percent <= 0:
            raise ConfigurationError(
                f"Take-profit percent must be positive: {self.take_profit_percent}",
                field="take_profit_percent"
            )

    def quantity_for(self, trigger: Decimal) -> int:
        """``ceil(budget / trigger)`` shares."""
        if trigger <= 0:
            raise ValueError(f"Trigger must be positive: {trigger}")
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return int((self.budget / trigger).to_integral_value(rounding=ROUND_CEILING))

    def take_profit_for(self, price: Decimal) -> Decimal:
        """Take-profit off ``price``, rounded half-up to cents."""
        return compute_take_profit(price, self.take_profit_percent).quantize(
            CENT, rounding=ROUND_HALF_UP
        )

    def build_plan(self, signal: TradeSignal) -> ExecutionPlan:
        return ExecutionPlan(
            quantity=self.quantity_for(signal.trigger),
            take_profit=self.take_profit_for(signal.trigger),
            stop_loss=signal.stop,
        )
