"""
Canonical trade signal model.

A ``TradeSignal`` is the only output of both the heuristic extractor and
the AI fallback parser; it is consumed once to build an execution plan.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

MAX_SYMBOL_LENGTH = 10


@dataclass(frozen=True)
class TradeSignal:
    """Immutable trade signal with Decimal prices."""
    symbol: str                 # uppercased ticker, 1-10 chars
    trigger: Decimal            # entry trigger, > 0
    stop: Decimal               # stop-loss, > 0
    targets: tuple[Decimal, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        symbol = (self.symbol or "").strip().upper()
        if not 1 <= len(symbol) <= MAX_SYMBOL_LENGTH:
            raise ValueError(f"Symbol must be 1-{MAX_SYMBOL_LENGTH} characters: {self.symbol!r}")
        if not isinstance(self.trigger, Decimal) or self.trigger <= 0:
            raise ValueError(f"Trigger must be a positive Decimal: {self.trigger!r}")
        if not isinstance(self.stop, Decimal) or self.stop <= 0:
            raise ValueError(f"Stop must be a positive Decimal: {self.stop!r}")

        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "targets", tuple(self.targets))

    @classmethod
    def create(cls, symbol: str, trigger: Any, stop: Any,
               targets: Optional[Iterable[Any]] = None) -> "TradeSignal":
        """Build a signal from loosely typed values (str/int/float/Decimal)."""
        return cls(
            symbol=symbol,
            trigger=to_decimal(trigger),
            stop=to_decimal(stop),
            targets=tuple(to_decimal(t) for t in (targets or ())),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "trigger": str(self.trigger),
            "stop": str(self.stop),
            "targets": [str(t) for t in self.targets],
        }


def to_decimal(value: Any) -> Decimal:
    """Convert a number or numeric string to Decimal without float drift."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result
