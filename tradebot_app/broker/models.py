"""
Brokerage value types and price normalization.

Normalization applies to every price sent to the broker, never to prices
read from it: values >= 1.00 are rounded to cents, values below 1.00 to
four decimal places, both half-up.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Any, Optional

from ..parsing.models import to_decimal

ONE = Decimal("1")
CENT = Decimal("0.01")
SUB_PENNY = Decimal("0.0001")
BPS = Decimal("10000")


def normalize_price(price: Decimal) -> Decimal:
    """Round a price to the broker's tick size."""
    if price >= ONE:
        return price.quantize(CENT, rounding=ROUND_HALF_UP)
    return price.quantize(SUB_PENNY, rounding=ROUND_HALF_UP)


def format_price(price: Decimal) -> str:
    """Normalize and render a price as a plain decimal string."""
    return format(normalize_price(price), "f")


def decimal_or_none(value: Any) -> Optional[Decimal]:
    """Parse a JSON number/string into Decimal, None when absent or invalid."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return to_decimal(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Quote:
    """Best bid/ask snapshot."""
    bid: Decimal
    ask: Decimal

    @property
    def spread(self) -> Decimal:
        return self.ask - self.bid

    @property
    def spread_bps(self) -> int:
        """Spread in basis points of the ask, rounded down."""
        if self.ask <= 0:
            return 0
        bps = (self.ask - self.bid) / self.ask * BPS
        return int(bps.to_integral_value(rounding=ROUND_FLOOR))
