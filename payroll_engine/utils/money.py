from decimal import Decimal, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # Floats go through str() so 0.1 stays 0.1
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(base: Any, percent: Any) -> Decimal:
    return round_money(to_decimal(base) * to_decimal(percent) / HUNDRED)
