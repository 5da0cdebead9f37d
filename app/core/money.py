from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric column value into a Decimal; anything unparsable or non-finite is 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_number(amount: Decimal) -> float:
    """Value sent to PostgREST; JSON has no decimal type."""
    return float(quantize(amount))


def with_profit(price: Any, rate: Any) -> Decimal:
    """price + price * rate%"""
    price = to_decimal(price)
    return price + price * to_decimal(rate) / Decimal("100")
