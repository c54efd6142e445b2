"""Decimal helpers for cent-precise money arithmetic"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from retail_ledger.errors.ledger import InvalidAmount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Coerce a number (or numeric string) to a Decimal rounded to cents.

    NaN, infinities and unparsable input raise `InvalidAmount`.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        # go through str to avoid binary float artifacts
        value = str(value)
    try:
        if not isinstance(value, Decimal):
            value = Decimal(value)
        if not value.is_finite():
            raise InvalidAmount(f"amount={value}")
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmount(f"amount={value!r}") from exc
