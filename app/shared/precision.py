"""
Decimal helpers for weights and money.

Values are kept at full precision while balances accumulate; rounding is
applied only where a declared total is compared with a computed one.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from app.shared.errors import ValidationError

ZERO = Decimal("0")
FINE_QUANTUM = Decimal("0.001")
AMOUNT_QUANTUM = Decimal("0.01")

Number = Union[int, float, str, Decimal]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a stored or submitted number to Decimal; missing values count as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Cannot use boolean {value!r} as a number")
    try:
        if isinstance(value, float):
            # via str so 0.1 stays 0.1
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Cannot convert {value!r} to a decimal number") from e


def round_fine(value: Number) -> Decimal:
    return to_decimal(value).quantize(FINE_QUANTUM, rounding=ROUND_HALF_UP)


def round_amount(value: Number) -> Decimal:
    return to_decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def decimal_sum(values: Iterable[Optional[Number]]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return total
