"""Fixed-point money helpers.

Every amount handled by the engine is a ``Decimal`` quantized to cents. Floats
are accepted at the boundary only and converted through ``str`` so that
``0.1`` becomes ``Decimal("0.10")`` rather than its binary approximation.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

from ..errors import ValidationError

MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: MoneyLike) -> Decimal:
    """Return *value* as a cent-quantized ``Decimal``."""

    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def optional_money(value: Optional[MoneyLike]) -> Optional[Decimal]:
    """Like :func:`to_money` but passes ``None`` (unset) through."""

    if value is None:
        return None
    return to_money(value)


def non_negative(value: MoneyLike, *, field: str) -> Decimal:
    """Quantize *value* and reject negatives."""

    amount = to_money(value)
    if amount < ZERO:
        raise ValidationError(f"{field} cannot be negative (got {amount})")
    return amount


def sum_money(values: Iterable[Optional[Decimal]]) -> Decimal:
    """Sum amounts, treating unset entries as zero."""

    total = ZERO
    for value in values:
        if value is not None:
            total += value
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = ["CENT", "ZERO", "MoneyLike", "to_money", "optional_money", "non_negative", "sum_money"]
