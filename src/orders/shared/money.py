"""Decimal helpers for monetary amounts.

Amounts are persisted as decimal strings so a placed order keeps the exact
figures it was priced at. All arithmetic happens on ``Decimal``.
"""

from decimal import Decimal, InvalidOperation

from protean.exceptions import ValidationError

ZERO = Decimal("0")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce a price-like value into a finite ``Decimal``."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            # str() first so floats keep their shortest repr, not binary noise
            amount = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError({field: [f"Invalid amount: {value!r}"]}) from None

    if not amount.is_finite():
        raise ValidationError({field: [f"Invalid amount: {value!r}"]})
    if amount < ZERO:
        raise ValidationError({field: ["Amount cannot be negative"]})
    return amount


def line_total(unit_price, quantity: int) -> Decimal:
    return to_decimal(unit_price, "unit_price") * quantity


def sum_amounts(amounts) -> Decimal:
    return sum((to_decimal(amount) for amount in amounts), ZERO)
