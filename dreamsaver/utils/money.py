# dreamsaver/utils/money.py
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Iterable, List

from dreamsaver.core.errors import ValidationError

CENT = Decimal("0.01")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Parse a positive amount with at most two decimal places."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Invalid {field}: must be positive")
    if amount != amount.quantize(CENT):
        raise ValidationError(f"Invalid {field}: at most two decimal places")
    return amount.quantize(CENT)


def to_minor_units(amount: Decimal) -> int:
    """Stripe expects integer amounts in the currency's smallest unit."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def split_amount(total: Decimal, parts: int) -> List[Decimal]:
    """
    Split a payment across goals in whole cents.

    The remainder lands on the last share so the shares always sum to total.
    """
    if parts < 1:
        raise ValidationError("Nothing to split the payment across")
    total = Decimal(total).quantize(CENT)
    base = (total / parts).quantize(CENT, rounding=ROUND_DOWN)
    return [base] * (parts - 1) + [total - base * (parts - 1)]


def percentage_of(amount: Decimal, percent: Decimal) -> Decimal:
    return (Decimal(amount) * Decimal(percent) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_amounts(amounts: Iterable[Any]) -> Decimal:
    return sum((Decimal(str(a)) for a in amounts), Decimal("0")).quantize(CENT)
