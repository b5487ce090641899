"""
payments/calculations.py

Pure helpers for payment previews and validation.

Do not import repos or open DB connections here.
Only compute numbers; formatting belongs in the UI.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Tuple

from ...constants import PAYMENT_TOLERANCE
from ...utils.errors import ValidationError
from ...utils.helpers import NumberLike, to_decimal, to_money
from .status import PaymentStatus, resolve_payment_status

__all__ = [
    "clamp_non_negative",
    "remaining_due",
    "project_after_payment",
]


def clamp_non_negative(x: Decimal) -> Decimal:
    """Return x if x > 0, else 0."""
    return x if x > 0 else Decimal("0")


def remaining_due(total_amount: NumberLike, paid_amount: NumberLike) -> Decimal:
    """
    remaining = total_amount - paid_amount, clamped at >= 0.
    """
    return clamp_non_negative(to_decimal(total_amount) - to_decimal(paid_amount))


def project_after_payment(
    *,
    total_amount: NumberLike,
    current_paid_amount: NumberLike,
    new_payment_amount: NumberLike,
) -> Tuple[Decimal, PaymentStatus]:
    """
    Returns (projected_paid_amount, projected_status) for a new receipt.

    Rules:
      - the amount must be strictly positive
      - it may not exceed the remaining balance (tolerance allowed, so the
        last cent of a rounded total can always be settled)
    paid_amount only ever grows.
    """
    amount = to_money(new_payment_amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")
    due = remaining_due(total_amount, current_paid_amount)
    if amount > due + PAYMENT_TOLERANCE:
        raise ValidationError(
            f"Payment amount {amount} exceeds the remaining balance {due}."
        )
    projected = to_decimal(current_paid_amount) + amount
    return projected, resolve_payment_status(total_amount, projected)
