from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Optional

from ...constants import PAYMENT_TOLERANCE
from ...utils.errors import ValidationError
from ...utils.helpers import NumberLike, to_decimal


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


# ---------- Canonical order ----------
STATE_ORDER: dict[PaymentStatus, int] = {
    PaymentStatus.UNPAID: 0,
    PaymentStatus.PARTIAL: 1,
    PaymentStatus.PAID: 2,
}

# ---------- Human labels ----------
LABELS = {
    PaymentStatus.UNPAID: "Unpaid",
    PaymentStatus.PARTIAL: "Partial",
    PaymentStatus.PAID: "Paid",
}

# (Optional) style tokens the UI can map to colors/icons
STYLES = {
    PaymentStatus.UNPAID: {"badge": "danger", "fg": "#991B1B", "bg": "#FEE2E2"},
    PaymentStatus.PARTIAL: {"badge": "warning", "fg": "#92400E", "bg": "#FEF3C7"},
    PaymentStatus.PAID: {"badge": "success", "fg": "#065F46", "bg": "#D1FAE5"},
}


# ---------- API ----------

def resolve_payment_status(
    total_amount: NumberLike,
    paid_amount: NumberLike,
    tolerance: Decimal = PAYMENT_TOLERANCE,
) -> PaymentStatus:
    """
    Derive the payment status from the two amounts:
      - 'paid'    if paid >= total - tolerance
      - 'partial' if paid > 0
      - 'unpaid'  otherwise

    Amounts are compared exactly as given (no rounding), so 99.995 against
    100.00 is 'paid'. Negative amounts are rejected.
    """
    total = to_decimal(total_amount)
    paid = to_decimal(paid_amount)
    if total < 0 or paid < 0:
        raise ValidationError("Invoice amounts cannot be negative.")
    if paid >= total - tolerance:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def normalize(state: Optional[str]) -> Optional[PaymentStatus]:
    """Lowercase & strip; return None if empty or unknown."""
    if state is None:
        return None
    s = str(getattr(state, "value", state)).strip().lower()
    try:
        return PaymentStatus(s)
    except ValueError:
        return None


def label(state: str) -> str:
    """Human label ('Paid'). If unknown, returns the original string title-cased."""
    s = normalize(state)
    if s is not None:
        return LABELS[s]
    return (str(state) if state else "").strip().title()


def style_tokens(state: str) -> dict:
    """Small style dict for badges; unknown states fall back to 'unpaid'."""
    s = normalize(state)
    return STYLES.get(s, STYLES[PaymentStatus.UNPAID])


def sort_key(state: str) -> int:
    """Stable sort key; unknown states sort after known ones."""
    s = normalize(state)
    return STATE_ORDER.get(s, 999) if s is not None else 999
