# pos_terminal/tests/test_payment_status.py
from __future__ import annotations

from decimal import Decimal

import pytest

from pos_terminal.modules.payments.calculations import project_after_payment, remaining_due
from pos_terminal.modules.payments.status import (
    PaymentStatus,
    label,
    normalize,
    resolve_payment_status,
    sort_key,
    style_tokens,
)
from pos_terminal.utils.errors import ValidationError


# ---------------------------------------------------------------------
# Suite A – status derivation from (total, paid)
# ---------------------------------------------------------------------
@pytest.mark.parametrize(
    "paid, expected",
    [
        ("100.00", PaymentStatus.PAID),      # exact
        ("99.995", PaymentStatus.PAID),      # inside the cent of slack
        ("99.99", PaymentStatus.PAID),       # boundary: total - 0.01
        ("99.98", PaymentStatus.PARTIAL),
        ("50.00", PaymentStatus.PARTIAL),
        ("0.01", PaymentStatus.PARTIAL),
        ("0", PaymentStatus.UNPAID),
        ("120.00", PaymentStatus.PAID),      # overpaid still reads as paid
    ],
)
def test_a1_status_for_total_100(paid, expected):
    assert resolve_payment_status(Decimal("100.00"), Decimal(paid)) == expected


def test_a2_zero_total_is_paid():
    assert resolve_payment_status(0, 0) == PaymentStatus.PAID


def test_a3_recomputing_is_stable():
    first = resolve_payment_status("80.00", "40.00")
    second = resolve_payment_status("80.00", "40.00")
    assert first == second == PaymentStatus.PARTIAL


def test_a4_negative_amounts_are_rejected():
    with pytest.raises(ValidationError):
        resolve_payment_status("-1", "0")
    with pytest.raises(ValidationError):
        resolve_payment_status("10", "-0.01")


def test_a5_floats_are_read_through_their_text():
    # 0.1 + 0.2 as a float is 0.30000000000000004; the resolver must not trip on it
    assert resolve_payment_status(0.3, 0.1 + 0.2) == PaymentStatus.PAID


# ---------------------------------------------------------------------
# Suite B – labels, badges, ordering
# ---------------------------------------------------------------------
def test_b1_labels_and_normalize():
    assert normalize("  PAID ") == PaymentStatus.PAID
    assert normalize("bogus") is None
    assert normalize(None) is None
    assert label("partial") == "Partial"
    assert label(PaymentStatus.UNPAID) == "Unpaid"
    assert label("something else") == "Something Else"


def test_b2_style_tokens_fall_back_to_unpaid():
    assert style_tokens("paid")["badge"] == "success"
    assert style_tokens("nope") == style_tokens("unpaid")


def test_b3_sort_key_puts_unknown_states_last():
    states = ["paid", "zzz", PaymentStatus.UNPAID, "Partial "]
    assert sorted(states, key=sort_key) == [PaymentStatus.UNPAID, "Partial ", "paid", "zzz"]


# ---------------------------------------------------------------------
# Suite C – payment previews
# ---------------------------------------------------------------------
def test_c1_remaining_due_is_clamped():
    assert remaining_due("100", "30") == Decimal("70")
    assert remaining_due("100", "130") == Decimal("0")


def test_c2_project_after_payment_moves_status():
    paid, status = project_after_payment(
        total_amount="100.00", current_paid_amount="0", new_payment_amount="40"
    )
    assert paid == Decimal("40.00")
    assert status == PaymentStatus.PARTIAL

    paid, status = project_after_payment(
        total_amount="100.00", current_paid_amount=paid, new_payment_amount="60"
    )
    assert paid == Decimal("100.00")
    assert status == PaymentStatus.PAID


def test_c3_last_cent_can_be_settled_within_tolerance():
    paid, status = project_after_payment(
        total_amount="100.00", current_paid_amount="99.99", new_payment_amount="0.02"
    )
    assert status == PaymentStatus.PAID
    assert paid == Decimal("100.01")


@pytest.mark.parametrize("amount", ["0", "-5", "70.02"])
def test_c4_invalid_payment_amounts(amount):
    with pytest.raises(ValidationError):
        project_after_payment(
            total_amount="100.00", current_paid_amount="30.00", new_payment_amount=amount
        )
