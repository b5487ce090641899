"""
Invoice and line-item ledger.

A LineItem records what was sold (quantity, unit_price, both frozen at sale
time) and how much of it came back (returned_quantity, which only grows).
Everything "effective" is derived from those three numbers on demand:

    effective_quantity = max(0, quantity - returned_quantity)
    effective_total    = unit_price * effective_quantity

Invoice.status is derived the same way from (total_amount, paid_amount) and
is never read back from storage.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ...constants import WALK_IN_CUSTOMER
from ...utils.errors import InvalidReturnQuantity, ValidationError
from ...utils.helpers import to_decimal, to_money
from ..payments.status import PaymentStatus, resolve_payment_status


@dataclass
class LineItem:
    line_item_id: int | None
    product_id: int
    quantity: int
    unit_price: Decimal
    returned_quantity: int = 0
    product_name: str = ""
    barcode: str | None = None

    def __post_init__(self):
        self.quantity = int(self.quantity)
        self.returned_quantity = int(self.returned_quantity or 0)
        self.unit_price = to_money(self.unit_price)
        if self.quantity < 0:
            raise ValidationError(f"Line {self.line_item_id}: quantity cannot be negative.")
        if not 0 <= self.returned_quantity <= self.quantity:
            raise ValidationError(
                f"Line {self.line_item_id}: returned quantity {self.returned_quantity} "
                f"outside 0..{self.quantity}."
            )

    @property
    def max_returnable(self) -> int:
        return max(0, self.quantity - self.returned_quantity)

    @property
    def effective_quantity(self) -> int:
        return max(0, self.quantity - self.returned_quantity)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def effective_total(self) -> Decimal:
        return self.unit_price * self.effective_quantity

    @property
    def is_fully_returned(self) -> bool:
        return self.returned_quantity >= self.quantity

    def add_returned(self, qty: int) -> None:
        """Increase returned_quantity, refusing anything outside 0..max_returnable."""
        qty = int(qty)
        if qty < 0 or qty > self.max_returnable:
            raise InvalidReturnQuantity(
                f"Cannot return {qty} of line {self.line_item_id}; "
                f"at most {self.max_returnable} can be returned.",
                line_item_id=self.line_item_id,
                requested=qty,
                max_returnable=self.max_returnable,
            )
        self.returned_quantity += qty


@dataclass
class Invoice:
    invoice_id: int | None
    invoice_number: str
    created_at: datetime
    cashier_id: int
    total_amount: Decimal
    paid_amount: Decimal = Decimal("0")
    payment_method: str = "cash"
    customer_id: int | None = None
    customer_name: str | None = None
    phone: str | None = None
    notes: str | None = None
    items: list[LineItem] = field(default_factory=list)

    def __post_init__(self):
        self.total_amount = to_money(self.total_amount)
        self.paid_amount = to_decimal(self.paid_amount or 0)
        if self.total_amount < 0 or self.paid_amount < 0:
            raise ValidationError("Invoice amounts cannot be negative.")

    # ---- derived ----
    @property
    def status(self) -> PaymentStatus:
        return resolve_payment_status(self.total_amount, self.paid_amount)

    @property
    def display_customer(self) -> str:
        return (self.customer_name or "").strip() or WALK_IN_CUSTOMER

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def effective_item_count(self) -> int:
        return sum(it.effective_quantity for it in self.items)

    @property
    def effective_total(self) -> Decimal:
        return sum((it.effective_total for it in self.items), Decimal("0"))

    @property
    def has_returns(self) -> bool:
        return any(it.returned_quantity > 0 for it in self.items)

    def find_item(self, line_item_id) -> Optional[LineItem]:
        for it in self.items:
            if it.line_item_id == line_item_id:
                return it
        return None

    def set_paid_amount(self, new_paid) -> None:
        """paid_amount never goes down."""
        new_paid = to_decimal(new_paid)
        if new_paid < self.paid_amount:
            raise ValidationError(
                f"Paid amount cannot decrease (from {self.paid_amount} to {new_paid})."
            )
        self.paid_amount = new_paid

    def copy(self) -> "Invoice":
        return copy.deepcopy(self)


# ---------------------------------------------------------------------------
# Returns as recorded by the store
# ---------------------------------------------------------------------------

@dataclass
class ReturnLine:
    line_item_id: int
    quantity: int
    unit_price: Decimal = Decimal("0")

    @property
    def refund(self) -> Decimal:
        return to_money(self.unit_price) * int(self.quantity)


@dataclass
class ReturnResult:
    return_id: int | str
    invoice_id: int
    created_at: datetime
    lines: list[ReturnLine] = field(default_factory=list)

    @property
    def refund_amount(self) -> Decimal:
        return sum((ln.refund for ln in self.lines), Decimal("0"))

    @property
    def total_quantity(self) -> int:
        return sum(int(ln.quantity) for ln in self.lines)

    def quantities(self) -> dict:
        out: dict = {}
        for ln in self.lines:
            out[ln.line_item_id] = out.get(ln.line_item_id, 0) + int(ln.quantity)
        return out
