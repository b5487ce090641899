"""
Return processing.

A return is a batch {line_item_id: qty} against one invoice and is atomic:
every requested line is validated against the invoice's *current* state
before a single returned_quantity is touched.

    validate_return()  -> ReturnPlan      (no mutation)
    apply_return()     -> ReturnOutcome   (validate, then mutate)
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from ...utils.errors import EmptyReturn, InvalidReturnQuantity
from ...utils.validators import try_parse_int
from .classification import InvoiceClass, classify
from .ledger import Invoice, ReturnLine

_log = logging.getLogger(__name__)


@dataclass
class LineRefund:
    line_item_id: int
    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def refund(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class ReturnPlan:
    invoice_id: int | None
    lines: list[LineRefund] = field(default_factory=list)

    @property
    def refund_amount(self) -> Decimal:
        return sum((ln.refund for ln in self.lines), Decimal("0"))

    @property
    def total_quantity(self) -> int:
        return sum(ln.quantity for ln in self.lines)

    def as_store_lines(self) -> list[ReturnLine]:
        return [ReturnLine(ln.line_item_id, ln.quantity, ln.unit_price) for ln in self.lines]


@dataclass
class ReturnOutcome:
    return_id: int | str
    refund_amount: Decimal
    per_line_refunds: list[LineRefund]
    new_invoice_effective_total: Decimal
    classification: InvoiceClass


def _coerce_qty(line_item_id, raw) -> int:
    ok, qty = try_parse_int(raw)
    if not ok:
        raise InvalidReturnQuantity(
            f"Return quantity {raw!r} for line {line_item_id} is not a whole number.",
            line_item_id=line_item_id,
            requested=raw,
        )
    return qty


def validate_return(invoice: Invoice, requested_quantities: Mapping) -> ReturnPlan:
    """
    Check a requested return against the invoice without changing it.

    Raises:
        InvalidReturnQuantity: negative qty, qty above what is still returnable,
            or a line that does not belong to this invoice.
        EmptyReturn: nothing selected (all quantities zero).
    """
    plan = ReturnPlan(invoice_id=invoice.invoice_id)
    for line_item_id, raw in requested_quantities.items():
        qty = _coerce_qty(line_item_id, raw)
        item = invoice.find_item(line_item_id)
        if item is None:
            raise InvalidReturnQuantity(
                f"Line {line_item_id} does not belong to invoice {invoice.invoice_number}.",
                line_item_id=line_item_id,
                requested=qty,
            )
        max_returnable = item.quantity - item.returned_quantity
        if qty < 0 or qty > max_returnable:
            raise InvalidReturnQuantity(
                f"Cannot return {qty} x {item.product_name or item.product_id}; "
                f"at most {max(0, max_returnable)} can be returned.",
                line_item_id=line_item_id,
                requested=qty,
                max_returnable=max(0, max_returnable),
            )
        if qty == 0:
            continue
        plan.lines.append(
            LineRefund(
                line_item_id=item.line_item_id,
                product_id=item.product_id,
                quantity=qty,
                unit_price=item.unit_price,
            )
        )
    if plan.total_quantity == 0:
        raise EmptyReturn()
    return plan


def apply_return(
    invoice: Invoice,
    requested_quantities: Mapping,
    return_id: Optional[int | str] = None,
) -> ReturnOutcome:
    """
    Validate the whole batch, then bump returned_quantity on each line.
    On any validation failure the invoice is left untouched.
    """
    plan = validate_return(invoice, requested_quantities)
    for ln in plan.lines:
        invoice.find_item(ln.line_item_id).add_returned(ln.quantity)

    outcome = ReturnOutcome(
        return_id=return_id if return_id is not None else uuid.uuid4().hex,
        refund_amount=plan.refund_amount,
        per_line_refunds=plan.lines,
        new_invoice_effective_total=invoice.effective_total,
        classification=classify(invoice),
    )
    _log.debug(
        "Return %s applied to %s: refund=%s, effective total=%s, class=%s",
        outcome.return_id, invoice.invoice_number, outcome.refund_amount,
        outcome.new_invoice_effective_total, outcome.classification.value,
    )
    return outcome


# ---------------------------------------------------------------------------
# Scan-to-return helpers
# ---------------------------------------------------------------------------

def find_returnable_invoice(invoices: Iterable[Invoice], product_id) -> Optional[Invoice]:
    """
    First invoice (history is newest-first) holding `product_id` on a line
    that still has something left to return.
    """
    for inv in invoices:
        for it in inv.items:
            if it.product_id == product_id and it.max_returnable > 0:
                return inv
    return None


def initial_return_quantities(invoice: Invoice, product_id) -> dict:
    """
    Seed quantities for a return dialog: 1 for the scanned product's first
    returnable line, 0 for every other returnable line. Fully returned lines
    are left out.
    """
    out: dict = {}
    seeded = False
    for it in invoice.items:
        if it.max_returnable <= 0:
            continue
        if not seeded and it.product_id == product_id:
            out[it.line_item_id] = 1
            seeded = True
        else:
            out[it.line_item_id] = 0
    return out
