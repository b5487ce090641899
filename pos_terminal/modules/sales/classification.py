from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from ...utils.helpers import end_of_day, start_of_day
from .ledger import Invoice


class InvoiceClass(str, Enum):
    NON_RETURNED = "nonReturned"
    PARTIALLY_RETURNED = "partiallyReturned"
    FULLY_RETURNED = "fullyReturned"


LABELS = {
    InvoiceClass.NON_RETURNED: "Not returned",
    InvoiceClass.PARTIALLY_RETURNED: "Partially returned",
    InvoiceClass.FULLY_RETURNED: "Fully returned",
}

DATE_FILTERS = ("all", "today", "yesterday", "7days", "30days")


def classify(invoice: Invoice) -> InvoiceClass:
    """
    Always computed from the current line items:
      - nonReturned       no line has returned_quantity > 0
      - fullyReturned     every line has returned_quantity >= quantity
      - partiallyReturned anything in between
    """
    if not any(it.returned_quantity > 0 for it in invoice.items):
        return InvoiceClass.NON_RETURNED
    if all(it.is_fully_returned for it in invoice.items):
        return InvoiceClass.FULLY_RETURNED
    return InvoiceClass.PARTIALLY_RETURNED


def classification_stats(invoices: Iterable[Invoice]) -> dict:
    stats = {"total": 0}
    for c in InvoiceClass:
        stats[c.value] = 0
    for inv in invoices:
        stats["total"] += 1
        stats[classify(inv).value] += 1
    return stats


def _date_window(date_filter: str, now: datetime) -> tuple[Optional[datetime], Optional[datetime]]:
    if date_filter == "today":
        return start_of_day(now), end_of_day(now)
    if date_filter == "yesterday":
        y = now - timedelta(days=1)
        return start_of_day(y), end_of_day(y)
    if date_filter in ("7days", "30days"):
        days = 7 if date_filter == "7days" else 30
        return now - timedelta(days=days), None
    return None, None


def _matches(invoice: Invoice, term: str) -> bool:
    if term in (invoice.invoice_number or "").lower():
        return True
    if term in (invoice.phone or "").lower():
        return True
    if term in (invoice.customer_name or "").lower():
        return True
    return any(
        term in (it.product_name or "").lower() or term in (it.barcode or "").lower()
        for it in invoice.items
    )


def filter_invoices(
    invoices: Iterable[Invoice],
    *,
    classification: str | InvoiceClass = "all",
    search: str = "",
    date_filter: str = "all",
    now: Optional[datetime] = None,
) -> list[Invoice]:
    """
    Filter a history list the way the returns screen does: date window first,
    then free-text search, then return classification.
    """
    if date_filter not in DATE_FILTERS:
        raise ValueError(f"date_filter must be one of: {', '.join(DATE_FILTERS)}")
    now = now or datetime.now()
    lo, hi = _date_window(date_filter, now)
    term = (search or "").strip().lower()
    wanted = getattr(classification, "value", classification) or "all"

    out = []
    for inv in invoices:
        if lo is not None and inv.created_at < lo:
            continue
        if hi is not None and inv.created_at > hi:
            continue
        if term and not _matches(inv, term):
            continue
        if wanted != "all" and classify(inv).value != wanted:
            continue
        out.append(inv)
    return out
