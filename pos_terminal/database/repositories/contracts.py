"""
Contracts the sales engine consumes.

The engine only talks to these Protocols; the SQLite repositories in this
package implement them, and tests substitute in-memory fakes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Protocol, runtime_checkable

from ...modules.sales.ledger import Invoice, ReturnLine, ReturnResult


@dataclass
class InvoiceFilter:
    cashier_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    customer_id: int | None = None
    invoice_id: int | None = None
    limit: int | None = None


@dataclass
class NewInvoiceLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    product_name: str = ""
    barcode: str | None = None


@dataclass
class NewInvoice:
    invoice_number: str
    cashier_id: int
    created_at: datetime
    total_amount: Decimal
    paid_amount: Decimal
    payment_method: str = "cash"
    customer_id: int | None = None
    customer_name: str | None = None
    phone: str | None = None
    notes: str | None = None
    lines: list[NewInvoiceLine] = field(default_factory=list)


@runtime_checkable
class InvoiceStore(Protocol):
    def list_invoices(self, flt: InvoiceFilter) -> list[Invoice]: ...

    def create_invoice(self, payload: NewInvoice) -> Invoice: ...

    def record_payment(self, invoice_id: int, new_paid_amount: Decimal) -> Invoice: ...

    def delete_invoice(self, invoice_id: int) -> None: ...


@runtime_checkable
class ReturnStore(Protocol):
    def create_return(self, invoice_id: int, lines: Iterable[ReturnLine]) -> ReturnResult: ...


@runtime_checkable
class ProductLookup(Protocol):
    def find_by_barcode(self, code: str) -> Optional[object]: ...
