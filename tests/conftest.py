# pos_terminal/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Qt runs offscreen; no window ever needs a display
# - Every test gets its own in-memory SQLite DB built from the real schema
# - Engine tests use in-memory fake stores and a settable clock
# - Message boxes are stubbed so no test blocks on a modal dialog
# ---------------------------------------------------------------------

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import itertools
import re
import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest
from PySide6 import QtCore
from PySide6.QtWidgets import QMessageBox

from pos_terminal.database import get_connection
from pos_terminal.database.repositories import InvoiceFilter, NewInvoice, Product, ProductsRepo
from pos_terminal.modules.sales.ledger import Invoice, LineItem, ReturnResult
from pos_terminal.utils.errors import NetworkError


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Silence benign Qt warnings ----------
_BENIGN_QT_PATTERNS = [
    r"^QObject::connect: .* already connected",
    r"^QBasicTimer::stop: Failed\. Platform timer not running\.",
    r"^This plugin does not support propagateSizeHints",
]


@pytest.fixture(autouse=True, scope="session")
def _silence_benign_qt():
    """Filter common harmless Qt messages during tests."""
    rx = [re.compile(p) for p in _BENIGN_QT_PATTERNS]

    def handler(msg_type, context, message):
        text = str(message)
        if any(r.search(text) for r in rx):
            return
        print(text)

    original = QtCore.qInstallMessageHandler(handler)
    try:
        yield
    finally:
        QtCore.qInstallMessageHandler(original)


# ---------- No modal message boxes ----------
@pytest.fixture(autouse=True)
def _no_message_boxes(monkeypatch):
    shown: list[tuple[str, str, str]] = []

    def fake(kind):
        def _box(parent, title, text, *a, **k):
            shown.append((kind, title, text))
            return QMessageBox.Ok
        return _box

    monkeypatch.setattr(QMessageBox, "information", fake("info"))
    monkeypatch.setattr(QMessageBox, "warning", fake("warning"))
    monkeypatch.setattr(QMessageBox, "critical", fake("error"))
    return shown


# ---------- Database ----------
@pytest.fixture()
def conn():
    con = get_connection(":memory:")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def products(conn: sqlite3.Connection) -> dict:
    """A small catalogue: two stocked products and one sold out."""
    repo = ProductsRepo(conn)
    return {
        "milk": repo.create("Milk 1L", "6221000000017", "10.00", stock=20, category="Dairy"),
        "bread": repo.create("Bread", "6221000000024", "5.50", stock=10, category="Bakery"),
        "soap": repo.create("Soap", "6221000000031", "12.25", stock=0, category="Home"),
    }


# ---------- Clock ----------
class FakeClock:
    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = moment


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 10, 30))


# ---------- Invoice builder ----------
_line_ids = itertools.count(1000)


@pytest.fixture()
def make_invoice(clock):
    """
    make_invoice(7, [(qty, price), (qty, price, returned)], cashier_id=1, created_at=...)
    Lines get fresh line_item_ids; total_amount is the sum of line totals.
    """
    def _make(invoice_id, lines, *, cashier_id=1, created_at=None, paid=None, **kw) -> Invoice:
        items = []
        for n, row in enumerate(lines):
            qty, price = row[0], row[1]
            returned = row[2] if len(row) > 2 else 0
            items.append(
                LineItem(
                    line_item_id=next(_line_ids),
                    product_id=row[3] if len(row) > 3 else 100 + n,
                    quantity=qty,
                    unit_price=Decimal(str(price)),
                    returned_quantity=returned,
                    product_name=f"Product {100 + n}",
                )
            )
        total = sum((it.line_total for it in items), Decimal("0"))
        return Invoice(
            invoice_id=invoice_id,
            invoice_number=kw.pop("invoice_number", f"INV-TEST-{invoice_id}"),
            created_at=created_at or clock(),
            cashier_id=cashier_id,
            total_amount=total,
            paid_amount=total if paid is None else paid,
            items=items,
            **kw,
        )

    return _make


# ---------- Fake stores ----------
class FakeInvoiceStore:
    def __init__(self):
        self.invoices: list[Invoice] = []
        self.filters: list[InvoiceFilter] = []
        self.created: list[NewInvoice] = []
        self.payments: list[tuple[int, Decimal]] = []
        self.deleted: list[int] = []
        self.fail_with: Optional[Exception] = None
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def list_invoices(self, flt: InvoiceFilter) -> list[Invoice]:
        self._check()
        self.filters.append(flt)
        out = []
        for inv in self.invoices:
            if flt.cashier_id is not None and inv.cashier_id != flt.cashier_id:
                continue
            if flt.date_from is not None and inv.created_at < flt.date_from:
                continue
            if flt.date_to is not None and inv.created_at > flt.date_to:
                continue
            out.append(inv.copy())
        return out

    def create_invoice(self, payload: NewInvoice) -> Invoice:
        self._check()
        self.created.append(payload)
        invoice_id = next(self._ids)
        inv = Invoice(
            invoice_id=invoice_id,
            invoice_number=payload.invoice_number,
            created_at=payload.created_at,
            cashier_id=payload.cashier_id,
            total_amount=payload.total_amount,
            paid_amount=payload.paid_amount,
            payment_method=payload.payment_method,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            phone=payload.phone,
            items=[
                LineItem(
                    line_item_id=invoice_id * 100 + n,
                    product_id=ln.product_id,
                    quantity=ln.quantity,
                    unit_price=ln.unit_price,
                    product_name=ln.product_name,
                    barcode=ln.barcode,
                )
                for n, ln in enumerate(payload.lines)
            ],
        )
        self.invoices.append(inv)
        return inv.copy()

    def record_payment(self, invoice_id: int, new_paid_amount: Decimal) -> Invoice:
        self._check()
        self.payments.append((invoice_id, new_paid_amount))
        inv = next(i for i in self.invoices if i.invoice_id == invoice_id)
        inv.set_paid_amount(new_paid_amount)
        return inv.copy()

    def delete_invoice(self, invoice_id: int) -> None:
        self._check()
        self.deleted.append(invoice_id)
        self.invoices = [i for i in self.invoices if i.invoice_id != invoice_id]


class FakeReturnStore:
    def __init__(self, clock):
        self.calls: list[tuple[int, list]] = []
        self.fail_with: Optional[Exception] = None
        self._ids = itertools.count(1)
        self._clock = clock

    def create_return(self, invoice_id, lines) -> ReturnResult:
        if self.fail_with is not None:
            raise self.fail_with
        lines = list(lines)
        self.calls.append((invoice_id, lines))
        return ReturnResult(
            return_id=next(self._ids), invoice_id=invoice_id, created_at=self._clock(), lines=lines
        )


class FakeLookup:
    """Product lookup that records every barcode it was asked for."""

    def __init__(self, products: dict[str, Product] | None = None):
        self.products = dict(products or {})
        self.calls: list[str] = []
        self.offline = False

    def find_by_barcode(self, code: str):
        self.calls.append(code)
        if self.offline:
            raise NetworkError("lookup offline")
        return self.products.get(code)


@pytest.fixture()
def invoice_store() -> FakeInvoiceStore:
    return FakeInvoiceStore()


@pytest.fixture()
def return_store(clock) -> FakeReturnStore:
    return FakeReturnStore(clock)


@pytest.fixture()
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture()
def make_product():
    ids = itertools.count(1)

    def _make(name="Item", barcode="1234567890123", price="10.00", stock=5) -> Product:
        return Product(product_id=next(ids), name=name, barcode=barcode, sale_price=price, stock=stock)

    return _make
