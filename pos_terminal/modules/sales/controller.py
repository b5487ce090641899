from __future__ import annotations

import logging
import sqlite3
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QTimer, Signal
from PySide6.QtWidgets import QDialog, QListWidgetItem, QWidget

from ...config import IntakePreferences, load_preferences, save_preferences
from ...constants import CUSTOMER_SEARCH_DELAY_MS
from ...database.repositories import (
    Customer,
    CustomersRepo,
    InvoiceFilter,
    InvoicesRepo,
    ProductsRepo,
    ReturnsRepo,
)
from ...utils.errors import DomainError, NotFoundError, ValidationError
from ...utils.helpers import fmt_money
from ...utils.ui_helpers import error, info, warn
from ..base_module import BaseModule
from .barcode_intake import BarcodeIntake, IntakeMode
from .cart import Cart, ProductIndex
from .checkout import CheckoutService
from .classification import classification_stats, filter_invoices
from .daily_totals import DailyAggregateEngine
from .ledger import Invoice
from .model import CartTableModel, InvoicesTableModel
from .receipt import export_receipt_pdf
from .return_form import SaleReturnForm
from .returns import ReturnOutcome, find_returnable_invoice, initial_return_quantities
from .view import SalesView

_log = logging.getLogger(__name__)

# how far back scan-to-return looks for the sold invoice
RETURN_LOOKUP_LIMIT = 500


class SalesController(BaseModule):
    """
    One cashier session at the counter.

    Owns the product index, the cart, the barcode intake machine and the
    daily totals engine, and routes every store call through CheckoutService.
    Domain errors never escape a slot: they are turned into `notify`, which
    the view shows as a message box.
    """

    notify = Signal(str, str, str)               # level, title, message
    customers_found = Signal(object)             # list[Customer]
    create_product_requested = Signal(str)       # unknown barcode

    def __init__(
        self,
        conn: sqlite3.Connection,
        cashier_id: int,
        *,
        now: Callable[[], datetime] = datetime.now,
        prefs: IntakePreferences | None = None,
        persist_preferences: bool = True,
        parent=None,
    ):
        super().__init__(parent)
        self.conn = conn
        self.cashier_id = cashier_id
        self._now = now
        self._persist = persist_preferences
        self.prefs = prefs or load_preferences()

        self.products = ProductsRepo(conn)
        self.customers = CustomersRepo(conn)
        self.invoices = InvoicesRepo(conn)
        self.returns = ReturnsRepo(conn, now=now)

        self.index = ProductIndex(self.products.list_products())
        self.cart = Cart(self.index)
        self.customer: Optional[Customer] = None
        self._customer_results: list[Customer] = []

        self.intake = BarcodeIntake(
            self.products,
            self.index,
            target_length=self.prefs.target_length,
            auto_mode=self.prefs.auto_mode,
            parent=self,
        )
        self.aggregate: DailyAggregateEngine | None = None
        self.service: CheckoutService | None = None
        self._build_session(cashier_id)

        self.view = SalesView()
        self.cart_model = CartTableModel([])
        self.view.tbl_cart.setModel(self.cart_model)
        self.invoices_model = InvoicesTableModel([])
        self.view.tbl_invoices.setModel(self.invoices_model)
        self.view.chk_auto.setChecked(self.prefs.auto_mode)

        self._customer_timer = QTimer(self)
        self._customer_timer.setSingleShot(True)
        self._customer_timer.setInterval(CUSTOMER_SEARCH_DELAY_MS)
        self._customer_timer.timeout.connect(self._run_customer_search)

        self._wire()
        self.refresh()
        self.aggregate.start()

    def get_widget(self) -> QWidget:
        return self.view

    # ------------------------------------------------------------------ setup
    def _build_session(self, cashier_id: int) -> None:
        """(Re)build the per-cashier engine; the old one's timers are cleared."""
        if self.aggregate is not None:
            self.aggregate.stop()
            self.aggregate.changed.disconnect(self._on_daily_changed)
            self.aggregate.deleteLater()
        self.cashier_id = cashier_id
        self.aggregate = DailyAggregateEngine(
            cashier_id,
            self.invoices,
            now=self._now,
            refresh_interval_min=self.prefs.refresh_interval_min,
            parent=self,
        )
        self.aggregate.changed.connect(self._on_daily_changed)
        self.service = CheckoutService(
            cashier_id, self.invoices, self.returns, self.aggregate, self.index, now=self._now
        )

    def _wire(self):
        v = self.view
        v.edt_barcode.textChanged.connect(self.intake.set_text)
        v.edt_barcode.returnPressed.connect(self.submit_barcode)
        v.btn_submit.clicked.connect(self.submit_barcode)
        v.chk_auto.toggled.connect(self.set_auto_mode)
        v.modeChanged.connect(self.set_mode)
        v.btn_refresh.clicked.connect(self.refresh)
        v.btn_checkout.clicked.connect(self.checkout)
        v.btn_invoice.clicked.connect(self.create_invoice)
        v.btn_remove.clicked.connect(self._remove_selected_line)
        v.btn_clear.clicked.connect(self.clear_cart)
        v.btn_return.clicked.connect(self._return_selected_invoice)
        v.btn_receipt.clicked.connect(self._print_selected_invoice)
        v.edt_customer.textChanged.connect(self._on_customer_text)
        v.lst_customers.itemDoubleClicked.connect(self._on_customer_picked)
        v.edt_history_search.textChanged.connect(self._reload_history)
        v.edt_history_search.returnPressed.connect(self._on_history_search_entered)
        v.cmb_history_class.currentIndexChanged.connect(self._reload_history)

        self.intake.product_resolved.connect(self.add_to_cart)
        self.intake.return_lookup.connect(self.start_return_for_product)
        self.intake.error.connect(self._on_intake_error)
        self.intake.state_changed.connect(v.set_scan_state)
        self.intake.create_product_offered.connect(self.create_product_requested)

        self.notify.connect(self._show_message)

    # ------------------------------------------------------------- messages
    def _show_message(self, level: str, title: str, message: str) -> None:
        if level == "error":
            error(self.view, title, message)
        elif level == "warning":
            warn(self.view, title, message)
        else:
            info(self.view, title, message)

    def _report(self, e: DomainError) -> None:
        level = "warning" if isinstance(e, ValidationError) else "error"
        self.notify.emit(level, e.title, str(e))

    def _on_intake_error(self, e: DomainError) -> None:
        self._report(e)

    # ---------------------------------------------------------------- intake
    def set_mode(self, mode: str) -> None:
        self.intake.set_mode(mode)
        self.view.btn_submit.setText("Find" if self.intake.mode == IntakeMode.RETURN else "Add")

    def set_auto_mode(self, enabled: bool) -> None:
        self.intake.set_auto_mode(enabled)
        self.prefs.auto_mode = bool(enabled)
        if self._persist:
            save_preferences(self.prefs)

    def submit_barcode(self) -> bool:
        try:
            return self.intake.submit(self.view.edt_barcode.text())
        except DomainError as e:
            self._report(e)
            return False

    def feed_decoded(self, raw: str) -> bool:
        """Camera/image decoders hand their raw text here."""
        try:
            return self.intake.feed_decoded(raw)
        except DomainError as e:
            self._report(e)
            return False

    # ------------------------------------------------------------------ cart
    def add_to_cart(self, product) -> None:
        try:
            self.cart.add_product(product)
        except ValidationError as e:
            self._report(e)
        self.view.edt_barcode.clear()
        self._refresh_cart()

    def clear_cart(self) -> None:
        self.cart.clear()
        self._refresh_cart()

    def _remove_selected_line(self) -> None:
        row = self.view.tbl_cart.selected_row()
        if row < 0:
            return
        self.cart.remove(self.cart_model.at(row).product_id)
        self._refresh_cart()

    def _refresh_cart(self) -> None:
        self.cart_model.replace(self.cart.lines)
        self.view.set_cart_total(self.cart.total)

    # ------------------------------------------------------------- customers
    def _on_customer_text(self, text: str) -> None:
        if self.customer is not None and text != self.customer.name:
            self.customer = None
            self.view.lbl_customer.setText("")
        # restart on every keystroke
        self._customer_timer.start()

    def _run_customer_search(self) -> None:
        term = self.view.edt_customer.text().strip()
        try:
            self._customer_results = self.customers.search(term) if term else []
        except DomainError as e:
            self._customer_results = []
            self._report(e)
        lst = self.view.lst_customers
        lst.clear()
        for c in self._customer_results:
            lst.addItem(QListWidgetItem(f"{c.name}  {c.phone or ''}".strip()))
        self.customers_found.emit(list(self._customer_results))

    def _on_customer_picked(self, item: QListWidgetItem) -> None:
        row = self.view.lst_customers.row(item)
        if 0 <= row < len(self._customer_results):
            self.select_customer(self._customer_results[row])

    def select_customer(self, customer: Optional[Customer]) -> None:
        self.customer = customer
        self.view.lbl_customer.setText(
            f"{customer.name} ({customer.phone})" if customer and customer.phone
            else (customer.name if customer else "")
        )

    # -------------------------------------------------------------- checkout
    def _after_sale(self, invoice: Invoice) -> None:
        self.cart.clear()
        self._refresh_cart()
        self.select_customer(None)
        self.view.edt_customer.blockSignals(True)
        self.view.edt_customer.clear()
        self.view.edt_customer.blockSignals(False)

    def checkout(self) -> Optional[Invoice]:
        try:
            invoice = self.service.checkout(
                self.cart.lines, self.customer, self.view.payment_method()
            )
        except DomainError as e:
            self._report(e)
            return None
        if invoice is None:
            return None
        self._after_sale(invoice)
        self.notify.emit(
            "info", "Sale completed",
            f"Invoice {invoice.invoice_number}: {fmt_money(invoice.total_amount)}",
        )
        return invoice

    def create_invoice(self) -> Optional[Invoice]:
        """Deferred-payment invoice for the current cart."""
        try:
            invoice = self.service.create_formal_invoice(
                self.cart.lines, self.customer, self.view.payment_method()
            )
        except DomainError as e:
            self._report(e)
            return None
        if invoice is None:
            return None
        self._after_sale(invoice)
        self.notify.emit("info", "Invoice created", f"Invoice {invoice.invoice_number} saved as unpaid.")
        return invoice

    def record_payment(self, invoice: Invoice, amount) -> Optional[Invoice]:
        try:
            updated = self.service.record_payment(invoice, amount)
        except DomainError as e:
            self._report(e)
            return None
        if updated is not None:
            # paid amounts changed underneath the engine's copies
            self.refresh()
        return updated

    def delete_invoice(self, invoice: Invoice) -> bool:
        try:
            return self.service.delete_invoice(invoice)
        except DomainError as e:
            self._report(e)
            return False

    # --------------------------------------------------------------- returns
    def start_return_for_product(self, product) -> Optional[ReturnOutcome]:
        """Scan-to-return: find the newest invoice that still has this product to give back."""
        try:
            history = self.invoices.list_invoices(InvoiceFilter(limit=RETURN_LOOKUP_LIMIT))
        except DomainError as e:
            self._report(e)
            return None
        invoice = find_returnable_invoice(history, product.product_id)
        if invoice is None:
            self.intake.reject(
                product.barcode or "",
                f"No invoice with returnable units of {product.name}.",
            )
            return None
        self.view.edt_barcode.clear()
        return self.open_return_form(invoice, initial_return_quantities(invoice, product.product_id))

    def open_return_form(self, invoice: Invoice, initial: dict | None = None) -> Optional[ReturnOutcome]:
        form = SaleReturnForm(invoice, initial, parent=self.view)
        if form.exec() != QDialog.Accepted:
            return None
        return self.submit_return(invoice, form.quantities())

    def submit_return(self, invoice: Invoice, quantities: dict) -> Optional[ReturnOutcome]:
        try:
            outcome = self.service.submit_return(invoice, quantities)
        except DomainError as e:
            self._report(e)
            return None
        if outcome is None:
            return None
        self._reload_history()
        self.notify.emit(
            "info", "Return recorded",
            f"Refund {fmt_money(outcome.refund_amount)} on {invoice.invoice_number}.",
        )
        return outcome

    def _selected_invoice(self) -> Optional[Invoice]:
        row = self.view.tbl_invoices.selected_row()
        if row < 0:
            return None
        return self.invoices_model.at(row)

    def _return_selected_invoice(self) -> None:
        invoice = self._selected_invoice()
        if invoice is None:
            self.notify.emit("info", "Return", "Select an invoice first.")
            return
        fresh = self.invoices.get(invoice.invoice_id) or invoice
        self.open_return_form(fresh)

    def find_invoice(self, invoice_number: str) -> Optional[Invoice]:
        """Look an invoice up by its number in the whole store, not just today."""
        number = (invoice_number or "").strip()
        try:
            if not number:
                raise ValidationError("Please enter an invoice number.")
            invoice = self.invoices.get_by_number(number)
            if invoice is None:
                raise NotFoundError(f"No invoice numbered {number}.")
        except DomainError as e:
            self._report(e)
            return None
        return invoice

    def _on_history_search_entered(self) -> None:
        # Enter on a number that is not in today's list opens an older invoice for return
        if self.invoices_model.rowCount():
            return
        invoice = self.find_invoice(self.view.edt_history_search.text())
        if invoice is not None:
            self.open_return_form(invoice)

    # --------------------------------------------------------------- receipt
    def export_receipt(self, invoice: Invoice, out_path: Path | str) -> Optional[Path]:
        try:
            return export_receipt_pdf(invoice, out_path)
        except ImportError:
            self.notify.emit(
                "warning", "WeasyPrint Not Available",
                "Please install WeasyPrint: pip install weasyprint",
            )
            return None

    def _print_selected_invoice(self) -> None:
        invoice = self._selected_invoice()
        if invoice is None:
            return
        out = Path(tempfile.gettempdir()) / f"{invoice.invoice_number}.pdf"
        path = self.export_receipt(invoice, out)
        if path is not None:
            self.notify.emit("info", "Receipt", f"Receipt written to {path}")

    # --------------------------------------------------------------- refresh
    def refresh(self) -> None:
        """Manual refresh: reload the catalogue and rebuild today's totals."""
        try:
            self.index.load(self.products.list_products())
            self.aggregate.refresh()
        except DomainError as e:
            self._report(e)

    def _reload_history(self, *_args) -> None:
        todays = self.aggregate.invoices
        shown = filter_invoices(
            todays,
            classification=self.view.history_class(),
            search=self.view.edt_history_search.text(),
            now=self._now(),
        )
        self.invoices_model.replace(shown)
        self.view.set_history_stats(classification_stats(todays), len(shown))

    def _on_daily_changed(self, snapshot) -> None:
        self.view.set_daily(snapshot)
        self._reload_history()

    def switch_cashier(self, cashier_id: int) -> None:
        self._build_session(cashier_id)
        self.clear_cart()
        self.refresh()
        self.aggregate.start()

    def shutdown(self) -> None:
        if self.aggregate is not None:
            self.aggregate.stop()
