# pos_terminal/tests/test_sales_controller.py
from __future__ import annotations

from decimal import Decimal

import pytest
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QDialog

from pos_terminal.config import IntakePreferences
from pos_terminal.database.repositories import CustomersRepo, InvoicesRepo
from pos_terminal.modules.sales import controller as controller_module
from pos_terminal.modules.sales.controller import SalesController
from pos_terminal.modules.sales.model import InvoicesTableModel

MILK = "6221000000017"
BREAD = "6221000000024"
SOAP = "6221000000031"


@pytest.fixture()
def controller(qtbot, conn, products, clock):
    c = SalesController(
        conn, 1, now=clock, prefs=IntakePreferences(), persist_preferences=False
    )
    qtbot.addWidget(c.get_widget())
    yield c
    c.shutdown()


def _manual(controller):
    controller.view.chk_auto.setChecked(False)
    assert controller.intake.auto_mode is False


def _scan(controller, code):
    controller.view.edt_barcode.setText(code)
    return controller.submit_barcode()


def _sell(controller, *codes):
    _manual(controller)
    for code in codes:
        assert _scan(controller, code)
    return controller.checkout()


# ---------------------------------------------------------------------
# Suite V – scanning into the cart
# ---------------------------------------------------------------------
def test_v1_starts_with_catalogue_and_empty_day(controller):
    assert len(controller.index) == 3
    assert controller.view.lbl_day_total.text() == "0.00"
    assert controller.view.lbl_day_invoices.text() == "0"
    assert controller.invoices_model.rowCount() == 0


def test_v2_auto_scan_adds_to_cart(controller, qtbot):
    controller.view.edt_barcode.setText(MILK)

    qtbot.waitUntil(lambda: controller.cart_model.rowCount() == 1, timeout=2000)

    assert controller.cart.find(controller.index.get(MILK).product_id).quantity == 1
    assert controller.view.lbl_cart_total.text() == "Total: 10.00"
    assert controller.view.edt_barcode.text() == ""


def test_v3_out_of_stock_is_reported(controller, _no_message_boxes):
    _manual(controller)
    assert _scan(controller, SOAP) is False

    assert controller.cart.is_empty()
    assert ("warning", "Invalid input", "Soap is out of stock.") in _no_message_boxes


def test_v4_unknown_barcode_offers_to_create(controller, qtbot, _no_message_boxes):
    _manual(controller)
    with qtbot.waitSignal(controller.create_product_requested, timeout=1000) as blocker:
        _scan(controller, "4000000000002")

    assert blocker.args == ["4000000000002"]
    assert _no_message_boxes[-1][0] == "error"


def test_v5_empty_submit_is_a_warning(controller, _no_message_boxes):
    assert controller.submit_barcode() is False
    assert _no_message_boxes[-1] == ("warning", "Invalid input", "Please enter a barcode.")


def test_v6_decoder_input_goes_through_the_same_path(controller):
    assert controller.feed_decoded("6221 0000 0002 4") is True
    assert controller.cart.total == Decimal("5.50")
    assert controller.feed_decoded("no digits here") is False


# ---------------------------------------------------------------------
# Suite W – checkout and the footer
# ---------------------------------------------------------------------
def test_w1_checkout_updates_footer_and_history(controller, conn, _no_message_boxes):
    inv = _sell(controller, MILK, MILK, BREAD)

    assert inv.total_amount == Decimal("25.50")
    assert controller.cart.is_empty()
    assert controller.view.lbl_cart_total.text() == "Total: 0.00"
    assert controller.view.lbl_day_total.text() == "25.50"
    assert controller.view.lbl_day_invoices.text() == "1"
    assert controller.view.lbl_day_items.text() == "3"
    assert controller.invoices_model.at(0).invoice_number == inv.invoice_number
    assert _no_message_boxes[-1][:2] == ("info", "Sale completed")
    assert InvoicesRepo(conn).get(inv.invoice_id).paid_amount == Decimal("25.50")
    assert controller.index.get(MILK).stock == 18


def test_w2_empty_cart_checkout_warns(controller, _no_message_boxes):
    assert controller.checkout() is None
    assert _no_message_boxes[-1] == (
        "warning", "Invalid input", "The cart is empty. Add products first."
    )


def test_w3_payment_method_is_taken_from_the_view(controller):
    _manual(controller)
    _scan(controller, MILK)
    controller.view.cmb_payment.setCurrentIndex(controller.view.cmb_payment.findData("insta_pay"))

    inv = controller.checkout()

    assert inv.payment_method == "insta_pay"


def test_w4_formal_invoice_then_payments(controller):
    _manual(controller)
    _scan(controller, MILK)
    inv = controller.create_invoice()
    assert inv.paid_amount == Decimal("0")

    updated = controller.record_payment(inv, "4")

    assert updated.paid_amount == Decimal("4.00")
    assert controller.invoices_model.at(0).paid_amount == Decimal("4.00")
    assert controller.record_payment(updated, "7") is None


def test_w5_delete_invoice(controller):
    inv = _sell(controller, BREAD)
    assert controller.delete_invoice(inv) is True
    assert controller.view.lbl_day_total.text() == "0.00"
    assert controller.index.get(BREAD).stock == 10


def test_w6_switch_cashier_swaps_the_day(controller):
    _sell(controller, MILK)
    old = controller.aggregate

    controller.switch_cashier(2)
    assert not old.is_running()
    assert not old._rollover_timer.isActive()
    assert controller.aggregate is not old
    assert controller.aggregate.is_running()
    assert controller.view.lbl_day_total.text() == "0.00"
    assert controller.invoices_model.rowCount() == 0

    controller.switch_cashier(1)
    assert controller.view.lbl_day_total.text() == "10.00"


# ---------------------------------------------------------------------
# Suite X – customers
# ---------------------------------------------------------------------
def test_x1_customer_search_is_debounced(controller, conn, qtbot):
    CustomersRepo(conn).create("Mona Adel", "01012345678")
    calls = []
    real = controller.customers.search

    def counting_search(term, limit=20):
        calls.append(term)
        return real(term, limit)

    controller.customers.search = counting_search

    with qtbot.waitSignal(controller.customers_found, timeout=2000) as blocker:
        for text in ("M", "Mo", "Mon"):
            controller.view.edt_customer.setText(text)
    qtbot.wait(50)

    assert calls == ["Mon"]
    assert [c.name for c in blocker.args[0]] == ["Mona Adel"]
    assert controller.view.lst_customers.count() == 1


def test_x2_selected_customer_goes_on_the_invoice(controller, conn):
    mona = CustomersRepo(conn).create("Mona Adel", "01012345678")
    controller.select_customer(mona)
    assert controller.view.lbl_customer.text() == "Mona Adel (01012345678)"

    inv = _sell(controller, MILK)

    assert inv.customer_id == mona.customer_id
    assert inv.phone == "01012345678"
    assert controller.customer is None


# ---------------------------------------------------------------------
# Suite Y – returns from the counter
# ---------------------------------------------------------------------
def test_y1_return_from_history_updates_footer(controller, _no_message_boxes):
    inv = _sell(controller, MILK, MILK)

    outcome = controller.submit_return(inv, {inv.items[0].line_item_id: 1})

    assert outcome.refund_amount == Decimal("10.00")
    assert controller.view.lbl_day_total.text() == "10.00"
    assert controller.view.lbl_day_items.text() == "1"
    assert controller.invoices_model.at(0).items[0].returned_quantity == 1
    assert _no_message_boxes[-1][:2] == ("info", "Return recorded")


def test_y2_over_return_is_a_warning(controller, _no_message_boxes):
    inv = _sell(controller, MILK)
    assert controller.submit_return(inv, {inv.items[0].line_item_id: 2}) is None
    assert _no_message_boxes[-1][0] == "warning"
    assert controller.view.lbl_day_total.text() == "10.00"


def test_y3_scan_to_return_opens_the_form_seeded(controller, monkeypatch):
    inv = _sell(controller, MILK, MILK, BREAD)
    seen = {}

    def fake_exec(form):
        seen["quantities"] = form.quantities()
        return QDialog.Accepted

    monkeypatch.setattr(controller_module.SaleReturnForm, "exec", fake_exec)
    controller.set_mode("return")
    assert controller.view.btn_submit.text() == "Find"

    assert _scan(controller, MILK) is True

    milk_line, bread_line = inv.items
    assert seen["quantities"] == {milk_line.line_item_id: 1, bread_line.line_item_id: 0}
    assert controller.view.lbl_day_total.text() == "15.50"
    assert controller.index.get(MILK).stock == 19


def test_y4_scan_to_return_without_a_sale_is_a_failed_attempt(controller, _no_message_boxes):
    _manual(controller)
    controller.set_mode("return")

    _scan(controller, BREAD)

    assert controller.intake.retry_count == 1
    assert _no_message_boxes[-1] == (
        "warning", "Invalid input", "No invoice with returnable units of Bread."
    )


def test_y5_cancelled_form_records_nothing(controller, monkeypatch):
    inv = _sell(controller, MILK)
    monkeypatch.setattr(controller_module.SaleReturnForm, "exec", lambda form: QDialog.Rejected)

    assert controller.open_return_form(inv) is None
    assert controller.view.lbl_day_total.text() == "10.00"


# ---------------------------------------------------------------------
# Suite Z – receipts and preferences
# ---------------------------------------------------------------------
def test_z1_missing_weasyprint_is_reported(controller, monkeypatch, tmp_path, _no_message_boxes):
    inv = _sell(controller, MILK)

    def no_weasyprint(*a, **k):
        raise ImportError("No module named 'weasyprint'")

    monkeypatch.setattr(controller_module, "export_receipt_pdf", no_weasyprint)

    assert controller.export_receipt(inv, tmp_path / "r.pdf") is None
    assert _no_message_boxes[-1][:2] == ("warning", "WeasyPrint Not Available")


def test_z2_receipt_export_delegates(controller, monkeypatch, tmp_path):
    inv = _sell(controller, MILK)
    written = []

    def fake_export(invoice, out_path, **kw):
        written.append((invoice.invoice_number, out_path))
        return out_path

    monkeypatch.setattr(controller_module, "export_receipt_pdf", fake_export)

    assert controller.export_receipt(inv, tmp_path / "r.pdf") == tmp_path / "r.pdf"
    assert written == [(inv.invoice_number, tmp_path / "r.pdf")]


def test_z3_auto_mode_toggle_updates_preferences(controller):
    controller.view.chk_auto.setChecked(False)
    assert controller.prefs.auto_mode is False
    controller.view.chk_auto.setChecked(True)
    assert controller.intake.auto_mode is True


def test_z4_shutdown_stops_the_timers(controller):
    assert controller.aggregate.is_running()
    controller.shutdown()
    assert not controller.aggregate.is_running()


# ---------------------------------------------------------------------
# Suite O – invoice history filters and sorting
# ---------------------------------------------------------------------
def test_o1_status_column_sorts_unpaid_first(qapp, make_invoice):
    paid = make_invoice(1, [(1, "10.00")])
    unpaid = make_invoice(2, [(1, "10.00")], paid=0)
    partial = make_invoice(3, [(1, "10.00")], paid=Decimal("4.00"))
    model = InvoicesTableModel([paid, unpaid, partial])

    model.sort(6)
    assert [model.at(r).invoice_id for r in range(3)] == [2, 3, 1]

    model.sort(6, Qt.DescendingOrder)
    assert [model.at(r).invoice_id for r in range(3)] == [1, 3, 2]

    # a reload keeps the chosen order
    model.replace([unpaid, partial, paid])
    assert [model.at(r).invoice_id for r in range(3)] == [1, 3, 2]


def test_o2_class_filter_search_and_stats(controller):
    first = _sell(controller, MILK, MILK)
    second = _sell(controller, BREAD)
    controller.submit_return(first, {first.items[0].line_item_id: 1})
    view = controller.view

    view.cmb_history_class.setCurrentIndex(view.cmb_history_class.findData("partiallyReturned"))

    assert controller.invoices_model.rowCount() == 1
    assert controller.invoices_model.at(0).invoice_id == first.invoice_id
    assert view.lbl_history_stats.text() == (
        "Showing 1 of 2 · 1 partly returned · 0 fully returned"
    )

    view.cmb_history_class.setCurrentIndex(0)
    view.edt_history_search.setText(second.invoice_number)

    assert controller.invoices_model.rowCount() == 1
    assert controller.invoices_model.at(0).invoice_id == second.invoice_id
    assert view.lbl_day_invoices.text() == "2"


def test_o3_enter_on_an_older_number_opens_its_return_form(controller, monkeypatch):
    inv = _sell(controller, MILK)
    controller.switch_cashier(2)
    opened = []

    def fake_exec(form):
        opened.append(form.invoice.invoice_number)
        return QDialog.Rejected

    monkeypatch.setattr(controller_module.SaleReturnForm, "exec", fake_exec)
    controller.view.edt_history_search.setText(inv.invoice_number)
    assert controller.invoices_model.rowCount() == 0

    controller._on_history_search_entered()

    assert opened == [inv.invoice_number]


def test_o4_unknown_invoice_number_is_reported(controller, _no_message_boxes):
    assert controller.find_invoice("INV-NOPE") is None
    assert _no_message_boxes[-1] == ("error", "Not found", "No invoice numbered INV-NOPE.")

    assert controller.find_invoice("   ") is None
    assert _no_message_boxes[-1][0] == "warning"
