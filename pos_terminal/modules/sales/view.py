from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QLineEdit, QLabel,
    QGroupBox, QButtonGroup, QCheckBox, QComboBox, QListWidget, QSplitter,
)
from PySide6.QtCore import Qt, Signal

from ...constants import PAYMENT_METHODS, PAYMENT_METHOD_LABELS
from ...widgets.table_view import TableView
from ...utils.helpers import fmt_money
from .classification import LABELS as CLASS_LABELS, InvoiceClass


class SalesView(QWidget):
    # Emit 'sale' or 'return' when the cashier toggles the scan mode.
    modeChanged = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        root = QVBoxLayout(self)

        # --- Mode toggle (Sale | Return) + auto-submit ---
        modebar = QHBoxLayout()
        modebar.addWidget(QLabel("Mode:"))
        self.btn_mode_sale = QPushButton("Sale")
        self.btn_mode_return = QPushButton("Return")
        for b in (self.btn_mode_sale, self.btn_mode_return):
            b.setCheckable(True)
        self.btn_mode_sale.setChecked(True)
        self._mode_group = QButtonGroup(self)
        self._mode_group.setExclusive(True)
        self._mode_group.addButton(self.btn_mode_sale)
        self._mode_group.addButton(self.btn_mode_return)
        modebar.addWidget(self.btn_mode_sale)
        modebar.addWidget(self.btn_mode_return)
        modebar.addSpacing(16)
        self.chk_auto = QCheckBox("Auto-submit scans")
        self.chk_auto.setChecked(True)
        modebar.addWidget(self.chk_auto)
        modebar.addStretch(1)
        self.btn_refresh = QPushButton("Refresh")
        modebar.addWidget(self.btn_refresh)
        root.addLayout(modebar)

        # --- Barcode entry ---
        scan = QHBoxLayout()
        self.edt_barcode = QLineEdit()
        self.edt_barcode.setPlaceholderText("Scan or type a barcode…")
        self.btn_submit = QPushButton("Add")
        self.lbl_scan_state = QLabel("")
        self.lbl_scan_state.setStyleSheet("color:#666;")
        scan.addWidget(QLabel("Barcode:"))
        scan.addWidget(self.edt_barcode, 2)
        scan.addWidget(self.btn_submit)
        scan.addWidget(self.lbl_scan_state, 1)
        root.addLayout(scan)

        split = QSplitter(Qt.Horizontal)

        # --- Cart ---
        cart_box = QGroupBox("Cart")
        cv = QVBoxLayout(cart_box)
        self.tbl_cart = TableView(sortable=False)
        cv.addWidget(self.tbl_cart, 1)
        cart_btns = QHBoxLayout()
        self.btn_remove = QPushButton("Remove line")
        self.btn_clear = QPushButton("Clear")
        cart_btns.addWidget(self.btn_remove)
        cart_btns.addWidget(self.btn_clear)
        cart_btns.addStretch(1)
        self.lbl_cart_total = QLabel("Total: 0.00")
        cart_btns.addWidget(self.lbl_cart_total)
        cv.addLayout(cart_btns)
        split.addWidget(cart_box)

        # --- Customer + payment ---
        side = QGroupBox("Checkout")
        sv = QVBoxLayout(side)
        self.edt_customer = QLineEdit()
        self.edt_customer.setPlaceholderText("Customer name or phone…")
        self.lst_customers = QListWidget()
        self.lst_customers.setMaximumHeight(120)
        self.lbl_customer = QLabel("")
        sv.addWidget(QLabel("Customer:"))
        sv.addWidget(self.edt_customer)
        sv.addWidget(self.lst_customers)
        sv.addWidget(self.lbl_customer)
        self.cmb_payment = QComboBox()
        for m in PAYMENT_METHODS:
            self.cmb_payment.addItem(PAYMENT_METHOD_LABELS[m], m)
        sv.addWidget(QLabel("Payment method:"))
        sv.addWidget(self.cmb_payment)
        sv.addStretch(1)
        self.btn_checkout = QPushButton("Checkout")
        self.btn_invoice = QPushButton("Create invoice (pay later)")
        sv.addWidget(self.btn_checkout)
        sv.addWidget(self.btn_invoice)
        split.addWidget(side)
        split.setStretchFactor(0, 3)
        split.setStretchFactor(1, 1)
        root.addWidget(split, 1)

        # --- Today's invoices ---
        hist = QGroupBox("Today's invoices")
        hv = QVBoxLayout(hist)
        filters = QHBoxLayout()
        self.edt_history_search = QLineEdit()
        self.edt_history_search.setPlaceholderText("Invoice #, customer, phone or product…")
        self.cmb_history_class = QComboBox()
        self.cmb_history_class.addItem("All invoices", "all")
        for cls, text in CLASS_LABELS.items():
            self.cmb_history_class.addItem(text, cls.value)
        self.lbl_history_stats = QLabel("")
        self.lbl_history_stats.setStyleSheet("color:#666;")
        filters.addWidget(QLabel("Search:"))
        filters.addWidget(self.edt_history_search, 2)
        filters.addWidget(self.cmb_history_class)
        filters.addWidget(self.lbl_history_stats, 1)
        hv.addLayout(filters)
        self.tbl_invoices = TableView()
        hv.addWidget(self.tbl_invoices, 1)
        hist_btns = QHBoxLayout()
        self.btn_return = QPushButton("Return items…")
        self.btn_receipt = QPushButton("Print receipt")
        hist_btns.addWidget(self.btn_return)
        hist_btns.addWidget(self.btn_receipt)
        hist_btns.addStretch(1)
        hv.addLayout(hist_btns)
        root.addWidget(hist, 1)

        # --- Daily footer ---
        footer = QHBoxLayout()
        self.lbl_day_total = QLabel("0.00")
        self.lbl_day_invoices = QLabel("0")
        self.lbl_day_items = QLabel("0")
        footer.addWidget(QLabel("Today:"))
        footer.addWidget(self.lbl_day_total)
        footer.addSpacing(16)
        footer.addWidget(QLabel("Invoices:"))
        footer.addWidget(self.lbl_day_invoices)
        footer.addSpacing(16)
        footer.addWidget(QLabel("Items:"))
        footer.addWidget(self.lbl_day_items)
        footer.addStretch(1)
        root.addLayout(footer)

        self.btn_mode_sale.clicked.connect(lambda: self.modeChanged.emit("sale"))
        self.btn_mode_return.clicked.connect(lambda: self.modeChanged.emit("return"))

    # ---- small setters the controller drives ----

    def payment_method(self) -> str:
        return self.cmb_payment.currentData()

    def set_cart_total(self, total) -> None:
        self.lbl_cart_total.setText(f"Total: {fmt_money(total)}")

    def set_daily(self, snapshot) -> None:
        self.lbl_day_total.setText(fmt_money(snapshot.total))
        self.lbl_day_invoices.setText(str(snapshot.invoice_count))
        self.lbl_day_items.setText(str(snapshot.item_count))

    def set_scan_state(self, text: str) -> None:
        self.lbl_scan_state.setText(text)

    def history_class(self) -> str:
        return self.cmb_history_class.currentData() or "all"

    def set_history_stats(self, stats: dict, shown: int) -> None:
        self.lbl_history_stats.setText(
            f"Showing {shown} of {stats['total']} · "
            f"{stats[InvoiceClass.PARTIALLY_RETURNED.value]} partly returned · "
            f"{stats[InvoiceClass.FULLY_RETURNED.value]} fully returned"
        )
