from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QPushButton, QTableWidget,
    QTableWidgetItem, QAbstractItemView, QLabel, QDialogButtonBox, QSpinBox,
)
from PySide6.QtCore import Qt

from ...utils.errors import DomainError
from ...utils.helpers import fmt_money
from .ledger import Invoice
from .returns import validate_return


class SaleReturnForm(QDialog):
    """
    Per-line return quantities for one invoice.

    Each returnable line gets a spin box bounded by what is still returnable
    (quantity - returned_quantity); fully returned lines are shown read-only.
    The refund preview and the OK button follow validate_return(), so the
    dialog never accepts a batch the processor would refuse.
    """

    COLS = ["Product", "Sold", "Returned", "Unit Price", "Return Qty", "Refund"]

    def __init__(self, invoice: Invoice, initial: dict | None = None, parent=None):
        super().__init__(parent)
        self.setWindowTitle(f"Return items: {invoice.invoice_number}")
        self.setModal(True)
        self.invoice = invoice
        self._spins: dict = {}

        lay = QVBoxLayout(self)
        lay.addWidget(QLabel(f"Customer: {invoice.display_customer}"))

        self.tbl = QTableWidget(len(invoice.items), len(self.COLS))
        self.tbl.setHorizontalHeaderLabels(self.COLS)
        self.tbl.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.tbl.setEditTriggers(QAbstractItemView.NoEditTriggers)
        lay.addWidget(self.tbl, 1)

        initial = initial or {}
        for r, it in enumerate(invoice.items):
            self._set(r, 0, it.product_name or str(it.product_id))
            self._set(r, 1, str(it.quantity))
            self._set(r, 2, str(it.returned_quantity))
            self._set(r, 3, fmt_money(it.unit_price))
            spin = QSpinBox()
            spin.setRange(0, it.max_returnable)
            spin.setValue(min(int(initial.get(it.line_item_id, 0)), it.max_returnable))
            spin.setEnabled(it.max_returnable > 0)
            spin.valueChanged.connect(self._recalc)
            self.tbl.setCellWidget(r, 4, spin)
            self._spins[it.line_item_id] = spin
            self._set(r, 5, fmt_money(0))

        foot = QHBoxLayout()
        self.btn_all = QPushButton("Return everything")
        foot.addWidget(self.btn_all)
        foot.addStretch(1)
        foot.addWidget(QLabel("Refund:"))
        self.lbl_refund = QLabel("0.00")
        foot.addWidget(self.lbl_refund)
        lay.addLayout(foot)

        self.lbl_note = QLabel("")
        self.lbl_note.setStyleSheet("color:#a22;")
        lay.addWidget(self.lbl_note)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        self.buttons.accepted.connect(self.accept)
        self.buttons.rejected.connect(self.reject)
        lay.addWidget(self.buttons)

        self.btn_all.clicked.connect(self._return_all)
        self.resize(760, 420)
        self._recalc()

    def _set(self, r: int, c: int, text: str) -> None:
        item = QTableWidgetItem(text)
        if c >= 1:
            item.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
        self.tbl.setItem(r, c, item)

    def _return_all(self) -> None:
        for it in self.invoice.items:
            self._spins[it.line_item_id].setValue(it.max_returnable)

    def quantities(self) -> dict:
        return {lid: spin.value() for lid, spin in self._spins.items()}

    def _recalc(self) -> None:
        for r, it in enumerate(self.invoice.items):
            qty = self._spins[it.line_item_id].value()
            self.tbl.item(r, 5).setText(fmt_money(it.unit_price * qty))
        ok_btn = self.buttons.button(QDialogButtonBox.Ok)
        try:
            plan = validate_return(self.invoice, self.quantities())
        except DomainError as e:
            self.lbl_refund.setText(fmt_money(0))
            self.lbl_note.setText(str(e))
            ok_btn.setEnabled(False)
            return
        self.lbl_refund.setText(fmt_money(plan.refund_amount))
        self.lbl_note.setText("")
        ok_btn.setEnabled(True)
