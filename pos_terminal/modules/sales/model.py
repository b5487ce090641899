from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex

from ...utils.helpers import fmt_money
from ..payments.status import label as status_label, sort_key as status_sort_key
from .classification import LABELS as CLASS_LABELS, InvoiceClass, classify

_CLASS_ORDER = {c: i for i, c in enumerate(InvoiceClass)}


class CartTableModel(QAbstractTableModel):
    HEADERS = ["Product", "Barcode", "Qty", "Unit Price", "Line Total"]

    def __init__(self, lines: list | None = None):
        super().__init__()
        self._lines = lines or []

    def rowCount(self, parent=QModelIndex()):
        return len(self._lines)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def at(self, row: int):
        return self._lines[row]

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        ln = self._lines[index.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            mapping = [
                ln.name,
                ln.barcode or "",
                ln.quantity,
                fmt_money(ln.unit_price),
                fmt_money(ln.line_total),
            ]
            return mapping[index.column()]
        if role == Qt.TextAlignmentRole and index.column() >= 2:
            return Qt.AlignRight | Qt.AlignVCenter
        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section] if section < len(self.HEADERS) else None
        return super().headerData(section, orientation, role)

    def replace(self, lines: list):
        self.beginResetModel()
        self._lines = lines or []
        self.endResetModel()


class InvoicesTableModel(QAbstractTableModel):
    """Invoice history: status and return class are derived on every paint."""

    HEADERS = ["Invoice #", "Date", "Customer", "Total", "Net", "Paid", "Status", "Returns"]

    def __init__(self, invoices: list | None = None):
        super().__init__()
        self._rows = invoices or []
        self._sort = None  # (column, order) once the user sorts

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(self.HEADERS)

    def at(self, row: int):
        return self._rows[row]

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        inv = self._rows[index.row()]
        if role in (Qt.DisplayRole, Qt.EditRole):
            mapping = [
                inv.invoice_number,
                inv.created_at.strftime("%Y-%m-%d %H:%M"),
                inv.display_customer,
                fmt_money(inv.total_amount),
                fmt_money(inv.effective_total),
                fmt_money(inv.paid_amount),
                status_label(inv.status),
                CLASS_LABELS[classify(inv)],
            ]
            return mapping[index.column()]
        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation == Qt.Horizontal and role == Qt.DisplayRole:
            return self.HEADERS[section] if section < len(self.HEADERS) else None
        return super().headerData(section, orientation, role)

    def replace(self, invoices: list):
        self.beginResetModel()
        self._rows = invoices or []
        if self._sort is not None:
            self._apply_sort(*self._sort)
        self.endResetModel()

    _SORT_KEYS = [
        lambda inv: inv.invoice_number or "",
        lambda inv: inv.created_at,
        lambda inv: inv.display_customer.lower(),
        lambda inv: inv.total_amount,
        lambda inv: inv.effective_total,
        lambda inv: inv.paid_amount,
        lambda inv: status_sort_key(inv.status),
        lambda inv: _CLASS_ORDER[classify(inv)],
    ]

    def _apply_sort(self, column: int, order) -> None:
        self._rows.sort(
            key=self._SORT_KEYS[column], reverse=(order == Qt.DescendingOrder)
        )

    def sort(self, column, order=Qt.AscendingOrder):
        if not 0 <= column < len(self._SORT_KEYS):
            return
        self._sort = (column, order)
        self.layoutAboutToBeChanged.emit()
        self._apply_sort(column, order)
        self.layoutChanged.emit()
