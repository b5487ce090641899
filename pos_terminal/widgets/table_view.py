from PySide6.QtWidgets import QHeaderView, QTableView


class TableView(QTableView):
    def __init__(self, parent=None, *, sortable: bool = True):
        super().__init__(parent)
        self.setSortingEnabled(sortable)
        self.setAlternatingRowColors(True)
        self.setSelectionBehavior(QTableView.SelectRows)
        self.setSelectionMode(QTableView.SingleSelection)
        self.horizontalHeader().setStretchLastSection(True)
        self.verticalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.verticalHeader().setVisible(False)

    def selected_row(self) -> int:
        """Source row of the current selection, or -1."""
        idx = self.currentIndex()
        return idx.row() if idx.isValid() else -1
