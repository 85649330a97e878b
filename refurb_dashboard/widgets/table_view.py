# refurb_dashboard/widgets/table_view.py
from __future__ import annotations

from typing import Any, List, Sequence

from PySide6.QtCore import Qt
from PySide6.QtGui import QStandardItem, QStandardItemModel
from PySide6.QtWidgets import QAbstractItemView, QHeaderView, QTableView


class TableView(QTableView):
    """Read-only table over a QStandardItemModel; rows are replaced wholesale."""

    def __init__(self, headers: Sequence[str], parent=None):
        super().__init__(parent)
        self.setAlternatingRowColors(True)
        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setSelectionMode(QAbstractItemView.NoSelection)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.verticalHeader().setVisible(False)
        self.horizontalHeader().setStretchLastSection(True)
        self.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)

        self.model_ = QStandardItemModel(0, len(headers), self)
        self.model_.setHorizontalHeaderLabels(list(headers))
        self.setModel(self.model_)

    def set_rows(self, rows: Sequence[Sequence[Any]]) -> None:
        self.model_.removeRows(0, self.model_.rowCount())
        for row in rows:
            items: List[QStandardItem] = []
            for i, cell in enumerate(row):
                it = QStandardItem("" if cell is None else str(cell))
                if i > 0:
                    it.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
                items.append(it)
            self.model_.appendRow(items)

    def row_count(self) -> int:
        return self.model_.rowCount()

    def cell(self, row: int, col: int) -> str:
        return self.model_.item(row, col).text()
