from __future__ import annotations

from dataclasses import dataclass

from PySide6 import QtCore, QtWidgets

from metalineage.graph.service import GraphStore
from metalineage.graph.types import NODE_TYPES
from metalineage.search.filters import (
    ALL_TYPES,
    NodeQuery,
    PropertyFilter,
    discover_properties,
    query,
)


@dataclass
class _FilterRow:
    key: QtWidgets.QComboBox
    value: QtWidgets.QLineEdit
    container: QtWidgets.QWidget


class SearchPanel(QtWidgets.QWidget):
    """Text, type and property filters over the store's nodes."""

    highlightRequested = QtCore.Signal(list)  # node ids

    def __init__(self, store: GraphStore, parent: QtWidgets.QWidget | None = None):
        super().__init__(parent)
        self.store = store
        self._rows: list[_FilterRow] = []
        self._available: list[str] = []

        self.text_term = QtWidgets.QLineEdit()
        self.text_term.setPlaceholderText("Search label or description...")
        self.type_filter = QtWidgets.QComboBox()
        self.type_filter.addItems([ALL_TYPES, *NODE_TYPES])

        self._filters_box = QtWidgets.QVBoxLayout()
        add_filter_btn = QtWidgets.QPushButton("+ Property Filter")
        reset_btn = QtWidgets.QPushButton("Reset")
        search_btn = QtWidgets.QPushButton("Search")

        button_row = QtWidgets.QHBoxLayout()
        button_row.addWidget(add_filter_btn)
        button_row.addStretch(1)
        button_row.addWidget(reset_btn)
        button_row.addWidget(search_btn)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(self.text_term)
        layout.addWidget(self.type_filter)
        layout.addLayout(self._filters_box)
        layout.addLayout(button_row)

        add_filter_btn.clicked.connect(self.add_filter_row)
        reset_btn.clicked.connect(self.reset)
        search_btn.clicked.connect(self.run_search)

    def refresh_available_properties(self) -> list[str]:
        active = [row.key.currentText() for row in self._rows]
        self._available = discover_properties(self.store.list_nodes(), active)
        for row in self._rows:
            selected = row.key.currentText()
            row.key.blockSignals(True)
            row.key.clear()
            row.key.addItems(["", *self._available])
            row.key.setCurrentText(selected)
            row.key.blockSignals(False)
        return list(self._available)

    def add_filter_row(self) -> _FilterRow:
        container = QtWidgets.QWidget()
        row_layout = QtWidgets.QHBoxLayout(container)
        row_layout.setContentsMargins(0, 0, 0, 0)
        key = QtWidgets.QComboBox()
        value = QtWidgets.QLineEdit()
        value.setPlaceholderText("Value")
        remove_btn = QtWidgets.QPushButton("×")
        row_layout.addWidget(key)
        row_layout.addWidget(value)
        row_layout.addWidget(remove_btn)

        row = _FilterRow(key=key, value=value, container=container)
        self._rows.append(row)
        self._filters_box.addWidget(container)
        remove_btn.clicked.connect(lambda: self.remove_filter_row(row))
        key.currentTextChanged.connect(lambda _text: self.refresh_available_properties())
        self.refresh_available_properties()
        return row

    def remove_filter_row(self, row: _FilterRow) -> None:
        if row not in self._rows:
            return
        self._rows.remove(row)
        row.container.setParent(None)
        row.container.deleteLater()
        self.refresh_available_properties()

    def current_query(self) -> NodeQuery:
        return NodeQuery(
            text_term=self.text_term.text(),
            type_filter=self.type_filter.currentText(),
            property_filters=[
                PropertyFilter(key=row.key.currentText(), value=row.value.text())
                for row in self._rows
            ],
        )

    def run_search(self) -> list[int]:
        ids = query(self.store.list_nodes(), self.current_query())
        self.highlightRequested.emit(ids)
        return ids

    def reset(self) -> None:
        self.text_term.clear()
        self.type_filter.setCurrentText(ALL_TYPES)
        for row in list(self._rows):
            self.remove_filter_row(row)
        self.highlightRequested.emit([])
