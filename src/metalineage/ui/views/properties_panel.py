from __future__ import annotations

import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from PySide6 import QtCore, QtWidgets

from metalineage.errors import LineageError
from metalineage.graph.service import GraphStore
from metalineage.graph.types import NODE_TYPES
from metalineage.pathcheck.checker import PathChecker
from metalineage.pathcheck.client import check_path_state_async
from metalineage.pathcheck.types import PathState
from metalineage.session.edit_session import EditSession

_STATE_GLYPHS = {
    PathState.UNKNOWN: "?",
    PathState.VALID: "✓",
    PathState.INVALID: "✗",
}


class PropertiesPanel(QtWidgets.QWidget):
    """Side panel editing one node through an :class:`EditSession`."""

    nodeSaved = QtCore.Signal(int)
    # session, ticket, state; emitted from worker threads, delivered on the GUI thread
    _pathCheckDone = QtCore.Signal(object, object, object)

    def __init__(
        self,
        store: GraphStore,
        checker: Optional[PathChecker] = None,
        path_check_timeout: Optional[float] = None,
        parent: QtWidgets.QWidget | None = None,
    ):
        super().__init__(parent)
        self.store = store
        self.checker = checker
        self.path_check_timeout = path_check_timeout
        self.session: Optional[EditSession] = None
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="path-check")
        self._loading = False

        self._node_group = self._build_node_form()
        self._versions_group = self._build_versions_form()
        self.error_label = QtWidgets.QLabel("")
        self.error_label.setStyleSheet("color: #c62828")
        self.error_label.setWordWrap(True)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(self._node_group)
        layout.addWidget(self._versions_group)
        layout.addWidget(self.error_label)
        layout.addStretch(1)

        self._pathCheckDone.connect(self._on_path_check_done)
        self._show_none()

    def _build_node_form(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Node")
        form = QtWidgets.QFormLayout(group)
        self.node_id = QtWidgets.QLineEdit()
        self.node_id.setReadOnly(True)
        self.node_type = QtWidgets.QComboBox()
        self.node_type.addItems(list(NODE_TYPES))
        self.node_label = QtWidgets.QLineEdit()
        self.node_description = QtWidgets.QPlainTextEdit()

        self.properties_table = QtWidgets.QTableWidget(0, 2)
        self.properties_table.setHorizontalHeaderLabels(["Key", "Value"])
        self.properties_table.horizontalHeader().setStretchLastSection(True)
        self.new_property_key = QtWidgets.QLineEdit()
        self.new_property_key.setPlaceholderText("New property key")
        add_prop_btn = QtWidgets.QPushButton("Add")
        remove_prop_btn = QtWidgets.QPushButton("Remove")

        self.path_table = QtWidgets.QTableWidget(0, 3)
        self.path_table.setHorizontalHeaderLabels(["Key", "Path", ""])
        self.path_table.horizontalHeader().setStretchLastSection(False)
        self.path_table.horizontalHeader().setSectionResizeMode(
            1, QtWidgets.QHeaderView.ResizeMode.Stretch
        )
        self.new_path_key = QtWidgets.QLineEdit()
        self.new_path_key.setPlaceholderText("New path property key")
        add_path_btn = QtWidgets.QPushButton("Add")
        remove_path_btn = QtWidgets.QPushButton("Remove")
        check_path_btn = QtWidgets.QPushButton("Check Path")

        save_btn = QtWidgets.QPushButton("Save Node")

        prop_row = QtWidgets.QHBoxLayout()
        prop_row.addWidget(self.new_property_key)
        prop_row.addWidget(add_prop_btn)
        prop_row.addWidget(remove_prop_btn)
        path_row = QtWidgets.QHBoxLayout()
        path_row.addWidget(self.new_path_key)
        path_row.addWidget(add_path_btn)
        path_row.addWidget(remove_path_btn)
        path_row.addWidget(check_path_btn)

        form.addRow("ID", self.node_id)
        form.addRow("Type", self.node_type)
        form.addRow("Label", self.node_label)
        form.addRow("Description", self.node_description)
        form.addRow("Properties", self.properties_table)
        form.addRow(prop_row)
        form.addRow("Path Properties", self.path_table)
        form.addRow(path_row)
        form.addRow(save_btn)

        self.node_type.currentTextChanged.connect(self._on_type_changed)
        self.node_label.textChanged.connect(self._on_label_changed)
        self.node_description.textChanged.connect(self._on_description_changed)
        self.properties_table.itemChanged.connect(self._on_property_item_changed)
        self.path_table.itemChanged.connect(self._on_path_item_changed)
        add_prop_btn.clicked.connect(self._add_property)
        add_path_btn.clicked.connect(self._add_path_property)
        remove_prop_btn.clicked.connect(self.remove_selected_property)
        remove_path_btn.clicked.connect(self.remove_selected_path_property)
        check_path_btn.clicked.connect(self.check_selected_path)
        save_btn.clicked.connect(self._save_node)
        return group

    def _build_versions_form(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Dataset Versions")
        layout = QtWidgets.QVBoxLayout(group)
        self.versions_list = QtWidgets.QListWidget()
        self.version_path = QtWidgets.QLineEdit()
        self.version_path.setPlaceholderText("Dataset path")
        self.version_description = QtWidgets.QLineEdit()
        self.version_description.setPlaceholderText("Version description")

        button_row = QtWidgets.QHBoxLayout()
        create_btn = QtWidgets.QPushButton("New Version")
        switch_btn = QtWidgets.QPushButton("Switch")
        delete_btn = QtWidgets.QPushButton("Delete")
        export_btn = QtWidgets.QPushButton("Export...")
        import_btn = QtWidgets.QPushButton("Import...")
        for button in (create_btn, switch_btn, delete_btn, export_btn, import_btn):
            button_row.addWidget(button)

        layout.addWidget(self.versions_list)
        layout.addWidget(self.version_path)
        layout.addWidget(self.version_description)
        layout.addLayout(button_row)

        create_btn.clicked.connect(self._create_version)
        switch_btn.clicked.connect(self._switch_version)
        delete_btn.clicked.connect(self._delete_version)
        export_btn.clicked.connect(self._export_versions)
        import_btn.clicked.connect(self._import_versions)
        return group

    def show_node(self, node_id: int) -> None:
        try:
            self.session = EditSession(
                self.store,
                node_id,
                checker=self.checker,
                path_check_timeout=self.path_check_timeout,
            )
        except LineageError:
            self._show_none()
            return
        self.error_label.setText("")
        self._load_session()
        self._node_group.show()

    def _load_session(self) -> None:
        session = self.session
        if session is None:
            return
        self._loading = True
        try:
            node = session.node
            self.node_id.setText(str(node.id))
            self.node_type.setCurrentText(node.type)
            self.node_label.setText(node.label)
            self.node_description.setPlainText(node.description)
            self._populate_properties()
            self._populate_path_properties()
            self._populate_versions()
        finally:
            self._loading = False
        self._versions_group.setVisible(session.is_dataset_node)

    def _populate_properties(self) -> None:
        assert self.session is not None
        rows = list(self.session.node.properties.items())
        self.properties_table.setRowCount(len(rows))
        for idx, (key, value) in enumerate(rows):
            self.properties_table.setItem(idx, 0, _key_item(key))
            self.properties_table.setItem(idx, 1, QtWidgets.QTableWidgetItem(value))

    def _populate_path_properties(self) -> None:
        assert self.session is not None
        rows = list(self.session.node.path_properties.items())
        self.path_table.setRowCount(len(rows))
        for idx, (key, value) in enumerate(rows):
            self.path_table.setItem(idx, 0, _key_item(key))
            self.path_table.setItem(idx, 1, QtWidgets.QTableWidgetItem(value))
            self.path_table.setItem(idx, 2, self._status_item(key))

    def _status_item(self, key: str) -> QtWidgets.QTableWidgetItem:
        assert self.session is not None
        item = QtWidgets.QTableWidgetItem(_STATE_GLYPHS[self.session.path_state(key)])
        item.setFlags(item.flags() & ~QtCore.Qt.ItemFlag.ItemIsEditable)
        return item

    def _populate_versions(self) -> None:
        assert self.session is not None
        self.versions_list.clear()
        current = self.session.ledger.current_version_id
        for version in self.session.ledger.versions:
            marker = "* " if version.id == current else "  "
            item = QtWidgets.QListWidgetItem(
                f"{marker}{version.timestamp}  {version.path}  {version.description}"
            )
            item.setData(QtCore.Qt.ItemDataRole.UserRole, version.id)
            self.versions_list.addItem(item)

    def path_status_text(self, key: str) -> str:
        if self.session is None:
            return ""
        return _STATE_GLYPHS[self.session.path_state(key)]

    # Edits
    def _on_type_changed(self, node_type: str) -> None:
        if self._loading or self.session is None:
            return
        self.session.set_type(node_type)
        self._versions_group.setVisible(self.session.is_dataset_node)

    def _on_label_changed(self, text: str) -> None:
        if not self._loading and self.session is not None:
            self.session.set_label(text)

    def _on_description_changed(self) -> None:
        if self._loading or self.session is None:
            return
        self.session.set_description(self.node_description.toPlainText())

    def _on_property_item_changed(self, item: QtWidgets.QTableWidgetItem) -> None:
        if self._loading or self.session is None:
            return
        if item.column() == 0:
            self._rename_key(item, self.session.rename_property)
            return
        key = _row_key(self.properties_table, item.row())
        self.session.set_property(key, item.text())

    def _on_path_item_changed(self, item: QtWidgets.QTableWidgetItem) -> None:
        if self._loading or self.session is None:
            return
        if item.column() == 0:
            if self._rename_key(item, self.session.rename_path_property):
                self._refresh_path_status(item.text())
            return
        if item.column() != 1:
            return
        key = _row_key(self.path_table, item.row())
        self.session.set_path_property(key, item.text())
        self._refresh_path_status(key)

    def _rename_key(self, item: QtWidgets.QTableWidgetItem, rename) -> bool:
        old_key = item.data(QtCore.Qt.ItemDataRole.UserRole)
        new_key = item.text()
        try:
            rename(old_key, new_key)
        except LineageError as exc:
            self.error_label.setText(str(exc))
            self._set_key(item, old_key)
            return False
        self._set_key(item, new_key)
        self.error_label.setText("")
        return True

    def _set_key(self, item: QtWidgets.QTableWidgetItem, key: str) -> None:
        self._loading = True
        try:
            item.setText(key)
            item.setData(QtCore.Qt.ItemDataRole.UserRole, key)
        finally:
            self._loading = False

    def remove_selected_property(self) -> None:
        row = self.properties_table.currentRow()
        if self.session is None or row < 0:
            return
        self.session.remove_property(_row_key(self.properties_table, row))
        self._reload_tables()

    def remove_selected_path_property(self) -> None:
        row = self.path_table.currentRow()
        if self.session is None or row < 0:
            return
        self.session.remove_path_property(_row_key(self.path_table, row))
        self._reload_tables()

    def _add_property(self) -> None:
        if self.session is None:
            return
        try:
            self.session.add_property(self.new_property_key.text())
        except LineageError as exc:
            self.error_label.setText(str(exc))
            return
        self.new_property_key.clear()
        self._reload_tables()

    def _add_path_property(self) -> None:
        if self.session is None:
            return
        try:
            self.session.add_path_property(self.new_path_key.text())
        except LineageError as exc:
            self.error_label.setText(str(exc))
            return
        self.new_path_key.clear()
        self._reload_tables()

    def _reload_tables(self) -> None:
        self._loading = True
        try:
            self._populate_properties()
            self._populate_path_properties()
        finally:
            self._loading = False

    # Path checks
    def check_selected_path(self) -> Optional[Future]:
        row = self.path_table.currentRow()
        if self.session is None or row < 0:
            return None
        key = _row_key(self.path_table, row)
        return self.check_path(key)

    def check_path(self, key: str) -> Optional[Future]:
        session = self.session
        if session is None:
            return None
        ticket = session.begin_path_check(key)
        future = self._executor.submit(
            _run_check, session.checker, ticket.path, session.path_check_timeout
        )
        future.add_done_callback(
            lambda done: self._pathCheckDone.emit(session, ticket, done.result())
        )
        return future

    def _on_path_check_done(self, session, ticket, state) -> None:
        if session is not self.session:
            return
        if session.finish_path_check(ticket, state):
            self._refresh_path_status(ticket.key)

    def _refresh_path_status(self, key: str) -> None:
        for row in range(self.path_table.rowCount()):
            if _row_key(self.path_table, row) == key:
                self._loading = True
                try:
                    self.path_table.setItem(row, 2, self._status_item(key))
                finally:
                    self._loading = False
                return

    # Versions
    def _create_version(self) -> None:
        if self.session is None:
            return
        path = self.version_path.text()
        description = self.version_description.text()
        if not path or not description:
            self.error_label.setText("A dataset version needs a path and a description.")
            return
        self.session.create_version(path, description, {"size": 0, "rowCount": 0, "columns": []})
        self.version_path.clear()
        self.version_description.clear()
        self._populate_versions()

    def _selected_version_id(self) -> Optional[str]:
        item = self.versions_list.currentItem()
        if not item:
            return None
        return item.data(QtCore.Qt.ItemDataRole.UserRole)

    def _switch_version(self) -> None:
        version_id = self._selected_version_id()
        if self.session is None or not version_id:
            return
        self.session.switch_version(version_id)
        self._populate_versions()

    def _delete_version(self) -> None:
        version_id = self._selected_version_id()
        if self.session is None or not version_id:
            return
        self.session.delete_version(version_id)
        self._populate_versions()

    def export_versions(self, path: Path) -> None:
        if self.session is None:
            return
        path.write_text(self.session.ledger.export_ledger_json(), encoding="utf-8")

    def import_versions(self, path: Path) -> bool:
        """Replace the edited node's versions from a ledger file; applied on save."""
        if self.session is None:
            return False
        try:
            self.session.ledger.import_ledger(path.read_text(encoding="utf-8"))
        except (LineageError, OSError) as exc:
            self.error_label.setText(f"Version import failed: {exc}")
            return False
        self.error_label.setText("")
        self._populate_versions()
        return True

    def _export_versions(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export Versions", "dataset-versions.json", "JSON (*.json)"
        )
        if path:
            self.export_versions(Path(path))

    def _import_versions(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Import Versions", "", "JSON (*.json)"
        )
        if path:
            self.import_versions(Path(path))

    # Save
    def _save_node(self) -> None:
        if self.session is None:
            return
        try:
            saved = self.session.save()
        except LineageError as exc:
            self.error_label.setText(str(exc))
            return
        self.error_label.setText("")
        self.nodeSaved.emit(saved.id)

    def _show_none(self) -> None:
        self.session = None
        self._node_group.hide()
        self._versions_group.hide()

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self._executor.shutdown(wait=False)
        super().closeEvent(event)


def _run_check(checker: PathChecker, path: str, timeout: Optional[float]) -> PathState:
    return asyncio.run(check_path_state_async(checker, path, timeout))


def _key_item(key: str) -> QtWidgets.QTableWidgetItem:
    # the committed key rides along so a rename knows what it replaces
    item = QtWidgets.QTableWidgetItem(key)
    item.setData(QtCore.Qt.ItemDataRole.UserRole, key)
    return item


def _row_key(table: QtWidgets.QTableWidget, row: int) -> str:
    return table.item(row, 0).data(QtCore.Qt.ItemDataRole.UserRole)
