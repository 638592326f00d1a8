from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PySide6 import QtCore, QtWidgets

from metalineage.errors import LineageError
from metalineage.graph.commands import AddEdge, AddNode, Command, DeleteNode, ImportGraph, dispatch
from metalineage.graph.service import GraphStore
from metalineage.graph.types import NODE_TYPES, NodeDraft
from metalineage.history.snapshots import GraphHistory
from metalineage.pathcheck.checker import PathChecker

from .views.properties_panel import PropertiesPanel
from .views.search_panel import SearchPanel

logger = logging.getLogger(__name__)


class MainWindow(QtWidgets.QMainWindow):
    """Lineage editor shell: search, node list and node editor."""

    def __init__(
        self,
        store: GraphStore,
        checker: Optional[PathChecker] = None,
        path_check_timeout: Optional[float] = None,
    ):
        super().__init__()
        self.setWindowTitle("Metalineage")
        self.store = store
        self.history = GraphHistory(store)

        self.search_panel = SearchPanel(store, parent=self)
        self.nodes_list = QtWidgets.QListWidget()
        self.nodes_list.setSelectionMode(
            QtWidgets.QAbstractItemView.SelectionMode.ExtendedSelection
        )
        self.edges_list = QtWidgets.QListWidget()
        self.snapshots_list = QtWidgets.QListWidget()
        self.properties_panel = PropertiesPanel(
            store, checker=checker, path_check_timeout=path_check_timeout, parent=self
        )

        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)
        layout.addWidget(self.search_panel)
        layout.addLayout(self._build_button_row())

        lists = QtWidgets.QSplitter(QtCore.Qt.Orientation.Vertical)
        lists.addWidget(self.nodes_list)
        lists.addWidget(self.edges_list)
        lists.addWidget(self._build_history_group())
        splitter = QtWidgets.QSplitter()
        splitter.addWidget(lists)
        splitter.addWidget(self.properties_panel)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 1)
        layout.addWidget(splitter)
        self.setCentralWidget(central)

        self.nodes_list.itemDoubleClicked.connect(self._on_node_activated)
        self.search_panel.highlightRequested.connect(self.highlight_nodes)
        self.properties_panel.nodeSaved.connect(lambda _node_id: self.refresh())
        self.refresh()

    def _build_button_row(self) -> QtWidgets.QHBoxLayout:
        row = QtWidgets.QHBoxLayout()
        self.new_node_label = QtWidgets.QLineEdit()
        self.new_node_label.setPlaceholderText("Label")
        self.new_node_type = QtWidgets.QComboBox()
        self.new_node_type.addItems(list(NODE_TYPES))
        self.new_node_type.setCurrentText("transform")
        add_node_btn = QtWidgets.QPushButton("Add Node")
        add_edge_btn = QtWidgets.QPushButton("Connect Selected")
        delete_btn = QtWidgets.QPushButton("Delete Node")
        import_btn = QtWidgets.QPushButton("Import Graph...")
        export_btn = QtWidgets.QPushButton("Export Graph...")
        for widget in (
            self.new_node_label,
            self.new_node_type,
            add_node_btn,
            add_edge_btn,
            delete_btn,
            import_btn,
            export_btn,
        ):
            row.addWidget(widget)
        row.addStretch(1)

        add_node_btn.clicked.connect(self._add_node)
        add_edge_btn.clicked.connect(self._connect_selected)
        delete_btn.clicked.connect(self._delete_selected)
        import_btn.clicked.connect(self._import_graph)
        export_btn.clicked.connect(self._export_graph)
        return row

    def _build_history_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Graph History")
        layout = QtWidgets.QVBoxLayout(group)
        snapshot_btn = QtWidgets.QPushButton("Snapshot")
        switch_btn = QtWidgets.QPushButton("Switch")
        export_btn = QtWidgets.QPushButton("Export...")
        import_btn = QtWidgets.QPushButton("Import...")
        button_row = QtWidgets.QHBoxLayout()
        for button in (snapshot_btn, switch_btn, export_btn, import_btn):
            button_row.addWidget(button)
        layout.addWidget(self.snapshots_list)
        layout.addLayout(button_row)

        snapshot_btn.clicked.connect(self._take_snapshot)
        switch_btn.clicked.connect(self._switch_selected_snapshot)
        export_btn.clicked.connect(self._export_history)
        import_btn.clicked.connect(self._import_history)
        self.snapshots_list.itemDoubleClicked.connect(
            lambda item: self.switch_snapshot(item.data(QtCore.Qt.ItemDataRole.UserRole))
        )
        return group

    def refresh(self) -> None:
        self.nodes_list.clear()
        for node in self.store.list_nodes():
            item = QtWidgets.QListWidgetItem(f"{node.label}  [{node.type}]")
            item.setData(QtCore.Qt.ItemDataRole.UserRole, node.id)
            self.nodes_list.addItem(item)
        labels = {node.id: node.label for node in self.store.list_nodes()}
        self.edges_list.clear()
        for edge in self.store.list_edges():
            self.edges_list.addItem(f"{labels[edge.source]} → {labels[edge.target]}")
        self.search_panel.refresh_available_properties()

    def highlight_nodes(self, node_ids: list[int]) -> None:
        wanted = set(node_ids)
        self.nodes_list.clearSelection()
        for row in range(self.nodes_list.count()):
            item = self.nodes_list.item(row)
            if item.data(QtCore.Qt.ItemDataRole.UserRole) in wanted:
                item.setSelected(True)
                self.nodes_list.scrollToItem(item)

    def run_command(self, command: Command):
        try:
            result = dispatch(self.store, command)
        except LineageError as exc:
            logger.warning("%s rejected: %s", type(command).__name__, exc)
            self.statusBar().showMessage(str(exc), 5000)
            return None
        self.refresh()
        return result

    def _selected_node_ids(self) -> list[int]:
        return [
            item.data(QtCore.Qt.ItemDataRole.UserRole)
            for item in sorted(self.nodes_list.selectedItems(), key=self.nodes_list.row)
        ]

    def _on_node_activated(self, item: QtWidgets.QListWidgetItem) -> None:
        self.properties_panel.show_node(item.data(QtCore.Qt.ItemDataRole.UserRole))

    def _add_node(self) -> None:
        draft = NodeDraft(label=self.new_node_label.text(), type=self.new_node_type.currentText())
        node = self.run_command(AddNode(draft))
        if node is not None:
            self.new_node_label.clear()
            self.properties_panel.show_node(node.id)

    def _connect_selected(self) -> None:
        selected = self._selected_node_ids()
        if len(selected) != 2:
            self.statusBar().showMessage("Select two nodes; the upper one becomes the source.", 5000)
            return
        self.run_command(AddEdge(selected[0], selected[1]))

    def _delete_selected(self) -> None:
        for node_id in self._selected_node_ids():
            self.run_command(DeleteNode(node_id))

    # Graph history
    def take_snapshot(self, description: str) -> None:
        self.history.commit(description)
        self._refresh_snapshots()
        self.statusBar().showMessage("Snapshot saved.", 3000)

    def switch_snapshot(self, snapshot_id: str) -> bool:
        try:
            self.history.switch(snapshot_id)
        except LineageError as exc:
            logger.warning("Snapshot switch rejected: %s", exc)
            self.statusBar().showMessage(str(exc), 5000)
            return False
        self.refresh()
        self._refresh_snapshots()
        # the open editor may point at a node the snapshot does not have
        session = self.properties_panel.session
        if session is not None:
            self.properties_panel.show_node(session.node_id)
        return True

    def export_history(self, path: Path) -> None:
        path.write_text(self.history.export_history_json(), encoding="utf-8")

    def import_history(self, path: Path) -> bool:
        try:
            self.history.import_history(path.read_text(encoding="utf-8"))
        except (LineageError, OSError) as exc:
            self.statusBar().showMessage(f"History import failed: {exc}", 5000)
            return False
        self._refresh_snapshots()
        return True

    def _refresh_snapshots(self) -> None:
        self.snapshots_list.clear()
        current = self.history.current_snapshot_id
        for snapshot in self.history.snapshots:
            marker = "* " if snapshot.id == current else "  "
            item = QtWidgets.QListWidgetItem(
                f"{marker}{snapshot.timestamp}  {snapshot.description}"
            )
            item.setData(QtCore.Qt.ItemDataRole.UserRole, snapshot.id)
            self.snapshots_list.addItem(item)

    def _take_snapshot(self) -> None:
        description, ok = QtWidgets.QInputDialog.getText(self, "Snapshot", "Description:")
        if not ok:
            return
        self.take_snapshot(description)

    def _switch_selected_snapshot(self) -> None:
        item = self.snapshots_list.currentItem()
        if item is None:
            self.statusBar().showMessage("Select a snapshot to switch to.", 5000)
            return
        self.switch_snapshot(item.data(QtCore.Qt.ItemDataRole.UserRole))

    def _export_history(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export History", "lineage-history.json", "JSON (*.json)"
        )
        if not path:
            return
        self.export_history(Path(path))

    def _import_history(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Import History", "", "JSON (*.json)"
        )
        if not path:
            return
        self.import_history(Path(path))

    def _import_graph(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Import Graph", "", "JSON (*.json)")
        if not path:
            return
        self.run_command(ImportGraph(Path(path).read_text(encoding="utf-8")))

    def _export_graph(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export Graph", "lineage.json", "JSON (*.json)"
        )
        if not path:
            return
        Path(path).write_text(self.store.export_graph_json(), encoding="utf-8")
