from __future__ import annotations

from typing import Dict, List

from PySide6.QtCore import Qt
from PySide6.QtGui import QBrush, QColor, QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QTreeWidget, QTreeWidgetItem, QPushButton
)

from cta.template.controller import Nav, TreeEditorController
from cta.template.models import Node

ID_ROLE = Qt.UserRole
ERROR_BRUSH = QBrush(QColor("#a50e0e"))

_ARROWS = {
    Qt.Key_Up: Nav.UP,
    Qt.Key_Down: Nav.DOWN,
    Qt.Key_Left: Nav.LEFT,
    Qt.Key_Right: Nav.RIGHT,
}


class TemplateTree(QTreeWidget):
    """ Tree view whose arrow keys drive the controller instead of Qt's own item navigation. """

    def __init__(self, ctl: TreeEditorController, parent: QWidget | None = None):
        super().__init__(parent)
        self.ctl = ctl
        self.setHeaderHidden(True)
        self.setSelectionMode(QTreeWidget.SingleSelection)

    def keyPressEvent(self, event, /):
        direction = _ARROWS.get(event.key())
        if direction is None or event.modifiers() != Qt.NoModifier:
            super().keyPressEvent(event)
            return
        self.ctl.navigate(direction)
        event.accept()


class TreePanel(QWidget):
    """ Left-hand side of the editor: the node tree and the structural actions. """

    def __init__(self, ctl: TreeEditorController, parent: QWidget | None = None):
        super().__init__(parent)
        self.ctl = ctl
        self._items: Dict[str, QTreeWidgetItem] = {}
        self._syncing = False

        self.tree = TemplateTree(ctl, self)

        self.btn_add = QPushButton("Add")
        self.btn_delete = QPushButton("Delete")
        self.btn_copy = QPushButton("Copy")
        self.btn_cut = QPushButton("Cut")
        self.btn_paste = QPushButton("Paste")
        self.btn_up = QPushButton("Up")
        self.btn_down = QPushButton("Down")
        self.btn_add.setToolTip("Add a child to the selected node, or a top-level node when nothing is selected")

        buttons = QHBoxLayout()
        for b in (self.btn_add, self.btn_delete, self.btn_copy, self.btn_cut, self.btn_paste,
                  self.btn_up, self.btn_down):
            buttons.addWidget(b)

        root = QVBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.addLayout(buttons)
        root.addWidget(self.tree, 1)
        self.setLayout(root)

        # ---------- Signals ----------
        self.btn_add.clicked.connect(self.ctl.add_node)
        self.btn_delete.clicked.connect(self.ctl.delete_node)
        self.btn_copy.clicked.connect(self.ctl.copy_node)
        self.btn_cut.clicked.connect(self.ctl.cut_node)
        self.btn_paste.clicked.connect(self.ctl.paste_node)
        self.btn_up.clicked.connect(self.ctl.move_up)
        self.btn_down.clicked.connect(self.ctl.move_down)

        for seq, slot in ((QKeySequence.Copy, self.ctl.copy_node), (QKeySequence.Cut, self.ctl.cut_node),
                          (QKeySequence.Paste, self.ctl.paste_node), (QKeySequence.Delete, self.ctl.delete_node)):
            sc = QShortcut(seq, self.tree)
            sc.setContext(Qt.WidgetShortcut)
            sc.activated.connect(slot)

        self.tree.itemSelectionChanged.connect(self._on_item_selected)
        self.tree.itemExpanded.connect(lambda item: self._on_item_expanded(item, True))
        self.tree.itemCollapsed.connect(lambda item: self._on_item_expanded(item, False))

        self.ctl.forestChanged.connect(self._rebuild)
        self.ctl.selectionChanged.connect(self._sync_selection)
        self.ctl.expansionChanged.connect(self._sync_expansion)
        self.ctl.errorsChanged.connect(self._refresh_errors)
        self.ctl.clipboardChanged.connect(self._refresh_actions)

        self._rebuild(self.ctl.forest)

    # ---------- Controller -> tree ----------
    def _rebuild(self, forest: List[Node]) -> None:
        self._syncing = True
        try:
            self.tree.clear()
            self._items = {}
            for node in forest:
                self.tree.addTopLevelItem(self._make_item(node))
        finally:
            self._syncing = False
        self._sync_expansion(self.ctl.expanded_ids)
        self._sync_selection(self.ctl.selected_id)
        self._refresh_errors()

    def _make_item(self, node: Node) -> QTreeWidgetItem:
        item = QTreeWidgetItem([node.key or "(no key)"])
        item.setData(0, ID_ROLE, node.id)
        self._items[node.id] = item
        for child in node.children:
            item.addChild(self._make_item(child))
        return item

    def _sync_selection(self, node_id) -> None:
        self._syncing = True
        try:
            self.tree.clearSelection()
            item = self._items.get(node_id) if node_id else None
            if item is not None:
                item.setSelected(True)
                self.tree.setCurrentItem(item)
                self.tree.scrollToItem(item)
        finally:
            self._syncing = False
        self._refresh_actions()

    def _sync_expansion(self, expanded) -> None:
        self._syncing = True
        try:
            for node_id, item in self._items.items():
                item.setExpanded(node_id in expanded)
        finally:
            self._syncing = False

    def _refresh_errors(self, *args) -> None:
        errors = self.ctl.node_errors()
        for node_id, item in self._items.items():
            err = errors.get(node_id)
            item.setForeground(0, ERROR_BRUSH if err else QBrush())
            item.setToolTip(0, err or "")
        self._refresh_actions()

    def _refresh_actions(self, *args) -> None:
        has_sel = self.ctl.selected_id is not None
        ok = has_sel and not self.ctl.has_errors
        self.btn_delete.setEnabled(has_sel)
        self.btn_copy.setEnabled(ok)
        self.btn_cut.setEnabled(ok)
        self.btn_paste.setEnabled(ok and self.ctl.can_paste())
        self.btn_up.setEnabled(self.ctl.can_move_up())
        self.btn_down.setEnabled(self.ctl.can_move_down())

    # ---------- Tree -> controller ----------
    def _on_item_selected(self) -> None:
        if self._syncing:
            return
        items = self.tree.selectedItems()
        node_id = items[0].data(0, ID_ROLE) if items else None
        if not self.ctl.select(node_id):
            # Selection is pinned while the current node has errors
            self._sync_selection(self.ctl.selected_id)

    def _on_item_expanded(self, item: QTreeWidgetItem, expand: bool) -> None:
        if self._syncing:
            return
        node_id = item.data(0, ID_ROLE)
        if not self.ctl.set_expanded(node_id, expand):
            self._syncing = True
            try:
                item.setExpanded(not expand)
            finally:
                self._syncing = False
