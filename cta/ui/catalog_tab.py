from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QSplitter, QListWidget, QListWidgetItem, QTableWidget,
    QTableWidgetItem, QPushButton, QLabel, QInputDialog, QLineEdit, QMessageBox, QAbstractItemView
)

from cta.core.config import Config
from cta.db.services import (
    ContentService, TemplateService, TemplateNotFound, ContentNotFound, DefaultTemplateProtected, TemplateInUse
)
from cta.ui.notices import show_failure
from cta.ui.template_editor import TemplateEditorDialog

logger = logging.getLogger(__name__)

ID_ROLE = Qt.UserRole
COL_NAME, COL_DEFAULT, COL_TENANTS = range(3)


def ask_name(parent: QWidget, title: str, current: str = "") -> Optional[str]:
    """ Prompt for a name. Returns the trimmed text, or None when cancelled or left empty. """
    name, ok = QInputDialog.getText(parent, title, "Name:", QLineEdit.Normal, current)
    if not ok:
        return None
    name = name.strip()
    return name or None


class CatalogTab(QWidget):
    """ Content types on the left, the templates of the selected content on the right. """
    catalogChanged = Signal()

    def __init__(self, contents: ContentService, templates: TemplateService, cfg: Config | None = None,
                 parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.contents = contents
        self.templates = templates
        self.cfg = cfg or Config()

        # ---------- Contents ----------
        self.content_list = QListWidget()
        self.btn_new_content = QPushButton("New…")
        self.btn_rename_content = QPushButton("Rename…")
        self.btn_delete_content = QPushButton("Delete")
        content_buttons = QHBoxLayout()
        for b in (self.btn_new_content, self.btn_rename_content, self.btn_delete_content):
            content_buttons.addWidget(b)
        left = QWidget()
        left_lay = QVBoxLayout(left)
        left_lay.addWidget(QLabel("Contents"))
        left_lay.addWidget(self.content_list, 1)
        left_lay.addLayout(content_buttons)

        # ---------- Templates ----------
        self.template_table = QTableWidget(0, 3)
        self.template_table.setHorizontalHeaderLabels(["Name", "Default", "Tenants"])
        self.template_table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.template_table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.template_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.template_table.horizontalHeader().setStretchLastSection(True)
        self.btn_new_template = QPushButton("New…")
        self.btn_edit_template = QPushButton("Edit data…")
        self.btn_rename_template = QPushButton("Rename…")
        self.btn_duplicate_template = QPushButton("Duplicate")
        self.btn_default_template = QPushButton("Make default")
        self.btn_delete_template = QPushButton("Delete")
        template_buttons = QHBoxLayout()
        for b in (self.btn_new_template, self.btn_edit_template, self.btn_rename_template,
                  self.btn_duplicate_template, self.btn_default_template, self.btn_delete_template):
            template_buttons.addWidget(b)
        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.addWidget(QLabel("Templates"))
        right_lay.addWidget(self.template_table, 1)
        right_lay.addLayout(template_buttons)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(left)
        splitter.addWidget(right)
        splitter.setStretchFactor(1, 1)
        root = QVBoxLayout(self)
        root.addWidget(splitter)
        self.setLayout(root)

        # ---------- Signals ----------
        self.content_list.currentItemChanged.connect(lambda *_: self.reload_templates())
        self.btn_new_content.clicked.connect(self.new_content)
        self.btn_rename_content.clicked.connect(self.rename_content)
        self.btn_delete_content.clicked.connect(self.delete_content)
        self.template_table.itemSelectionChanged.connect(self._refresh_buttons)
        self.template_table.cellDoubleClicked.connect(lambda *_: self.edit_template())
        self.btn_new_template.clicked.connect(self.new_template)
        self.btn_edit_template.clicked.connect(self.edit_template)
        self.btn_rename_template.clicked.connect(self.rename_template)
        self.btn_duplicate_template.clicked.connect(self.duplicate_template)
        self.btn_default_template.clicked.connect(self.make_default)
        self.btn_delete_template.clicked.connect(self.delete_template)

        self.reload()

    # ---------- Loading ----------
    def reload(self) -> None:
        keep = self.current_content_id()
        self.content_list.blockSignals(True)
        try:
            self.content_list.clear()
            for c in self.contents.list():
                item = QListWidgetItem(c.name)
                item.setData(ID_ROLE, c.id)
                self.content_list.addItem(item)
                if c.id == keep:
                    self.content_list.setCurrentItem(item)
            if self.content_list.currentRow() < 0 and self.content_list.count():
                self.content_list.setCurrentRow(0)
        finally:
            self.content_list.blockSignals(False)
        self.reload_templates()

    def reload_templates(self) -> None:
        keep = self.current_template_id()
        content_id = self.current_content_id()
        self.template_table.setRowCount(0)
        if content_id is not None:
            for t in self.templates.list_by_content(content_id):
                row = self.template_table.rowCount()
                self.template_table.insertRow(row)
                name = QTableWidgetItem(t.name)
                name.setData(ID_ROLE, t.id)
                self.template_table.setItem(row, COL_NAME, name)
                self.template_table.setItem(row, COL_DEFAULT, QTableWidgetItem("yes" if t.is_default else ""))
                self.template_table.setItem(row, COL_TENANTS,
                                            QTableWidgetItem(str(self.templates.tenant_count(t.id))))
                if t.id == keep:
                    self.template_table.selectRow(row)
        self._refresh_buttons()

    def current_content_id(self) -> Optional[str]:
        item = self.content_list.currentItem()
        return item.data(ID_ROLE) if item else None

    def current_template_id(self) -> Optional[str]:
        rows = self.template_table.selectionModel().selectedRows() if self.template_table.selectionModel() else []
        if not rows:
            return None
        return self.template_table.item(rows[0].row(), COL_NAME).data(ID_ROLE)

    def _refresh_buttons(self) -> None:
        has_content = self.current_content_id() is not None
        has_template = self.current_template_id() is not None
        self.btn_rename_content.setEnabled(has_content)
        self.btn_delete_content.setEnabled(has_content)
        self.btn_new_template.setEnabled(has_content)
        for b in (self.btn_edit_template, self.btn_rename_template, self.btn_duplicate_template,
                  self.btn_default_template, self.btn_delete_template):
            b.setEnabled(has_template)

    def _changed(self) -> None:
        self.reload()
        self.catalogChanged.emit()

    # ---------- Content actions ----------
    def new_content(self) -> None:
        name = ask_name(self, "New Content")
        if name is None:
            return
        try:
            content = self.contents.create(name)
        except ValueError as e:
            show_failure(self, "Could not create content", e)
            return
        self._changed()
        self._select_content(content.id)

    def rename_content(self) -> None:
        item = self.content_list.currentItem()
        if item is None:
            return
        name = ask_name(self, "Rename Content", item.text())
        if name is None or name == item.text():
            return
        try:
            self.contents.rename(item.data(ID_ROLE), name)
        except (ValueError, ContentNotFound) as e:
            show_failure(self, "Could not rename content", e)
            return
        self._changed()

    def delete_content(self) -> None:
        item = self.content_list.currentItem()
        if item is None:
            return
        resp = QMessageBox.question(
            self, "Delete Content",
            f"Delete “{item.text()}” together with its templates and tenant links?",
            QMessageBox.Yes | QMessageBox.No, QMessageBox.No
        )
        if resp != QMessageBox.Yes:
            return
        try:
            self.contents.delete(item.data(ID_ROLE))
        except ContentNotFound as e:
            show_failure(self, "Could not delete content", e)
        self._changed()

    def _select_content(self, content_id: str) -> None:
        for i in range(self.content_list.count()):
            if self.content_list.item(i).data(ID_ROLE) == content_id:
                self.content_list.setCurrentRow(i)
                return

    # ---------- Template actions ----------
    def new_template(self) -> None:
        content_id = self.current_content_id()
        if content_id is None:
            return
        name = ask_name(self, "New Template")
        if name is None:
            return
        try:
            self.templates.create(content_id, name)
        except (ValueError, ContentNotFound) as e:
            show_failure(self, "Could not create template", e)
            return
        self._changed()

    def edit_template(self) -> None:
        template_id = self.current_template_id()
        if template_id is None:
            return
        try:
            dlg = TemplateEditorDialog(self.templates, template_id, self.cfg, self)
        except TemplateNotFound as e:
            show_failure(self, "Could not open template", e)
            self._changed()
            return
        dlg.exec()

    def rename_template(self) -> None:
        template_id = self.current_template_id()
        if template_id is None:
            return
        current = self.template_table.item(self.template_table.currentRow(), COL_NAME).text()
        name = ask_name(self, "Rename Template", current)
        if name is None or name == current:
            return
        try:
            self.templates.update(template_id, name=name)
        except (ValueError, TemplateNotFound) as e:
            show_failure(self, "Could not rename template", e)
            return
        self._changed()

    def duplicate_template(self) -> None:
        template_id = self.current_template_id()
        if template_id is None:
            return
        try:
            self.templates.duplicate(template_id)
        except TemplateNotFound as e:
            show_failure(self, "Could not duplicate template", e)
        self._changed()

    def make_default(self) -> None:
        template_id = self.current_template_id()
        if template_id is None:
            return
        try:
            self.templates.set_default(template_id)
        except TemplateNotFound as e:
            show_failure(self, "Could not change the default template", e)
        self._changed()

    def delete_template(self) -> None:
        template_id = self.current_template_id()
        if template_id is None:
            return
        resp = QMessageBox.question(
            self, "Delete Template", "Delete the selected template?",
            QMessageBox.Yes | QMessageBox.No, QMessageBox.No
        )
        if resp != QMessageBox.Yes:
            return
        try:
            self.templates.delete(template_id)
        except (DefaultTemplateProtected, TemplateInUse, TemplateNotFound) as e:
            show_failure(self, "Could not delete template", e)
            return
        self._changed()
