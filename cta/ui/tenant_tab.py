from __future__ import annotations

import logging
from typing import Dict, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QSplitter, QListWidget, QListWidgetItem, QPushButton, QLabel,
    QFormLayout, QComboBox, QMessageBox, QGroupBox
)

from cta.db.services import ContentService, TemplateService, TenantService, TenantNotFound
from cta.ui.catalog_tab import ask_name
from cta.ui.notices import show_failure

logger = logging.getLogger(__name__)

ID_ROLE = Qt.UserRole


class TenantTab(QWidget):
    """ Tenants, and which template each tenant uses for every content type. """

    def __init__(self, tenants: TenantService, contents: ContentService, templates: TemplateService,
                 parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.tenants = tenants
        self.contents = contents
        self.templates = templates
        self._combos: Dict[str, QComboBox] = {}

        self.tenant_list = QListWidget()
        self.btn_new = QPushButton("New…")
        self.btn_rename = QPushButton("Rename…")
        self.btn_delete = QPushButton("Delete")
        buttons = QHBoxLayout()
        for b in (self.btn_new, self.btn_rename, self.btn_delete):
            buttons.addWidget(b)
        left = QWidget()
        left_lay = QVBoxLayout(left)
        left_lay.addWidget(QLabel("Tenants"))
        left_lay.addWidget(self.tenant_list, 1)
        left_lay.addLayout(buttons)

        self.mapping_box = QGroupBox("Templates used")
        self.mapping_form = QFormLayout(self.mapping_box)
        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.addWidget(self.mapping_box)
        right_lay.addStretch(1)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(left)
        splitter.addWidget(right)
        splitter.setStretchFactor(1, 1)
        root = QVBoxLayout(self)
        root.addWidget(splitter)
        self.setLayout(root)

        self.tenant_list.currentItemChanged.connect(lambda *_: self.reload_mappings())
        self.btn_new.clicked.connect(self.new_tenant)
        self.btn_rename.clicked.connect(self.rename_tenant)
        self.btn_delete.clicked.connect(self.delete_tenant)

        self.reload()

    def current_tenant_id(self) -> Optional[str]:
        item = self.tenant_list.currentItem()
        return item.data(ID_ROLE) if item else None

    # ---------- Loading ----------
    def reload(self) -> None:
        keep = self.current_tenant_id()
        self.tenant_list.blockSignals(True)
        try:
            self.tenant_list.clear()
            for t in self.tenants.list():
                item = QListWidgetItem(t.name)
                item.setData(ID_ROLE, t.id)
                self.tenant_list.addItem(item)
                if t.id == keep:
                    self.tenant_list.setCurrentItem(item)
            if self.tenant_list.currentRow() < 0 and self.tenant_list.count():
                self.tenant_list.setCurrentRow(0)
        finally:
            self.tenant_list.blockSignals(False)
        self.reload_mappings()

    def reload_mappings(self) -> None:
        """ One combo per content: "(none)" followed by that content's templates. """
        while self.mapping_form.rowCount():
            self.mapping_form.removeRow(0)
        self._combos = {}
        tenant_id = self.current_tenant_id()
        has_tenant = tenant_id is not None
        self.btn_rename.setEnabled(has_tenant)
        self.btn_delete.setEnabled(has_tenant)
        self.mapping_box.setEnabled(has_tenant)
        if not has_tenant:
            return
        mappings = self.tenants.get_mappings(tenant_id)
        for content in self.contents.list():
            combo = QComboBox()
            combo.addItem("(none)", None)
            for t in self.templates.list_by_content(content.id):
                combo.addItem(f"{t.name} (default)" if t.is_default else t.name, t.id)
            idx = combo.findData(mappings.get(content.id))
            combo.setCurrentIndex(max(0, idx))
            combo.currentIndexChanged.connect(
                lambda i, cid=content.id, cb=combo: self._on_mapping_changed(cid, cb.itemData(i))
            )
            self._combos[content.id] = combo
            self.mapping_form.addRow(content.name, combo)

    def _on_mapping_changed(self, content_id: str, template_id: Optional[str]) -> None:
        tenant_id = self.current_tenant_id()
        if tenant_id is None:
            return
        try:
            self.tenants.set_mapping(tenant_id, content_id, template_id)
        except (ValueError, TenantNotFound) as e:
            show_failure(self, "Could not change the template", e)
            self.reload_mappings()
            return
        logger.info("Tenant %s now uses template %s for content %s", tenant_id, template_id, content_id)

    # ---------- Actions ----------
    def new_tenant(self) -> None:
        name = ask_name(self, "New Tenant")
        if name is None:
            return
        try:
            tenant = self.tenants.create(name)
        except ValueError as e:
            show_failure(self, "Could not create tenant", e)
            return
        self.reload()
        for i in range(self.tenant_list.count()):
            if self.tenant_list.item(i).data(ID_ROLE) == tenant.id:
                self.tenant_list.setCurrentRow(i)
                break

    def rename_tenant(self) -> None:
        item = self.tenant_list.currentItem()
        if item is None:
            return
        name = ask_name(self, "Rename Tenant", item.text())
        if name is None or name == item.text():
            return
        try:
            self.tenants.rename(item.data(ID_ROLE), name)
        except (ValueError, TenantNotFound) as e:
            show_failure(self, "Could not rename tenant", e)
            return
        self.reload()

    def delete_tenant(self) -> None:
        item = self.tenant_list.currentItem()
        if item is None:
            return
        resp = QMessageBox.question(
            self, "Delete Tenant", f"Delete “{item.text()}”?",
            QMessageBox.Yes | QMessageBox.No, QMessageBox.No
        )
        if resp != QMessageBox.Yes:
            return
        try:
            self.tenants.delete(item.data(ID_ROLE))
        except TenantNotFound as e:
            show_failure(self, "Could not delete tenant", e)
        self.reload()
