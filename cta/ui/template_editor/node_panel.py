from __future__ import annotations

from typing import List

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QFormLayout, QLabel, QLineEdit, QCheckBox, QPushButton,
    QScrollArea
)

from cta.template.controller import TreeEditorController
from cta.template.models import NodeField

from .field_widgets import ERROR_STYLE, FieldEditor


class NodePanel(QWidget):
    """ Right-hand side of the editor: key, flags and fields of the selected node. """

    def __init__(self, ctl: TreeEditorController, parent: QWidget | None = None):
        super().__init__(parent)
        self.ctl = ctl
        self._editors: List[FieldEditor] = []
        self._shape: tuple = ()

        self.lbl_empty = QLabel("Select a node to edit it.")

        self.key_edit = QLineEdit()
        self.key_edit.setPlaceholderText("Node key")
        self.lbl_key_error = QLabel()
        self.lbl_key_error.setStyleSheet(ERROR_STYLE)
        self.chk_editable = QCheckBox("Editable")
        self.chk_orderable = QCheckBox("Orderable")

        form = QFormLayout()
        form.addRow("Key", self.key_edit)
        form.addRow("", self.lbl_key_error)
        flags = QHBoxLayout()
        flags.addWidget(self.chk_editable)
        flags.addWidget(self.chk_orderable)
        flags.addStretch(1)
        form.addRow("Node", flags)

        self.fields_host = QWidget()
        self.fields_layout = QVBoxLayout(self.fields_host)
        self.fields_layout.addStretch(1)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self.fields_host)

        self.btn_add_field = QPushButton("Add field")

        self.body = QWidget()
        body = QVBoxLayout(self.body)
        body.setContentsMargins(0, 0, 0, 0)
        body.addLayout(form)
        body.addWidget(QLabel("Fields"))
        body.addWidget(scroll, 1)
        body.addWidget(self.btn_add_field)

        root = QVBoxLayout(self)
        root.addWidget(self.lbl_empty)
        root.addWidget(self.body, 1)
        self.setLayout(root)

        # ---------- Signals ----------
        self.key_edit.textEdited.connect(self.ctl.set_key_text)
        self.key_edit.editingFinished.connect(self.ctl.commit_key)
        self.chk_editable.clicked.connect(lambda on: self._on_node_flag("editable", on))
        self.chk_orderable.clicked.connect(lambda on: self._on_node_flag("orderable", on))
        self.btn_add_field.clicked.connect(self.ctl.add_field)

        self.ctl.selectionChanged.connect(self._on_selection)
        self.ctl.fieldsChanged.connect(self._on_fields)
        self.ctl.errorsChanged.connect(self._on_errors)

        self._on_selection(self.ctl.selected_id)

    # ---------- Controller -> widgets ----------
    def _on_selection(self, node_id) -> None:
        node = self.ctl.selected_node
        self.lbl_empty.setVisible(node is None)
        self.body.setVisible(node is not None)
        if node is None:
            self._clear_editors()
            return
        blocked = self.key_edit.blockSignals(True)
        try:
            self.key_edit.setText(node.key)
        finally:
            self.key_edit.blockSignals(blocked)
        self._sync_flags()
        # Editors are rebuilt per node so a focused one never keeps the previous text
        self._rebuild(self.ctl.fields)
        self._on_errors(self.ctl.has_errors)

    def _sync_flags(self) -> None:
        node = self.ctl.selected_node
        if node is None:
            return
        self.chk_editable.setChecked(node.editable)
        self.chk_orderable.setChecked(node.orderable)

    def _on_fields(self, fields: List[NodeField]) -> None:
        shape = tuple(f.type for f in fields)
        if shape != self._shape:
            self._rebuild(fields)
            return
        errors = self.ctl.field_errors
        for i, (editor, f) in enumerate(zip(self._editors, fields)):
            editor.set_field(f, errors.get(i))

    def _on_errors(self, has_errors: bool) -> None:
        err = self.ctl.key_error
        self.lbl_key_error.setText(err or "")
        self.lbl_key_error.setVisible(bool(err))
        errors = self.ctl.field_errors
        for i, editor in enumerate(self._editors):
            editor.set_field(editor.field, errors.get(i))

    def _rebuild(self, fields: List[NodeField]) -> None:
        """ Recreate the editors. Only needed when fields are added, removed or change type. """
        self._clear_editors()
        errors = self.ctl.field_errors
        for i, f in enumerate(fields):
            editor = FieldEditor(self.ctl, i, f, parent=self.fields_host)
            editor.set_field(f, errors.get(i))
            self.fields_layout.insertWidget(self.fields_layout.count() - 1, editor)
            self._editors.append(editor)
        self._shape = tuple(f.type for f in fields)

    def _clear_editors(self) -> None:
        for editor in self._editors:
            self.fields_layout.removeWidget(editor)
            editor.deleteLater()
        self._editors = []
        self._shape = ()

    # ---------- Widgets -> controller ----------
    def _on_node_flag(self, flag: str, on: bool) -> None:
        self.ctl.set_node_flag(flag, on)
        self._sync_flags()
