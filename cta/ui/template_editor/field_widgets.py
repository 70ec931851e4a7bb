from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QFrame, QVBoxLayout, QHBoxLayout, QGridLayout, QLabel, QLineEdit, QComboBox, QCheckBox,
    QPushButton, QListWidget, QListWidgetItem, QFileDialog, QWidget
)

from cta.template import fields as fm
from cta.template.controller import TreeEditorController
from cta.template.models import FieldType, NodeField
from cta.template.previews import is_preview_ref

ERROR_STYLE = "color: #a50e0e;"
PREVIEW_SIZE = 96


def _set_text(edit: QLineEdit, text: str) -> None:
    """ Replace the text unless the user is typing in it. """
    if edit.hasFocus() or edit.text() == text:
        return
    blocked = edit.blockSignals(True)
    try:
        edit.setText(text)
    finally:
        edit.blockSignals(blocked)


class FieldEditor(QFrame):
    """ Editor for one field of the selected node. All edits go through the controller. """

    def __init__(self, ctl: TreeEditorController, index: int, field: NodeField, parent: QWidget | None = None):
        super().__init__(parent)
        self.ctl = ctl
        self.index = index
        self.field = field
        self.setFrameShape(QFrame.StyledPanel)

        # ---------- Header row ----------
        self.key_edit = QLineEdit(field.key)
        self.key_edit.setPlaceholderText("Field key")
        self.type_box = QComboBox()
        for t in FieldType:
            self.type_box.addItem(t.value, t)
        self.type_box.setCurrentIndex(self.type_box.findData(field.type))
        self.btn_delete = QPushButton("Delete")

        header = QHBoxLayout()
        header.addWidget(self.key_edit, 1)
        header.addWidget(self.type_box)
        header.addWidget(self.btn_delete)

        # ---------- Flags ----------
        self.chk_editable = QCheckBox("Editable")
        self.chk_required = QCheckBox("Required")
        self.chk_visible = QCheckBox("Visible")
        flags = QHBoxLayout()
        flags.addWidget(self.chk_editable)
        flags.addWidget(self.chk_required)
        flags.addWidget(self.chk_visible)
        flags.addStretch(1)

        # ---------- Value / regex / extra ----------
        self.value_box = QWidget()
        self.value_layout = QVBoxLayout(self.value_box)
        self.value_layout.setContentsMargins(0, 0, 0, 0)

        self.regex_edit = QLineEdit(field.regex)
        self.regex_edit.setPlaceholderText("Regex")
        self.extra_edit = QLineEdit(field.extra)
        self.extra_edit.setPlaceholderText("Extra")

        self.lbl_error = QLabel()
        self.lbl_error.setStyleSheet(ERROR_STYLE)
        self.lbl_error.hide()

        root = QVBoxLayout(self)
        root.addLayout(header)
        root.addLayout(flags)
        root.addWidget(self.value_box)
        root.addWidget(self.regex_edit)
        root.addWidget(self.extra_edit)
        root.addWidget(self.lbl_error)
        self.setLayout(root)

        # ---------- Signals ----------
        self.key_edit.editingFinished.connect(lambda: self._set_attr("key", self.key_edit.text()))
        self.regex_edit.editingFinished.connect(lambda: self._set_attr("regex", self.regex_edit.text()))
        self.extra_edit.editingFinished.connect(lambda: self._set_attr("extra", self.extra_edit.text()))
        self.type_box.activated.connect(self._on_type_chosen)
        self.btn_delete.clicked.connect(lambda: self.ctl.delete_field(self.index))
        self.chk_editable.clicked.connect(lambda on: self._on_flag("editable", on))
        self.chk_required.clicked.connect(lambda on: self._on_flag("required", on))
        self.chk_visible.clicked.connect(lambda on: self._on_flag("visible", on))

        self._build_value_editor()
        self.set_field(field, None)

    # ---------- Value editors ----------
    def _build_value_editor(self) -> None:
        t = self.field.type
        if t is FieldType.text:
            self.value_edit = QLineEdit()
            self.value_edit.textEdited.connect(lambda text: self.ctl.set_field_value(self.index, text))
            self.value_layout.addWidget(self.value_edit)
        elif t is FieldType.number:
            self.value_edit = QLineEdit()
            self.value_edit.setPlaceholderText("0")
            self.value_edit.textEdited.connect(lambda text: self.ctl.set_field_value(self.index, text))
            self.value_layout.addWidget(self.value_edit)
        elif t is FieldType.checkbox:
            self.value_check = QCheckBox("Checked by default")
            self.value_check.clicked.connect(lambda on: self.ctl.set_field_value(self.index, bool(on)))
            self.value_layout.addWidget(self.value_check)
        elif t in fm.LIST_TYPES:
            self._build_list_editor()
        elif t is FieldType.select:
            self._build_select_editor()
        elif t is FieldType.image:
            self._build_image_editor()
        else:
            raise ValueError(f"Unknown field type: {t!r}")

    def _build_list_editor(self) -> None:
        self.item_list = QListWidget()
        self.item_list.setMaximumHeight(100)
        self.item_input = QLineEdit()
        self.item_input.setPlaceholderText("#rrggbb" if self.field.type is FieldType.color else "New item")
        self.btn_add_item = QPushButton("Add")
        self.btn_remove_item = QPushButton("Remove")
        row = QHBoxLayout()
        row.addWidget(self.item_input, 1)
        row.addWidget(self.btn_add_item)
        row.addWidget(self.btn_remove_item)
        self.value_layout.addWidget(self.item_list)
        self.value_layout.addLayout(row)

        self.item_input.textChanged.connect(self._refresh_list_buttons)
        self.item_input.returnPressed.connect(self._on_add_item)
        self.btn_add_item.clicked.connect(self._on_add_item)
        self.btn_remove_item.clicked.connect(self._on_remove_item)
        self.item_list.currentRowChanged.connect(self._refresh_list_buttons)

    def _build_select_editor(self) -> None:
        self.option_list = QListWidget()
        self.option_list.setMaximumHeight(100)
        self.option_key = QLineEdit()
        self.option_key.setPlaceholderText("Option key")
        self.option_value = QLineEdit()
        self.option_value.setPlaceholderText("Option label")
        self.btn_add_option = QPushButton("Add")
        self.btn_select_option = QPushButton("Select")
        self.btn_remove_option = QPushButton("Remove")
        self.lbl_option_error = QLabel()
        self.lbl_option_error.setStyleSheet(ERROR_STYLE)

        grid = QGridLayout()
        grid.addWidget(self.option_key, 0, 0)
        grid.addWidget(self.option_value, 0, 1)
        grid.addWidget(self.btn_add_option, 0, 2)
        buttons = QHBoxLayout()
        buttons.addStretch(1)
        buttons.addWidget(self.btn_select_option)
        buttons.addWidget(self.btn_remove_option)
        self.value_layout.addWidget(self.option_list)
        self.value_layout.addLayout(buttons)
        self.value_layout.addLayout(grid)
        self.value_layout.addWidget(self.lbl_option_error)

        self.option_key.textChanged.connect(self._refresh_option_buttons)
        self.option_value.textChanged.connect(self._refresh_option_buttons)
        self.btn_add_option.clicked.connect(self._on_add_option)
        self.btn_select_option.clicked.connect(
            lambda: self.ctl.select_option(self.index, self.option_list.currentRow()))
        self.option_list.itemDoubleClicked.connect(
            lambda item: self.ctl.select_option(self.index, self.option_list.row(item)))
        self.btn_remove_option.clicked.connect(
            lambda: self.ctl.remove_option(self.index, self.option_list.currentRow()))

    def _build_image_editor(self) -> None:
        self.value_edit = QLineEdit()
        self.value_edit.setPlaceholderText("https://")
        self.btn_pick_image = QPushButton("Choose file…")
        self.image_preview = QLabel()
        self.image_preview.setFixedSize(PREVIEW_SIZE, PREVIEW_SIZE)
        self.image_preview.setAlignment(Qt.AlignCenter)
        row = QHBoxLayout()
        row.addWidget(self.value_edit, 1)
        row.addWidget(self.btn_pick_image)
        self.value_layout.addLayout(row)
        self.value_layout.addWidget(self.image_preview)

        self.value_edit.textEdited.connect(lambda text: self.ctl.set_field_value(self.index, text))
        self.btn_pick_image.clicked.connect(self._on_pick_image)

    # ---------- Sync from the controller ----------
    def set_field(self, field: NodeField, error: str | None) -> None:
        """ Show the field's current state without echoing edits back to the controller. """
        self.field = field
        _set_text(self.key_edit, field.key)
        _set_text(self.regex_edit, field.regex)
        _set_text(self.extra_edit, field.extra)
        for chk, on in ((self.chk_editable, field.editable), (self.chk_required, field.required),
                        (self.chk_visible, field.visible)):
            chk.setChecked(on)
        # Hidden fields are neither editable nor required
        self.chk_editable.setEnabled(field.visible)
        self.chk_required.setEnabled(field.visible)
        self.regex_edit.setVisible(field.type is not FieldType.checkbox)

        t = field.type
        if t in (FieldType.text, FieldType.number):
            _set_text(self.value_edit, "" if field.value is None else str(field.value))
        elif t is FieldType.checkbox:
            self.value_check.setChecked(bool(field.value))
        elif t in fm.LIST_TYPES:
            self._fill_items(field.value if isinstance(field.value, list) else [])
        elif t is FieldType.select:
            self._fill_options(field.value if isinstance(field.value, list) else [])
        elif t is FieldType.image:
            shown = "" if is_preview_ref(field.value) else str(field.value or "")
            _set_text(self.value_edit, shown)
            self._show_preview(field.value)

        self.lbl_error.setText(error or "")
        self.lbl_error.setVisible(bool(error))

    def _fill_items(self, items: list) -> None:
        row = self.item_list.currentRow()
        self.item_list.clear()
        for it in items:
            self.item_list.addItem(QListWidgetItem(str(it)))
        if 0 <= row < self.item_list.count():
            self.item_list.setCurrentRow(row)
        self._refresh_list_buttons()

    def _fill_options(self, options: list) -> None:
        row = self.option_list.currentRow()
        self.option_list.clear()
        for o in options:
            mark = "● " if o.get("selected") else "○ "
            self.option_list.addItem(QListWidgetItem(f"{mark}{o.get('key', '')}: {o.get('value', '')}"))
        if 0 <= row < self.option_list.count():
            self.option_list.setCurrentRow(row)
        self._refresh_option_buttons()

    def _show_preview(self, value) -> None:
        path = self.ctl.previews.resolve(value) if is_preview_ref(value) else None
        if path is None:
            self.image_preview.clear()
            self.image_preview.setText("No preview")
            return
        pix = QPixmap(str(path))
        if pix.isNull():
            self.image_preview.setText(Path(path).name)
            return
        self.image_preview.setPixmap(pix.scaled(PREVIEW_SIZE, PREVIEW_SIZE, Qt.KeepAspectRatio,
                                                Qt.SmoothTransformation))

    # ---------- Slots ----------
    def _set_attr(self, name: str, text: str) -> None:
        if getattr(self.field, name) != text:
            self.ctl.set_field_attr(self.index, name, text)

    def _on_type_chosen(self, combo_index: int) -> None:
        new_type = self.type_box.itemData(combo_index)
        if new_type == self.field.type:
            return
        if not self.ctl.change_field_type(self.index, new_type):
            self.type_box.setCurrentIndex(self.type_box.findData(self.field.type))

    def _on_flag(self, flag: str, on: bool) -> None:
        self.ctl.set_field_flag(self.index, flag, on)
        # Rejected toggles leave the field unchanged; show the real state again
        fields = self.ctl.fields
        if self.index < len(fields):
            self.set_field(fields[self.index], self.ctl.field_errors.get(self.index))

    def _refresh_list_buttons(self, *args) -> None:
        items = self.field.value if isinstance(self.field.value, list) else []
        err = fm.list_item_error(items, self.item_input.text())
        self.btn_add_item.setEnabled(err is None)
        self.item_input.setToolTip(err if err == fm.ITEM_DUPLICATE else "")
        self.btn_remove_item.setEnabled(self.item_list.currentRow() >= 0)

    def _on_add_item(self) -> None:
        if self.ctl.add_list_item(self.index, self.item_input.text()):
            self.item_input.clear()

    def _on_remove_item(self) -> None:
        row = self.item_list.currentRow()
        if row >= 0:
            self.ctl.remove_list_item(self.index, row)

    def _refresh_option_buttons(self, *args) -> None:
        options = self.field.value if isinstance(self.field.value, list) else []
        key = self.option_key.text()
        err = fm.option_key_error(options, key) if key.strip() else None
        self.lbl_option_error.setText(err or "")
        self.btn_add_option.setEnabled(
            bool(key.strip()) and bool(self.option_value.text().strip()) and err is None)
        has_row = self.option_list.currentRow() >= 0
        self.btn_select_option.setEnabled(has_row)
        self.btn_remove_option.setEnabled(has_row)

    def _on_add_option(self) -> None:
        if self.ctl.add_option(self.index, self.option_key.text(), self.option_value.text()):
            self.option_key.clear()
            self.option_value.clear()

    def _on_pick_image(self) -> None:
        fname, _ = QFileDialog.getOpenFileName(
            self, "Choose Image", "", "Images (*.png *.jpg *.jpeg *.gif *.webp *.bmp);;All Files (*)"
        )
        if fname:
            self.ctl.set_image_file(self.index, fname)
