from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QSplitter, QPushButton, QFileDialog, QLabel, QWidget
)
from sqlalchemy.exc import SQLAlchemyError

from cta.core.config import Config
from cta.core.notices import Severity
from cta.db.services import TemplateService, TemplateNotFound
from cta.template.controller import TreeEditorController
from cta.template.diff import diff_forests
from cta.template.models import Node
from cta.template.serialization import (
    TemplateDataError, dump_forest, export_filename, load_forest, read_forest_file, to_backend,
    write_forest_file
)
from cta.ui.notices import NoticeBar, question_confirmer, show_failure

from .diff_dialog import DiffDialog
from .node_panel import NodePanel
from .tree_panel import TreePanel

logger = logging.getLogger(__name__)

SPLITTER_KEY = "templateEditor"


class TemplateEditorDialog(QDialog):
    """ Data management dialog for one template: edit the node tree, review and save it. """
    saved = Signal(str)

    def __init__(self, service: TemplateService, template_id: str, cfg: Config | None = None,
                 parent: QWidget | None = None):
        super().__init__(parent)
        self.service = service
        self.template_id = template_id
        self.cfg = cfg or Config()
        self.resize(1100, 720)

        template = self.service.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        self.template_name = template.name
        self.setWindowTitle(f"Template: {template.name}")

        self.notice = NoticeBar(self, duration_ms=self.cfg.editor.notice_ms)
        self.ctl = TreeEditorController(
            notify=self.notice, confirm=question_confirmer(self),
            debounce_ms=self.cfg.editor.debounce_ms, parent=self
        )

        self.tree_panel = TreePanel(self.ctl, self)
        self.node_panel = NodePanel(self.ctl, self)
        self.splitter = QSplitter(Qt.Horizontal)
        self.splitter.addWidget(self.tree_panel)
        self.splitter.addWidget(self.node_panel)
        self.splitter.setStretchFactor(1, 1)
        sizes = self.cfg.ui.splitterSizes.get(SPLITTER_KEY)
        if sizes:
            self.splitter.setSizes([int(x) for x in sizes])

        self.lbl_state = QLabel()
        self.btn_import = QPushButton("Import…")
        self.btn_export = QPushButton("Export…")
        self.btn_review = QPushButton("Review changes")
        self.btn_save = QPushButton("Save")
        self.btn_close = QPushButton("Close")
        self.btn_save.setDefault(True)

        bottom = QHBoxLayout()
        bottom.addWidget(self.btn_import)
        bottom.addWidget(self.btn_export)
        bottom.addStretch(1)
        bottom.addWidget(self.lbl_state)
        bottom.addWidget(self.btn_review)
        bottom.addWidget(self.btn_save)
        bottom.addWidget(self.btn_close)

        lay = QVBoxLayout(self)
        lay.addWidget(self.notice)
        lay.addWidget(self.splitter, 1)
        lay.addLayout(bottom)
        self.setLayout(lay)

        self.btn_import.clicked.connect(self.import_file)
        self.btn_export.clicked.connect(self.export_file)
        self.btn_review.clicked.connect(self.review_changes)
        self.btn_save.clicked.connect(self.save)
        self.btn_close.clicked.connect(self.close)
        self.ctl.forestChanged.connect(self._refresh_state)

        self._baseline: List[Node] = load_forest(template.data)
        self.ctl.load(self._baseline)
        self._refresh_state()

    # ---------- State ----------
    def is_dirty(self) -> bool:
        return dump_forest(self.ctl.forest) != dump_forest(self._baseline) or self.ctl.has_pending

    def _refresh_state(self, *args) -> None:
        self.lbl_state.setText("Unsaved changes" if self.is_dirty() else "")

    # ---------- Actions ----------
    def save(self) -> bool:
        forest = self.ctl.flush()
        if self.ctl.has_errors:
            self.notice("Fix the errors on the current node before saving.", Severity.ERROR)
            return False
        try:
            self.service.update(self.template_id, data=to_backend(forest))
        except (TemplateNotFound, SQLAlchemyError) as e:
            show_failure(self, "Save failed", e)
            return False
        self._baseline = forest
        self._refresh_state()
        self.notice("Template saved.", Severity.SUCCESS)
        self.saved.emit(self.template_id)
        return True

    def review_changes(self) -> None:
        forest = self.ctl.flush()
        DiffDialog(diff_forests(self._baseline, forest), self).exec()

    def import_file(self) -> None:
        fname, _ = QFileDialog.getOpenFileName(
            self, "Import Template", self.cfg.last_export_dir, "JSON (*.json);;All Files (*)"
        )
        if not fname:
            return
        try:
            forest = read_forest_file(fname)
        except TemplateDataError as e:
            logger.error("Import of %s failed: %s", fname, e)
            self.notice(f"Import failed: {e}", Severity.ERROR)
            return
        self.cfg.last_export_dir = str(Path(fname).parent)
        self.ctl.load(forest, keep_clipboard=True)
        self.notice(f"Imported {Path(fname).name}.", Severity.SUCCESS)

    def export_file(self) -> None:
        forest = self.ctl.flush()
        start = Path(self.cfg.last_export_dir or Path.home()) / export_filename(self.template_name)
        fname, _ = QFileDialog.getSaveFileName(self, "Export Template", str(start), "JSON (*.json)")
        if not fname:
            return
        try:
            path = write_forest_file(fname, forest)
        except OSError as e:
            show_failure(self, "Export failed", e)
            return
        self.cfg.last_export_dir = str(path.parent)
        self.notice(f"Exported {path.name}.", Severity.SUCCESS)

    # ---------- Teardown ----------
    def closeEvent(self, event, /):
        self.ctl.flush()
        if self.is_dirty() and not question_confirmer(self, "Unsaved changes")(
                "Discard the unsaved changes to this template?"):
            event.ignore()
            return
        self.cfg.ui.splitterSizes[SPLITTER_KEY] = self.splitter.sizes()
        self.ctl.close()
        super().closeEvent(event)
