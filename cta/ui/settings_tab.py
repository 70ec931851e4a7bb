from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QGroupBox, QFormLayout, QLabel, QLineEdit, QPushButton,
    QFileDialog, QMessageBox, QSpinBox, QComboBox
)
from sqlalchemy.exc import SQLAlchemyError

from cta.core.config import LOG_LEVELS, Config
from cta.db.manager import DatabaseManager
from cta.ui.notices import show_failure

logger = logging.getLogger(__name__)

DB_FILTER = "SQLite Databases (*.db *.sqlite *.sqlite3);;All Files (*)"


class DatabaseSelectorWidget(QWidget):
    """ Shows the open database file and lets the user switch to another one or start a new one.

    Signals
    -------
    databaseSelected(str): an existing file was picked.
    databaseCreated(str):  a new file name was picked; the manager creates it on open.
    """
    databaseSelected = Signal(str)
    databaseCreated = Signal(str)

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self._path_edit = QLineEdit(self)
        self._path_edit.setReadOnly(True)
        self._path_edit.setPlaceholderText("No database selected")
        self._btn_open = QPushButton("Open…", self)
        self._btn_new = QPushButton("New…", self)
        self._btn_open.clicked.connect(self._on_open_clicked)
        self._btn_new.clicked.connect(self._on_new_clicked)

        row = QHBoxLayout(self)
        row.addWidget(QLabel("Database:", self))
        row.addWidget(self._path_edit, stretch=1)
        row.addWidget(self._btn_open)
        row.addWidget(self._btn_new)

    def set_current_path(self, path: str | Path | None) -> None:
        self._path_edit.setText(str(Path(path)) if path else "")

    def current_path(self) -> str:
        return self._path_edit.text().strip()

    def _start_dir(self) -> str:
        return str(Path(self.current_path()).parent) if self.current_path() else ""

    def _on_open_clicked(self) -> None:
        fname, _ = QFileDialog.getOpenFileName(self, "Open Database", self._start_dir(), DB_FILTER)
        if not fname:
            return
        if not Path(fname).is_file():
            QMessageBox.warning(self, "Invalid File", "Please select an existing database file.")
            return
        self.databaseSelected.emit(fname)

    def _on_new_clicked(self) -> None:
        fname, _ = QFileDialog.getSaveFileName(self, "New Database", self._start_dir(), DB_FILTER)
        if not fname:
            return
        if Path(fname).exists():
            QMessageBox.warning(self, "File exists", f"“{Path(fname).name}” already exists. Use Open instead.")
            return
        self.databaseCreated.emit(fname)


class SettingsTab(QWidget):
    """ Database file, editor timings and log level. """
    reloadedDatabase = Signal()

    def __init__(self, dbm: DatabaseManager, cfg: Config, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._dbm = dbm
        self._cfg = cfg

        root = QVBoxLayout(self)

        grp_db = QGroupBox("Database")
        db_lay = QVBoxLayout(grp_db)
        self.db_section = DatabaseSelectorWidget(self)
        self.db_section.set_current_path(self._dbm.path)
        self.db_section.databaseSelected.connect(self._open_database)
        self.db_section.databaseCreated.connect(self._open_database)
        db_lay.addWidget(self.db_section)
        root.addWidget(grp_db)

        grp_editor = QGroupBox("Template Editor")
        form = QFormLayout(grp_editor)
        self.spin_debounce = QSpinBox()
        self.spin_debounce.setRange(0, 5000)
        self.spin_debounce.setSuffix(" ms")
        self.spin_debounce.setValue(cfg.editor.debounce_ms)
        self.spin_debounce.setToolTip("Delay before typed field values are written to the tree.")
        self.spin_notice = QSpinBox()
        self.spin_notice.setRange(0, 60000)
        self.spin_notice.setSingleStep(500)
        self.spin_notice.setSuffix(" ms")
        self.spin_notice.setValue(cfg.editor.notice_ms)
        form.addRow("Edit delay", self.spin_debounce)
        form.addRow("Notice duration", self.spin_notice)
        root.addWidget(grp_editor)

        grp_log = QGroupBox("Logging")
        form = QFormLayout(grp_log)
        self.level_box = QComboBox()
        self.level_box.addItems(list(LOG_LEVELS))
        self.level_box.setCurrentText(cfg.log_level if cfg.log_level in LOG_LEVELS else "INFO")
        form.addRow("Level", self.level_box)
        root.addWidget(grp_log)
        root.addStretch(1)

        self.spin_debounce.valueChanged.connect(lambda v: setattr(self._cfg.editor, "debounce_ms", v))
        self.spin_notice.valueChanged.connect(lambda v: setattr(self._cfg.editor, "notice_ms", v))
        self.level_box.currentTextChanged.connect(self._on_level_changed)

    def _on_level_changed(self, level: str) -> None:
        self._cfg.log_level = level
        logging.getLogger().setLevel(level)

    def _open_database(self, path: str) -> None:
        p = Path(path)
        if self._dbm.path is not None and p.resolve() == self._dbm.path.resolve():
            return
        try:
            self._dbm.open(p)
        except (RuntimeError, OSError, SQLAlchemyError) as e:
            # The previous database stays open
            show_failure(self, "Could not open database", e)
            return
        self._cfg.last_db_path = str(p)
        self.db_section.set_current_path(p)
        self.reloadedDatabase.emit()
