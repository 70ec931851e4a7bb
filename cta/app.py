from __future__ import annotations

import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from PySide6.QtCore import QCoreApplication
from PySide6.QtWidgets import QApplication
from sqlalchemy.exc import SQLAlchemyError

from .core.config import load_config, save_config, ORG, APP
from .db.manager import DatabaseManager
from .ui.main_window import MainWindow

DEFAULT_DB = Path.home() / "ContentTemplateAdmin" / "templates.db"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def _app_version() -> str:
    try:
        return version("content-template-admin")
    except PackageNotFoundError:
        return "0.0.0"


def _open_database(path: Path) -> DatabaseManager:
    """ Open the last used database, falling back to the default file when it cannot be opened. """
    db = DatabaseManager()
    try:
        db.open(path)
    except (RuntimeError, OSError, SQLAlchemyError):
        if path == DEFAULT_DB:
            raise
        logger.exception("Could not open %s, using %s instead", path, DEFAULT_DB)
        db.open(DEFAULT_DB)
    return db


def main() -> None:
    app = QApplication(sys.argv)
    # Set QSettings identity BEFORE any settings access
    QCoreApplication.setOrganizationName(ORG)
    QCoreApplication.setApplicationName(APP)
    QCoreApplication.setApplicationVersion(_app_version())

    # Load user prefs (QSettings-backed)
    cfg = load_config()
    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
    logger.info("Starting %s %s", APP, _app_version())

    db = _open_database(Path(cfg.last_db_path) if cfg.last_db_path else DEFAULT_DB)
    cfg.last_db_path = str(db.path)

    win = MainWindow(cfg=cfg, dbm=db)
    win.show()

    # Persist settings on quit
    def persist():
        if db.path is not None:
            cfg.last_db_path = str(db.path)
        save_config(cfg)
        db.dispose()

    app.aboutToQuit.connect(persist)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
