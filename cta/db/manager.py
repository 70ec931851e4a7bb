from __future__ import annotations

import logging
import shutil
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{path.resolve().as_posix()}"


# Cascading deletes of templates and tenant mappings rely on foreign_keys
SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys = ON;",
    "PRAGMA journal_mode = WAL;",
    "PRAGMA synchronous = NORMAL;",
)


def _apply_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        try:
            for pragma in SQLITE_PRAGMAS:
                cur.execute(pragma)
        finally:
            cur.close()


def alembic_config(db_url: str) -> Config:
    """ Alembic config pointing at the packaged migrations. No alembic.ini is needed at runtime. """
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def _user_table_count(db_path: Path) -> int:
    with sqlite3.connect(db_path) as con:
        cur = con.execute(
            "SELECT count(*) FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )
        return cur.fetchone()[0]


def _current_revision(db_url: str) -> Optional[str]:
    engine = create_engine(db_url, future=True)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()


def backup_db_file(path: Path) -> Path | None:
    """Create a timestamped copy beside the DB. Returns the backup path or None."""
    if not path.exists():
        return None
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    backup_path = path.with_suffix(path.suffix + f".bak.{ts}")
    shutil.copy2(path, backup_path)
    logger.info("Backed up %s to %s", path, backup_path)
    return backup_path


def migrate_to_head(db_path: Path, *, do_backup: bool = True) -> None:
    """Bring the SQLite file at db_path to the newest schema.

    - New or empty file: build the schema from scratch.
    - Already at head: nothing to do.
    - Behind: back up the file, then upgrade.
    """
    db_url = sqlite_url(db_path)
    cfg = alembic_config(db_url)

    if not db_path.exists() or _user_table_count(db_path) == 0:
        logger.info("Creating schema in %s", db_path)
        command.upgrade(cfg, "head")
        return

    current = _current_revision(db_url)
    heads = set(ScriptDirectory.from_config(cfg).get_heads())
    if current in heads:
        return
    if current is None:
        raise RuntimeError(f"{db_path} is not a content template database")

    if do_backup:
        backup_db_file(db_path)
    logger.info("Upgrading %s from %s to head", db_path, current)
    command.upgrade(cfg, "head")


class DatabaseManager:
    """ The open template database. ``open()`` may be called again to switch files.

    Services never hold a session; they ask for one per operation through ``session()``.
    """

    def __init__(self) -> None:
        self._engine: Optional[Engine] = None
        self._factory: Optional[sessionmaker[Session]] = None
        self._path: Optional[Path] = None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._factory is not None

    def open(self, path: Path) -> None:
        """ Migrate the file to the newest schema and make it the current database.

        The previous database stays open when migrating the new file fails.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        migrate_to_head(path)

        engine = create_engine(sqlite_url(path), future=True)
        _apply_sqlite_pragmas(engine)

        self.dispose()
        self._engine = engine
        self._factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
        self._path = path
        logger.info("Opened database %s", path)

    def dispose(self) -> None:
        engine, self._engine = self._engine, None
        self._factory = None
        self._path = None
        if engine is not None:
            engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """ Unit of work: commits when the block succeeds, rolls back and re-raises otherwise. """
        if self._factory is None:
            raise RuntimeError("No database is open")
        with self._factory() as s:
            try:
                yield s
                s.commit()
            except Exception:
                s.rollback()
                raise
