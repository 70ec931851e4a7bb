import os
from contextlib import contextmanager

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QInputDialog, QMessageBox
from sqlalchemy import event, Engine, create_engine
from sqlalchemy.orm import sessionmaker

from cta.core.notices import Severity
from cta.db.manager import DatabaseManager
from cta.db.models import Base
from builders import node, field


# --- SQLite tuning for tests --------------------------------------------------
@event.listens_for(Engine, "connect")
def _sqlite_enable_fk(dbapi_connection, _):
    # Ensure ON DELETE CASCADE and general FK correctness in SQLite
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


# --- Database Fixtures --------------------------------------------------------
@pytest.fixture()
def session():
    """Fresh session per test."""
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, future=True, expire_on_commit=False)
    with session() as s:
        yield s
        s.rollback()  # clean even if the test forgot


@pytest.fixture()
def dbm(session, monkeypatch):
    """ DatabaseManager whose sessions are the test session. """
    @contextmanager
    def fake_session(self):
        yield session
        session.flush()

    monkeypatch.setattr(DatabaseManager, "session", fake_session)
    return DatabaseManager()


# --- Notify / confirm doubles -------------------------------------------------
class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[str, Severity]] = []

    def __call__(self, message: str, severity: Severity) -> None:
        self.messages.append((message, severity))

    @property
    def last(self):
        return self.messages[-1] if self.messages else None

    def severities(self) -> list[Severity]:
        return [sev for _, sev in self.messages]


class ScriptedConfirmer:
    """ Answers every prompt with ``answer`` and records the prompts. """
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def confirmer():
    return ScriptedConfirmer(True)


# --- Forest builders ----------------------------------------------------------
@pytest.fixture()
def sample_forest():
    """
    r (root)
      a (alpha)
        a1 (leaf)
        a2 (leaf2)
      b (beta)
    s (second)
    """
    return [
        node("r", "root",
             node("a", "alpha", node("a1", "leaf"), node("a2", "leaf2")),
             node("b", "beta", fields=[field("title", value="Hello")])),
        node("s", "second"),
    ]


# --- UI patching fixtures -----------------------------------------------------
@pytest.fixture()
def auto_yes(monkeypatch):
    """ Accept every yes/no message box. """
    monkeypatch.setattr(QMessageBox, "question", staticmethod(lambda *a, **k: QMessageBox.Yes))


@pytest.fixture()
def set_dialog_text(monkeypatch):
    """ Set the text for the next item in the dialog entry box. """
    def set_text(name):
        def get_text(*args, **kwargs):
            return name, True

        monkeypatch.setattr(QInputDialog, "getText", staticmethod(get_text))

    return set_text
