from __future__ import annotations

import logging

from PySide6.QtCore import QTimer
from PySide6.QtWidgets import QLabel, QMessageBox, QWidget

from cta.core.notices import Confirmer, Severity

logger = logging.getLogger(__name__)

_STYLES = {
    Severity.SUCCESS: "background: #e6f4ea; color: #1e4620;",
    Severity.INFO: "background: #e8f0fe; color: #174ea6;",
    Severity.WARNING: "background: #fef7e0; color: #7a4f01;",
    Severity.ERROR: "background: #fce8e6; color: #a50e0e;",
}
_LOG_LEVELS = {
    Severity.SUCCESS: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.INFO,
    Severity.ERROR: logging.WARNING,
}


class NoticeBar(QLabel):
    """ Strip that shows one transient message at a time. Call the instance to show a notice. """

    def __init__(self, parent: QWidget | None = None, *, duration_ms: int = 2000):
        super().__init__(parent)
        self.duration_ms = duration_ms
        self.last_severity: Severity | None = None
        self.setWordWrap(True)
        self.setContentsMargins(8, 4, 8, 4)
        self.hide()

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self.clear_notice)

    def __call__(self, message: str, severity: Severity = Severity.INFO) -> None:
        logger.log(_LOG_LEVELS[severity], "Notice (%s): %s", severity.value, message)
        self.last_severity = severity
        self.setText(message)
        self.setStyleSheet(_STYLES[severity] + " border-radius: 4px;")
        self.show()
        self._timer.start(self.duration_ms)

    def clear_notice(self) -> None:
        self._timer.stop()
        self.clear()
        self.hide()


def question_confirmer(parent: QWidget, title: str = "Please confirm") -> Confirmer:
    """ Confirmer backed by a modal yes/no message box. """
    def _confirm(prompt: str) -> bool:
        resp = QMessageBox.question(
            parent, title, prompt,
            QMessageBox.Yes | QMessageBox.No, QMessageBox.No
        )
        return resp == QMessageBox.Yes

    return _confirm


def show_failure(parent: QWidget, title: str, exc: BaseException) -> None:
    """ Report a failed backend call from inside an except block. The caller's state stays as it was. """
    logger.exception("%s: %s", title, exc)
    QMessageBox.warning(parent, title, str(exc) or exc.__class__.__name__)
