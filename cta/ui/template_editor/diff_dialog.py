from __future__ import annotations

from PySide6.QtGui import QColor, QFont, QTextCharFormat, QTextCursor
from PySide6.QtWidgets import QDialog, QVBoxLayout, QLabel, QPlainTextEdit, QDialogButtonBox, QWidget

from cta.template.diff import DiffKind, ForestDiff

_BACKGROUNDS = {
    DiffKind.insert: QColor("#e6ffec"),
    DiffKind.delete: QColor("#ffebe9"),
}


def _lineno(n) -> str:
    return f"{n:>4}" if n is not None else "    "


class DiffDialog(QDialog):
    """ Read-only view of the changes between the saved tree and the edited one. """

    def __init__(self, diff: ForestDiff, parent: QWidget | None = None):
        super().__init__(parent)
        self.setWindowTitle("Review changes")
        self.resize(760, 560)
        self.diff = diff

        summary = QLabel(
            f"{diff.header}   +{diff.inserted} / -{diff.deleted}" if diff.has_changes else "No changes"
        )
        self.view = QPlainTextEdit()
        self.view.setReadOnly(True)
        self.view.setLineWrapMode(QPlainTextEdit.NoWrap)
        self.view.setFont(QFont("monospace"))
        self.view.setVisible(diff.has_changes)

        buttons = QDialogButtonBox(QDialogButtonBox.Close)
        buttons.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addWidget(summary)
        lay.addWidget(self.view, 1)
        lay.addWidget(buttons)

        if diff.has_changes:
            self._render()

    def _render(self) -> None:
        cursor = self.view.textCursor()
        cursor.movePosition(QTextCursor.End)
        for i, line in enumerate(self.diff.lines):
            fmt = QTextCharFormat()
            bg = _BACKGROUNDS.get(line.kind)
            if bg is not None:
                fmt.setBackground(bg)
            if i:
                cursor.insertText("\n")
            cursor.insertText(
                f"{_lineno(line.old_lineno)} {_lineno(line.new_lineno)} {line.prefix}{line.content}", fmt
            )
        self.view.moveCursor(QTextCursor.Start)
