from __future__ import annotations

from enum import Enum
from typing import Protocol


class Severity(Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    """ Shows a short transient message to the user. """
    def __call__(self, message: str, severity: Severity) -> None:
        ...


class Confirmer(Protocol):
    """ Asks the user a yes/no question. """
    def __call__(self, prompt: str) -> bool:
        ...
