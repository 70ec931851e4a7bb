from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from pydantic import BaseModel, Field, ValidationError
from PySide6.QtCore import QSettings

logger = logging.getLogger(__name__)

# QSettings scope
ORG = "PersonalApps"
APP = "Content Template Admin"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class UIState(BaseModel):
    geometry: Dict[str, int] = Field(default_factory=dict)
    splitterSizes: Dict[str, List[int]] = Field(default_factory=dict)


class EditorSettings(BaseModel):
    """ Tuning of the template editor. Durations are in milliseconds. """
    debounce_ms: int = Field(default=100, ge=0)
    notice_ms: int = Field(default=2000, ge=0)


class Config(BaseModel):
    ui: UIState = Field(default_factory=UIState)
    last_db_path: str = ""
    last_export_dir: str = ""
    editor: EditorSettings = Field(default_factory=EditorSettings)
    log_level: str = "INFO"


def _s() -> QSettings:
    return QSettings(ORG, APP)


@contextmanager
def _group(s: QSettings, name: str) -> Iterator[QSettings]:
    s.beginGroup(name)
    try:
        yield s
    finally:
        s.endGroup()


def _read_json(s: QSettings, key: str) -> Any:
    """ Stored JSON value, or None when it is missing or unreadable. """
    raw = s.value(key, "")
    if isinstance(raw, (dict, list)):
        return raw  # some backends can store native types
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Ignoring malformed settings value %s/%s", s.group(), key)
        return None


def _write_json(s: QSettings, key: str, obj: Any) -> None:
    s.setValue(key, json.dumps(obj, ensure_ascii=False))


def _model_or_default(model: type[BaseModel], data: Any, what: str) -> BaseModel:
    if data is None:
        return model()
    try:
        return model.model_validate(data)
    except ValidationError:
        logger.warning("Ignoring invalid %s, using defaults", what)
        return model()


def load_config() -> Config:
    s = _s()

    with _group(s, "ui"):
        ui = {"geometry": _read_json(s, "geometry"), "splitterSizes": _read_json(s, "splitterSizes")}
    with _group(s, "db"):
        last_db_path = str(s.value("last_path", "", str))
    with _group(s, "editor"):
        editor = _read_json(s, "settings")
        last_export_dir = str(s.value("last_export_dir", "", str))
    with _group(s, "logging"):
        log_level = str(s.value("level", "INFO", str)).upper()

    if log_level not in LOG_LEVELS:
        logger.warning("Ignoring unknown log level %r", log_level)
        log_level = "INFO"

    return Config(
        ui=_model_or_default(UIState, {k: v for k, v in ui.items() if v is not None}, "window state"),
        last_db_path=last_db_path,
        last_export_dir=last_export_dir,
        editor=_model_or_default(EditorSettings, editor, "editor settings"),
        log_level=log_level,
    )


def save_config(cfg: Config) -> None:
    s = _s()

    with _group(s, "ui"):
        _write_json(s, "geometry", dict(cfg.ui.geometry))
        _write_json(s, "splitterSizes", dict(cfg.ui.splitterSizes))
    with _group(s, "db"):
        s.setValue("last_path", cfg.last_db_path)
    with _group(s, "editor"):
        _write_json(s, "settings", cfg.editor.model_dump())
        s.setValue("last_export_dir", cfg.last_export_dir)
    with _group(s, "logging"):
        s.setValue("level", cfg.log_level)
    s.sync()
