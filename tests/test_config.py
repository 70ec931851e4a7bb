import pytest
from PySide6.QtCore import QSettings

from cta.core import config
from cta.core.config import Config, EditorSettings, load_config, save_config


@pytest.fixture()
def settings_file(tmp_path, monkeypatch):
    """ Route QSettings to an ini file so tests never touch the user's settings. """
    path = tmp_path / "settings.ini"
    monkeypatch.setattr(config, "_s", lambda: QSettings(str(path), QSettings.IniFormat))
    return path


def test_defaults_when_nothing_stored(settings_file):
    cfg = load_config()
    assert cfg == Config()
    assert cfg.editor.debounce_ms == 100
    assert cfg.editor.notice_ms == 2000
    assert cfg.log_level == "INFO"


def test_round_trip(settings_file):
    cfg = Config(
        last_db_path="/data/templates.db",
        last_export_dir="/exports",
        editor=EditorSettings(debounce_ms=250, notice_ms=500),
        log_level="DEBUG",
    )
    cfg.ui.geometry = {"x": 1, "y": 2, "w": 800, "h": 600}
    cfg.ui.splitterSizes = {"templateEditor": [300, 700]}
    save_config(cfg)

    loaded = load_config()
    assert loaded == cfg


def test_malformed_values_fall_back(settings_file, caplog):
    s = QSettings(str(settings_file), QSettings.IniFormat)
    s.beginGroup("ui")
    s.setValue("geometry", "{not json")
    s.endGroup()
    s.beginGroup("editor")
    s.setValue("settings", '{"debounce_ms": -5}')
    s.endGroup()
    s.sync()

    cfg = load_config()
    assert cfg.ui.geometry == {}
    assert cfg.editor == EditorSettings()
    assert "Ignoring" in caplog.text
