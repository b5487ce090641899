# pos_terminal/tests/test_config.py
from __future__ import annotations

import pytest
from PySide6.QtCore import QSettings

from pos_terminal import config
from pos_terminal.config import IntakePreferences, load_preferences, save_preferences


@pytest.fixture()
def ini_settings(qapp, monkeypatch, tmp_path):
    path = str(tmp_path / "prefs.ini")
    monkeypatch.setattr(config, "_settings", lambda scope=None: QSettings(path, QSettings.IniFormat))
    return path


def test_defaults_when_nothing_is_stored(ini_settings):
    assert load_preferences() == IntakePreferences()


def test_preferences_survive_a_restart(ini_settings):
    save_preferences(IntakePreferences(auto_mode=False, target_length=12, refresh_interval_min=5))

    prefs = load_preferences()

    assert prefs.auto_mode is False
    assert prefs.target_length == 12
    assert prefs.refresh_interval_min == 5


def test_garbage_values_fall_back(ini_settings):
    s = QSettings(ini_settings, QSettings.IniFormat)
    s.setValue(config.SETTINGS_KEY_TARGET_LENGTH, "thirteen")
    s.setValue(config.SETTINGS_KEY_REFRESH_MIN, -4)
    s.setValue(config.SETTINGS_KEY_AUTO_MODE, "yes")
    s.sync()

    prefs = load_preferences()

    assert prefs.target_length == IntakePreferences().target_length
    assert prefs.refresh_interval_min == 0
    assert prefs.auto_mode is True
