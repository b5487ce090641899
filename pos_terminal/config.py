from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from PySide6.QtCore import QSettings

from .constants import (
    AUTO_SUBMIT_LENGTH,
    DATA_DIR,
    DB_FILE_NAME,
    DEFAULT_REFRESH_INTERVAL_MIN,
)

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = DATA_PATH / DB_FILE_NAME

SETTINGS_SCOPE = ("PosTerminal", "PosTerminal")
SETTINGS_KEY_AUTO_MODE = "intake/auto_mode"
SETTINGS_KEY_TARGET_LENGTH = "intake/target_length"
SETTINGS_KEY_REFRESH_MIN = "daily_totals/refresh_interval_min"


@dataclass
class IntakePreferences:
    """Cashier-level preferences remembered between sessions."""
    auto_mode: bool = True
    target_length: int = AUTO_SUBMIT_LENGTH
    refresh_interval_min: int = DEFAULT_REFRESH_INTERVAL_MIN


def _settings(scope: tuple[str, str] | None = None) -> QSettings:
    org, app = scope or SETTINGS_SCOPE
    return QSettings(org, app)


def load_preferences(scope: tuple[str, str] | None = None) -> IntakePreferences:
    s = _settings(scope)
    defaults = IntakePreferences()
    auto = s.value(SETTINGS_KEY_AUTO_MODE, defaults.auto_mode)
    # QSettings hands back strings for ini-backed stores
    if isinstance(auto, str):
        auto = auto.strip().lower() in ("1", "true", "yes")
    try:
        length = int(s.value(SETTINGS_KEY_TARGET_LENGTH, defaults.target_length))
    except (TypeError, ValueError):
        length = defaults.target_length
    try:
        refresh = int(s.value(SETTINGS_KEY_REFRESH_MIN, defaults.refresh_interval_min))
    except (TypeError, ValueError):
        refresh = defaults.refresh_interval_min
    return IntakePreferences(
        auto_mode=bool(auto),
        target_length=length if length > 0 else defaults.target_length,
        refresh_interval_min=max(0, refresh),
    )


def save_preferences(prefs: IntakePreferences, scope: tuple[str, str] | None = None) -> None:
    s = _settings(scope)
    s.setValue(SETTINGS_KEY_AUTO_MODE, bool(prefs.auto_mode))
    s.setValue(SETTINGS_KEY_TARGET_LENGTH, int(prefs.target_length))
    s.setValue(SETTINGS_KEY_REFRESH_MIN, int(prefs.refresh_interval_min))
    s.sync()
