"""Configuration package."""

from ledger_engine.config.preferences import (
    CategoryPreferences,
    Preferences,
    SecurityPreferences,
)
from ledger_engine.config.settings import (
    EngineSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "CategoryPreferences",
    "EngineSettings",
    "Preferences",
    "SecurityPreferences",
    "Settings",
    "StorageSettings",
    "get_settings",
]
