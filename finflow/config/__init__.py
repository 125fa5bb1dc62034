"""Configuration package."""

from finflow.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    StateStoreSettings,
    TelegramSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "StateStoreSettings",
    "TelegramSettings",
    "get_settings",
    "validate_all_settings",
]
