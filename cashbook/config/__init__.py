"""Configuration package."""

from cashbook.config.settings import (
    AppSettings,
    DatabaseSettings,
    GeminiSettings,
    SessionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "GeminiSettings",
    "SessionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
