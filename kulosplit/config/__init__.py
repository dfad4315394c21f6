"""Configuration package."""

from kulosplit.config.settings import (
    AppSettings,
    GeminiSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
