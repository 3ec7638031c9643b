"""Configuration package."""

from expense_tracker.config.settings import (
    ApiSettings,
    AppSettings,
    CacheSettings,
    Settings,
    UploadSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "ApiSettings",
    "AppSettings",
    "CacheSettings",
    "Settings",
    "UploadSettings",
    "get_settings",
    "validate_all_settings",
]
