"""Configuration package."""

from ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    QuerySettings,
    Settings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "QuerySettings",
    "Settings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
