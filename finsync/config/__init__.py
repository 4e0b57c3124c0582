"""Configuration package."""

from finsync.config.settings import (
    AppSettings,
    BackendSettings,
    CacheSettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
    resolve_data_dir,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackendSettings",
    "CacheSettings",
    "Settings",
    "StorageSettings",
    "SyncSettings",
    "get_settings",
    "resolve_data_dir",
    "validate_all_settings",
]
