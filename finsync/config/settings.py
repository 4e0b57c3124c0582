"""
Configuration Management for finsync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every timeout and debounce window the sync engine relies on is visible
in one place and validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendSettings(BaseSettings):
    """REST backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_BACKEND_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:5000/api",
        description="Base URL of the REST backend"
    )
    health_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Timeout for the health probe"
    )
    fetch_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the full collection fetch"
    )
    submit_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for the bulk submit"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for per-record create/update/delete calls"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be joined with a single slash."""
        return v.rstrip("/")


class SyncSettings(BaseSettings):
    """Debounce windows and status display timing."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_SYNC_",
        extra="ignore"
    )

    sync_debounce_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Debounce window for per-record backend calls"
    )
    persist_debounce_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Debounce window for local collection writes"
    )
    status_reset_seconds: float = Field(
        default=3.0,
        ge=0,
        description="How long a bulk submit result stays visible"
    )


class StorageSettings(BaseSettings):
    """Local fallback cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".finsync",
        description="Directory holding the local collection cache"
    )
    namespace: str = Field(
        default="finsync",
        min_length=1,
        description="Namespace separating caches of different installations"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a local cache write before giving up"
    )

    @property
    def namespace_dir(self) -> Path:
        """Directory for this namespace."""
        return self.data_dir / self.namespace


class CacheSettings(BaseSettings):
    """Memoization cache capacities."""

    model_config = SettingsConfigDict(
        env_prefix="FINSYNC_CACHE_",
        extra="ignore"
    )

    date_cache_size: int = Field(
        default=4096,
        ge=1,
        description="Maximum memoized date strings"
    )
    derived_cache_size: int = Field(
        default=4096,
        ge=1,
        description="Maximum memoized derived-field computations per kind"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    log_level: str = Field(
        default="INFO",
        description="Root log level for the finsync loggers"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a broken section does not
    # prevent the others from being read

    @property
    def backend(self) -> BackendSettings:
        return BackendSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    `<name>_error` entry for every section that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("backend", "sync", "storage", "cache", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results


def resolve_data_dir(override: Optional[Path] = None) -> Path:
    """Directory the local cache writes into, honouring an explicit override."""
    if override is not None:
        return Path(override)
    return get_settings().storage.namespace_dir
