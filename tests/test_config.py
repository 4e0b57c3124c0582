"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from finsync.config import get_settings
from finsync.config.settings import (
    AppSettings,
    BackendSettings,
    StorageSettings,
    SyncSettings,
    resolve_data_dir,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestBackendSettings:
    def test_defaults(self):
        """Test the default backend timeouts."""
        settings = BackendSettings()
        assert settings.health_timeout_seconds == 3.0
        assert settings.fetch_timeout_seconds == 10.0
        assert settings.submit_timeout_seconds == 30.0

    def test_env_prefix_and_trailing_slash(self, monkeypatch):
        """Test that the base URL comes from the environment without a trailing slash."""
        monkeypatch.setenv("FINSYNC_BACKEND_BASE_URL", "https://books.example.com/api/")
        assert BackendSettings().base_url == "https://books.example.com/api"

    def test_timeouts_must_be_positive(self, monkeypatch):
        """Test that a zero timeout is refused."""
        monkeypatch.setenv("FINSYNC_BACKEND_HEALTH_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValidationError):
            BackendSettings()


class TestOtherSections:
    def test_sync_windows(self, monkeypatch):
        """Test that the sync windows come from the environment."""
        monkeypatch.setenv("FINSYNC_SYNC_SYNC_DEBOUNCE_SECONDS", "0.25")
        settings = SyncSettings()
        assert settings.sync_debounce_seconds == 0.25
        assert settings.status_reset_seconds == 3.0

    def test_storage_namespace_dir(self, monkeypatch, tmp_path):
        """Test that the cache directory includes the namespace."""
        monkeypatch.setenv("FINSYNC_STORAGE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("FINSYNC_STORAGE_NAMESPACE", "office")
        assert StorageSettings().namespace_dir == tmp_path / "office"
        assert resolve_data_dir() == tmp_path / "office"
        assert resolve_data_dir(Path("/elsewhere")) == Path("/elsewhere")

    def test_log_level_normalized(self, monkeypatch):
        """Test that the log level is trimmed and upper-cased."""
        monkeypatch.setenv("LOG_LEVEL", " debug ")
        assert AppSettings().log_level == "DEBUG"

    def test_app_section_holds_only_log_level(self):
        """Test that the app section carries no unused switches."""
        assert set(AppSettings.model_fields) == {"log_level"}

    def test_unknown_log_level(self, monkeypatch):
        """Test that an unknown log level is refused."""
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            AppSettings()


class TestSettingsCache:
    def test_cached_until_cleared(self):
        """Test that settings are built once until the cache is cleared."""
        assert get_settings() is get_settings()
        first = get_settings()
        get_settings.cache_clear()
        assert get_settings() is not first

    def test_validate_all_reports_broken_section(self, monkeypatch):
        """Test that a broken section is reported without raising."""
        monkeypatch.setenv("FINSYNC_STORAGE_WRITE_ATTEMPTS", "99")
        results = validate_all_settings()
        assert results["backend"] is True
        assert results["storage"] is False
        assert "write_attempts" in results["storage_error"]
