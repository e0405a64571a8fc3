"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from roster.config import get_settings, validate_all_settings
from roster.config.settings import AppSettings, StorageSettings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDefaults:
    """Tests for zero-configuration defaults."""

    def test_storage_defaults(self, monkeypatch):
        """Test the memory backend is the default."""
        monkeypatch.delenv("ROSTER_STORAGE_BACKEND", raising=False)
        storage = StorageSettings()
        assert storage.backend == "memory"
        assert storage.data_dir == Path("data")
        assert storage.retry_attempts == 3

    def test_app_defaults(self):
        """Test dashboard limits default to 5 tags and 10 notes."""
        app = AppSettings()
        assert app.top_tags_limit == 5
        assert app.recent_notes_limit == 10


class TestEnvironmentOverrides:
    """Tests for settings read from the environment."""

    def test_storage_from_env(self, monkeypatch, tmp_path):
        """Test the JSON backend and its directory come from the environment."""
        monkeypatch.setenv("ROSTER_STORAGE_BACKEND", "json")
        monkeypatch.setenv("ROSTER_STORAGE_DATA_DIR", str(tmp_path))

        storage = get_settings().storage
        assert storage.backend == "json"
        assert storage.data_dir == tmp_path

    def test_unknown_backend_rejected(self, monkeypatch):
        """Test only memory and json are accepted."""
        monkeypatch.setenv("ROSTER_STORAGE_BACKEND", "sqlite")
        with pytest.raises(PydanticValidationError):
            StorageSettings()

    def test_log_level_normalized(self, monkeypatch):
        """Test log levels are accepted in any casing."""
        monkeypatch.setenv("ROSTER_LOG_LEVEL", "debug")
        assert AppSettings().log_level == "DEBUG"

    def test_unknown_log_level_rejected(self, monkeypatch):
        """Test a made-up log level fails validation."""
        monkeypatch.setenv("ROSTER_LOG_LEVEL", "loud")
        with pytest.raises(PydanticValidationError):
            AppSettings()


class TestValidateAllSettings:
    """Tests for the settings health check."""

    def test_all_valid(self):
        """Test defaults validate."""
        assert validate_all_settings() == {"storage": True, "app": True}

    def test_reports_failure(self, monkeypatch):
        """Test a bad value is reported rather than raised."""
        monkeypatch.setenv("ROSTER_TOP_TAGS_LIMIT", "0")
        results = validate_all_settings()
        assert results["storage"] is True
        assert results["app"] is False
        assert "top_tags_limit" in results["app_error"]
