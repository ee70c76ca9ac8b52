"""
Module: test_settings.py
Description: Unit tests for pipeline settings.
"""

import pytest
from pydantic import ValidationError

from bento_events.config import settings as settings_module
from bento_events.config.settings import Settings, get_settings, reload_settings


class TestSettings:
    """Test cases for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("MAX_ATTEMPTS", "BASE_DELAY", "MAX_DELAY", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.max_attempts == 3
        assert settings.base_delay == 60
        assert settings.max_delay == 300
        assert settings.dead_letter_retention == 2592000
        assert settings.max_requests_per_minute == 60
        assert settings.max_requests_per_hour == 1000
        assert settings.circuit_breaker_failure_threshold == 5
        assert settings.circuit_breaker_timeout == 300
        assert settings.request_timeout == 30
        assert settings.connection_timeout == 10

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_ATTEMPTS", "5")
        monkeypatch.setenv("ENABLE_CIRCUIT_BREAKER", "false")

        settings = Settings(_env_file=None)

        assert settings.max_attempts == 5
        assert settings.enable_circuit_breaker is False

    def test_log_level_is_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError, match="log_level"):
            Settings(_env_file=None, log_level="LOUD")

    def test_invalid_table_name(self):
        with pytest.raises(ValidationError, match="Table name"):
            Settings(_env_file=None, cache_table_name="bad name!")

    def test_base_url_is_validated_and_normalized(self):
        assert Settings(_env_file=None, bento_api_base_url="https://bento.test/api/v1").bento_api_base_url == (
            "https://bento.test/api/v1/"
        )

        with pytest.raises(ValidationError, match="bento_api_base_url"):
            Settings(_env_file=None, bento_api_base_url="ftp://bento.test")

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_attempts=0)


class TestReloadSettings:
    """Test cases for hot reload."""

    def test_reload_takes_effect(self, monkeypatch):
        original = settings_module.settings
        monkeypatch.setenv("MAX_REQUESTS_PER_MINUTE", "7")

        try:
            reloaded = reload_settings()
            assert reloaded.max_requests_per_minute == 7
            assert get_settings() is reloaded
        finally:
            settings_module.settings = original
