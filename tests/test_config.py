"""Tests for environment-driven configuration."""

from pathlib import Path

import pytest

from config import Config


class TestLoad:
    def test_defaults(self, monkeypatch):
        for key in ("STORAGE_PATH", "SECTION_TIMEOUT", "PRICE_ALERT_THRESHOLD", "LOG_LEVEL"):
            monkeypatch.delenv(key, raising=False)
        config = Config.load()

        assert config.storage_path == Path("cyberpress.db")
        assert config.section_timeout == 60
        assert config.price_alert_threshold == 5.0
        assert config.weekly_refresh_weekday == 0
        assert config.validate() is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STORAGE_PATH", "/tmp/dash.db")
        monkeypatch.setenv("CONTENT_CACHE_HOURS", "0.5")
        monkeypatch.setenv("DAILY_REFRESH_HOUR", "6")
        monkeypatch.setenv("ENABLE_LOGFIRE", "yes")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        config = Config.load()

        assert config.storage_path == Path("/tmp/dash.db")
        assert config.content_cache_hours == 0.5
        assert config.daily_refresh_hour == 6
        assert config.enable_logfire is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_bad_integer_names_variable(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="REQUEST_TIMEOUT"):
            Config.load()


class TestValidate:
    @pytest.mark.parametrize("changes,fragment", [
        ({"section_timeout": 0}, "SECTION_TIMEOUT"),
        ({"daily_refresh_hour": 24}, "DAILY_REFRESH_HOUR"),
        ({"weekly_refresh_weekday": 7}, "WEEKLY_REFRESH_WEEKDAY"),
        ({"content_cache_hours": -1}, "CONTENT_CACHE_HOURS"),
        ({"log_level": "LOUD"}, "LOG_LEVEL"),
        ({"log_format": "xml"}, "LOG_FORMAT"),
    ])
    def test_invalid_values(self, changes, fragment):
        assert fragment in Config(**changes).validate()

    def test_zero_cache_hours_allowed(self):
        assert Config(content_cache_hours=0).validate() is None
