"""Tests for environment-driven logging configuration."""

import pytest
from ordering.utils.logging import add_service_name, get_log_format, get_log_level


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("ENV", "ENVIRONMENT", "PROTEAN_ENV", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


class TestLogLevel:
    @pytest.mark.parametrize(
        "env, level",
        [("production", "INFO"), ("development", "DEBUG"), ("test", "WARNING"), ("unknown", "INFO")],
    )
    def test_level_per_environment(self, monkeypatch, env, level):
        monkeypatch.setenv("ENV", env)
        assert get_log_level() == level

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENV", "production")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"


class TestLogFormat:
    def test_json_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert get_log_format() == "json"

    def test_console_in_development(self):
        assert get_log_format() == "console"

    def test_override(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "JSON")
        assert get_log_format() == "json"


def test_service_name_is_added():
    assert add_service_name(None, "info", {"event": "x"})["service"] == "storefront-checkout"
