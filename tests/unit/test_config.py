"""Unit tests for settings."""

import pytest

from swagger_adapter.config import Settings
from swagger_adapter.errors import ConfigurationError


def test_defaults(settings_factory):
    settings = settings_factory()

    assert settings.adapter_transport == "stdio"
    assert settings.refresh_interval_seconds == 3600
    assert settings.api_timeout_seconds == 30
    assert settings.auth_type == "none"
    assert settings.auth_header == "Authorization"
    assert settings.enable_request_logging is False


def test_environment_is_read(settings_factory, monkeypatch):
    monkeypatch.setenv("SWAGGER_URL", "https://api.example.com/openapi.json")
    monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("ENABLE_REQUEST_LOGGING", "true")

    settings = settings_factory()

    assert settings.document_source() == ("url", "https://api.example.com/openapi.json")
    assert settings.refresh_interval_seconds == 0
    assert settings.enable_request_logging is True


def test_url_wins_over_path(settings_factory, caplog):
    settings = settings_factory(swagger_url="https://example.com/a.json", swagger_path="a.json")

    assert settings.document_source() == ("url", "https://example.com/a.json")
    assert "Both SWAGGER_URL and SWAGGER_PATH" in caplog.text


def test_path_source(settings_factory):
    assert settings_factory(swagger_path="api.yaml").document_source() == ("path", "api.yaml")


def test_missing_source_raises(settings_factory):
    with pytest.raises(ConfigurationError):
        settings_factory().document_source()


def test_negative_refresh_interval_is_rejected():
    with pytest.raises(ValueError):
        Settings(_env_file=None, refresh_interval_seconds=-1)
