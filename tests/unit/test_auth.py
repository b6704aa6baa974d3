"""Unit tests for the outbound auth manager."""

import base64

from swagger_adapter.auth import AuthManager


def test_none_applies_nothing():
    manager = AuthManager()

    assert manager.apply({}) == {}
    assert manager.auth_type == "none"
    assert not manager.is_configured()


def test_bearer_uses_configured_header():
    manager = AuthManager(auth_type="bearer", token="abc", header="X-Auth")

    assert manager.apply({}) == {"X-Auth": "Bearer abc"}
    assert manager.is_configured()


def test_apikey_uses_api_key_header():
    manager = AuthManager(auth_type="apikey", token="k-1", api_key_header="X-API-Key")

    assert manager.apply({"Accept": "application/json"}) == {"Accept": "application/json", "X-API-Key": "k-1"}


def test_basic_encodes_credentials():
    manager = AuthManager(auth_type="basic", token="user:pass")
    expected = base64.b64encode(b"user:pass").decode("ascii")

    assert manager.apply({}) == {"Authorization": f"Basic {expected}"}


def test_missing_token_applies_nothing(caplog):
    manager = AuthManager(auth_type="bearer")

    assert manager.apply({}) == {}
    assert not manager.is_configured()
    assert "no token provided" in caplog.text


def test_unknown_type_is_treated_as_none(caplog):
    manager = AuthManager(auth_type="oauth2", token="abc")

    assert manager.auth_type == "none"
    assert manager.apply({}) == {}
    assert "Unknown authentication type" in caplog.text


def test_update_token_takes_effect():
    manager = AuthManager(auth_type="bearer", token="old")
    manager.update_token("new")

    assert manager.apply({}) == {"Authorization": "Bearer new"}


def test_auth_replaces_header_with_different_case():
    manager = AuthManager(auth_type="bearer", token="abc")

    assert manager.apply({"authorization": "Bearer other"}) == {"Authorization": "Bearer abc"}


def test_from_settings(settings_factory):
    settings = settings_factory(swagger_path="api.json", auth_type="APIKEY", auth_token="t", api_key_header="X-Key")

    manager = AuthManager.from_settings(settings)

    assert manager.auth_type == "apikey"
    assert manager.apply({}) == {"X-Key": "t"}
