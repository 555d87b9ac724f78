# tests/test_config.py
import pytest

from picsearch_backend.app.core.config import (
    DEFAULT_SESSION_TTL,
    MAX_SESSION_TTL,
    load_settings_from_env,
)

ENV_VARS = (
    "CLIENT_URL", "API_BASE_URL", "SESSION_SECRET", "SESSION_TTL_SECONDS", "COOKIE_MODE",
    "COOKIE_SECURE", "DATABASE_URL", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET",
    "FACEBOOK_APP_ID", "FACEBOOK_APP_SECRET", "GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings_from_env()
    assert s.client_url == "http://localhost:5173"
    assert s.session_ttl_seconds == DEFAULT_SESSION_TTL
    assert s.cookie_mode == "same_origin"
    assert s.cookie_samesite == "lax"
    assert s.cookie_secure is False
    assert s.database_url is None
    assert (s.google, s.facebook, s.github) == (None, None, None)
    assert s.login_url == "http://localhost:5173/login"


@pytest.mark.parametrize(
    "raw,expected",
    [("3600", 3600), ("999999999", MAX_SESSION_TTL), ("5", 60), ("soon", DEFAULT_SESSION_TTL)],
)
def test_session_ttl_is_clamped(monkeypatch, raw, expected):
    monkeypatch.setenv("SESSION_TTL_SECONDS", raw)
    assert load_settings_from_env().session_ttl_seconds == expected


def test_cross_origin_forces_secure(monkeypatch):
    monkeypatch.setenv("COOKIE_MODE", "cross-origin")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    s = load_settings_from_env()
    assert s.cookie_mode == "cross_origin"
    assert s.cookie_samesite == "none"
    assert s.cookie_secure is True


def test_same_origin_secure_follows_https(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://api.picsearch.example/")
    s = load_settings_from_env()
    assert s.cookie_secure is True
    assert s.callback_url("github") == "https://api.picsearch.example/auth/github/callback"


def test_bad_cookie_mode_fails_fast(monkeypatch):
    monkeypatch.setenv("COOKIE_MODE", "whatever")
    with pytest.raises(ValueError):
        load_settings_from_env()


def test_provider_needs_both_id_and_secret(monkeypatch):
    monkeypatch.setenv("GITHUB_CLIENT_ID", "id-only")
    monkeypatch.setenv("FACEBOOK_APP_ID", "fb")
    monkeypatch.setenv("FACEBOOK_APP_SECRET", "fbs")
    s = load_settings_from_env()
    assert s.github is None
    assert s.facebook.client_id == "fb"
