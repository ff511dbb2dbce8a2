import pytest

from pulselink.config import Settings, get_settings, reset_settings
from pulselink.database import DEFAULT_DATABASE_URL, resolve_database_url


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ACCOUNT_ISSUER_URL", "https://issuer.example")
    monkeypatch.setenv("ACCOUNT_ISSUER_TIMEOUT", "2.5")
    monkeypatch.setenv("VIRTUAL_EMAIL_DOMAIN", "care.example.org")
    monkeypatch.setenv("DEV_MODE", "true")
    reset_settings()
    try:
        s = get_settings()
        assert s.account_issuer_url == "https://issuer.example"
        assert s.account_issuer_timeout == 2.5
        assert s.virtual_email_domain == "care.example.org"
        assert s.virtual_email_prefix == "senior_"
        assert s.dev_mode is True
        assert get_settings() is s
    finally:
        reset_settings()


def test_bad_timeout_falls_back(monkeypatch):
    monkeypatch.setenv("ACCOUNT_ISSUER_TIMEOUT", "soon")
    assert Settings.from_env().account_issuer_timeout == 10.0


def test_database_url_resolution(monkeypatch):
    assert resolve_database_url(Settings()) == DEFAULT_DATABASE_URL

    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    with pytest.raises(RuntimeError):
        resolve_database_url(Settings(database_url="sqlite+aiosqlite:///pl.db"))
    dev = Settings(database_url="sqlite+aiosqlite:///pl.db", dev_mode=True)
    assert resolve_database_url(dev) == "sqlite+aiosqlite:///pl.db"
