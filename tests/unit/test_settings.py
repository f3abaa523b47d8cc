"""
Unit tests for botstack.settings - Centralized Configuration

Tests default values, environment variable overrides, encryption key
checks, OAuth client lookup and the insecure-configuration warning.
"""

import logging

import pytest

from botstack.settings import (
    BotstackSettings,
    clear_settings_cache,
    get_settings,
    warn_insecure_settings,
)

_ALIAS_KEYS = [
    "DATABASE_URL",
    "CREDENTIAL_ENCRYPTION_KEY",
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOHIGHLEVEL_CLIENT_ID",
    "GOHIGHLEVEL_CLIENT_SECRET",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Strip alias env vars so the real environment doesn't leak in."""
    for key in _ALIAS_KEYS:
        monkeypatch.delenv(key, raising=False)


# ============================================================================
# Default Values
# ============================================================================


class TestDefaults:
    def test_default_env(self):
        settings = BotstackSettings(_env_file=None)
        assert settings.env == "development"

    def test_default_database_url(self):
        settings = BotstackSettings(_env_file=None)
        assert settings.database_url == "postgresql+asyncpg://localhost/botstack_dev"

    def test_no_encryption_key_by_default(self):
        settings = BotstackSettings(_env_file=None)
        assert settings.credential_encryption_key is None
        assert settings.has_encryption_key() is False

    def test_custom_tool_defaults(self):
        settings = BotstackSettings(_env_file=None)
        assert settings.custom_tool_user_agent == "ChatBot-CustomTool/1.0"
        assert settings.custom_tool_default_timeout == 30


# ============================================================================
# Environment Overrides
# ============================================================================


class TestEnvironment:
    def test_prefixed_variable(self, monkeypatch):
        monkeypatch.setenv("BOTSTACK_ENV", "production")
        settings = BotstackSettings(_env_file=None)
        assert settings.env == "production"

    def test_aliased_database_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///x.db")
        settings = BotstackSettings(_env_file=None)
        assert settings.database_url == "sqlite+aiosqlite:///x.db"

    def test_short_key_is_not_usable(self, monkeypatch):
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "too-short")
        settings = BotstackSettings(_env_file=None)
        assert settings.has_encryption_key() is False

    def test_32_byte_key_is_usable(self, monkeypatch):
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "k" * 32)
        settings = BotstackSettings(_env_file=None)
        assert settings.has_encryption_key() is True

    def test_oauth_client_lookup(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "gid")
        monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "gsecret")
        settings = BotstackSettings(_env_file=None)
        assert settings.oauth_client("google") == ("gid", "gsecret")
        assert settings.oauth_client("gohighlevel") == (None, None)
        assert settings.oauth_client("unknown") == (None, None)


# ============================================================================
# Singleton & Warnings
# ============================================================================


class TestSingleton:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first


class TestInsecureWarning:
    def test_warns_without_key(self, caplog):
        settings = BotstackSettings(_env_file=None)
        with caplog.at_level(logging.WARNING, logger="botstack.settings"):
            assert warn_insecure_settings(settings) is False
        assert "CLEARTEXT" in caplog.text

    def test_warns_with_short_key(self, monkeypatch, caplog):
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "short")
        settings = BotstackSettings(_env_file=None)
        with caplog.at_level(logging.WARNING, logger="botstack.settings"):
            assert warn_insecure_settings(settings) is False
        assert "shorter than 32 bytes" in caplog.text

    def test_secure_key(self, monkeypatch):
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", "k" * 32)
        assert warn_insecure_settings(BotstackSettings(_env_file=None)) is True
