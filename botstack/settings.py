"""
botstack.settings - Centralized Configuration

Single source of truth for botstack configuration.
Loads from .env files and environment variables using pydantic-settings.

Usage:
    >>> from botstack.settings import get_settings
    >>> settings = get_settings()
    >>> settings.database_url
    'postgresql+asyncpg://localhost/botstack_dev'
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# AES-256 key length; shorter secrets are treated as missing.
MIN_ENCRYPTION_KEY_BYTES = 32


class BotstackSettings(BaseSettings):
    """botstack configuration loaded from .env / environment variables.

    All BOTSTACK_* prefixed env vars are loaded automatically.
    Secrets shared with the rest of the platform use standard names via aliases.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BOTSTACK_",
        extra="ignore",
    )

    # -- Environment -----------------------------------------------------------
    env: str = "development"

    # -- Database --------------------------------------------------------------
    database_url: str = Field(
        default="postgresql+asyncpg://localhost/botstack_dev",
        alias="DATABASE_URL",
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Credential encryption -------------------------------------------------
    credential_encryption_key: str | None = Field(
        default=None,
        alias="CREDENTIAL_ENCRYPTION_KEY",
    )

    # -- OAuth clients (standard names via alias, no BOTSTACK_ prefix) ---------
    google_client_id: str | None = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: str | None = Field(default=None, alias="GOOGLE_CLIENT_SECRET")
    gohighlevel_client_id: str | None = Field(default=None, alias="GOHIGHLEVEL_CLIENT_ID")
    gohighlevel_client_secret: str | None = Field(
        default=None, alias="GOHIGHLEVEL_CLIENT_SECRET"
    )
    app_url: str = "http://localhost:3000"

    # -- Custom tools ----------------------------------------------------------
    custom_tool_user_agent: str = "ChatBot-CustomTool/1.0"
    custom_tool_default_timeout: int = Field(default=30, ge=1, le=300)

    # -- Helpers ---------------------------------------------------------------

    def has_encryption_key(self) -> bool:
        """Return True if a usable credential encryption key is configured."""
        return bool(self.credential_encryption_key) and (
            len(self.credential_encryption_key.encode("utf-8")) >= MIN_ENCRYPTION_KEY_BYTES
        )

    def oauth_client(self, provider: str) -> tuple[str | None, str | None]:
        """Return (client_id, client_secret) for a provider name."""
        if provider == "google":
            return self.google_client_id, self.google_client_secret
        if provider == "gohighlevel":
            return self.gohighlevel_client_id, self.gohighlevel_client_secret
        return None, None


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_settings() -> BotstackSettings:
    """Return the cached BotstackSettings singleton."""
    return BotstackSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()


def warn_insecure_settings(settings: BotstackSettings | None = None) -> bool:
    """Log a startup warning when credentials would be stored in cleartext.

    Returns:
        True if the configuration is secure, False if a warning was emitted.
    """
    settings = settings or get_settings()
    if settings.credential_encryption_key is None:
        logger.warning(
            "CREDENTIAL_ENCRYPTION_KEY is not set: third-party credentials will be "
            "stored and read in CLEARTEXT",
            extra={"env": settings.env},
        )
        return False
    if not settings.has_encryption_key():
        logger.warning(
            f"CREDENTIAL_ENCRYPTION_KEY is shorter than {MIN_ENCRYPTION_KEY_BYTES} bytes: "
            "third-party credentials will be stored and read in CLEARTEXT",
            extra={"env": settings.env},
        )
        return False
    return True
