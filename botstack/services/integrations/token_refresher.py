"""
botstack.services.integrations.token_refresher - OAuth Token Refresh

Keeps calendar credentials usable: refreshes the access token when it
expires within the buffer window and writes rotated tokens back through
the credential store (re-encrypted with a fresh IV).
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from botstack.core.tools.base import ToolContext
from botstack.services.credentials.store import CredentialStore
from botstack.services.integrations.errors import OAuthRefreshError
from botstack.services.integrations.providers import OAuthProvider, get_provider
from botstack.settings import BotstackSettings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_MINUTES = 5


def parse_expiry(value: Any) -> datetime | None:
    """
    Parse a stored token expiry.

    Accepts epoch milliseconds (int, float or numeric string) and ISO 8601
    strings. Returns None when the expiry is missing or unreadable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        if value.isdigit():
            return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


class TokenRefresher:
    """
    Refreshes expiring OAuth tokens for one provider.

    Example:
        >>> refresher = TokenRefresher(CredentialStore(session), get_provider("google"))
        >>> credentials = await refresher.refresh_if_needed(credential_id, credentials)
        >>> credentials["access_token"]  # valid for at least the buffer window
    """

    def __init__(
        self,
        store: CredentialStore,
        provider: OAuthProvider,
        settings: BotstackSettings | None = None,
        buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    ) -> None:
        self.store = store
        self.provider = provider
        self.settings = settings or get_settings()
        self.buffer_minutes = buffer_minutes

    def needs_refresh(self, credentials: dict[str, Any], now: datetime | None = None) -> bool:
        expires_at = parse_expiry(credentials.get(self.provider.EXPIRY_FIELD))
        if expires_at is None:
            return False
        threshold = (now or datetime.now(UTC)) + timedelta(minutes=self.buffer_minutes)
        return expires_at <= threshold

    async def refresh_if_needed(
        self,
        credential_id: str | None,
        credentials: dict[str, Any],
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Refresh the access token if it expires within the buffer window.

        Returns:
            Credentials (refreshed and persisted if needed)

        Raises:
            OAuthRefreshError: If a needed refresh cannot be performed
        """
        if not self.needs_refresh(credentials, now):
            return credentials

        refresh_token = credentials.get("refresh_token")
        if not refresh_token:
            raise OAuthRefreshError(f"No {self.provider.NAME} refresh token available")

        client_id, client_secret = self.settings.oauth_client(self.provider.NAME)
        if not client_id or not client_secret:
            raise OAuthRefreshError(f"{self.provider.NAME} OAuth client is not configured")

        logger.info(
            f"Refreshing {self.provider.NAME} token for credential {credential_id}",
            extra={"credential_id": credential_id, "provider": self.provider.NAME},
        )

        try:
            tokens = await self.provider.refresh_token(
                refresh_token=refresh_token,
                client_id=client_id,
                client_secret=client_secret,
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to refresh {self.provider.NAME} token for credential {credential_id}: {e}",
                extra={"credential_id": credential_id},
                exc_info=True,
            )
            raise OAuthRefreshError(f"Token refresh failed: {e}") from e

        refreshed = {**credentials, **tokens}
        if not tokens.get("refresh_token"):
            refreshed["refresh_token"] = refresh_token
        expires_in = tokens.get("expires_in", 3600)
        expires_at = (now or datetime.now(UTC)) + timedelta(seconds=expires_in)
        refreshed[self.provider.EXPIRY_FIELD] = int(expires_at.timestamp() * 1000)

        if credential_id:
            await self.store.update_credential(credential_id, refreshed)
        else:
            logger.warning(
                f"Refreshed {self.provider.NAME} token without a credential id; not persisted",
                extra={"provider": self.provider.NAME},
            )

        return refreshed


async def ensure_fresh_credentials(context: ToolContext, provider_name: str) -> dict[str, Any]:
    """
    Return the call's credentials with a usable access token.

    Refreshed tokens are persisted and also set on the context so later
    calls in the same tool body see them.

    Raises:
        OAuthRefreshError: If credentials are missing or cannot be refreshed
    """
    if not context.credentials:
        raise OAuthRefreshError(f"No {provider_name} credentials available")
    if context.session is None:
        return context.credentials

    refresher = TokenRefresher(CredentialStore(context.session, context.cipher), get_provider(provider_name))
    credentials = await refresher.refresh_if_needed(context.credential_id, context.credentials)
    context.credentials = credentials
    return credentials
