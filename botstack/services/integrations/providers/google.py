"""
botstack.services.integrations.providers.google - Google OAuth Provider

OAuth 2.0 authorization code flow for Google Calendar access.

Reference:
- https://developers.google.com/identity/protocols/oauth2/web-server
"""

import logging
from typing import Any
from urllib.parse import urlencode

from botstack.services.integrations.providers.base import OAuthProvider

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
]


class GoogleProvider(OAuthProvider):
    """
    Google OAuth 2.0 provider.

    Example:
        >>> provider = GoogleProvider()
        >>> auth_url = provider.get_authorization_url(
        ...     client_id="12345.apps.googleusercontent.com",
        ...     redirect_uri="https://app.example.com/api/auth/callback/google",
        ...     scopes=CALENDAR_SCOPES,
        ...     state="random-state",
        ... )
    """

    NAME = "google"
    EXPIRY_FIELD = "expiry_date"

    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: list[str],
        state: str,
    ) -> str:
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(scopes),
            "state": state,
            "response_type": "code",
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Always show consent (ensures refresh token)
        }
        return f"{self.AUTHORIZATION_URL}?{urlencode(params)}"

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> dict[str, Any]:
        tokens = await self._post_token_request(
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            "exchange",
        )
        logger.info(
            "Google OAuth token exchange successful",
            extra={"has_refresh_token": "refresh_token" in tokens, "expires_in": tokens.get("expires_in")},
        )
        return tokens

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> dict[str, Any]:
        tokens = await self._post_token_request(
            {
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "refresh_token",
            },
            "refresh",
        )

        # Google doesn't always return a new refresh token
        if "refresh_token" not in tokens:
            tokens["refresh_token"] = refresh_token

        logger.info(
            "Google OAuth token refresh successful",
            extra={"expires_in": tokens.get("expires_in")},
        )
        return tokens

    def get_default_scopes(self) -> list[str]:
        return list(CALENDAR_SCOPES)
