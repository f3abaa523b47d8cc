"""
botstack.services.integrations.providers.gohighlevel - GoHighLevel OAuth Provider

OAuth 2.0 for GoHighLevel (LeadConnector) sub-accounts. Tokens are requested
as Location tokens so calendar calls are scoped to a single location.
"""

import logging
from typing import Any
from urllib.parse import urlencode

from botstack.services.integrations.providers.base import OAuthProvider

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = [
    "calendars.readonly",
    "calendars.write",
    "calendars/events.readonly",
    "calendars/events.write",
    "contacts.readonly",
    "contacts.write",
    "locations.readonly",
]


class GoHighLevelProvider(OAuthProvider):
    """GoHighLevel OAuth 2.0 provider."""

    NAME = "gohighlevel"
    EXPIRY_FIELD = "expires_at"

    AUTHORIZATION_URL = "https://marketplace.gohighlevel.com/oauth/chooselocation"
    TOKEN_URL = "https://services.leadconnectorhq.com/oauth/token"

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
                "user_type": "Location",
            },
            "exchange",
        )
        logger.info(
            "GoHighLevel OAuth token exchange successful",
            extra={"location_id": tokens.get("locationId"), "expires_in": tokens.get("expires_in")},
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
                "user_type": "Location",
            },
            "refresh",
        )
        logger.info(
            "GoHighLevel OAuth token refresh successful",
            extra={"location_id": tokens.get("locationId"), "expires_in": tokens.get("expires_in")},
        )
        return tokens

    def get_default_scopes(self) -> list[str]:
        return list(CALENDAR_SCOPES)
