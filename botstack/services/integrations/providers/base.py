"""
botstack.services.integrations.providers.base - OAuth Provider Protocol

Defines the interface that all OAuth providers must implement.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class OAuthProvider(ABC):
    """
    Abstract base class for OAuth provider implementations.

    Each provider also names the credential field holding the access token
    expiry (milliseconds since epoch), since stored payloads differ:
    Google credentials use ``expiry_date``, GoHighLevel uses ``expires_at``.

    Example:
        >>> class MyProvider(OAuthProvider):
        ...     def get_authorization_url(self, ...): ...
        ...     async def exchange_code(self, ...): ...
        ...     async def refresh_token(self, ...): ...
    """

    # Provider name as stored on credentials and tool integration types
    NAME: str = ""

    # Credential field holding the token expiry (epoch ms)
    EXPIRY_FIELD: str = "expires_at"

    TOKEN_URL: str = ""

    # Default timeout for HTTP requests
    TIMEOUT = 30.0

    @abstractmethod
    def get_authorization_url(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: list[str],
        state: str,
    ) -> str:
        """
        Generate OAuth authorization URL.

        Args:
            client_id: OAuth client ID
            redirect_uri: Callback URL after authorization
            scopes: List of OAuth scopes to request
            state: CSRF protection state parameter

        Returns:
            Authorization URL to redirect user to
        """
        ...

    @abstractmethod
    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> dict[str, Any]:
        """
        Exchange authorization code for tokens.

        Returns:
            Token response dictionary containing access_token, refresh_token
            (may be absent), expires_in and scope
        """
        ...

    @abstractmethod
    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> dict[str, Any]:
        """
        Refresh access token using refresh token.

        Returns:
            Token response dictionary (same format as exchange_code)

        Raises:
            httpx.HTTPStatusError: If the provider rejects the refresh
        """
        ...

    def get_default_scopes(self) -> list[str]:
        """
        Get default scopes for this provider.

        Returns:
            List of default OAuth scopes
        """
        return []

    async def _post_token_request(self, data: dict[str, str], action: str) -> dict[str, Any]:
        """POST a form-encoded token request, raising on non-200."""
        async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
            response = await client.post(self.TOKEN_URL, data=data)

            if response.status_code != 200:
                logger.error(
                    f"{self.NAME} token {action} failed: {response.status_code} {response.text}",
                    extra={"status_code": response.status_code, "provider": self.NAME},
                )
                response.raise_for_status()

            return response.json()
