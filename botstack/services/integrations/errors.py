"""
botstack.services.integrations.errors - Integration Exceptions
"""

from typing import Any


class IntegrationError(Exception):
    """Base exception for third-party integration errors."""


class OAuthRefreshError(IntegrationError):
    """Access token could not be refreshed (no refresh token, revoked, provider down)."""


class ProviderAPIError(IntegrationError):
    """
    Non-success response from a provider REST API.

    Attributes:
        status_code: HTTP status returned by the provider
        body: Parsed response body (JSON if possible, else text)
    """

    def __init__(self, message: str, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
