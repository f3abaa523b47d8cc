"""
botstack.services.integrations - Third-Party OAuth Integrations

OAuth providers for calendar integrations and token refresh for stored
credentials.
"""

from botstack.services.integrations.errors import IntegrationError, OAuthRefreshError, ProviderAPIError
from botstack.services.integrations.providers import (
    GoHighLevelProvider,
    GoogleProvider,
    OAuthProvider,
    get_provider,
)
from botstack.services.integrations.token_refresher import (
    TokenRefresher,
    ensure_fresh_credentials,
    parse_expiry,
)

__all__ = [
    "GoHighLevelProvider",
    "GoogleProvider",
    "IntegrationError",
    "OAuthProvider",
    "OAuthRefreshError",
    "ProviderAPIError",
    "TokenRefresher",
    "ensure_fresh_credentials",
    "get_provider",
    "parse_expiry",
]
