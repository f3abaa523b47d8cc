"""
botstack.services.integrations.providers - OAuth Provider Implementations

- GoogleProvider: Google OAuth 2.0 (Calendar)
- GoHighLevelProvider: GoHighLevel / LeadConnector OAuth 2.0 (Calendars)

Usage:
    >>> from botstack.services.integrations.providers import get_provider
    >>> provider = get_provider("google")
    >>> tokens = await provider.refresh_token(refresh_token, client_id, client_secret)
"""

from botstack.services.integrations.providers.base import OAuthProvider
from botstack.services.integrations.providers.gohighlevel import GoHighLevelProvider
from botstack.services.integrations.providers.google import GoogleProvider

# Provider registry, keyed by credential provider / tool integration type
_PROVIDERS: dict[str, type[OAuthProvider]] = {
    "google": GoogleProvider,
    "gohighlevel": GoHighLevelProvider,
}


def get_provider(provider_name: str) -> OAuthProvider:
    """
    Get an OAuth provider instance by name.

    Raises:
        ValueError: If provider is not supported
    """
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown provider: {provider_name}. Supported providers: {list(_PROVIDERS.keys())}"
        )

    return _PROVIDERS[provider_name]()


__all__ = [
    "GoHighLevelProvider",
    "GoogleProvider",
    "OAuthProvider",
    "get_provider",
]
