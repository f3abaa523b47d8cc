"""
botstack.services.credentials - Credential Store

Encrypted storage of per-user / per-bot third-party credentials.
"""

from botstack.services.credentials.cipher import (
    CredentialCipher,
    get_cipher,
    is_encrypted_envelope,
    set_cipher,
)
from botstack.services.credentials.store import (
    CredentialNotFoundError,
    CredentialStore,
    CredentialStoreError,
)

__all__ = [
    "CredentialCipher",
    "CredentialNotFoundError",
    "CredentialStore",
    "CredentialStoreError",
    "get_cipher",
    "is_encrypted_envelope",
    "set_cipher",
]
