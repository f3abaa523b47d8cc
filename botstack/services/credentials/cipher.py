"""
botstack.services.credentials.cipher - Credential Payload Encryption

AES-256-CBC encryption of credential payloads into a JSON-storable envelope:

    {"__encrypted": true, "iv": "<hex>", "data": "<hex>"}

Security:
- Fresh random 16-byte IV per encryption (IVs are never reused)
- Key is the configured secret's UTF-8 bytes cut to 32 bytes
- No credential content is logged

Compatibility:
- Payloads without the ``__encrypted`` marker are legacy cleartext rows and
  are returned unchanged
- A payload that fails to decrypt is returned as the raw envelope so callers
  can detect it (``is_encrypted_envelope``) instead of crashing
- Without a usable key, payloads are stored and read in cleartext
"""

import json
import logging
import os
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from botstack.settings import MIN_ENCRYPTION_KEY_BYTES, get_settings

logger = logging.getLogger(__name__)

ENCRYPTED_MARKER = "__encrypted"
IV_BYTES = 16
KEY_BYTES = 32


def derive_key(secret: str) -> bytes:
    """Turn the configured secret into a 32-byte AES key."""
    return secret.encode("utf-8")[:KEY_BYTES].ljust(KEY_BYTES, b"\0")


def is_encrypted_envelope(payload: Any) -> bool:
    """Check whether a stored payload is an encrypted envelope."""
    return isinstance(payload, dict) and payload.get(ENCRYPTED_MARKER) is True


class CredentialCipher:
    """
    Encrypts and decrypts credential payloads.

    Example:
        >>> cipher = CredentialCipher("0123456789abcdef0123456789abcdef")
        >>> envelope = cipher.encrypt({"access_token": "ya29..."})
        >>> cipher.decrypt(envelope)
        {'access_token': 'ya29...'}
    """

    def __init__(self, secret: str | None) -> None:
        """
        Initialize cipher.

        Args:
            secret: Encryption secret; None or shorter than 32 bytes disables
                encryption (cleartext mode, with a warning on every use)
        """
        if secret and len(secret.encode("utf-8")) >= MIN_ENCRYPTION_KEY_BYTES:
            self._key: bytes | None = derive_key(secret)
        else:
            self._key = None

    @property
    def enabled(self) -> bool:
        """Whether payloads are actually encrypted."""
        return self._key is not None

    def encrypt(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Encrypt a credential payload.

        Args:
            payload: JSON-serializable credential data

        Returns:
            Encrypted envelope, or the payload itself in cleartext mode
        """
        if self._key is None:
            logger.warning("Credential encryption key missing or too short, storing cleartext")
            return payload

        iv = os.urandom(IV_BYTES)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        plaintext = padder.update(json.dumps(payload).encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()

        return {ENCRYPTED_MARKER: True, "iv": iv.hex(), "data": ciphertext.hex()}

    def decrypt(self, stored: Any) -> Any:
        """
        Decrypt a stored credential payload.

        Args:
            stored: Value from the credentials column

        Returns:
            Decrypted payload; legacy cleartext unchanged; the raw envelope
            if decryption is impossible
        """
        if not is_encrypted_envelope(stored):
            return stored

        if self._key is None:
            logger.warning("Credential encryption key missing or too short, cannot decrypt")
            return stored

        try:
            iv = bytes.fromhex(stored["iv"])
            ciphertext = bytes.fromhex(stored["data"])

            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()

            return json.loads(plaintext.decode("utf-8"))

        except (KeyError, TypeError, ValueError) as e:
            # ValueError covers bad hex, bad padding, bad UTF-8 and bad JSON
            logger.error(
                f"Failed to decrypt credential payload: {type(e).__name__}",
                extra={"iv_present": "iv" in stored},
            )
            return stored


# Default instance (can be replaced for testing)
_default_cipher: CredentialCipher | None = None


def get_cipher() -> CredentialCipher:
    """
    Get the default cipher, keyed from settings.

    Returns:
        CredentialCipher instance
    """
    global _default_cipher  # noqa: PLW0603
    if _default_cipher is None:
        _default_cipher = CredentialCipher(get_settings().credential_encryption_key)
    return _default_cipher


def set_cipher(cipher: CredentialCipher | None) -> None:
    """
    Set the default cipher (for testing).

    Args:
        cipher: CredentialCipher instance or None to reset
    """
    global _default_cipher  # noqa: PLW0603
    _default_cipher = cipher
