"""
botstack.services.credentials.store - Credential Store

Encrypted persistence of third-party credentials (OAuth tokens, API keys).

Features:
- Payloads encrypted at rest with a fresh IV on every write
- Transparent decryption on single-credential reads
- Provider lookups return still-encrypted rows (callers decrypt what they use)
- Reference-aware deletion that never leaves dangling credential ids
"""

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from botstack.models.credential import Credential, Integration
from botstack.models.tool import BotTool
from botstack.services.credentials.cipher import CredentialCipher, get_cipher

logger = logging.getLogger(__name__)


class CredentialStoreError(Exception):
    """Base exception for credential store errors."""


class CredentialNotFoundError(CredentialStoreError):
    """Raised when a credential id does not exist."""


class CredentialStore:
    """
    Store for encrypted third-party credentials.

    Example:
        >>> store = CredentialStore(session)
        >>> credential = await store.create_credential(
        ...     user_id=user.id,
        ...     provider="google",
        ...     credentials={"access_token": "ya29...", "refresh_token": "1//..."},
        ...     bot_id=bot.id,
        ... )
        >>> loaded = await store.get_credential(credential.id)
        >>> loaded.credentials["access_token"]
        'ya29...'
    """

    def __init__(self, session: AsyncSession, cipher: CredentialCipher | None = None) -> None:
        """
        Initialize credential store.

        Args:
            session: Database session
            cipher: Payload cipher (uses default if None)
        """
        self.session = session
        self.cipher = cipher or get_cipher()

    async def create_credential(
        self,
        user_id: str,
        provider: str,
        credentials: dict[str, Any],
        bot_id: str | None = None,
        name: str = "Default",
    ) -> Credential:
        """
        Encrypt and store a new credential.

        Returns:
            Created Credential (credentials field holds the stored envelope)
        """
        credential = Credential(
            user_id=user_id,
            bot_id=bot_id,
            provider=provider,
            name=name,
            credentials=self.cipher.encrypt(credentials),
        )
        self.session.add(credential)
        await self.session.commit()
        await self.session.refresh(credential)

        logger.info(
            f"Created {provider} credential {credential.id}",
            extra={
                "credential_id": credential.id,
                "provider": provider,
                "bot_id": bot_id,
                "encrypted": self.cipher.enabled,
            },
        )
        return credential

    async def update_credential(self, credential_id: str, credentials: dict[str, Any]) -> Credential:
        """
        Replace a credential payload, re-encrypting with a fresh IV.

        Raises:
            CredentialNotFoundError: If the credential does not exist
        """
        credential = await self.session.get(Credential, credential_id)
        if credential is None:
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")

        credential.credentials = self.cipher.encrypt(credentials)
        await self.session.commit()
        await self.session.refresh(credential)

        logger.info(
            f"Updated credential {credential_id}",
            extra={"credential_id": credential_id, "provider": credential.provider},
        )
        return credential

    async def get_credential(self, credential_id: str) -> Credential | None:
        """
        Get a credential with its payload decrypted.

        The returned object is detached from the session so the decrypted
        payload can never be flushed back over the stored envelope.

        Returns:
            Credential with decrypted ``credentials``, or None if not found
        """
        credential = await self.session.get(Credential, credential_id)
        if credential is None:
            return None

        self.session.expunge(credential)
        credential.credentials = self.decrypt_credentials(credential)
        return credential

    async def find_credentials_by_provider(
        self,
        user_id: str,
        provider: str,
        bot_id: str | None = None,
    ) -> list[Credential]:
        """
        List a user's credentials for a provider, most recently updated first.

        Payloads are left encrypted.
        """
        query = select(Credential).where(
            Credential.user_id == user_id,
            Credential.provider == provider,
        )
        if bot_id is not None:
            query = query.where(Credential.bot_id == bot_id)
        query = query.order_by(Credential.updated_at.desc())

        result = await self.session.execute(query)
        return list(result.scalars().all())

    def decrypt_credentials(self, credential: Credential) -> Any:
        """Decrypt a row's payload without touching the row."""
        return self.cipher.decrypt(credential.credentials)

    async def delete_credential(self, credential_id: str, bot_tool_id: str | None = None) -> bool:
        """
        Detach a credential from a bot tool and delete it once unreferenced.

        Policy: the given bot tool's reference is cleared. If any other bot
        tool or integration still references the credential the row is kept;
        otherwise it is deleted.

        Args:
            credential_id: Credential to delete
            bot_tool_id: Bot tool whose reference is being removed

        Returns:
            True if the credential row was deleted, False if it was kept

        Raises:
            CredentialNotFoundError: If the credential does not exist
        """
        credential = await self.session.get(Credential, credential_id)
        if credential is None:
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")

        if bot_tool_id is not None:
            await self.session.execute(
                update(BotTool)
                .where(BotTool.id == bot_tool_id, BotTool.credential_id == credential_id)
                .values(credential_id=None)
            )

        remaining = await self._count_references(credential_id)
        if remaining:
            await self.session.commit()
            logger.info(
                f"Detached credential {credential_id}, {remaining} reference(s) remain",
                extra={"credential_id": credential_id, "bot_tool_id": bot_tool_id},
            )
            return False

        await self.session.delete(credential)
        await self.session.commit()

        logger.info(
            f"Deleted credential {credential_id}",
            extra={"credential_id": credential_id, "bot_tool_id": bot_tool_id},
        )
        return True

    async def _count_references(self, credential_id: str) -> int:
        """Count bot tools and integrations still pointing at a credential."""
        bot_tools = await self.session.scalar(
            select(func.count()).select_from(BotTool).where(BotTool.credential_id == credential_id)
        )
        integrations = await self.session.scalar(
            select(func.count())
            .select_from(Integration)
            .where(Integration.credential_id == credential_id)
        )
        return (bot_tools or 0) + (integrations or 0)
