"""
botstack.models.credential - Credential & Integration Models

- Credential: Encrypted third-party auth payload scoped to a user (and optionally a bot)
- Integration: Bot-level provider connection; a second holder of credential references

Credential payloads are stored as an application-level encrypted envelope
(see botstack.services.credentials.cipher). Rows written before encryption
was configured hold the cleartext payload and are passed through on read.
"""

from typing import Any

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from botstack.models.base import IdentifiedModel, JSONType


class Credential(IdentifiedModel):
    """
    Stored third-party credential.

    Example:
        >>> credential = Credential(
        ...     user_id=user_id,
        ...     bot_id=bot.id,
        ...     provider="google",
        ...     credentials={"__encrypted": True, "iv": "...", "data": "..."},
        ... )
    """

    __tablename__ = "credentials"

    user_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="User who connected the credential",
    )

    bot_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Optional bot scope",
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="Provider (google, gohighlevel, ...)",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="Default",
        comment="Human-readable label",
    )

    credentials: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Encrypted envelope {__encrypted, iv, data} or legacy cleartext",
    )


class Integration(IdentifiedModel):
    """
    Bot-level connection to an external provider (e.g. a GoHighLevel location).

    Shares credentials with installed tools through ``credential_id``.
    """

    __tablename__ = "integrations"

    bot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Bot the integration belongs to",
    )

    provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Provider (google, gohighlevel, ...)",
    )

    config: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Provider specific settings (location id, channel, ...)",
    )

    credential_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("credentials.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Linked credential",
    )
