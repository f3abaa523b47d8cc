"""
botstack.models.bot - Bot & Conversation Models

The slice of the bot/conversation schema that the tool subsystem touches:
- Bot: Owner of installed tools, credentials, leads and appointments
- Conversation: Chat thread that a tool may pause
"""

from typing import Any

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column

from botstack.models.base import IdentifiedModel, JSONType


class Bot(IdentifiedModel):
    """
    A conversational bot owned by a user inside an organization.

    Example:
        >>> bot = Bot(user_id=user_id, organization_id=org_id, name="Front desk")
    """

    __tablename__ = "bots"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Display name",
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
        comment="Owning user",
    )

    organization_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        comment="Owning organization",
    )


class Conversation(IdentifiedModel):
    """
    A conversation between a bot and an end user.

    ``is_paused`` stops the bot from answering until a human resumes it.
    """

    __tablename__ = "conversations"

    bot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Bot handling this conversation",
    )

    is_paused: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="Whether automated replies are paused",
    )

    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        name="metadata",
        comment="Pause bookkeeping and channel details",
    )
