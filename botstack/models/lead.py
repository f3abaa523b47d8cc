"""
botstack.models.lead - Lead Model

Contact details captured by the lead capture tool during a conversation.
"""

from typing import Any

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from botstack.models.base import IdentifiedModel, JSONType


class Lead(IdentifiedModel):
    """
    Captured lead.

    Example:
        >>> lead = Lead(bot_id=bot.id, name="Ann", phone="555-0100")
    """

    __tablename__ = "leads"

    bot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Bot that captured the lead",
    )

    conversation_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)

    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="chat",
        comment="Channel the lead came from",
    )

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="New",
        comment="Pipeline status",
    )

    trigger_keyword: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Keyword that triggered the capture",
    )

    properties: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Additional fields (message, website, budget, ...)",
    )

    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        name="metadata",
        comment="Capture context (user, organization, timestamps)",
    )
