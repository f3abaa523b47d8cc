"""
botstack.models.appointment - Appointment Model

Local, denormalized copy of appointments booked through calendar tools.
The external calendar is authoritative; this table backs listing and reporting.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from botstack.models.base import IdentifiedModel, JSONType


class Appointment(IdentifiedModel):
    """
    Appointment booked by a bot.

    Example:
        >>> appointment = Appointment(
        ...     bot_id=bot.id,
        ...     calendar_provider="google",
        ...     external_event_id="evt_123",
        ...     title="Intro call",
        ...     start_time=start,
        ...     end_time=end,
        ... )
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_external", "external_event_id", "calendar_provider"),
    )

    bot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Bot that booked the appointment",
    )

    conversation_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        comment="Conversation the booking came from",
    )

    calendar_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    external_event_id: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Event id at the calendar provider",
    )

    calendar_provider: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Provider (google, gohighlevel)",
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="confirmed",
        comment="confirmed, cancelled, ...",
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    organizer: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    attendees: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    recurring_pattern: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="chat",
        comment="Where the booking originated",
    )

    properties: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Provider specific details (event id, buffer, reschedule info)",
    )

    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        name="metadata",
        comment="Bookkeeping (source tool, timestamps)",
    )
