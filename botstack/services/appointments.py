"""
botstack.services.appointments - Appointment Store

Local copy of appointments booked through calendar tools. The external
calendar stays authoritative; calendar tools write here best-effort
(through ``non_critical``) so a storage failure never fails a booking.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from botstack.models.appointment import Appointment
from botstack.models.base import utcnow

logger = logging.getLogger(__name__)

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"


class AppointmentStore:
    """
    Persistence for booked appointments.

    Example:
        >>> store = AppointmentStore(session)
        >>> appointment = await store.record_booking(
        ...     bot_id=bot.id,
        ...     calendar_provider="google",
        ...     external_event_id="evt_123",
        ...     title="Intro call",
        ...     start_time=start,
        ...     end_time=end,
        ... )
        >>> await store.record_cancellation("google", "evt_123", reason="Conflict")
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def store_appointment(
        self,
        *,
        bot_id: str,
        calendar_provider: str,
        start_time: datetime,
        end_time: datetime,
        title: str | None = None,
        conversation_id: str | None = None,
        calendar_id: str | None = None,
        external_event_id: str | None = None,
        description: str | None = None,
        location: str | None = None,
        time_zone: str | None = None,
        organizer: dict[str, Any] | None = None,
        attendees: list[dict[str, Any]] | None = None,
        meeting_link: str | None = None,
        recurring_pattern: dict[str, Any] | None = None,
        status: str | None = None,
        source: str | None = None,
        properties: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Appointment:
        appointment = Appointment(
            bot_id=bot_id,
            conversation_id=conversation_id,
            calendar_provider=calendar_provider,
            calendar_id=calendar_id,
            external_event_id=external_event_id,
            title=title or "Appointment",
            description=description,
            location=location,
            start_time=start_time,
            end_time=end_time,
            time_zone=time_zone,
            organizer=organizer,
            attendees=attendees,
            meeting_link=meeting_link,
            recurring_pattern=recurring_pattern,
            status=status or STATUS_CONFIRMED,
            source=source or "chat",
            properties=properties,
            extra_metadata=metadata,
        )
        self.session.add(appointment)
        await self.session.commit()
        return appointment

    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        return await self.session.get(Appointment, appointment_id)

    async def find_by_external_id(self, external_event_id: str, calendar_provider: str) -> Appointment | None:
        result = await self.session.execute(
            select(Appointment)
            .where(
                Appointment.external_event_id == external_event_id,
                Appointment.calendar_provider == calendar_provider,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_by_bot(self, bot_id: str) -> list[Appointment]:
        """Appointments of a bot, newest first."""
        result = await self.session.execute(
            select(Appointment).where(Appointment.bot_id == bot_id).order_by(Appointment.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        appointment_id: str,
        status: str,
        properties: dict[str, Any] | None = None,
    ) -> Appointment | None:
        """Set the status, replacing properties when given."""
        appointment = await self.get_appointment(appointment_id)
        if appointment is None:
            return None
        appointment.status = status
        if properties is not None:
            appointment.properties = properties
        appointment.updated_at = utcnow()
        await self.session.commit()
        return appointment

    async def update_appointment(self, appointment_id: str, **fields: Any) -> Appointment | None:
        """
        Update appointment columns.

        ``metadata`` maps to the metadata column; None values are ignored.
        """
        appointment = await self.get_appointment(appointment_id)
        if appointment is None:
            return None
        if "metadata" in fields:
            fields["extra_metadata"] = fields.pop("metadata")
        for name, value in fields.items():
            if value is None:
                continue
            if not hasattr(Appointment, name):
                raise AttributeError(f"Appointment has no field {name!r}")
            setattr(appointment, name, value)
        appointment.updated_at = utcnow()
        await self.session.commit()
        return appointment

    # =========================================================================
    # Calendar tool hooks
    # =========================================================================
    # Each hook rolls back its own failure so the caller's session stays usable,
    # then re-raises for non_critical to log.

    async def record_booking(self, **fields: Any) -> Appointment:
        """Store a newly booked appointment."""
        try:
            return await self.store_appointment(**fields)
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def record_reschedule(
        self,
        calendar_provider: str,
        external_event_id: str,
        *,
        start_time: datetime,
        end_time: datetime,
        **fields: Any,
    ) -> Appointment:
        """
        Move a stored appointment, storing it if it was never recorded.

        Both paths flag the record as rescheduled; an existing record also
        keeps its previous start time in ``properties.originalStartTime``.
        ``fields`` must include bot_id (used only when storing).
        """
        try:
            rescheduled_at = utcnow().isoformat()
            properties = fields.pop("properties", None) or {}
            metadata = fields.pop("metadata", None) or {}

            existing = await self.find_by_external_id(external_event_id, calendar_provider)
            if existing is not None:
                fields.pop("bot_id", None)
                updated = await self.update_appointment(
                    existing.id,
                    start_time=start_time,
                    end_time=end_time,
                    properties={
                        **(existing.properties or {}),
                        **properties,
                        "rescheduled": True,
                        "originalStartTime": existing.start_time.isoformat(),
                    },
                    metadata={
                        **(existing.extra_metadata or {}),
                        **metadata,
                        "rescheduled": True,
                        "rescheduledAt": rescheduled_at,
                    },
                    **fields,
                )
                return updated or existing

            return await self.store_appointment(
                calendar_provider=calendar_provider,
                external_event_id=external_event_id,
                start_time=start_time,
                end_time=end_time,
                properties={**properties, "rescheduled": True},
                metadata={**metadata, "rescheduled": True, "rescheduledAt": rescheduled_at},
                **fields,
            )
        except SQLAlchemyError:
            await self.session.rollback()
            raise

    async def record_cancellation(
        self,
        calendar_provider: str,
        external_event_id: str,
        reason: str | None = None,
    ) -> Appointment | None:
        """Mark a stored appointment cancelled, keeping its properties."""
        try:
            existing = await self.find_by_external_id(external_event_id, calendar_provider)
            if existing is None:
                logger.debug(
                    f"No stored appointment for cancelled event {external_event_id}",
                    extra={"calendar_provider": calendar_provider},
                )
                return None
            properties = {
                **(existing.properties or {}),
                "cancelReason": reason or "No reason provided",
                "cancelledAt": utcnow().isoformat(),
            }
            return await self.update_status(existing.id, STATUS_CANCELLED, properties)
        except SQLAlchemyError:
            await self.session.rollback()
            raise
