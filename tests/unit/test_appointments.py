"""
Unit tests for botstack.services.appointments - Appointment Store

Tests cover:
- Storing and looking up appointments
- Booking, reschedule and cancellation hooks
- Rollback on database errors
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from botstack.services.appointments import AppointmentStore

START = datetime(2030, 1, 7, 10, 0, tzinfo=UTC)
END = datetime(2030, 1, 7, 10, 30, tzinfo=UTC)


async def _book(store, bot, event_id="evt_1", **fields):
    return await store.record_booking(
        bot_id=bot.id,
        calendar_provider="google",
        external_event_id=event_id,
        title="Intro call",
        start_time=START,
        end_time=END,
        **fields,
    )


class TestAppointmentStore:
    """Test basic persistence."""

    @pytest.mark.asyncio
    async def test_store_defaults(self, session, bot):
        store = AppointmentStore(session)

        appointment = await store.store_appointment(
            bot_id=bot.id, calendar_provider="google", start_time=START, end_time=END
        )

        assert appointment.title == "Appointment"
        assert appointment.status == "confirmed"
        assert appointment.source == "chat"

    @pytest.mark.asyncio
    async def test_find_by_external_id_is_provider_scoped(self, session, bot):
        store = AppointmentStore(session)
        await _book(store, bot)

        assert await store.find_by_external_id("evt_1", "google") is not None
        assert await store.find_by_external_id("evt_1", "gohighlevel") is None

    @pytest.mark.asyncio
    async def test_list_by_bot(self, session, bot):
        store = AppointmentStore(session)
        await _book(store, bot, "evt_1")
        await _book(store, bot, "evt_2")

        assert len(await store.list_by_bot(bot.id)) == 2
        assert await store.list_by_bot("other") == []

    @pytest.mark.asyncio
    async def test_update_appointment_maps_metadata(self, session, bot):
        store = AppointmentStore(session)
        appointment = await _book(store, bot)

        updated = await store.update_appointment(appointment.id, title="Renamed", metadata={"k": "v"}, location=None)

        assert updated.title == "Renamed"
        assert updated.extra_metadata == {"k": "v"}

    @pytest.mark.asyncio
    async def test_update_appointment_rejects_unknown_fields(self, session, bot):
        store = AppointmentStore(session)
        appointment = await _book(store, bot)

        with pytest.raises(AttributeError):
            await store.update_appointment(appointment.id, colour="red")

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, session):
        store = AppointmentStore(session)

        assert await store.update_status("missing", "cancelled") is None
        assert await store.update_appointment("missing", title="x") is None


class TestCalendarHooks:
    """Test the hooks called by calendar tools."""

    @pytest.mark.asyncio
    async def test_reschedule_existing_keeps_original_start(self, session, bot):
        store = AppointmentStore(session)
        await _book(store, bot, properties={"note": "keep"})
        new_start = datetime(2030, 1, 8, 11, 0, tzinfo=UTC)

        appointment = await store.record_reschedule(
            "google",
            "evt_1",
            start_time=new_start,
            end_time=datetime(2030, 1, 8, 11, 30, tzinfo=UTC),
            bot_id=bot.id,
        )

        assert appointment.start_time == new_start
        assert appointment.properties["note"] == "keep"
        assert appointment.properties["rescheduled"] is True
        assert appointment.properties["originalStartTime"].startswith("2030-01-07T10:00")
        assert appointment.extra_metadata["rescheduled"] is True
        assert "rescheduledAt" in appointment.extra_metadata

    @pytest.mark.asyncio
    async def test_reschedule_unknown_event_stores_it(self, session, bot):
        store = AppointmentStore(session)

        appointment = await store.record_reschedule(
            "google", "evt_new", start_time=START, end_time=END, bot_id=bot.id, title="Moved"
        )

        assert appointment.external_event_id == "evt_new"
        assert appointment.title == "Moved"
        assert appointment.properties == {"rescheduled": True}

    @pytest.mark.asyncio
    async def test_cancellation(self, session, bot):
        store = AppointmentStore(session)
        await _book(store, bot, properties={"note": "keep"})

        appointment = await store.record_cancellation("google", "evt_1", reason="Conflict")

        assert appointment.status == "cancelled"
        assert appointment.properties["note"] == "keep"
        assert appointment.properties["cancelReason"] == "Conflict"
        assert "cancelledAt" in appointment.properties

    @pytest.mark.asyncio
    async def test_cancellation_default_reason(self, session, bot):
        store = AppointmentStore(session)
        await _book(store, bot)

        appointment = await store.record_cancellation("google", "evt_1")

        assert appointment.properties["cancelReason"] == "No reason provided"

    @pytest.mark.asyncio
    async def test_cancellation_of_unknown_event(self, session):
        assert await AppointmentStore(session).record_cancellation("google", "nope") is None

    @pytest.mark.asyncio
    async def test_booking_failure_rolls_back(self, session, bot):
        store = AppointmentStore(session)
        error = OperationalError("INSERT", {}, Exception("disk full"))

        with (
            patch.object(store, "store_appointment", AsyncMock(side_effect=error)),
            patch.object(session, "rollback", AsyncMock()) as rollback,
            pytest.raises(OperationalError),
        ):
            await _book(store, bot)

        rollback.assert_awaited_once()
