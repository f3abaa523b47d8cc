"""
botstack.tools.calendar.google - Google Calendar Tool

Book, reschedule, cancel and list appointments on a Google Calendar, and
list free slots computed from the bot's weekly availability.

Buffer time is folded into the Google event (the event ends after the
buffer) and the real meeting end is noted in the event description, so
listings can recover the meeting duration.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from pydantic import BaseModel, Field

from botstack.core.tools.base import (
    CamelModel,
    ExecutionResult,
    ToolAuth,
    ToolContext,
    ToolDefinition,
    ToolFunction,
    ToolType,
    error_result,
)
from botstack.services.integrations.errors import OAuthRefreshError, ProviderAPIError
from botstack.services.integrations.providers.google import CALENDAR_SCOPES
from botstack.services.integrations.token_refresher import ensure_fresh_credentials

from .availability import (
    AppointmentValidationError,
    CalendarConfig,
    date_range,
    format_clock_12h,
    format_long_date,
    generate_available_slots,
    get_zone,
    parse_datetime,
    validate_appointment_time,
)
from .base import failure, persist_appointment, raise_for_provider_error

logger = logging.getLogger(__name__)

TOOL_ID = "google-calendar"
PROVIDER = "google"
DEFAULT_TIME_ZONE = "Asia/Kolkata"
DEFAULT_CALENDAR_ID = "primary"

_BUFFER_NOTE = re.compile(r"\n\nActual meeting end time:.+?minutes after meeting", re.DOTALL)
_BUFFER_MINUTES = re.compile(r"Buffer time: (\d+) minutes")


# =============================================================================
# REST client
# =============================================================================


class GoogleCalendarClient:
    """
    Minimal Google Calendar v3 REST client.

    Example:
        >>> client = GoogleCalendarClient(credentials["access_token"])
        >>> event = await client.insert_event("primary", {"summary": "Intro call", ...})
    """

    BASE_URL = "https://www.googleapis.com/calendar/v3"

    # Default timeout for HTTP requests
    TIMEOUT = 30.0

    def __init__(self, access_token: str, http_client: httpx.AsyncClient | None = None) -> None:
        self.access_token = access_token
        self.http_client = http_client

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.BASE_URL}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        if self.http_client is not None:
            response = await self.http_client.request(method, url, headers=headers, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.request(method, url, headers=headers, **kwargs)

        raise_for_provider_error(response, "Google Calendar")
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _events_path(calendar_id: str, event_id: str | None = None) -> str:
        path = f"/calendars/{calendar_id}/events"
        return f"{path}/{event_id}" if event_id else path

    async def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if max_results is not None:
            params["maxResults"] = max_results
        data = await self._request("GET", self._events_path(calendar_id), params=params)
        return data.get("items") or []

    async def get_event(self, calendar_id: str, event_id: str) -> dict[str, Any]:
        return await self._request("GET", self._events_path(calendar_id, event_id))

    async def insert_event(self, calendar_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._events_path(calendar_id), json=event)

    async def update_event(self, calendar_id: str, event_id: str, event: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", self._events_path(calendar_id, event_id), json=event)

    async def delete_event(self, calendar_id: str, event_id: str, send_updates: str = "all") -> None:
        await self._request(
            "DELETE",
            self._events_path(calendar_id, event_id),
            params={"sendUpdates": send_updates},
        )


async def get_calendar_client(context: ToolContext) -> GoogleCalendarClient:
    """Build a client from the call's credentials, refreshing the token if needed."""
    credentials = await ensure_fresh_credentials(context, PROVIDER)
    access_token = credentials.get("access_token")
    if not access_token:
        raise OAuthRefreshError("Google credentials have no access token")
    return GoogleCalendarClient(access_token)


# =============================================================================
# Schemas
# =============================================================================


class GoogleCredentials(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    expiry_date: int
    scope: str | None = None


class BookAppointmentParams(CamelModel):
    title: str = Field(description="Title of the appointment")
    description: str = Field(default="", description="Description of the appointment")
    start_time: str | None = Field(default=None, description="Start time (ISO string format)")
    user_time_zone: str | None = Field(default=None, description="Time zone of the user (IANA name)")


class RescheduleAppointmentParams(CamelModel):
    appointment_id: str = Field(description="ID of the appointment to reschedule")
    start_time: str | None = Field(default=None, description="New start time (ISO string format)")
    user_time_zone: str | None = Field(default=None, description="Time zone of the user (IANA name)")


class CancelAppointmentParams(CamelModel):
    appointment_id: str = Field(description="ID of the appointment to cancel")
    reason: str | None = Field(default=None, description="Reason for cancellation")


class ListAppointmentsParams(CamelModel):
    start_date: str | None = Field(default=None, description="Start date for the range (YYYY-MM-DD)")
    end_date: str | None = Field(default=None, description="End date for the range (YYYY-MM-DD)")
    max_results: int = Field(default=10, ge=1, le=250, description="Maximum number of results to return")


class ListAvailableSlotsParams(CamelModel):
    start_date: str | None = Field(default=None, description="Start date for the range (YYYY-MM-DD)")
    end_date: str | None = Field(default=None, description="End date for the range (YYYY-MM-DD)")
    interval: int = Field(
        default=30, ge=1, description="Interval between slots in minutes (e.g., 30 min slots)"
    )


# =============================================================================
# Helpers
# =============================================================================


def _calendar_config(context: ToolContext) -> CalendarConfig:
    config = CalendarConfig.model_validate(context.config or {})
    # Validation and slot generation run in the calendar's own time zone
    if not config.time_zone:
        config = config.model_copy(update={"time_zone": DEFAULT_TIME_ZONE})
    return config


def _event_times(
    start: datetime,
    config: CalendarConfig,
    time_zone: str,
) -> tuple[datetime, dict[str, Any], dict[str, Any]]:
    """Meeting end plus the Google start/end payloads (end includes the buffer)."""
    meeting_end = start + timedelta(minutes=config.appointment_duration)
    event_end = meeting_end + timedelta(minutes=config.buffer_time_between_meetings)
    return (
        meeting_end,
        {"dateTime": start.isoformat(), "timeZone": time_zone},
        {"dateTime": event_end.isoformat(), "timeZone": time_zone},
    )


def _with_buffer_note(description: str, meeting_end: datetime, buffer_minutes: int) -> str:
    if buffer_minutes <= 0:
        return description
    return (
        f"{description}\n\nActual meeting end time: {format_clock_12h(meeting_end)}\n"
        f"Buffer time: {buffer_minutes} minutes after meeting"
    )


def _appointment_details(
    event: dict[str, Any], start: datetime, config: CalendarConfig, calendar_id: str, title: str
) -> dict[str, Any]:
    return {
        "id": event.get("id"),
        "title": event.get("summary") or title,
        "date": start.strftime("%Y-%m-%d"),
        "time": start.strftime("%H:%M"),
        "duration": config.appointment_duration,
        "bufferTime": config.buffer_time_between_meetings,
        "link": event.get("htmlLink") or "",
        "calendarId": calendar_id,
    }


def _organizer(event: dict[str, Any]) -> dict[str, Any] | None:
    organizer = event.get("organizer") or {}
    if not organizer.get("email"):
        return None
    return {"email": organizer["email"], "name": organizer.get("displayName") or ""}


def _attendees(event: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            "email": attendee["email"],
            "name": attendee.get("displayName") or "",
            "response": attendee.get("responseStatus") or "",
        }
        for attendee in event.get("attendees") or []
        if isinstance(attendee.get("email"), str)
    ]


def _event_properties(event: dict[str, Any], config: CalendarConfig) -> dict[str, Any]:
    return {
        "eventId": event.get("id"),
        "iCalUID": event.get("iCalUID"),
        "appointmentDuration": config.appointment_duration,
        "bufferTime": config.buffer_time_between_meetings,
    }


# =============================================================================
# Functions
# =============================================================================


async def book_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = BookAppointmentParams.model_validate(params)
        config = _calendar_config(context)
        calendar_id = config.default_calendar_id or DEFAULT_CALENDAR_ID

        if not args.start_time:
            return error_result("MISSING_START_TIME", "Start time is required to book an appointment")

        try:
            start = validate_appointment_time(args.start_time, config.appointment_duration, config)
        except AppointmentValidationError as e:
            return error_result(e.code, str(e))

        time_zone = args.user_time_zone or config.time_zone
        meeting_end, event_start, event_end = _event_times(start, config, time_zone)
        event = {
            "summary": args.title,
            "description": _with_buffer_note(
                args.description, meeting_end, config.buffer_time_between_meetings
            ),
            "start": event_start,
            "end": event_end,
            "reminders": {"useDefault": True},
        }

        client = await get_calendar_client(context)
        created = await client.insert_event(calendar_id, event)
        if not created.get("id"):
            raise ProviderAPIError("Failed to create calendar event", 200, created)

        logger.info(
            f"Booked Google Calendar event {created['id']}",
            extra={"bot_id": context.bot_id, "calendar_id": calendar_id},
        )

        await persist_appointment(
            context,
            lambda store: store.record_booking(
                bot_id=context.bot_id,
                conversation_id=context.conversation_id,
                calendar_provider=PROVIDER,
                calendar_id=calendar_id,
                external_event_id=created["id"],
                title=created.get("summary") or args.title,
                description=created.get("description") or args.description,
                start_time=start,
                end_time=meeting_end,
                time_zone=time_zone,
                organizer=_organizer(created),
                attendees=_attendees(created),
                meeting_link=created.get("htmlLink") or "",
                status=created.get("status") or "confirmed",
                properties=_event_properties(created, config),
                metadata={"source": TOOL_ID, "created": datetime.now(start.tzinfo).isoformat()},
            ),
            "store booked appointment",
        )

        return {
            "success": True,
            "appointmentId": created["id"],
            "appointmentDetails": _appointment_details(created, start, config, calendar_id, args.title),
            "message": (
                f"Successfully booked appointment: {args.title} on "
                f"{format_long_date(start)} at {format_clock_12h(start)}"
            ),
        }
    except Exception as e:
        return failure("BOOKING_FAILED", "book appointment", e, context)


async def reschedule_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = RescheduleAppointmentParams.model_validate(params)
        config = _calendar_config(context)
        calendar_id = config.default_calendar_id or DEFAULT_CALENDAR_ID

        if not args.start_time:
            return error_result("MISSING_START_TIME", "Start time is required to reschedule an appointment")

        client = await get_calendar_client(context)
        existing = await client.get_event(calendar_id, args.appointment_id)

        try:
            start = validate_appointment_time(args.start_time, config.appointment_duration, config)
        except AppointmentValidationError as e:
            return error_result(e.code, str(e))

        time_zone = args.user_time_zone or config.time_zone
        meeting_end, event_start, event_end = _event_times(start, config, time_zone)
        original_description = _BUFFER_NOTE.sub("", existing.get("description") or "")

        updated = await client.update_event(
            calendar_id,
            args.appointment_id,
            {
                **existing,
                "description": _with_buffer_note(
                    original_description, meeting_end, config.buffer_time_between_meetings
                ),
                "start": event_start,
                "end": event_end,
            },
        )
        title = updated.get("summary") or "Appointment"

        await persist_appointment(
            context,
            lambda store: store.record_reschedule(
                PROVIDER,
                args.appointment_id,
                start_time=start,
                end_time=meeting_end,
                bot_id=context.bot_id,
                conversation_id=context.conversation_id,
                calendar_id=calendar_id,
                title=title,
                description=updated.get("description"),
                time_zone=time_zone,
                organizer=_organizer(updated),
                attendees=_attendees(updated) or None,
                meeting_link=updated.get("htmlLink") or None,
                status=updated.get("status") or "confirmed",
                properties=_event_properties(updated, config),
                metadata={"source": TOOL_ID},
            ),
            "update rescheduled appointment",
        )

        return {
            "success": True,
            "appointmentId": updated.get("id") or args.appointment_id,
            "appointmentDetails": _appointment_details(updated, start, config, calendar_id, title),
            "message": (
                f"Successfully rescheduled appointment to {format_long_date(start)} "
                f"at {format_clock_12h(start)}"
            ),
        }
    except Exception as e:
        return failure("RESCHEDULE_FAILED", "reschedule appointment", e, context)


async def cancel_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = CancelAppointmentParams.model_validate(params)
        config = _calendar_config(context)
        calendar_id = config.default_calendar_id or DEFAULT_CALENDAR_ID

        client = await get_calendar_client(context)
        try:
            existing = await client.get_event(calendar_id, args.appointment_id)
        except ProviderAPIError as e:
            if e.status_code != 404:
                raise
            return error_result(
                "EVENT_NOT_FOUND",
                f"Appointment with ID {args.appointment_id} not found in calendar {calendar_id}",
            )

        title = existing.get("summary") or "Unknown Event"
        await client.delete_event(calendar_id, args.appointment_id, send_updates="all")

        logger.info(
            f"Cancelled Google Calendar event {args.appointment_id}",
            extra={"bot_id": context.bot_id, "calendar_id": calendar_id},
        )

        await persist_appointment(
            context,
            lambda store: store.record_cancellation(PROVIDER, args.appointment_id, args.reason),
            "mark appointment cancelled",
        )

        message = f"Successfully cancelled appointment: {title}"
        if args.reason:
            message += f" (Reason: {args.reason})"
        return {"success": True, "appointmentId": args.appointment_id, "message": message}
    except Exception as e:
        return failure("CANCELLATION_FAILED", "cancel appointment", e, context)


def _format_listed_event(event: dict[str, Any], tz: ZoneInfo) -> dict[str, Any] | None:
    start_raw = (event.get("start") or {}).get("dateTime") or (event.get("start") or {}).get("date")
    end_raw = (event.get("end") or {}).get("dateTime") or (event.get("end") or {}).get("date")
    if not start_raw:
        return None

    start = parse_datetime(start_raw, tz).astimezone(tz)
    duration = 0
    if end_raw:
        end = parse_datetime(end_raw, tz).astimezone(tz)
        duration = round((end - start).total_seconds() / 60)

    description = event.get("description") or ""
    match = _BUFFER_MINUTES.search(description)
    buffer_time = int(match.group(1)) if match else 0
    if buffer_time > 0 and duration > buffer_time:
        duration -= buffer_time

    return {
        "id": event.get("id") or "",
        "title": event.get("summary") or "Untitled Event",
        "date": start.strftime("%Y-%m-%d"),
        "time": start.strftime("%H:%M") if (event.get("start") or {}).get("dateTime") else "All day",
        "duration": duration,
        "bufferTime": buffer_time,
        "link": event.get("htmlLink") or "",
        "description": description,
        "location": event.get("location") or "",
    }


async def list_appointments(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = ListAppointmentsParams.model_validate(params)
        config = _calendar_config(context)
        calendar_id = config.default_calendar_id or DEFAULT_CALENDAR_ID
        tz = get_zone(config.time_zone, DEFAULT_TIME_ZONE)

        range_start, range_end = date_range(
            args.start_date, args.end_date, config.availability_window_days, config.time_zone
        )

        client = await get_calendar_client(context)
        events = await client.list_events(calendar_id, range_start, range_end, args.max_results)

        appointments = [a for a in (_format_listed_event(event, tz) for event in events) if a]
        return {
            "success": True,
            "appointments": appointments,
            "message": (
                f"Found {len(appointments)} appointment(s)"
                if appointments
                else "No appointments found in the specified date range"
            ),
        }
    except Exception as e:
        return failure("LIST_FAILED", "list appointments", e, context)


async def list_available_slots(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = ListAvailableSlotsParams.model_validate(params)
        config = _calendar_config(context)
        calendar_id = config.default_calendar_id or DEFAULT_CALENDAR_ID
        tz = get_zone(config.time_zone, DEFAULT_TIME_ZONE)

        range_start, range_end = date_range(
            args.start_date, args.end_date, config.availability_window_days, config.time_zone
        )

        client = await get_calendar_client(context)
        events = await client.list_events(calendar_id, range_start, range_end)

        busy = []
        for event in events:
            start_raw = (event.get("start") or {}).get("dateTime")
            end_raw = (event.get("end") or {}).get("dateTime")
            if start_raw and end_raw:
                busy.append((parse_datetime(start_raw, tz), parse_datetime(end_raw, tz)))

        slots = generate_available_slots(
            range_start, range_end, config, busy, interval=args.interval, time_zone=config.time_zone
        )
        return {
            "success": True,
            "availableSlots": slots,
            "message": (
                f"Found {len(slots)} available time slots"
                if slots
                else "No available time slots found for the specified criteria"
            ),
        }
    except Exception as e:
        return failure("LIST_SLOTS_FAILED", "list available time slots", e, context)


# =============================================================================
# Definition
# =============================================================================

google_calendar_tool = ToolDefinition(
    id=TOOL_ID,
    name="Google Calendar",
    description="Book, reschedule, cancel, and list appointments on Google Calendar",
    type=ToolType.CALENDAR_BOOKING,
    integration_type=PROVIDER,
    config_schema=CalendarConfig,
    credential_schema=GoogleCredentials,
    functions={
        "bookAppointment": ToolFunction(
            description="Book a new appointment on Google Calendar",
            parameters=BookAppointmentParams,
            execute=book_appointment,
        ),
        "rescheduleAppointment": ToolFunction(
            description="Reschedule an existing appointment on Google Calendar",
            parameters=RescheduleAppointmentParams,
            execute=reschedule_appointment,
        ),
        "cancelAppointment": ToolFunction(
            description="Cancel an existing appointment on Google Calendar",
            parameters=CancelAppointmentParams,
            execute=cancel_appointment,
        ),
        "listAppointments": ToolFunction(
            description="List upcoming appointments on Google Calendar",
            parameters=ListAppointmentsParams,
            execute=list_appointments,
        ),
        "listAvailableSlots": ToolFunction(
            description=(
                "List available time slots for scheduling appointments based on calendar "
                "availability and configured time slots"
            ),
            parameters=ListAvailableSlotsParams,
            execute=list_available_slots,
        ),
    },
    default_config={
        "appointmentDuration": 30,
        "availabilityWindowDays": 14,
        "availableTimeSlots": [
            {"day": day, "startTime": "09:00", "endTime": "17:00"}
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
        ],
    },
    auth=ToolAuth(
        required=True,
        provider=PROVIDER,
        scopes=tuple(CALENDAR_SCOPES),
        connect_action="connectGoogleCalendar",
        disconnect_action="disconnectGoogleCalendar",
    ),
)
