"""
botstack.tools.calendar.gohighlevel - GoHighLevel Calendar Tool

Book, reschedule, cancel and list appointments on a GoHighLevel (LeadConnector)
calendar. Free slots come from GoHighLevel itself rather than the local
availability rules, but proposed start times are still checked against them.

The sub-account (location) is taken from the inbound webhook when present,
otherwise from the tool configuration; the contact the same way from the
webhook or the call arguments.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

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
from botstack.services.integrations.errors import OAuthRefreshError
from botstack.services.integrations.providers.gohighlevel import CALENDAR_SCOPES
from botstack.services.integrations.token_refresher import ensure_fresh_credentials

from .availability import (
    AppointmentValidationError,
    CalendarConfig,
    format_clock_12h,
    format_long_date,
    get_zone,
    parse_datetime,
    validate_appointment_time,
)
from .base import failure, persist_appointment, raise_for_provider_error

logger = logging.getLogger(__name__)

TOOL_ID = "gohighlevel-calendar"
PROVIDER = "gohighlevel"
DEFAULT_TIME_ZONE = "America/New_York"

ORGANIZER = {"name": "GoHighLevel Calendar", "email": "noreply@gohighlevel.com"}


# =============================================================================
# REST client
# =============================================================================


class GoHighLevelCalendarClient:
    """
    Minimal LeadConnector calendars API client.

    Example:
        >>> client = GoHighLevelCalendarClient(credentials["access_token"])
        >>> events = await client.get_calendar_events("loc_1", start_ms, end_ms, calendar_id="cal_1")
    """

    BASE_URL = "https://services.leadconnectorhq.com"
    API_VERSION = "2021-04-15"

    # Default timeout for HTTP requests
    TIMEOUT = 30.0

    def __init__(self, access_token: str, http_client: httpx.AsyncClient | None = None) -> None:
        self.access_token = access_token
        self.http_client = http_client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.BASE_URL}{path}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Version": self.API_VERSION,
            "Accept": "application/json",
        }

        if self.http_client is not None:
            response = await self.http_client.request(method, url, headers=headers, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.TIMEOUT) as client:
                response = await client.request(method, url, headers=headers, **kwargs)

        raise_for_provider_error(response, "GoHighLevel")
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def get_calendar_events(
        self,
        location_id: str,
        start_ms: int,
        end_ms: int,
        calendar_id: str | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "locationId": location_id,
            "startTime": str(start_ms),
            "endTime": str(end_ms),
        }
        if calendar_id:
            params["calendarId"] = calendar_id
        data = await self._request("GET", "/calendars/events", params=params)
        events = data.get("events") if isinstance(data, dict) else None
        return events if isinstance(events, list) else []

    async def get_free_slots(
        self,
        calendar_id: str,
        start_ms: int,
        end_ms: int,
        timezone: str | None = None,
        user_id: str | None = None,
        enable_look_busy: bool | None = None,
    ) -> Any:
        params: dict[str, Any] = {"startDate": str(start_ms), "endDate": str(end_ms)}
        if enable_look_busy is not None:
            params["enableLookBusy"] = "true" if enable_look_busy else "false"
        if timezone:
            params["timezone"] = timezone
        if user_id:
            params["userId"] = user_id
        return await self._request("GET", f"/calendars/{calendar_id}/free-slots", params=params)

    async def create_appointment(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/calendars/events/appointments", json=payload)

    async def get_appointment(self, event_id: str) -> dict[str, Any] | None:
        data = await self._request("GET", f"/calendars/events/appointments/{event_id}")
        if not isinstance(data, dict):
            return None
        return data.get("appointment") or data.get("event") or None

    async def update_appointment(self, event_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/calendars/events/appointments/{event_id}", json=payload)


async def get_calendar_client(context: ToolContext) -> GoHighLevelCalendarClient:
    """Build a client from the call's credentials, refreshing the token if needed."""
    credentials = await ensure_fresh_credentials(context, PROVIDER)
    access_token = credentials.get("access_token")
    if not access_token:
        raise OAuthRefreshError("GoHighLevel credentials have no access token")
    return GoHighLevelCalendarClient(access_token)


# =============================================================================
# Schemas
# =============================================================================


class GoHighLevelCredentials(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_at: int | None = None
    location_id: str | None = Field(default=None, alias="locationId")


class BookAppointmentParams(CamelModel):
    title: str = Field(description="Title of the appointment")
    description: str | None = Field(default=None, description="Description or address of the appointment")
    start_time: str | None = Field(default=None, description="Start time (ISO string format)")
    contact_id: str | None = Field(default=None, description="GoHighLevel contact ID to book for")
    user_time_zone: str | None = Field(default=None, description="Time zone of the user (IANA name)")


class CancelAppointmentParams(CamelModel):
    event_id: str = Field(description="ID of the appointment to cancel")
    reason: str | None = Field(default=None, description="Reason for cancellation")


class ListAppointmentsParams(CamelModel):
    start_date: str | None = Field(default=None, description="Start of the range (epoch milliseconds)")
    end_date: str | None = Field(default=None, description="End of the range (epoch milliseconds)")
    max_results: int = Field(default=10, ge=1, description="Maximum number of results to return")
    user_time_zone: str | None = Field(default=None, description="Time zone of the user (IANA name)")
    contact_id: str | None = Field(default=None, description="Only list appointments of this contact")


class ListAvailableSlotsParams(CamelModel):
    start_date: str | None = Field(default=None, description="Start of the range (ISO string format)")
    end_date: str | None = Field(default=None, description="End of the range (ISO string format)")
    timezone: str | None = Field(default=None, description="Time zone for the returned slots (IANA name)")
    user_id: str | None = Field(default=None, description="Only slots of this GoHighLevel user")
    enable_look_busy: bool = Field(default=False, description="Respect the calendar's look-busy settings")


class RescheduleAppointmentParams(CamelModel):
    event_id: str = Field(description="ID of the appointment to reschedule")
    start_time: str | None = Field(default=None, description="New start time (ISO string format)")
    user_time_zone: str | None = Field(default=None, description="Time zone of the user (IANA name)")


# =============================================================================
# Helpers
# =============================================================================


def _calendar_config(context: ToolContext) -> CalendarConfig:
    return CalendarConfig.model_validate(context.config or {})


def _location_id(context: ToolContext, config: CalendarConfig) -> str | None:
    payload = context.webhook_payload or {}
    return payload.get("locationId") or config.location_id


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _parse_millis(value: str | None, default: int) -> int:
    """Epoch milliseconds from a numeric string, accepting ISO 8601 as well."""
    if not value:
        return default
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        return _to_millis(parse_datetime(value, UTC))
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp {value!r}")
        return default


def _missing_location() -> ExecutionResult:
    return error_result("MISSING_LOCATION_ID", "Location ID is required in tool configuration")


def _missing_calendar() -> ExecutionResult:
    return error_result("MISSING_CALENDAR_ID", "Calendar ID is required in tool configuration")


def _not_found(event_id: str) -> ExecutionResult:
    return error_result(
        "APPOINTMENT_NOT_FOUND",
        f"Appointment with ID {event_id} not found or could not be accessed",
    )


async def _fetch_appointment(client: GoHighLevelCalendarClient, event_id: str) -> dict[str, Any] | None:
    try:
        return await client.get_appointment(event_id)
    except Exception as e:
        logger.warning(f"Could not fetch GoHighLevel appointment {event_id}: {e}")
        return None


def _flatten_slots(response: Any) -> list[str]:
    """Collect slot timestamps from a date-keyed ``{date: {"slots": [...]}}`` response."""
    if isinstance(response, list):
        return [slot for slot in response if isinstance(slot, str)]
    if not isinstance(response, dict):
        return []

    slots: list[str] = []
    for key, value in response.items():
        if key == "traceId" or not isinstance(value, dict):
            continue
        day_slots = value.get("slots")
        if isinstance(day_slots, list):
            slots.extend(slot for slot in day_slots if isinstance(slot, str))
    return slots


# =============================================================================
# Functions
# =============================================================================


async def book_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = BookAppointmentParams.model_validate(params)
        config = _calendar_config(context)

        location_id = _location_id(context, config)
        if not location_id:
            return _missing_location()
        calendar_id = config.default_calendar_id
        if not calendar_id:
            return _missing_calendar()
        contact_id = (context.webhook_payload or {}).get("contactId") or args.contact_id
        if not contact_id:
            return error_result("MISSING_CONTACT_ID", "Contact ID is required to book an appointment")
        if not args.start_time:
            return error_result("MISSING_START_TIME", "Start time is required to book an appointment")

        try:
            start = validate_appointment_time(args.start_time, config.appointment_duration, config)
        except AppointmentValidationError as e:
            return error_result(e.code, str(e))

        end = start + timedelta(minutes=config.appointment_duration)
        time_zone = args.user_time_zone or config.time_zone or DEFAULT_TIME_ZONE
        address = args.description or "Appointment via Chat Assistant"

        client = await get_calendar_client(context)
        created = await client.create_appointment(
            {
                "calendarId": calendar_id,
                "locationId": location_id,
                "contactId": contact_id,
                "title": args.title,
                "startTime": start.isoformat(timespec="seconds"),
                "endTime": end.isoformat(timespec="seconds"),
                "meetingLocationType": "custom",
                "address": address,
                "appointmentStatus": "confirmed",
            }
        )
        event_id = created.get("id")

        logger.info(
            f"Booked GoHighLevel appointment {event_id}",
            extra={"bot_id": context.bot_id, "calendar_id": calendar_id},
        )

        await persist_appointment(
            context,
            lambda store: store.record_booking(
                bot_id=context.bot_id,
                conversation_id=context.conversation_id,
                calendar_provider=PROVIDER,
                calendar_id=calendar_id,
                external_event_id=event_id,
                title=args.title,
                description=args.description,
                location=address,
                start_time=start,
                end_time=end,
                time_zone=time_zone,
                organizer=ORGANIZER,
                status="confirmed",
                properties={"eventId": event_id, "appointmentDuration": config.appointment_duration},
                metadata={"source": "chat", "locationId": location_id, "contactId": contact_id},
            ),
            "store booked appointment",
        )

        local_start = start.astimezone(get_zone(time_zone, DEFAULT_TIME_ZONE))
        date_label = format_long_date(local_start)
        time_label = format_clock_12h(local_start)
        return {
            "success": True,
            "data": {
                "appointmentId": event_id,
                "title": args.title,
                "date": date_label,
                "time": time_label,
                "duration": config.appointment_duration,
                "status": "confirmed",
                "message": f"Appointment booked successfully for {date_label} at {time_label}.",
            },
        }
    except Exception as e:
        return failure("BOOKING_FAILED", "book appointment", e, context)


async def cancel_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = CancelAppointmentParams.model_validate(params)
        config = _calendar_config(context)

        if not _location_id(context, config):
            return _missing_location()

        client = await get_calendar_client(context)
        existing = await _fetch_appointment(client, args.event_id)
        if not existing:
            return _not_found(args.event_id)

        await client.update_appointment(args.event_id, {"appointmentStatus": "cancelled"})

        logger.info(
            f"Cancelled GoHighLevel appointment {args.event_id}",
            extra={"bot_id": context.bot_id},
        )

        await persist_appointment(
            context,
            lambda store: store.record_cancellation(PROVIDER, args.event_id, args.reason),
            "mark appointment cancelled",
        )

        suffix = f": {args.reason}" if args.reason else "."
        return {
            "success": True,
            "data": {
                "appointmentId": args.event_id,
                "status": "cancelled",
                "message": f"Appointment cancelled successfully{suffix}",
            },
        }
    except Exception as e:
        return failure("CANCELLATION_FAILED", "cancel appointment", e, context)


async def list_appointments(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = ListAppointmentsParams.model_validate(params)
        config = _calendar_config(context)

        location_id = _location_id(context, config)
        if not location_id:
            return _missing_location()
        contact_id = (context.webhook_payload or {}).get("contactId") or args.contact_id
        time_zone = args.user_time_zone or config.time_zone or DEFAULT_TIME_ZONE
        tz = get_zone(time_zone, DEFAULT_TIME_ZONE)

        now = _to_millis(datetime.now(UTC))
        start_ms = _parse_millis(args.start_date, now)
        end_ms = _parse_millis(args.end_date, now + 7 * 24 * 60 * 60 * 1000)

        client = await get_calendar_client(context)
        events = await client.get_calendar_events(
            location_id, start_ms, end_ms, calendar_id=config.default_calendar_id
        )

        if contact_id:
            events = [event for event in events if event.get("contactId") == contact_id]
        events = [event for event in events if event.get("appointmentStatus") != "cancelled"]
        events = events[: args.max_results]

        appointments = []
        for event in events:
            start = parse_datetime(event["startTime"], tz).astimezone(tz)
            appointments.append(
                {
                    "id": event.get("id"),
                    "title": event.get("title") or "Appointment",
                    "date": format_long_date(start),
                    "time": format_clock_12h(start),
                    "status": event.get("appointmentStatus") or "confirmed",
                    "contactId": event.get("contactId"),
                    "address": event.get("address"),
                    "isRecurring": bool(event.get("isRecurring")),
                    "notes": event.get("notes"),
                }
            )

        return {
            "success": True,
            "data": {
                "appointments": appointments,
                "message": (
                    f"Found {len(appointments)} appointment(s)"
                    if appointments
                    else "No upcoming appointments found"
                ),
            },
        }
    except Exception as e:
        return failure("LISTING_FAILED", "list appointments", e, context)


async def list_available_slots(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = ListAvailableSlotsParams.model_validate(params)
        config = _calendar_config(context)

        if not _location_id(context, config):
            return _missing_location()
        calendar_id = config.default_calendar_id
        if not calendar_id:
            return _missing_calendar()

        time_zone = args.timezone or config.time_zone or DEFAULT_TIME_ZONE
        tz = get_zone(time_zone, DEFAULT_TIME_ZONE)

        range_start = parse_datetime(args.start_date, tz) if args.start_date else datetime.now(UTC)
        range_end = (
            parse_datetime(args.end_date, tz)
            if args.end_date
            else range_start + timedelta(days=config.availability_window_days)
        )

        client = await get_calendar_client(context)
        response = await client.get_free_slots(
            calendar_id,
            _to_millis(range_start),
            _to_millis(range_end),
            timezone=time_zone,
            user_id=args.user_id,
            enable_look_busy=args.enable_look_busy,
        )

        slots = []
        for slot in _flatten_slots(response):
            local = parse_datetime(slot, tz).astimezone(tz)
            date_label = format_long_date(local)
            time_label = format_clock_12h(local)
            slots.append(
                {"iso": slot, "date": date_label, "time": time_label, "formatted": f"{date_label} at {time_label}"}
            )

        return {
            "success": True,
            "data": {
                "slots": slots,
                "timeZone": time_zone,
                "message": (
                    f"Found {len(slots)} available time slot(s)" if slots else "No available time slots found"
                ),
            },
        }
    except Exception as e:
        return failure("SLOTS_LISTING_FAILED", "list available slots", e, context)


async def reschedule_appointment(params: dict[str, Any], context: ToolContext) -> ExecutionResult:
    try:
        args = RescheduleAppointmentParams.model_validate(params)
        config = _calendar_config(context)

        location_id = _location_id(context, config)
        if not location_id:
            return _missing_location()
        calendar_id = config.default_calendar_id
        if not calendar_id:
            return _missing_calendar()
        if not args.start_time:
            return error_result("MISSING_START_TIME", "Start time is required to reschedule an appointment")

        try:
            start = validate_appointment_time(args.start_time, config.appointment_duration, config)
        except AppointmentValidationError as e:
            return error_result(e.code, str(e))

        client = await get_calendar_client(context)
        existing = await _fetch_appointment(client, args.event_id)
        if not existing:
            return _not_found(args.event_id)

        end = start + timedelta(minutes=config.appointment_duration)
        time_zone = args.user_time_zone or config.time_zone or DEFAULT_TIME_ZONE
        title = existing.get("title") or "Appointment"

        await client.update_appointment(
            args.event_id,
            {
                "startTime": start.isoformat(timespec="seconds"),
                "endTime": end.isoformat(timespec="seconds"),
            },
        )

        await persist_appointment(
            context,
            lambda store: store.record_reschedule(
                PROVIDER,
                args.event_id,
                start_time=start,
                end_time=end,
                bot_id=context.bot_id,
                conversation_id=context.conversation_id,
                calendar_id=calendar_id,
                title=title,
                time_zone=time_zone,
                organizer=ORGANIZER,
                status="confirmed",
                metadata={"source": "chat", "locationId": location_id},
            ),
            "update rescheduled appointment",
        )

        local_start = start.astimezone(get_zone(time_zone, DEFAULT_TIME_ZONE))
        date_label = format_long_date(local_start)
        time_label = format_clock_12h(local_start)
        return {
            "success": True,
            "data": {
                "appointmentId": args.event_id,
                "title": title,
                "date": date_label,
                "time": time_label,
                "status": "confirmed",
                "message": f"Appointment rescheduled successfully to {date_label} at {time_label}.",
            },
        }
    except Exception as e:
        return failure("RESCHEDULE_FAILED", "reschedule appointment", e, context)


# =============================================================================
# Definition
# =============================================================================

gohighlevel_calendar_tool = ToolDefinition(
    id=TOOL_ID,
    name="GoHighLevel Calendar",
    description="Book, reschedule, cancel, and list appointments on a GoHighLevel calendar",
    type=ToolType.CALENDAR_BOOKING,
    integration_type=PROVIDER,
    config_schema=CalendarConfig,
    credential_schema=GoHighLevelCredentials,
    functions={
        "bookAppointment": ToolFunction(
            description="Book a new appointment on the GoHighLevel calendar for a contact",
            parameters=BookAppointmentParams,
            execute=book_appointment,
        ),
        "cancelAppointment": ToolFunction(
            description="Cancel an existing GoHighLevel appointment",
            parameters=CancelAppointmentParams,
            execute=cancel_appointment,
        ),
        "listAppointments": ToolFunction(
            description="List upcoming GoHighLevel appointments, optionally for one contact",
            parameters=ListAppointmentsParams,
            execute=list_appointments,
        ),
        "listAvailableSlots": ToolFunction(
            description="List free time slots of the configured GoHighLevel calendar",
            parameters=ListAvailableSlotsParams,
            execute=list_available_slots,
        ),
        "rescheduleAppointment": ToolFunction(
            description="Move an existing GoHighLevel appointment to a new start time",
            parameters=RescheduleAppointmentParams,
            execute=reschedule_appointment,
        ),
    },
    default_config={
        "appointmentDuration": 30,
        "availabilityWindowDays": 14,
        "timeZone": DEFAULT_TIME_ZONE,
    },
    auth=ToolAuth(
        required=True,
        provider=PROVIDER,
        scopes=tuple(CALENDAR_SCOPES),
        connect_action="connectGoHighLevel",
        disconnect_action="disconnectGoHighLevel",
    ),
)
