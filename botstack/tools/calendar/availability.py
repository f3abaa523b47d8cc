"""
botstack.tools.calendar.availability - Calendar Availability Rules

Shared by every calendar provider:
- CalendarConfig: per-bot calendar settings (duration, buffer, weekly windows)
- validate_appointment_time: reject proposed start times outside the rules
- generate_available_slots: free slots from weekly windows minus busy intervals
- date_range: whole-day search range for listings

All wall-clock rules (weekly windows, day boundaries) are evaluated in the
calendar's time zone. ``now`` is injectable for deterministic tests.
"""

import logging
import math
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from botstack.core.tools.base import CamelModel

logger = logging.getLogger(__name__)

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_VALIDATION_TIME_ZONE = "America/New_York"

# No slots are offered closer than this to the current moment
MIN_LEAD_TIME = timedelta(minutes=60)


class AppointmentValidationError(Exception):
    """Proposed appointment time breaks the calendar's rules."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        self.code = code
        super().__init__(message)


class TimeSlotWindow(CamelModel):
    """Open hours for one weekday, e.g. monday 09:00 to 17:00."""

    day: str
    start_time: str = Field(pattern=r"^\d{1,2}:\d{2}$")
    end_time: str = Field(pattern=r"^\d{1,2}:\d{2}$")

    @field_validator("day")
    @classmethod
    def _normalize_day(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in DAY_NAMES:
            raise ValueError(f"Unknown day: {value}")
        return value

    def bounds(self, day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
        """Window start and end on a given date in the calendar time zone."""
        return (
            datetime.combine(day, _parse_clock(self.start_time), tzinfo=tz),
            datetime.combine(day, _parse_clock(self.end_time), tzinfo=tz),
        )


def _default_windows() -> list[TimeSlotWindow]:
    return [TimeSlotWindow(day=day, start_time="09:00", end_time="17:00") for day in DAY_NAMES[:5]]


class CalendarConfig(CamelModel):
    """
    Calendar settings shared by the calendar tools.

    Example:
        >>> config = CalendarConfig.model_validate({
        ...     "appointmentDuration": 45,
        ...     "bufferTimeBetweenMeetings": 15,
        ...     "availableTimeSlots": [{"day": "monday", "startTime": "10:00", "endTime": "16:00"}],
        ...     "timeZone": "Europe/Berlin",
        ... })
    """

    appointment_duration: int = Field(default=30, ge=1, le=24 * 60)
    buffer_time_between_meetings: int = Field(default=0, ge=0)
    availability_window_days: int = Field(default=14, ge=1)
    available_time_slots: list[TimeSlotWindow] = Field(default_factory=_default_windows)
    time_zone: str | None = None
    default_calendar_id: str | None = None
    location_id: str | None = None

    @field_validator("time_zone")
    @classmethod
    def _check_time_zone(cls, value: str | None) -> str | None:
        if value:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown time zone: {value}") from e
        return value or None

    def window_for(self, day_name: str) -> TimeSlotWindow | None:
        return next((w for w in self.available_time_slots if w.day == day_name), None)


def _parse_clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def get_zone(name: str | None, fallback: str) -> ZoneInfo:
    """Resolve a time zone name, falling back on unknown names."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown time zone {name!r}, using {fallback}")
    return ZoneInfo(fallback)


def parse_datetime(value: str | datetime, tz: ZoneInfo) -> datetime:
    """
    Parse an ISO 8601 timestamp; naive values are read in ``tz``.

    Raises:
        ValueError: If the value is not ISO 8601
    """
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def format_clock_12h(value: datetime) -> str:
    """Format like '2:30 PM'."""
    return f"{value.hour % 12 or 12}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def format_long_date(value: datetime) -> str:
    """Format like 'Monday, January 7, 2030'."""
    return f"{DAY_NAMES[value.weekday()].capitalize()}, {value.strftime('%B')} {value.day}, {value.year}"


def validate_appointment_time(
    start_time: str | datetime,
    duration: int,
    config: CalendarConfig,
    now: datetime | None = None,
) -> datetime:
    """
    Check a proposed start time against the calendar rules.

    Checks run in order and the first failure wins: parseable, not in the
    past, day has a window, starts inside the window, ends (with buffer)
    inside the window, within the availability horizon.

    Returns:
        The parsed start time in the calendar time zone

    Raises:
        AppointmentValidationError: With one of INVALID_START_TIME,
            START_TIME_IN_PAST, DAY_NOT_AVAILABLE, OUTSIDE_AVAILABLE_HOURS,
            OUTSIDE_AVAILABILITY_WINDOW
    """
    time_zone = config.time_zone or DEFAULT_VALIDATION_TIME_ZONE
    tz = get_zone(time_zone, DEFAULT_VALIDATION_TIME_ZONE)
    now = now or datetime.now(UTC)

    try:
        start = parse_datetime(start_time, tz).astimezone(tz)
    except (TypeError, ValueError) as e:
        raise AppointmentValidationError(
            "Invalid appointment start time format. Please use ISO 8601 format "
            "(e.g., 2023-11-15T10:00:00Z).",
            "INVALID_START_TIME",
        ) from e

    if start < now:
        raise AppointmentValidationError(
            "Appointment start time cannot be in the past.",
            "START_TIME_IN_PAST",
        )

    weekday = DAY_NAMES[start.weekday()].capitalize()
    window = config.window_for(DAY_NAMES[start.weekday()])
    if window is None:
        raise AppointmentValidationError(
            f"Appointments are not available on {weekday}s according to your calendar settings.",
            "DAY_NOT_AVAILABLE",
        )

    window_start, window_end = window.bounds(start.date(), tz)
    hours = f"{window.start_time} and {window.end_time} {time_zone}"

    if start < window_start:
        raise AppointmentValidationError(
            f"Appointment time is outside available hours. Available times on {weekday} are between {hours}.",
            "OUTSIDE_AVAILABLE_HOURS",
        )

    total_end = start + timedelta(minutes=duration + config.buffer_time_between_meetings)
    if total_end > window_end:
        raise AppointmentValidationError(
            f"Appointment would end outside available hours. Available times on {weekday} are between {hours}.",
            "OUTSIDE_AVAILABLE_HOURS",
        )

    if start > now + timedelta(days=config.availability_window_days):
        raise AppointmentValidationError(
            "Appointment is too far in the future. Appointments can only be scheduled up to "
            f"{config.availability_window_days} days in advance.",
            "OUTSIDE_AVAILABILITY_WINDOW",
        )

    return start


def _overlaps(start: datetime, end: datetime, busy: list[tuple[datetime, datetime]]) -> bool:
    # Touching intervals do not overlap
    return any(busy_start < end and start < busy_end for busy_start, busy_end in busy)


def generate_available_slots(
    start: datetime,
    end: datetime,
    config: CalendarConfig,
    busy: list[tuple[datetime, datetime]],
    interval: int = 30,
    time_zone: str | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """
    Generate bookable slots between two instants.

    Walks each calendar day in the range; on days with a window, candidate
    starts step by ``interval`` minutes from the window start (or from one
    hour after ``now``, rounded up to the interval). A candidate is kept
    when it ends, plus buffer, strictly before the window end and the
    buffer-expanded slot overlaps no busy interval.

    Returns:
        List of {date, day, startTime, endTime, iso8601, durationMinutes, timeZone}
    """
    if interval < 1:
        raise ValueError("interval must be at least 1 minute")

    time_zone = time_zone or config.time_zone or DEFAULT_VALIDATION_TIME_ZONE
    tz = get_zone(time_zone, DEFAULT_VALIDATION_TIME_ZONE)
    now = now or datetime.now(UTC)
    minimum_start = (now + MIN_LEAD_TIME).astimezone(tz)

    duration = timedelta(minutes=config.appointment_duration)
    buffer = timedelta(minutes=config.buffer_time_between_meetings)
    step = timedelta(minutes=interval)

    slots: list[dict[str, Any]] = []
    day = start.astimezone(tz).date()
    last_day = end.astimezone(tz).date()

    while day <= last_day:
        window = config.window_for(DAY_NAMES[day.weekday()])
        if window is not None:
            day_start, day_end = window.bounds(day, tz)

            if day_start < minimum_start:
                elapsed = timedelta(
                    hours=minimum_start.hour,
                    minutes=minimum_start.minute,
                    seconds=minimum_start.second,
                    microseconds=minimum_start.microsecond,
                )
                rounded = math.ceil(elapsed / step) * interval
                if minimum_start.date() != day or rounded >= 24 * 60:
                    day_start = day_end
                else:
                    day_start = datetime.combine(day, time(rounded // 60, rounded % 60), tzinfo=tz)

            current = day_start
            while current < day_end:
                slot_end = current + duration
                if slot_end + buffer < day_end and not _overlaps(current - buffer, slot_end + buffer, busy):
                    slots.append(
                        {
                            "date": current.strftime("%Y-%m-%d"),
                            "day": DAY_NAMES[current.weekday()].capitalize(),
                            "startTime": current.strftime("%H:%M"),
                            "endTime": slot_end.strftime("%H:%M"),
                            "iso8601": current.isoformat(),
                            "durationMinutes": config.appointment_duration,
                            "timeZone": time_zone,
                        }
                    )
                current += step

        day += timedelta(days=1)

    return slots


def _parse_day(value: str, tz: ZoneInfo) -> date | None:
    try:
        return parse_datetime(value, tz).astimezone(tz).date()
    except ValueError:
        logger.warning(f"Ignoring unparseable date {value!r}")
        return None


def date_range(
    start_date: str | None,
    end_date: str | None,
    default_days: int = 7,
    time_zone: str = "UTC",
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Whole-day range for listings.

    Starts at the beginning of ``start_date`` (default today) and ends at the
    end of ``end_date`` (default ``default_days`` after the start).
    Dates accept ``YYYY-MM-DD`` or full ISO 8601 timestamps.
    """
    tz = get_zone(time_zone, "UTC")
    today = (now or datetime.now(UTC)).astimezone(tz).date()

    first = (_parse_day(start_date, tz) if start_date else None) or today
    last = (_parse_day(end_date, tz) if end_date else None) or first + timedelta(days=default_days)

    return (
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(last, time.max, tzinfo=tz),
    )
