"""
botstack.tools.calendar - Calendar Booking Tools

Google Calendar and GoHighLevel calendar tools sharing one set of
availability rules.
"""

from .availability import (
    AppointmentValidationError,
    CalendarConfig,
    TimeSlotWindow,
    date_range,
    generate_available_slots,
    validate_appointment_time,
)
from .gohighlevel import GoHighLevelCalendarClient, gohighlevel_calendar_tool
from .google import GoogleCalendarClient, google_calendar_tool

__all__ = [
    "AppointmentValidationError",
    "CalendarConfig",
    "GoHighLevelCalendarClient",
    "GoogleCalendarClient",
    "TimeSlotWindow",
    "date_range",
    "generate_available_slots",
    "gohighlevel_calendar_tool",
    "google_calendar_tool",
    "validate_appointment_time",
]
