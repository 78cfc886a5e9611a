"""
Date/time formatting for meeting fields.

Meetings store their date as "YYYY-MM-DD" and times as "HH:MM" wall-clock
strings in the application timezone. These helpers turn them into display
text and convert between them and timezone-aware datetimes.
"""

from datetime import datetime

import pytz

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def format_meeting_date(date_str: str) -> str:
    """
    Format a meeting date for display.

    Args:
        date_str: Date in YYYY-MM-DD format

    Returns:
        Formatted string like "Mon, Jan 15"
    """
    day = datetime.strptime(date_str, DATE_FORMAT)
    return f"{day.strftime('%a, %b')} {day.day}"


def format_meeting_time(time_str: str) -> str:
    """
    Format a meeting time for display in 12-hour clock.

    Args:
        time_str: Time in HH:MM (24-hour) format

    Returns:
        Formatted string like "9:00 AM"
    """
    moment = datetime.strptime(time_str, TIME_FORMAT)
    hour = moment.hour % 12 or 12
    period = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {period}"


def format_time_range(start_time: str, end_time: str) -> str:
    """Format a start/end pair like "9:00 AM - 9:30 AM"."""
    return f"{format_meeting_time(start_time)} - {format_meeting_time(end_time)}"


def now_in_timezone(tz_name: str) -> datetime:
    """Current time as an aware datetime in the given timezone."""
    return datetime.now(pytz.timezone(tz_name))


def to_timezone(moment: datetime, tz_name: str) -> datetime:
    """
    Convert a datetime into the given timezone.

    Naive datetimes are treated as UTC.
    """
    if moment.tzinfo is None:
        moment = pytz.UTC.localize(moment)
    return moment.astimezone(pytz.timezone(tz_name))


def meeting_start(date_str: str, time_str: str, tz_name: str) -> datetime:
    """
    Combine a meeting's date and start time into an aware datetime.

    Args:
        date_str: Date in YYYY-MM-DD format
        time_str: Time in HH:MM format
        tz_name: Timezone the wall-clock values are expressed in
    """
    naive = datetime.strptime(f"{date_str} {time_str}", f"{DATE_FORMAT} {TIME_FORMAT}")
    return pytz.timezone(tz_name).localize(naive)


def split_date_time(moment: datetime) -> tuple[str, str]:
    """Split a datetime into ("YYYY-MM-DD", "HH:MM") strings."""
    return moment.strftime(DATE_FORMAT), moment.strftime(TIME_FORMAT)
