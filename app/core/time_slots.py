"""Time slot helpers: normalization, slot keys and visiting-hours slot generation."""

import re
from datetime import date, datetime, timedelta
from typing import Any

from app.core.exceptions import InvalidSlotException

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Mon-Fri 09:00-13:00 and 14:00-17:00, Sat mornings, closed Sunday
DEFAULT_VISITING_HOURS: dict[str, dict[str, Any]] = {
    **{
        day: {
            "is_available": True,
            "slots": [{"start": "09:00", "end": "13:00"}, {"start": "14:00", "end": "17:00"}],
        }
        for day in WEEKDAYS[:5]
    },
    "saturday": {"is_available": True, "slots": [{"start": "09:00", "end": "13:00"}]},
    "sunday": {"is_available": False, "slots": []},
}

_TWELVE_HOUR = re.compile(r"^(\d{1,2})[:\-]?(\d{2})(AM|PM)$")
_TWENTY_FOUR_HOUR = re.compile(r"^(\d{1,2}):(\d{2})$")
_KEY_UNSAFE = re.compile(r"[:\s]")


def normalize_time(value: str) -> str:
    """
    Normalize a time of day to 24-hour ``HH:MM``.

    Accepts 12-hour input (``9:30 PM``, ``09-30pm``, ``930AM``) and 24-hour
    input with ``:`` or ``-`` separators (``9:30``, ``09-30``).

    Raises:
        InvalidSlotException: If the value cannot be interpreted
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidSlotException("Appointment time is required")

    compact = re.sub(r"\s+", "", value).upper()

    if "AM" in compact or "PM" in compact:
        match = _TWELVE_HOUR.match(compact)
        if not match:
            raise InvalidSlotException(f"Unrecognized time format: {value!r}")
        hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3)
        if hours > 12:
            raise InvalidSlotException(f"Invalid 12-hour time: {value!r}")
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
    else:
        match = _TWENTY_FOUR_HOUR.match(compact.replace("-", ":"))
        if not match:
            raise InvalidSlotException(f"Unrecognized time format: {value!r}")
        hours, minutes = int(match.group(1)), int(match.group(2))

    if hours > 23 or minutes > 59:
        raise InvalidSlotException(f"Time out of range: {value!r}")

    return f"{hours:02d}:{minutes:02d}"


def slot_key(doctor_id: str | None, appointment_date: date | str | None, time: str | None) -> str:
    """
    Derive the slot lock key for a doctor's date and time.

    The format is ``<doctor>_<YYYY-MM-DD>_<HH-MM>``: colons and whitespace are
    replaced with ``-`` so that equivalent spellings of one time map to one key.
    """
    if not doctor_id or not appointment_date or not time:
        raise InvalidSlotException()
    day = appointment_date.isoformat() if isinstance(appointment_date, date) else str(appointment_date)
    return _KEY_UNSAFE.sub("-", f"{doctor_id}_{day}_{normalize_time(time)}")


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for a time of day."""
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_name(day: date) -> str:
    """Lowercase weekday name used as a visiting-hours key."""
    return WEEKDAYS[day.weekday()]


def generate_time_slots(day_schedule: dict[str, Any] | None, duration_minutes: int = 15) -> list[str]:
    """Generate every slot start inside a day's visiting hours, sorted and de-duplicated."""
    if not day_schedule or not day_schedule.get("is_available"):
        return []

    starts: set[str] = set()
    for window in day_schedule.get("slots") or []:
        start = time_to_minutes(window["start"])
        end = time_to_minutes(window["end"])
        for minutes in range(start, end, duration_minutes):
            starts.add(minutes_to_time(minutes))
    return sorted(starts)


def _normalize_blocked_date(entry: Any) -> str:
    if isinstance(entry, datetime):
        return entry.date().isoformat()
    if isinstance(entry, date):
        return entry.isoformat()
    if isinstance(entry, str):
        return entry[:10]
    if isinstance(entry, dict):
        value = entry.get("date")
        if isinstance(value, (str, date)):
            return _normalize_blocked_date(value)
        seconds = entry.get("seconds")
        if isinstance(seconds, (int, float)):
            return (datetime(1970, 1, 1) + timedelta(seconds=seconds)).date().isoformat()
    return ""


def normalize_blocked_dates(entries: list[Any] | None) -> list[str]:
    """
    Normalize stored blocked dates to ``YYYY-MM-DD`` strings.

    Entries may be plain strings, ISO timestamps, ``{"date": ..., "reason": ...}``
    objects or ``{"seconds": ...}`` epoch objects. Unrecognized entries are dropped
    and duplicates removed, keeping first-seen order.
    """
    if not isinstance(entries, list):
        return []
    normalized = (_normalize_blocked_date(entry) for entry in entries)
    return list(dict.fromkeys(value for value in normalized if value))


def chunked(values: list[str], size: int) -> list[list[str]]:
    """Split values into consecutive chunks of at most ``size`` items."""
    return [values[i : i + size] for i in range(0, len(values), size)]
