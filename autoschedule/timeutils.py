"""Wall-clock helpers shared by the engine modules."""

import re
from datetime import date, datetime, time, timedelta
from typing import Union

from autoschedule.errors import InputError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
SCHEDULABLE_WEEKDAYS = WEEKDAYS[:6]

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

TimeOfDay = Union[str, time, int]


def time_to_minutes(t: str) -> int:
    match = _HHMM.match(t.strip()) if isinstance(t, str) else None
    if not match:
        raise InputError(f"Unparseable time {t!r}; expected HH:MM")
    h, m = int(match.group(1)), int(match.group(2))
    if h > 24 or m > 59 or (h == 24 and m):
        raise InputError(f"Time out of range: {t!r}")
    return h * 60 + m


def minutes_to_time(mins: int) -> str:
    return f"{mins // 60:02d}:{mins % 60:02d}"


def to_minutes(value: TimeOfDay) -> int:
    """Minutes since midnight for an ``HH:MM`` string, a ``time`` or an int."""
    if isinstance(value, bool):
        raise InputError(f"Not a time of day: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    return time_to_minutes(value)


def minute_of_day(dt: datetime) -> int:
    return dt.hour * 60 + dt.minute


def weekday_name(d: date) -> str:
    return WEEKDAYS[d.weekday()]


def week_start(d: date) -> date:
    """Monday of the week containing ``d``."""
    return d - timedelta(days=d.weekday())


def at_minute(d: date, minutes: int) -> datetime:
    return datetime.combine(d, time()) + timedelta(minutes=minutes)


def wall_clock(dt: datetime) -> datetime:
    # Aware datetimes are compared by their local wall-clock reading.
    return dt.replace(tzinfo=None) if dt.tzinfo is not None else dt


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: back-to-back sessions do not collide."""
    return a_start < b_end and b_start < a_end


def daterange(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
