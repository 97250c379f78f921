"""Shared builders for test fixtures."""

from datetime import date, datetime, time

MONDAY = date(2025, 5, 19)
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")


def hours(start: str, end: str, days=WEEKDAYS) -> dict:
    return {d: {"start": start, "end": end} for d in days}


def at(day: date, hhmm: str) -> datetime:
    h, m = map(int, hhmm.split(":"))
    return datetime.combine(day, time(h, m))
