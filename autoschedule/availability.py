"""Weekly availability lookups on integer wall-clock minutes."""

from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from autoschedule import geo
from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.models import (
    AvailabilityMatrix,
    Client,
    MatrixRow,
    Person,
    Therapist,
    TravelInfo,
)
from autoschedule.timeutils import TimeOfDay, minute_of_day, minutes_to_time, to_minutes, weekday_name


def is_available(person: Person, weekday: str, time_of_day: TimeOfDay) -> bool:
    """True iff ``start <= time_of_day < end`` for the person's window on ``weekday``.

    A missing day or a window with either bound unset means unavailable.
    """
    window = person.window_for(weekday)
    if not window.is_open:
        return False
    t = to_minutes(time_of_day)
    return window.start_min <= t < window.end_min


def covers(person: Person, start: datetime, end: datetime) -> bool:
    """Whether the person is available for the whole of ``[start, end)``.

    Checks the first and the last minute; a window is contiguous, so both
    ends inside it on the same day means the interval is inside it.
    """
    last = end - timedelta(minutes=1)
    if last.date() != start.date():
        return False
    weekday = weekday_name(start.date())
    return is_available(person, weekday, minute_of_day(start)) and is_available(
        person, weekday, minute_of_day(last)
    )


def shared_window(therapist: Person, client: Person, weekday: str) -> Optional[tuple[int, int]]:
    """Intersection of both windows in minutes since midnight, or None."""
    tw = therapist.window_for(weekday)
    cw = client.window_for(weekday)
    if not (tw.is_open and cw.is_open):
        return None
    lo = max(tw.start_min, cw.start_min)
    hi = min(tw.end_min, cw.end_min)
    if lo >= hi:
        return None
    return lo, hi


def availability_matrix(
    therapists: Sequence[Therapist],
    clients: Sequence[Client],
    day: date,
    config: EngineConfig = DEFAULT_CONFIG,
) -> AvailabilityMatrix:
    """Who is free at each grid slot of the service window on ``day``."""
    weekday = weekday_name(day)
    rows: list[MatrixRow] = []
    for t in range(config.service_window_start_min, config.service_window_end_min, config.slot_minutes):
        rows.append(MatrixRow(
            time=minutes_to_time(t),
            therapistIds=[p.id for p in therapists if is_available(p, weekday, t)],
            clientIds=[c.id for c in clients if is_available(c, weekday, t)],
            rushHour=geo.is_rush_hour(t // 60, config),
        ))

    travel: list[TravelInfo] = []
    rush_hour = config.rush_hours[0].start if config.rush_hours else 0
    off_peak = next((h for h in range(24) if not geo.is_rush_hour(h, config)), 0)
    for therapist in therapists:
        if therapist.location is None:
            continue
        for client in clients:
            if client.location is None:
                continue
            km = geo.distance_km(therapist.location, client.location)
            travel.append(TravelInfo(
                therapistId=therapist.id,
                clientId=client.id,
                distanceKm=round(km, 3),
                travelMinutes=round(geo.travel_minutes(km, off_peak, config), 1),
                rushHourTravelMinutes=round(geo.travel_minutes(km, rush_hour, config), 1),
            ))

    return AvailabilityMatrix(day=day, weekday=weekday, rows=rows, travel=travel)
