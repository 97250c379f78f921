"""Conflict detection for a single proposed session."""

import logging
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from autoschedule import geo
from autoschedule.availability import covers
from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.errors import InputError
from autoschedule.models import Client, Conflict, ConflictKind, Person, Session, Severity, Therapist
from autoschedule.timeutils import overlaps, wall_clock, week_start, weekday_name

logger = logging.getLogger(__name__)


def validate_request(
    start: datetime,
    end: datetime,
    therapist_id: str,
    client_id: str,
    therapist: Therapist,
    client: Client,
) -> tuple[datetime, datetime]:
    """Reject malformed input and return the wall-clock interval."""
    if not therapist_id or not client_id:
        raise InputError("therapist_id and client_id are required")
    if therapist.id != therapist_id:
        raise InputError(f"therapist_id {therapist_id!r} does not match therapist record {therapist.id!r}")
    if client.id != client_id:
        raise InputError(f"client_id {client_id!r} does not match client record {client.id!r}")
    start, end = wall_clock(start), wall_clock(end)
    if end <= start:
        raise InputError(f"End time {end:%Y-%m-%d %H:%M} must be after start time {start:%Y-%m-%d %H:%M}")
    return start, end


def relevant_sessions(
    sessions: Iterable[Session],
    therapist_id: str,
    client_id: str,
    exclude_session_id: Optional[str] = None,
) -> list[Session]:
    """Non-cancelled sessions of either party, minus the one being edited."""
    return [
        s for s in sessions
        if s.occupies_time
        and s.id != exclude_session_id
        and (s.therapist_id == therapist_id or s.client_id == client_id)
    ]


def weekly_minutes(sessions: Iterable[Session], therapist_id: str, when: datetime) -> int:
    """Minutes booked for the therapist in the Monday-start week containing ``when``."""
    week = week_start(when.date())
    return sum(
        s.duration_minutes for s in sessions
        if s.occupies_time and s.therapist_id == therapist_id and week_start(s.start_time.date()) == week
    )


def _hhmm(dt: datetime) -> str:
    return dt.strftime("%H:%M")


def _double_bookings(start, end, therapist_id, client_id, sessions, therapist, client) -> list[Conflict]:
    conflicts = []
    for s in sessions:
        if not overlaps(start, end, s.start_time, s.end_time):
            continue
        same_t = s.therapist_id == therapist_id
        same_c = s.client_id == client_id
        if same_t and same_c:
            party, who = "both", f"Therapist {therapist.display_name} and client {client.display_name} are"
        elif same_t:
            party, who = "therapist", f"Therapist {therapist.display_name} is"
        else:
            party, who = "client", f"Client {client.display_name} is"
        conflicts.append(Conflict(
            kind=ConflictKind.DOUBLE_BOOKING,
            message=f"{who} already booked from {_hhmm(s.start_time)} to {_hhmm(s.end_time)}",
            party=party,
            sessionId=s.id,
        ))
    return conflicts


def _availability(start: datetime, end: datetime, person: Person, role: str) -> Optional[Conflict]:
    weekday = weekday_name(start.date())
    label = f"{role.capitalize()} {person.display_name}"
    window = person.window_for(weekday)
    if not window.is_open:
        message = f"{label} is not available on {weekday.capitalize()}s"
    elif covers(person, start, end):
        return None
    else:
        message = f"{label} is only available {window.start}-{window.end} on {weekday.capitalize()}s"
    return Conflict(kind=ConflictKind.AVAILABILITY_VIOLATION, message=message, party=role)


def _travel(
    start: datetime,
    end: datetime,
    therapist: Therapist,
    client: Client,
    sessions: Sequence[Session],
    clients_by_id: Optional[Mapping[str, Client]],
    config: EngineConfig,
) -> list[Conflict]:
    if therapist.location is None or client.location is None:
        return []
    conflicts = []

    leg = geo.travel_between(therapist, client, start, config)
    radius = therapist.radius_km(config)
    if leg.distance_km > radius:
        conflicts.append(Conflict(
            kind=ConflictKind.TRAVEL_INFEASIBLE,
            message=(f"Client {client.display_name} is {leg.distance_km:.1f} km away, outside "
                     f"therapist {therapist.display_name}'s {radius:g} km service radius"),
            party="therapist",
        ))
    if client.preferred_radius_km is not None and leg.distance_km > client.preferred_radius_km:
        conflicts.append(Conflict(
            kind=ConflictKind.TRAVEL_INFEASIBLE,
            message=(f"Therapist {therapist.display_name} is {leg.distance_km:.1f} km away, beyond "
                     f"client {client.display_name}'s preferred {client.preferred_radius_km:g} km radius"),
            party="client",
        ))
    if client.max_travel_minutes is not None and leg.minutes > client.max_travel_minutes:
        rush = " (rush hour)" if leg.rush_hour else ""
        conflicts.append(Conflict(
            kind=ConflictKind.TRAVEL_INFEASIBLE,
            message=(f"Estimated travel of {leg.minutes:.0f} min{rush} exceeds "
                     f"client {client.display_name}'s limit of {client.max_travel_minutes} min"),
            party="client",
        ))

    if not clients_by_id:
        return conflicts

    # Transitions between this client and the therapist's neighbouring sessions that day.
    same_day = sorted(
        (s for s in sessions
         if s.therapist_id == therapist.id and s.client_id != client.id
         and s.start_time.date() == start.date()),
        key=lambda s: s.start_time,
    )
    before = [s for s in same_day if s.end_time <= start]
    after = [s for s in same_day if s.start_time >= end]
    transitions = []
    if before:
        transitions.append((before[-1], before[-1].end_time, start))
    if after:
        transitions.append((after[0], end, after[0].start_time))
    for neighbour, leave, arrive in transitions:
        other = clients_by_id.get(neighbour.client_id)
        if other is None or other.location is None:
            continue
        hop = geo.estimate(other.location, client.location, leave.hour, config)
        gap = (arrive - leave).total_seconds() / 60
        if hop.minutes > gap:
            conflicts.append(Conflict(
                kind=ConflictKind.TRAVEL_INFEASIBLE,
                message=(f"Therapist {therapist.display_name} needs {hop.minutes:.0f} min to travel "
                         f"between {other.display_name} and {client.display_name} "
                         f"but has {gap:.0f} min"),
                party="therapist",
                sessionId=neighbour.id,
            ))
    return conflicts


def _capacity(start: datetime, end: datetime, therapist: Therapist, sessions: Sequence[Session]) -> Optional[Conflict]:
    booked = weekly_minutes(sessions, therapist.id, start)
    proposed = (end - start).total_seconds() / 60
    limit = therapist.weekly_hours_max * 60
    if booked + proposed <= limit:
        return None
    return Conflict(
        kind=ConflictKind.CAPACITY_EXCEEDED,
        message=(f"Therapist {therapist.display_name} would work {(booked + proposed) / 60:g} h "
                 f"this week, above the {therapist.weekly_hours_max:g} h maximum"),
        severity=Severity.WARNING,
        party="therapist",
    )


def check_conflicts(
    proposed_start: datetime,
    proposed_end: datetime,
    therapist_id: str,
    client_id: str,
    existing_sessions: Iterable[Session],
    therapist: Therapist,
    client: Client,
    exclude_session_id: Optional[str] = None,
    *,
    clients_by_id: Optional[Mapping[str, Client]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[Conflict]:
    """Every reason the proposed session cannot stand as given.

    An empty list means it is schedulable. ``exclude_session_id`` names the
    session being edited so it does not collide with itself.
    ``clients_by_id`` lets the travel check resolve where the therapist's
    neighbouring sessions take place.
    """
    start, end = validate_request(proposed_start, proposed_end, therapist_id, client_id, therapist, client)
    sessions = relevant_sessions(existing_sessions, therapist_id, client_id, exclude_session_id)

    conflicts = _double_bookings(start, end, therapist_id, client_id, sessions, therapist, client)
    for person, role in ((therapist, "therapist"), (client, "client")):
        violation = _availability(start, end, person, role)
        if violation:
            conflicts.append(violation)
    conflicts.extend(_travel(start, end, therapist, client, sessions, clients_by_id, config))
    capacity = _capacity(start, end, therapist, sessions)
    if capacity:
        conflicts.append(capacity)

    if conflicts:
        logger.debug("Proposed %s-%s for %s/%s: %d conflict(s)",
                     start, end, therapist_id, client_id, len(conflicts))
    return conflicts
