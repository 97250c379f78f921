"""Replacement times for a proposed session that conflicts."""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional, Sequence

from autoschedule import geo
from autoschedule.availability import shared_window
from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.conflicts import check_conflicts, validate_request
from autoschedule.models import AlternativeTime, Client, Conflict, ScheduleSlot, Session, Therapist
from autoschedule.scoring import clamp, travel_time
from autoschedule.timeutils import at_minute, minute_of_day, overlaps, time_to_minutes, weekday_name

logger = logging.getLogger(__name__)


def _probe_starts(start: datetime, duration: timedelta, therapist: Therapist, client: Client,
                  config: EngineConfig) -> list[datetime]:
    starts = []
    window = shared_window(therapist, client, weekday_name(start.date()))
    if window is not None:
        lo, hi = window
        span = int(duration.total_seconds() // 60)
        for minute in range(lo, hi - span + 1, config.slot_minutes):
            starts.append(at_minute(start.date(), minute))
    for days in range(1, config.alternative_search_days + 1):
        starts.append(start + timedelta(days=days))
    return [s for s in dict.fromkeys(starts) if s != start]


def _reason(original: datetime, start: datetime, end: datetime, rush: bool, located: bool,
            config: EngineConfig) -> str:
    parts = []
    if start.date() == original.date():
        delta = int((start - original).total_seconds() // 60)
        parts.append(f"Same day, {abs(delta)} minutes {'later' if delta > 0 else 'earlier'}")
    else:
        days = (start.date() - original.date()).days
        parts.append(f"Same time, {days} day{'s' if days > 1 else ''} later")
    if located and not rush:
        parts.append("Avoids rush-hour travel")
    if (time_to_minutes(config.preferred_start) <= minute_of_day(start)
            and minute_of_day(end) <= time_to_minutes(config.preferred_end)):
        parts.append("Within preferred session hours")
    return "; ".join(parts)


def _score(original: datetime, start: datetime, end: datetime, therapist: Therapist, client: Client,
           config: EngineConfig) -> tuple[float, bool]:
    weights = config.alternative_weights
    hours_away = abs((start - original).total_seconds()) / 3600
    proximity = 1 / (1 + hours_away)
    rush = geo.is_rush_hour(start.hour, config) or geo.is_rush_hour(end.hour, config)
    if not rush:
        traffic = 1.0
    elif therapist.avoid_rush_hour or client.avoid_rush_hour:
        traffic = 0.0
    else:
        traffic = 0.5
    total = (weights.proximity * proximity
             + weights.rush_hour * traffic
             + weights.travel * travel_time(therapist, client, start, config))
    return round(clamp(total), 4), rush


def suggest_alternatives(
    proposed_start: datetime,
    proposed_end: datetime,
    therapist_id: str,
    client_id: str,
    existing_sessions: Iterable[Session],
    therapist: Therapist,
    client: Client,
    conflicts: Sequence[Conflict],
    exclude_session_id: Optional[str] = None,
    *,
    clients_by_id: Optional[Mapping[str, Client]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    limit: Optional[int] = None,
) -> list[AlternativeTime]:
    """Conflict-free windows near the requested one, best first.

    Slides the requested duration across the shared availability of the
    same day and probes the same clock time on the following days. Every
    suggestion passes ``check_conflicts`` as is. An empty list means nothing
    in the search window works.
    """
    start, end = validate_request(proposed_start, proposed_end, therapist_id, client_id, therapist, client)
    if not conflicts:
        return []
    existing = tuple(existing_sessions)
    duration = end - start
    located = therapist.location is not None and client.location is not None

    scored = []
    probes = _probe_starts(start, duration, therapist, client, config)
    for cand_start in probes:
        cand_end = cand_start + duration
        if check_conflicts(cand_start, cand_end, therapist_id, client_id, existing, therapist, client,
                           exclude_session_id, clients_by_id=clients_by_id, config=config):
            continue
        score, rush = _score(start, cand_start, cand_end, therapist, client, config)
        scored.append(AlternativeTime(
            startTime=cand_start,
            endTime=cand_end,
            score=score,
            reason=_reason(start, cand_start, cand_end, rush, located, config),
        ))

    scored.sort(key=lambda a: (-a.score, a.startTime))
    logger.info("Alternatives for %s/%s at %s: %d of %d probes conflict-free",
                therapist_id, client_id, start, len(scored), len(probes))
    return scored[: limit or config.max_alternatives]


def pick_reschedule_slot(
    session: Session,
    candidates: Sequence[ScheduleSlot],
    existing_sessions: Iterable[Session],
) -> Optional[ScheduleSlot]:
    """Best-scored candidate that collides with no other session of either party."""
    others = [s for s in existing_sessions if s.id != session.id and s.occupies_time]
    free = [
        slot for slot in candidates
        if not any(
            (s.therapist_id == slot.therapist_id or s.client_id == slot.client_id)
            and overlaps(slot.startTime, slot.endTime, s.start_time, s.end_time)
            for s in others
        )
    ]
    if not free:
        return None
    return min(free, key=lambda slot: (-slot.score, slot.startTime))
