"""Batch schedule generation over a date range.

Candidates are enumerated per day and grid slot for every compatible pair,
scored, ordered best first, and then folded into an accumulator of accepted
slots. Each acceptance is re-validated by the conflict detector against the
existing sessions plus everything accepted so far, so the output never
double-books anyone. A client with no acceptable candidate is left out of
the result rather than raising.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial, reduce
from itertools import chain
from typing import Mapping, Optional, Sequence

from autoschedule import geo
from autoschedule.availability import shared_window
from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.conflicts import check_conflicts
from autoschedule.cpsat import solve_selection
from autoschedule.errors import InputError
from autoschedule.models import Client, ScheduleSlot, Session, Therapist
from autoschedule.scoring import Candidate, ScoringContext, compatibility, score_candidate
from autoschedule.timeutils import at_minute, daterange, weekday_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accumulator:
    """Slots accepted so far in one generation pass."""

    slots: tuple[ScheduleSlot, ...] = ()
    sessions: tuple[Session, ...] = ()
    pair_days: frozenset = frozenset()    # (therapist_id, client_id, date)
    client_days: frozenset = frozenset()  # (client_id, date)


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def _eligible_pairs(
    therapists: Sequence[Therapist], clients: Sequence[Client], config: EngineConfig
) -> list[tuple[int, int, float, Optional[float]]]:
    """(therapist index, client index, compatibility, distance km) for every workable pair."""
    pairs = []
    for ti, t in enumerate(therapists):
        for ci, c in enumerate(clients):
            base = compatibility(t, c)
            if base <= 0:
                continue
            km = None
            if t.location is not None and c.location is not None:
                km = geo.distance_km(t.location, c.location)
                if km > t.radius_km(config):
                    continue
                if c.preferred_radius_km is not None and km > c.preferred_radius_km:
                    continue
            pairs.append((ti, ci, base, km))
    return pairs


def enumerate_candidates(
    therapists: Sequence[Therapist],
    clients: Sequence[Client],
    existing_sessions: Sequence[Session],
    start_date: date,
    end_date: date,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[Candidate]:
    """Every scored candidate in the range, best first."""
    context = ScoringContext.from_sessions(existing_sessions)
    pairs = _eligible_pairs(therapists, clients, config)
    duration = config.session_minutes
    step = config.slot_minutes
    svc_lo, svc_hi = config.service_window_start_min, config.service_window_end_min

    candidates: list[Candidate] = []
    for day in daterange(start_date, end_date):
        weekday = weekday_name(day)
        for ti, ci, base, km in pairs:
            therapist, client = therapists[ti], clients[ci]
            window = shared_window(therapist, client, weekday)
            if window is None:
                continue
            lo, hi = max(window[0], svc_lo), min(window[1], svc_hi)
            # Snap to the service grid.
            first = svc_lo + -(-(lo - svc_lo) // step) * step
            for minute in range(first, hi - duration + 1, step):
                start = at_minute(day, minute)
                end = at_minute(day, minute + duration)
                if km is not None and client.max_travel_minutes is not None:
                    if geo.travel_minutes(km, start.hour, config) > client.max_travel_minutes:
                        continue
                score, _ = score_candidate(therapist, client, start, end, context, config, base)
                if score < config.min_candidate_score:
                    continue
                candidates.append(Candidate(score, start, end, therapist, client, ti, ci))

    candidates.sort(key=lambda c: c.sort_key)
    return candidates


def _accept(
    state: Accumulator,
    candidate: Candidate,
    *,
    existing: Sequence[Session],
    clients_by_id: Mapping[str, Client],
    config: EngineConfig,
) -> Accumulator:
    therapist, client = candidate.therapist, candidate.client
    day = candidate.start.date()
    pair_day = (therapist.id, client.id, day)
    client_day = (client.id, day)
    if pair_day in state.pair_days:
        return state
    if config.one_session_per_client_per_day and client_day in state.client_days:
        return state

    conflicts = check_conflicts(
        candidate.start, candidate.end, therapist.id, client.id,
        chain(existing, state.sessions), therapist, client,
        clients_by_id=clients_by_id, config=config,
    )
    if conflicts:
        logger.debug("Rejected %s/%s at %s: %s", therapist.id, client.id, candidate.start,
                     ", ".join(c.kind.value for c in conflicts))
        return state

    slot = ScheduleSlot(
        therapist=therapist,
        client=client,
        startTime=candidate.start,
        endTime=candidate.end,
        score=candidate.score,
    )
    return Accumulator(
        slots=state.slots + (slot,),
        sessions=state.sessions + (slot.as_session(f"proposed-{len(state.slots) + 1}"),),
        pair_days=state.pair_days | {pair_day},
        client_days=state.client_days | {client_day},
    )


def select_slots(
    candidates: Sequence[Candidate],
    existing_sessions: Sequence[Session],
    clients: Sequence[Client],
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[ScheduleSlot]:
    """Greedy fold over ``candidates`` (already ordered best first)."""
    step = partial(
        _accept,
        existing=tuple(existing_sessions),
        clients_by_id={c.id: c for c in clients},
        config=config,
    )
    return list(reduce(step, candidates, Accumulator()).slots)


def generate_optimal_schedule(
    therapists: Sequence[Therapist],
    clients: Sequence[Client],
    existing_sessions: Sequence[Session],
    start_date: date,
    end_date: date,
    *,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[ScheduleSlot]:
    """Best-effort non-conflicting sessions for the roster over ``[start_date, end_date]``."""
    start_date, end_date = _as_date(start_date), _as_date(end_date)
    if end_date < start_date:
        raise InputError(f"End date {end_date} is before start date {start_date}")
    existing_sessions = tuple(existing_sessions)

    started = time.perf_counter()
    candidates = enumerate_candidates(therapists, clients, existing_sessions, start_date, end_date, config)
    logger.info("Scheduling %s..%s: %d therapists, %d clients, %d candidates, strategy=%s",
                start_date, end_date, len(therapists), len(clients), len(candidates), config.strategy)

    if config.strategy == "cp_sat" and candidates:
        candidates = solve_selection(candidates, existing_sessions, config)

    slots = select_slots(candidates, existing_sessions, clients, config)
    slots.sort(key=lambda s: (s.startTime, s.therapist_id, s.client_id))

    missing = unscheduled_client_ids(clients, slots)
    logger.info("Accepted %d slots in %.3fs; %d client(s) unscheduled",
                len(slots), time.perf_counter() - started, len(missing))
    return slots


def unscheduled_client_ids(clients: Sequence[Client], slots: Sequence[ScheduleSlot]) -> list[str]:
    scheduled = {s.client_id for s in slots}
    return [c.id for c in clients if c.id not in scheduled]
