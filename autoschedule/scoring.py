"""Candidate scoring.

Each sub-score is normalized to [0, 1]; the total is their weighted sum with
the weights from ``EngineConfig.weights`` (which sum to 1.0), so totals stay
in [0, 1]. Sub-scores that depend on history read only the input snapshot,
never slots accepted during the current generation pass.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, NamedTuple, Optional

from autoschedule import geo
from autoschedule.availability import shared_window
from autoschedule.config import EngineConfig, ScoringWeights
from autoschedule.models import Client, Session, SessionStatus, Therapist
from autoschedule.timeutils import minute_of_day, time_to_minutes, week_start, weekday_name

NEUTRAL = 0.5
MARGIN_HORIZON_MINUTES = 60
CONTIGUITY_HORIZON_MINUTES = 120
SENIOR_YEARS = 3


def clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class ScoringContext:
    """Per-run lookups derived once from the existing sessions."""

    week_minutes: dict = field(default_factory=dict)   # (therapist_id, week monday) -> minutes
    pair_history: dict = field(default_factory=dict)   # (therapist_id, client_id) -> [Session]
    therapist_days: dict = field(default_factory=dict)  # (therapist_id, date) -> [Session]

    @classmethod
    def from_sessions(cls, sessions: Iterable[Session]) -> "ScoringContext":
        week_minutes: dict[tuple[str, date], int] = defaultdict(int)
        pair_history: dict[tuple[str, str], list[Session]] = defaultdict(list)
        therapist_days: dict[tuple[str, date], list[Session]] = defaultdict(list)
        for s in sessions:
            pair_history[(s.therapist_id, s.client_id)].append(s)
            if not s.occupies_time:
                continue
            day = s.start_time.date()
            week_minutes[(s.therapist_id, week_start(day))] += s.duration_minutes
            therapist_days[(s.therapist_id, day)].append(s)
        return cls(dict(week_minutes), dict(pair_history), dict(therapist_days))


class SubScores(NamedTuple):
    compatibility: float
    availability: float
    travel_time: float
    workload: float
    client_preference: float
    continuity: float
    efficiency: float
    urgency: float

    def weighted(self, weights: ScoringWeights) -> float:
        w = weights.as_dict()
        return clamp(sum(w[name] * clamp(value) for name, value in self._asdict().items()))


def compatibility(therapist: Therapist, client: Client) -> float:
    """Service overlap, specialty fit, language and experience; 0 when no modality is shared."""
    offered, wanted = therapist.service_tags, client.service_tags
    common = offered & wanted
    if not common:
        return 0.0
    score = len(common) / max(len(offered), len(wanted)) * 0.4
    specialties = [s.lower() for s in therapist.specialties]
    if any(need.lower() in specialty for need in client.diagnosis for specialty in specialties):
        score += 0.3
    if (client.preferred_language or "English") in therapist.languages:
        score += 0.2
    if therapist.years_experience >= SENIOR_YEARS:
        score += 0.1
    return clamp(score)


def availability_margin(
    therapist: Therapist, client: Client, start: datetime, end: datetime, config: EngineConfig
) -> float:
    """Room left inside the shared window plus closeness to the preferred hours."""
    window = shared_window(therapist, client, weekday_name(start.date()))
    if window is None:
        return 0.0
    lo, hi = window
    s, e = minute_of_day(start), minute_of_day(end) or 24 * 60
    margin = min(s - lo, hi - e)
    if margin < 0:
        return 0.0
    margin_score = min(margin / MARGIN_HORIZON_MINUTES, 1.0)
    drift_hours = (abs(s - time_to_minutes(config.preferred_start))
                   + abs(e - time_to_minutes(config.preferred_end))) / 60
    preferred_score = max(0.0, 1 - drift_hours / 10)
    return clamp(0.5 * margin_score + 0.5 * preferred_score)


def travel_time(therapist: Therapist, client: Client, start: datetime, config: EngineConfig) -> float:
    leg = geo.travel_between(therapist, client, start, config)
    if leg is None:
        return NEUTRAL
    budget = therapist.max_daily_travel_minutes or config.max_daily_travel_minutes
    return clamp(1 - leg.minutes / budget)


def workload(therapist: Therapist, start: datetime, context: ScoringContext) -> float:
    """Share of the therapist's target week (midpoint of min/max) still open."""
    target = (therapist.weekly_hours_min + therapist.weekly_hours_max) / 2
    if target <= 0:
        return 0.0
    worked = context.week_minutes.get((therapist.id, week_start(start.date())), 0) / 60
    remaining = target - worked
    if remaining <= 0:
        return 0.0
    return clamp(remaining / target)


def day_part(start: datetime) -> str:
    if start.hour < 12:
        return "morning"
    if start.hour < 17:
        return "afternoon"
    return "evening"


def client_preference(
    therapist: Therapist, client: Client, start: datetime, end: datetime, config: EngineConfig
) -> float:
    if client.preferred_session_time:
        timing = 1.0 if day_part(start) in client.preferred_session_time else 0.0
    else:
        timing = NEUTRAL
    rush = geo.is_rush_hour(start.hour, config) or geo.is_rush_hour(end.hour, config)
    avoids = therapist.avoid_rush_hour or client.avoid_rush_hour
    traffic = 0.0 if (rush and avoids) else 1.0
    return clamp((timing + traffic) / 2)


def continuity(therapist: Therapist, client: Client, context: ScoringContext) -> float:
    """Track record of this pairing: completion rate and documented sessions."""
    history = context.pair_history.get((therapist.id, client.id), [])
    if not history:
        return NEUTRAL
    completed = sum(1 for s in history if s.status == SessionStatus.COMPLETED) / len(history)
    documented = sum(1 for s in history if s.notes) / len(history)
    return clamp(completed * 0.7 + documented * 0.3)


def efficiency(therapist: Therapist, start: datetime, end: datetime, context: ScoringContext) -> float:
    """Contiguity with the therapist's booked sessions on the same day."""
    booked = context.therapist_days.get((therapist.id, start.date()), [])
    if not booked:
        return NEUTRAL
    gaps = []
    for s in booked:
        if s.end_time <= start:
            gaps.append((start - s.end_time).total_seconds() / 60)
        elif s.start_time >= end:
            gaps.append((s.start_time - end).total_seconds() / 60)
        else:
            return 0.0
    return clamp(1 - min(gaps) / CONTIGUITY_HORIZON_MINUTES)


def urgency(client: Client) -> float:
    """Share of the client's monthly authorization not yet delivered."""
    authorized = client.authorized_hours_per_month
    if not authorized:
        return NEUTRAL
    remaining = authorized - (client.hours_provided_per_month or 0)
    if remaining <= 0:
        return 0.0
    return clamp(remaining / authorized)


def score_candidate(
    therapist: Therapist,
    client: Client,
    start: datetime,
    end: datetime,
    context: ScoringContext,
    config: EngineConfig,
    base_compatibility: Optional[float] = None,
) -> tuple[float, SubScores]:
    subs = SubScores(
        compatibility=compatibility(therapist, client) if base_compatibility is None else base_compatibility,
        availability=availability_margin(therapist, client, start, end, config),
        travel_time=travel_time(therapist, client, start, config),
        workload=workload(therapist, start, context),
        client_preference=client_preference(therapist, client, start, end, config),
        continuity=continuity(therapist, client, context),
        efficiency=efficiency(therapist, start, end, context),
        urgency=urgency(client),
    )
    # Rounded so equal scores compare equal regardless of summation order.
    return round(subs.weighted(config.weights), 6), subs


class Candidate(NamedTuple):
    """A scored (therapist, client, window) proposal awaiting selection."""

    score: float
    start: datetime
    end: datetime
    therapist: Therapist
    client: Client
    therapist_index: int
    client_index: int

    @property
    def sort_key(self) -> tuple:
        # Best score first; ties go to the earlier slot, then roster order.
        return (-self.score, self.start, self.therapist_index, self.client_index)

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)
