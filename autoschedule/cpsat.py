"""CP-SAT selection over scored candidates.

Picks the subset of candidates with the highest total score subject to the
generator's hard rules:

* no overlap per therapist and per client, nor with their existing sessions
* at most one slot per (therapist, client, day)
* at most one slot per (client, day) when the policy is on
* therapist weekly minutes within ``weekly_hours_max``

Travel transitions between chosen slots are not modelled; the generator
replays the chosen subset through the conflict detector, which drops any
slot that fails them.
"""

import logging
from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Sequence

from ortools.sat.python import cp_model

from autoschedule.config import EngineConfig
from autoschedule.models import Session
from autoschedule.scoring import Candidate
from autoschedule.timeutils import overlaps, week_start

logger = logging.getLogger(__name__)

SCORE_SCALE = 1000  # CP-SAT objectives are integral


def _offset(origin: datetime, dt: datetime) -> int:
    return int((dt - origin).total_seconds() // 60)


def solve_selection(
    candidates: Sequence[Candidate],
    existing_sessions: Sequence[Session],
    config: EngineConfig,
) -> list[Candidate]:
    """Optimal candidate subset, in the input order.

    Falls back to returning every candidate (leaving the choice to the
    greedy fold) when the solver finds no feasible assignment in time.
    """
    if not candidates:
        return []

    first_day = min(c.start for c in candidates).date()
    last_day = max(c.end for c in candidates).date()
    origin = datetime.combine(first_day, time())
    horizon_end = datetime.combine(last_day + timedelta(days=1), time())

    model = cp_model.CpModel()
    chosen = [model.new_bool_var(f"cand_{i}") for i in range(len(candidates))]

    therapist_intervals: dict[str, list] = defaultdict(list)
    client_intervals: dict[str, list] = defaultdict(list)
    pair_days: dict[tuple, list] = defaultdict(list)
    client_days: dict[tuple, list] = defaultdict(list)
    week_load: dict[tuple, list] = defaultdict(list)
    therapists = {}

    for i, cand in enumerate(candidates):
        t_id, c_id = cand.therapist.id, cand.client.id
        therapists[t_id] = cand.therapist
        day = cand.start.date()
        iv = model.new_optional_fixed_size_interval_var(
            _offset(origin, cand.start), cand.duration_minutes, chosen[i], f"cand_{i}_iv"
        )
        therapist_intervals[t_id].append(iv)
        client_intervals[c_id].append(iv)
        pair_days[(t_id, c_id, day)].append(chosen[i])
        client_days[(c_id, day)].append(chosen[i])
        week_load[(t_id, week_start(day))].append((cand.duration_minutes, chosen[i]))

    booked: dict[tuple, int] = defaultdict(int)
    busy: dict[tuple, list[Session]] = defaultdict(list)
    for s in existing_sessions:
        if not s.occupies_time:
            continue
        booked[(s.therapist_id, week_start(s.start_time.date()))] += s.duration_minutes
        if s.end_time > origin and s.start_time < horizon_end:
            busy[("therapist", s.therapist_id)].append(s)
            busy[("client", s.client_id)].append(s)

    # Candidates colliding with an existing session are ruled out up front;
    # existing sessions may already overlap each other, so they are not intervals.
    for i, cand in enumerate(candidates):
        blockers = busy.get(("therapist", cand.therapist.id), []) + busy.get(("client", cand.client.id), [])
        if any(overlaps(cand.start, cand.end, s.start_time, s.end_time) for s in blockers):
            model.add(chosen[i] == 0)

    for intervals in list(therapist_intervals.values()) + list(client_intervals.values()):
        if len(intervals) > 1:
            model.add_no_overlap(intervals)

    for group in pair_days.values():
        if len(group) > 1:
            model.add_at_most_one(group)

    if config.one_session_per_client_per_day:
        for group in client_days.values():
            if len(group) > 1:
                model.add_at_most_one(group)

    for (t_id, week), terms in week_load.items():
        budget = int(therapists[t_id].weekly_hours_max * 60) - booked.get((t_id, week), 0)
        model.add(sum(minutes * var for minutes, var in terms) <= max(0, budget))

    model.maximize(sum(int(round(c.score * SCORE_SCALE)) * chosen[i] for i, c in enumerate(candidates)))

    solver = cp_model.CpSolver()
    solver.parameters.max_deterministic_time = config.cp_sat_max_deterministic_time
    solver.parameters.num_workers = 1
    solver.parameters.random_seed = config.cp_sat_random_seed

    logger.info("Starting CP-SAT selection: %d candidates, %d therapists, %d clients",
                len(candidates), len(therapist_intervals), len(client_intervals))
    status = solver.solve(model)
    status_name = solver.status_name(status)

    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        logger.warning("CP-SAT returned %s; falling back to greedy selection", status_name)
        return list(candidates)

    logger.info("CP-SAT status: %s, objective: %s", status_name, solver.objective_value)
    return [c for i, c in enumerate(candidates) if solver.value(chosen[i])]
