"""Post-hoc checks on a produced schedule."""

from collections import defaultdict
from typing import Sequence

from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.models import ScheduleSlot, ScheduleValidation


def validate_schedule(slots: Sequence[ScheduleSlot], config: EngineConfig = DEFAULT_CONFIG) -> ScheduleValidation:
    violations: list[str] = []
    by_therapist_day: dict[tuple, list[ScheduleSlot]] = defaultdict(list)
    for slot in slots:
        by_therapist_day[(slot.therapist_id, slot.startTime.date())].append(slot)

    for (therapist_id, day), day_slots in sorted(by_therapist_day.items()):
        day_slots = sorted(day_slots, key=lambda s: s.startTime)

        total_hours = sum(s.duration_minutes for s in day_slots) / 60
        if total_hours > config.max_daily_hours:
            violations.append(
                f"Therapist {therapist_id} exceeds maximum daily hours on {day}: "
                f"{total_hours:g} h > {config.max_daily_hours:g} h"
            )

        run = 1
        for prev, cur in zip(day_slots, day_slots[1:]):
            if cur.startTime < prev.endTime:
                violations.append(
                    f"Therapist {therapist_id} has overlapping sessions on {day} at "
                    f"{prev.startTime:%H:%M} and {cur.startTime:%H:%M}"
                )
            gap = (cur.startTime - prev.endTime).total_seconds() / 60
            run = run + 1 if gap < config.min_break_minutes else 1
            if run == config.max_consecutive_sessions + 1:
                violations.append(
                    f"Therapist {therapist_id} has more than {config.max_consecutive_sessions} "
                    f"consecutive sessions without a {config.min_break_minutes}-minute break on {day}"
                )

    return ScheduleValidation(valid=not violations, violations=violations)
