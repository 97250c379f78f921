"""Auto-scheduling engine for therapist/client sessions."""

from autoschedule.alternatives import pick_reschedule_slot, suggest_alternatives
from autoschedule.availability import availability_matrix, is_available
from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.conflicts import check_conflicts
from autoschedule.errors import InputError
from autoschedule.generator import generate_optimal_schedule
from autoschedule.validation import validate_schedule

__all__ = [
    "DEFAULT_CONFIG",
    "EngineConfig",
    "InputError",
    "availability_matrix",
    "check_conflicts",
    "generate_optimal_schedule",
    "is_available",
    "pick_reschedule_slot",
    "suggest_alternatives",
    "validate_schedule",
]
