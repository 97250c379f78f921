"""Engine configuration.

Every threshold the engine uses lives here: rush-hour windows, scoring
weights, grid sizes and radius defaults. The engine reads no files or
environment variables; callers override fields by building their own
``EngineConfig`` (or ``DEFAULT_CONFIG.model_copy(update=...)``).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from autoschedule.timeutils import time_to_minutes

WEIGHT_TOLERANCE = 1e-6


class RushHourWindow(BaseModel):
    """Hours ``[start, end)`` during which travel is slowed."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0, le=23)
    end: int = Field(ge=1, le=24)

    @model_validator(mode="after")
    def _ordered(self) -> "RushHourWindow":
        if self.start >= self.end:
            raise ValueError(f"Rush-hour window start ({self.start}) must precede end ({self.end})")
        return self

    def contains(self, hour: int) -> bool:
        return self.start <= hour < self.end


class _Weights(BaseModel):
    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _sum_to_one(self):
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"{type(self).__name__} must sum to 1.0, got {total:.6f}")
        return self

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class ScoringWeights(_Weights):
    """Weights of the generator's sub-scores."""

    compatibility: float = Field(0.25, ge=0)
    availability: float = Field(0.20, ge=0)
    travel_time: float = Field(0.15, ge=0)
    workload: float = Field(0.10, ge=0)
    client_preference: float = Field(0.10, ge=0)
    continuity: float = Field(0.10, ge=0)
    efficiency: float = Field(0.05, ge=0)
    urgency: float = Field(0.05, ge=0)


class AlternativeWeights(_Weights):
    """Weights used to rank alternative times."""

    proximity: float = Field(0.5, ge=0)
    rush_hour: float = Field(0.25, ge=0)
    travel: float = Field(0.25, ge=0)


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Travel
    baseline_speed_kmh: float = Field(30.0, gt=0)
    rush_hour_multiplier: float = Field(1.5, ge=1.0)
    rush_hours: tuple[RushHourWindow, ...] = (
        RushHourWindow(start=7, end=9),
        RushHourWindow(start=16, end=18),
    )
    default_service_radius_km: float = Field(25.0, gt=0)
    max_daily_travel_minutes: int = Field(180, gt=0)  # travel score normalizer

    # Grid
    slot_minutes: int = Field(15, gt=0, le=60)
    service_window_start: str = "08:00"
    service_window_end: str = "18:00"
    default_session_minutes: int = Field(60, gt=0)

    # Scoring
    weights: ScoringWeights = ScoringWeights()
    preferred_start: str = "09:00"
    preferred_end: str = "15:00"
    min_candidate_score: float = Field(0.0, ge=0, le=1)

    # Selection
    strategy: Literal["greedy", "cp_sat"] = "greedy"
    one_session_per_client_per_day: bool = True
    cp_sat_max_deterministic_time: float = Field(10.0, gt=0)
    cp_sat_random_seed: int = 0

    # Alternatives
    alternative_weights: AlternativeWeights = AlternativeWeights()
    alternative_search_days: int = Field(3, ge=1, le=7)
    max_alternatives: int = Field(5, ge=1)

    # Validation rules
    max_daily_hours: float = Field(8.0, gt=0)
    max_consecutive_sessions: int = Field(4, ge=1)
    min_break_minutes: int = Field(30, ge=0)

    @field_validator("service_window_start", "service_window_end", "preferred_start", "preferred_end")
    @classmethod
    def _parseable(cls, v: str) -> str:
        time_to_minutes(v)
        return v

    @model_validator(mode="after")
    def _windows_ordered(self) -> "EngineConfig":
        if self.service_window_start_min >= self.service_window_end_min:
            raise ValueError("service_window_start must precede service_window_end")
        if time_to_minutes(self.preferred_start) >= time_to_minutes(self.preferred_end):
            raise ValueError("preferred_start must precede preferred_end")
        return self

    @property
    def service_window_start_min(self) -> int:
        return time_to_minutes(self.service_window_start)

    @property
    def service_window_end_min(self) -> int:
        return time_to_minutes(self.service_window_end)

    @property
    def session_minutes(self) -> int:
        """Default session length rounded up to the slot grid."""
        return -(-self.default_session_minutes // self.slot_minutes) * self.slot_minutes


DEFAULT_CONFIG = EngineConfig()
