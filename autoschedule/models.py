"""Pydantic models mirroring the practice-management records the engine reads and produces."""

from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from autoschedule.config import EngineConfig
from autoschedule.timeutils import SCHEDULABLE_WEEKDAYS, WEEKDAYS, time_to_minutes, wall_clock


class AvailabilityWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Optional[str] = None  # "HH:MM"
    end: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def _parseable(cls, v: Optional[str]) -> Optional[str]:
        if v in (None, ""):
            return None
        time_to_minutes(v)
        return v

    @model_validator(mode="after")
    def _ordered(self) -> "AvailabilityWindow":
        if self.is_open and self.start_min >= self.end_min:
            raise ValueError(f"Availability start {self.start} must precede end {self.end}")
        return self

    @property
    def is_open(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def start_min(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_min(self) -> int:
        return time_to_minutes(self.end)


CLOSED = AvailabilityWindow()


class Person(BaseModel):
    """Fields the engine reads from either side of a therapist/client pairing."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    full_name: str = ""
    availability_hours: dict[str, AvailabilityWindow] = Field(default_factory=dict)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    avoid_rush_hour: bool = False

    @field_validator("availability_hours", mode="before")
    @classmethod
    def _normalize_days(cls, v):
        hours = {str(k).lower(): (w if w is not None else {}) for k, w in (v or {}).items()}
        unknown = set(hours) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s) in availability_hours: {sorted(unknown)}")
        # Sunday is never schedulable, whatever the record says.
        return {day: hours.get(day, {}) for day in SCHEDULABLE_WEEKDAYS}

    @property
    def location(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    @property
    def display_name(self) -> str:
        return self.full_name or self.id

    @property
    def service_tags(self) -> frozenset[str]:
        return frozenset()

    def window_for(self, weekday: str) -> AvailabilityWindow:
        weekday = weekday.lower()
        if weekday not in SCHEDULABLE_WEEKDAYS:
            return CLOSED
        return self.availability_hours.get(weekday, CLOSED)


class Therapist(Person):
    service_type: list[str] = Field(default_factory=list)  # "In clinic" | "In home" | "Telehealth" ...
    specialties: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    years_experience: float = Field(0, ge=0)
    weekly_hours_min: float = Field(0, ge=0)
    weekly_hours_max: float = Field(40, ge=0)
    service_radius_km: Optional[float] = Field(None, gt=0)
    max_daily_travel_minutes: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def _hours_ordered(self) -> "Therapist":
        if self.weekly_hours_min > self.weekly_hours_max:
            raise ValueError("weekly_hours_min must not exceed weekly_hours_max")
        return self

    @property
    def service_tags(self) -> frozenset[str]:
        return frozenset(self.service_type)

    def radius_km(self, config: EngineConfig) -> float:
        return self.service_radius_km or config.default_service_radius_km


class Client(Person):
    service_preference: list[str] = Field(default_factory=list)
    diagnosis: list[str] = Field(default_factory=list)
    preferred_language: Optional[str] = None
    max_travel_minutes: Optional[int] = Field(None, gt=0)
    preferred_radius_km: Optional[float] = Field(None, gt=0)
    preferred_session_time: list[Literal["morning", "afternoon", "evening"]] = Field(default_factory=list)
    authorized_hours_per_month: Optional[float] = Field(None, ge=0)
    hours_provided_per_month: Optional[float] = Field(None, ge=0)

    @property
    def service_tags(self) -> frozenset[str]:
        return frozenset(self.service_preference)


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    therapist_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    status: SessionStatus = SessionStatus.SCHEDULED
    notes: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _wall_clock(cls, v: datetime) -> datetime:
        return wall_clock(v)

    @model_validator(mode="after")
    def _ordered(self) -> "Session":
        if self.end_time <= self.start_time:
            raise ValueError(f"Session {self.id}: end_time must be after start_time")
        return self

    @property
    def occupies_time(self) -> bool:
        return self.status != SessionStatus.CANCELLED

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class ConflictKind(str, Enum):
    DOUBLE_BOOKING = "double_booking"
    AVAILABILITY_VIOLATION = "availability_violation"
    TRAVEL_INFEASIBLE = "travel_infeasible"
    CAPACITY_EXCEEDED = "capacity_exceeded"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Conflict(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ConflictKind
    message: str
    severity: Severity = Severity.ERROR
    party: Literal["therapist", "client", "both"]
    sessionId: Optional[str] = None  # the existing session involved, if any


class AlternativeTime(BaseModel):
    startTime: datetime
    endTime: datetime
    score: float = Field(ge=0, le=1)
    reason: str


class ScheduleSlot(BaseModel):
    therapist: Therapist
    client: Client
    startTime: datetime
    endTime: datetime
    score: float = Field(ge=0, le=1)

    @property
    def therapist_id(self) -> str:
        return self.therapist.id

    @property
    def client_id(self) -> str:
        return self.client.id

    @property
    def duration_minutes(self) -> int:
        return int((self.endTime - self.startTime).total_seconds() // 60)

    def as_session(self, session_id: str) -> Session:
        return Session(
            id=session_id,
            therapist_id=self.therapist.id,
            client_id=self.client.id,
            start_time=self.startTime,
            end_time=self.endTime,
        )


class TravelInfo(BaseModel):
    therapistId: str
    clientId: str
    distanceKm: float
    travelMinutes: float
    rushHourTravelMinutes: float


class MatrixRow(BaseModel):
    time: str  # "HH:MM"
    therapistIds: list[str]
    clientIds: list[str]
    rushHour: bool


class AvailabilityMatrix(BaseModel):
    day: date
    weekday: str
    rows: list[MatrixRow]
    travel: list[TravelInfo]


class ScheduleValidation(BaseModel):
    valid: bool
    violations: list[str]


# ---------------------------------------------------------------------------
# HTTP request / response envelopes
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    therapists: list[Therapist]
    clients: list[Client]
    existingSessions: list[Session] = Field(default_factory=list)
    startDate: date
    endDate: date
    config: Optional[EngineConfig] = None


class GenerateResponse(BaseModel):
    schedule: list[ScheduleSlot]
    unscheduledClientIds: list[str]
    success: bool = True
    statusMessage: str
    solveTimeSeconds: float = 0.0


class ConflictCheckRequest(BaseModel):
    startTime: datetime
    endTime: datetime
    therapist: Therapist
    client: Client
    existingSessions: list[Session] = Field(default_factory=list)
    excludeSessionId: Optional[str] = None
    clients: list[Client] = Field(default_factory=list)  # resolves locations of prior sessions
    config: Optional[EngineConfig] = None


class ConflictCheckResponse(BaseModel):
    conflicts: list[Conflict]


class AlternativesRequest(ConflictCheckRequest):
    conflicts: list[Conflict] = Field(default_factory=list)
    limit: Optional[int] = Field(None, ge=1)


class AlternativesResponse(BaseModel):
    alternatives: list[AlternativeTime]


class ValidateRequest(BaseModel):
    schedule: list[ScheduleSlot]
    config: Optional[EngineConfig] = None


class MatrixRequest(BaseModel):
    therapists: list[Therapist]
    clients: list[Client]
    day: date
    config: Optional[EngineConfig] = None
