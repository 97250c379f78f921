"""Great-circle distance and travel-time estimation."""

import math
from datetime import datetime
from typing import NamedTuple, Optional

from autoschedule.config import DEFAULT_CONFIG, EngineConfig
from autoschedule.models import Person

EARTH_RADIUS_KM = 6371.0088


class TravelEstimate(NamedTuple):
    distance_km: float
    minutes: float
    rush_hour: bool


def distance_km(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Haversine distance between two ``(lat, lon)`` points in decimal degrees."""
    lat1, lon1 = map(math.radians, a)
    lat2, lon2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Clamp guards against h drifting past 1.0 for antipodal points.
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, max(0.0, h))))


def is_rush_hour(hour: int, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    return any(window.contains(hour) for window in config.rush_hours)


def travel_minutes(distance: float, hour: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Minutes to cover ``distance`` km at the baseline speed, slowed once during rush hour."""
    if distance < 0:
        raise ValueError(f"Distance must be non-negative, got {distance}")
    minutes = distance / config.baseline_speed_kmh * 60
    if is_rush_hour(hour, config):
        minutes *= config.rush_hour_multiplier
    return minutes


def travel_between(
    a: Person,
    b: Person,
    when: datetime,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Optional[TravelEstimate]:
    """Travel estimate between two people at ``when``.

    Returns ``None`` when either side has no geolocation: the travel
    constraint does not apply, which is not the same as being co-located.
    """
    if a.location is None or b.location is None:
        return None
    return estimate(a.location, b.location, when.hour, config)


def estimate(
    origin: tuple[float, float],
    destination: tuple[float, float],
    hour: int,
    config: EngineConfig = DEFAULT_CONFIG,
) -> TravelEstimate:
    km = distance_km(origin, destination)
    return TravelEstimate(km, travel_minutes(km, hour, config), is_rush_hour(hour, config))
