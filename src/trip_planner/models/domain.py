"""Domain models for trip planning requests, plans and coordinates."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class PlanRequest:
    """Validated input for a single planning run."""

    start: str
    end: str
    waypoints: List[str]
    provider: str
    api_key: str = field(repr=False)


@dataclass(slots=True)
class TripPlan:
    """Visiting order and commentary returned by the language model."""

    sorted_waypoints: List[str]
    analysis: str


@dataclass(slots=True)
class GeoPoint:
    latitude: float
    longitude: float
    name: str = ""

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Chat-completions endpoint and model served by one provider."""

    provider_id: str
    endpoint: str
    model: str
    label: Optional[str] = None
