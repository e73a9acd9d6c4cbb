"""Planning request/response schemas."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class TripPlanPayload(BaseModel):
    """Shape the language model must return inside its reply."""

    model_config = ConfigDict(extra="ignore")

    sorted_waypoints: List[StrictStr] = Field(..., alias="sortedWaypoints")
    analysis: StrictStr


class PlanRequestModel(BaseModel):
    api_key: Optional[str] = Field(default="", description="Credential for the selected provider. Never stored.")
    start: Optional[str] = ""
    end: Optional[str] = ""
    waypoints: Optional[Union[str, List[str]]] = Field(
        default="",
        description="Intermediate stops, either a newline-delimited block or a list of names.",
    )
    provider: Optional[str] = Field(default=None, description="Provider id; defaults to the configured provider.")

    @field_validator("waypoints", mode="after")
    @classmethod
    def _join_list(cls, value: Optional[Union[str, List[str]]]) -> str:
        if isinstance(value, list):
            return "\n".join(value)
        return value or ""


class GeoPointModel(BaseModel):
    name: str
    latitude: float
    longitude: float


class RouteMarkerModel(BaseModel):
    sequence: int
    label: str
    latitude: float
    longitude: float


class LineStyleModel(BaseModel):
    color: str
    opacity: float
    weight: int


class RouteModel(BaseModel):
    route_id: str
    source: str
    style: LineStyleModel
    markers: List[RouteMarkerModel]
    coordinates: List[List[float]]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None


class PlanResponse(BaseModel):
    run_id: str
    provider: str
    analysis: str
    sorted_waypoints: List[str]
    points: List[GeoPointModel]
    route: Optional[RouteModel] = None
    warnings: List[str] = Field(default_factory=list)
    status_log: List[str] = Field(default_factory=list)


class ProviderModel(BaseModel):
    id: str
    label: Optional[str] = None
    endpoint: str
    model: str
