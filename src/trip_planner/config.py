"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="PLANNER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "AI Route Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app().")

    default_provider: str = Field(
        default="deepseek",
        description="Provider used when a plan request does not name one.",
    )
    extra_providers: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Additional chat-completions providers: {id: {endpoint, model}}.",
    )
    ai_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    ai_timeout_seconds: float = Field(default=60.0, gt=0.0)

    geocoder_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL of a Nominatim-compatible search service.",
    )
    geocoder_user_agent: str = Field(
        default="ai-route-planner/0.1",
        description="Nominatim's usage policy rejects requests without an identifying User-Agent.",
    )
    geocoder_timeout_seconds: float = Field(default=10.0, gt=0.0)
    # Public Nominatim allows at most one request per second per client.
    geocoder_delay_seconds: float = Field(default=1.5, ge=0.0)

    waypoint_policy: Literal["trust", "repair", "reject"] = Field(
        default="repair",
        description="What to do when the model's sortedWaypoints is not a permutation of the input.",
    )

    osrm_base_url: Optional[str] = Field(
        default="https://router.project-osrm.org",
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "walking", "cycling"] = Field(
        default="driving",
        description="OSRM profile to use when computing the route line.",
    )
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_timeout_seconds: float = Field(default=20.0, gt=0.0)

    route_line_color: str = "#4f46e5"
    route_line_opacity: float = Field(default=0.8, ge=0.0, le=1.0)
    route_line_weight: int = Field(default=6, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8080",
            "http://127.0.0.1:8080",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        # Return empty tuple if value is None or empty
        return tuple()

    @field_validator("extra_providers", mode="before")
    @classmethod
    def _parse_providers_from_env(cls, value: Any) -> dict[str, dict[str, str]]:
        """Accept the provider map as a dict or a JSON object string."""
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"extra_providers must be a JSON object: {exc}") from exc
        if not isinstance(value, dict):
            raise ValueError("extra_providers must map provider ids to {endpoint, model}.")
        parsed: dict[str, dict[str, str]] = {}
        for provider_id, entry in value.items():
            if not isinstance(entry, dict) or not entry.get("endpoint") or not entry.get("model"):
                raise ValueError(f"Provider '{provider_id}' needs both 'endpoint' and 'model'.")
            parsed[str(provider_id).strip().lower()] = {
                "endpoint": str(entry["endpoint"]),
                "model": str(entry["model"]),
            }
        return parsed


settings = Settings()
