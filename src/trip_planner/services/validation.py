"""Input validation for plan requests."""

from __future__ import annotations

from ..config import settings
from ..errors import ValidationError
from ..models.domain import PlanRequest
from .sequencing.providers import PROVIDERS


def split_waypoints(block: str) -> list[str]:
    """Split a newline-delimited block into stops, dropping blank lines."""
    # Only "\n" separates stops; splitlines() would also break on form feeds and U+2028.
    return [line.strip() for line in block.split("\n") if line.strip()]


def validate_plan_input(
    api_key: str | None,
    start: str | None,
    end: str | None,
    waypoints_text: str | None,
    provider: str | None = None,
) -> PlanRequest:
    api_key = (api_key or "").strip()
    start = (start or "").strip()
    end = (end or "").strip()
    waypoints_text = (waypoints_text or "").strip()

    if not api_key:
        raise ValidationError("Please enter an API key.")
    if not start or not end:
        raise ValidationError("Start and end locations are both required.")

    provider_id = (provider or "").strip().lower() or settings.default_provider
    if provider_id not in PROVIDERS:
        raise ValidationError(
            f"Unknown provider '{provider_id}'. Choose one of: {', '.join(sorted(PROVIDERS))}."
        )

    return PlanRequest(
        start=start,
        end=end,
        waypoints=split_waypoints(waypoints_text),
        provider=provider_id,
        api_key=api_key,
    )
