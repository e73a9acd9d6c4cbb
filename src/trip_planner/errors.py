"""Exception taxonomy for the planning pipeline."""

from __future__ import annotations

from typing import Sequence


class PlannerError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class ValidationError(PlannerError):
    """Required input is missing or unusable; the pipeline never starts."""


class SequencerFailure(PlannerError):
    """Something went wrong while obtaining or parsing the trip plan."""


class ProviderMisconfigured(SequencerFailure):
    """The provider endpoint answered with markup instead of an API response."""


class ProviderRequestFailed(SequencerFailure):
    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedAIResponse(SequencerFailure):
    """The model reply does not contain a usable plan."""


class AIStageError(PlannerError):
    """Single failure category surfaced for the whole AI stage."""

    def __init__(self, message: str, cause: SequencerFailure | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self.cause).__name__ if self.cause is not None else type(self).__name__


class GeocodingError(PlannerError):
    """A single place lookup failed. The resolver recovers from it."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"Lookup for '{name}' failed: {message}")
        self.name = name


class InsufficientCoordinates(PlannerError):
    """Fewer than two places resolved, so there is nothing to draw."""

    def __init__(self, resolved: int, warnings: Sequence[str] = ()) -> None:
        super().__init__(
            f"Only {resolved} place(s) could be located; a route needs at least two. "
            "Check that the place names are spelled correctly."
        )
        self.resolved = resolved
        self.warnings = list(warnings)
