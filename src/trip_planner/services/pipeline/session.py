"""Per-run state for the planning pipeline."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterator, List, Optional

from ...models.domain import GeoPoint, PlanRequest, TripPlan

if TYPE_CHECKING:
    from ..routing.map_surface import RouteHandle

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoadingIndicator:
    """Visible status for the run; the HTTP response carries its history."""

    visible: bool = False
    text: str = ""
    history: List[str] = field(default_factory=list)

    def show(self, text: str) -> None:
        self.visible = True
        self.text = text
        self.history.append(text)
        logger.info(text)

    def hide(self) -> None:
        self.visible = False
        self.text = ""


@dataclass(slots=True)
class PipelineSession:
    """Everything one planning run owns. Runs never share a session."""

    request: PlanRequest
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    plan: Optional[TripPlan] = None
    points: List[GeoPoint] = field(default_factory=list)
    route: Optional["RouteHandle"] = None
    warnings: List[str] = field(default_factory=list)
    loading: LoadingIndicator = field(default_factory=LoadingIndicator)

    def warn(self, message: str) -> None:
        logger.warning(f"[run {self.run_id[:8]}] {message}")
        self.warnings.append(message)


@contextmanager
def loading_scope(indicator: LoadingIndicator, text: str) -> Iterator[LoadingIndicator]:
    """Show ``indicator`` for the duration of the block and always hide it afterwards."""
    indicator.show(text)
    try:
        yield indicator
    finally:
        indicator.hide()
