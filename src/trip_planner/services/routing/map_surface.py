"""Server-side map surface holding the routes drawn for the active run."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import httpx

from ...config import settings
from ...models.domain import GeoPoint
from .osrm_client import OSRMClient, decode_polyline

logger = logging.getLogger(__name__)

RoutingErrorListener = Callable[[str, Exception], None]


@dataclass(frozen=True, slots=True)
class LineStyle:
    color: str
    opacity: float
    weight: int

    @classmethod
    def from_settings(cls) -> "LineStyle":
        return cls(
            color=settings.route_line_color,
            opacity=settings.route_line_opacity,
            weight=settings.route_line_weight,
        )


@dataclass(slots=True)
class RouteMarker:
    sequence: int
    label: str
    latitude: float
    longitude: float


@dataclass(slots=True)
class RouteHandle:
    route_id: str
    run_id: str
    style: LineStyle
    waypoints: List[tuple[float, float]]
    markers: List[RouteMarker]
    geometry: List[tuple[float, float]] = field(default_factory=list)
    source: str = "straight_line"
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None


class RouteMap:
    """Owns the drawn routes; only the run started last may draw on it."""

    def __init__(self, router_factory: Callable[[], OSRMClient] | None = None) -> None:
        self._router_factory = router_factory or OSRMClient
        self._routes: dict[str, RouteHandle] = {}
        self._listeners: list[RoutingErrorListener] = []
        self.active_run: str | None = None

    def begin_run(self, run_id: str) -> None:
        """Hand the surface to a new run and clear everything drawn before it."""
        if self._routes:
            logger.info(f"Clearing {len(self._routes)} route(s) for new run {run_id}")
        self._routes.clear()
        self.active_run = run_id

    def on_routing_error(self, listener: RoutingErrorListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit_routing_error(self, run_id: str, error: Exception) -> None:
        for listener in list(self._listeners):
            listener(run_id, error)

    @property
    def routes(self) -> list[RouteHandle]:
        return list(self._routes.values())

    async def add_route(
        self,
        coordinates: Sequence[GeoPoint],
        line_style: LineStyle,
        label_for: Callable[[int, int, GeoPoint], str],
        *,
        run_id: str,
    ) -> RouteHandle | None:
        """Draw a route through ``coordinates`` in order.

        Returns ``None`` when ``run_id`` is no longer the active run. If the
        routing backend cannot compute a street-level line the handle falls back
        to straight segments and the routing-error channel fires.
        """
        if run_id != self.active_run:
            logger.info(f"Ignoring route from superseded run {run_id} (active: {self.active_run})")
            return None
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to draw a route.")

        waypoints = [point.as_tuple() for point in coordinates]
        total = len(coordinates)
        handle = RouteHandle(
            route_id=f"route_{uuid.uuid4().hex[:8]}",
            run_id=run_id,
            style=line_style,
            waypoints=waypoints,
            markers=[
                RouteMarker(
                    sequence=index + 1,
                    label=label_for(index, total, point),
                    latitude=point.latitude,
                    longitude=point.longitude,
                )
                for index, point in enumerate(coordinates)
            ],
            geometry=list(waypoints),
        )

        routing_error: Exception | None = None
        try:
            router = self._router_factory()
            data = await router.route(waypoints)
            best = data["routes"][0]
            handle.geometry = decode_polyline(best["geometry"])
            handle.distance_m = best.get("distance")
            handle.duration_s = best.get("duration")
            handle.source = "osrm"
        except (ValueError, ConnectionError, httpx.HTTPError, KeyError, IndexError, TypeError) as exc:
            logger.error(f"Routing error for {handle.route_id}: {exc}")
            routing_error = exc

        # A newer run may have started while the routing backend was working.
        if run_id != self.active_run:
            logger.info(f"Dropping route {handle.route_id}; run {run_id} was superseded")
            return None

        self._routes[handle.route_id] = handle
        if routing_error is not None:
            self._emit_routing_error(run_id, routing_error)
        logger.info(
            f"Route {handle.route_id}: {len(handle.markers)} stops, "
            f"{len(handle.geometry)} geometry points, source={handle.source}"
        )
        return handle

    def remove_route(self, handle: RouteHandle) -> None:
        self._routes.pop(handle.route_id, None)
