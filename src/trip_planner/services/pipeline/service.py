"""Planning pipeline orchestration service."""

from __future__ import annotations

import logging

from ...config import settings
from ...errors import GeocodingError, InsufficientCoordinates
from ...models.domain import PlanRequest
from ..geocoding.gate import IntervalGate, RateGate
from ..geocoding.nominatim_client import NominatimClient
from ..geocoding.resolver import Geocoder, resolve_coordinates
from ..routing.map_surface import LineStyle, RouteMap
from ..routing.presenter import present_route
from ..sequencing.llm_client import ChatCompletionsClient
from ..sequencing.sequencer import sequence_waypoints
from .reconcile import WaypointPolicy, apply_policy
from .session import PipelineSession, loading_scope

logger = logging.getLogger(__name__)


async def plan_trip(
    request: PlanRequest,
    route_map: RouteMap,
    *,
    session: PipelineSession | None = None,
    llm_client: ChatCompletionsClient | None = None,
    geocoder: Geocoder | None = None,
    gate: RateGate | None = None,
    line_style: LineStyle | None = None,
    waypoint_policy: WaypointPolicy | None = None,
) -> PipelineSession:
    """Run sequencing, geocoding and route presentation for one request.

    Raises ``AIStageError`` or ``InsufficientCoordinates`` on fatal failures.
    Non-fatal problems end up in ``session.warnings``.
    """
    session = session or PipelineSession(request=request)
    route_map.begin_run(session.run_id)
    logger.info(
        f"Run {session.run_id[:8]}: planning {request.start!r} -> {request.end!r} "
        f"with {len(request.waypoints)} stop(s) via {request.provider}"
    )

    indicator = session.loading
    with loading_scope(indicator, "Asking the AI for the best route order..."):
        plan = await sequence_waypoints(request, client=llm_client)

        policy = waypoint_policy or settings.waypoint_policy
        reconciliation = apply_policy(policy, request.waypoints, plan.sorted_waypoints)
        for name in reconciliation.unknown:
            session.warn(f'The AI returned an unknown stop "{name}"; it was left out.')
        for name in reconciliation.missing:
            session.warn(f'The AI dropped the stop "{name}"; it was appended before the destination.')
        plan.sorted_waypoints = reconciliation.waypoints
        session.plan = plan

        names = [request.start, *plan.sorted_waypoints, request.end]
        indicator.show(f"Searching coordinates for {len(names)} places (please wait)...")

        def _on_progress(index: int, total: int, name: str) -> None:
            indicator.show(f"Searching place ({index + 1}/{total}): {name}")

        def _on_missing(name: str) -> None:
            session.warn(
                f'"{name}" could not be found on the map and was skipped. '
                "Try a more official or specific name."
            )

        def _on_error(name: str, error: GeocodingError) -> None:
            session.warn(f'Looking up "{name}" failed and it was skipped ({error}).')

        points = await resolve_coordinates(
            names,
            geocoder=geocoder or NominatimClient(),
            gate=gate or IntervalGate(settings.geocoder_delay_seconds),
            on_progress=_on_progress,
            on_missing=_on_missing,
            on_error=_on_error,
        )
        session.points = points

        if len(points) < 2:
            raise InsufficientCoordinates(len(points), session.warnings)

        indicator.show("Drawing the road route...")
        session = await present_route(session, points, route_map, line_style)

    logger.info(
        f"Run {session.run_id[:8]} finished: {len(session.points)} point(s), "
        f"{len(session.warnings)} warning(s)"
    )
    return session
