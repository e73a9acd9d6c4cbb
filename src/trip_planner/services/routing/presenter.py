"""Route presentation on the map surface."""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import GeoPoint
from ..pipeline.session import PipelineSession
from .map_surface import LineStyle, RouteMap

logger = logging.getLogger(__name__)


def stop_label(index: int, total: int, point: GeoPoint) -> str:
    name = point.name or f"Stop {index + 1}"
    if index == 0:
        return f"Start: {name}"
    if index == total - 1:
        return f"End: {name}"
    return f"Stop {index}: {name}"


async def present_route(
    session: PipelineSession,
    points: Sequence[GeoPoint],
    route_map: RouteMap,
    line_style: LineStyle | None = None,
) -> PipelineSession:
    if len(points) < 2:
        raise ValueError("At least two points are required to present a route.")

    if session.route is not None:
        route_map.remove_route(session.route)
        session.route = None

    def _on_routing_error(run_id: str, error: Exception) -> None:
        if run_id == session.run_id:
            session.warn(
                "Route drawing failed: the public routing service is busy. "
                "Straight lines are shown instead; the AI ordering is unaffected."
            )

    unsubscribe = route_map.on_routing_error(_on_routing_error)
    try:
        handle = await route_map.add_route(
            points,
            line_style or LineStyle.from_settings(),
            stop_label,
            run_id=session.run_id,
        )
    finally:
        unsubscribe()

    if handle is None:
        session.warn("A newer planning run replaced this one before its route could be drawn.")
    session.route = handle
    return session
