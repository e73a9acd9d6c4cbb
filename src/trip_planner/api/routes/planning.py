"""Trip planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status

from ...errors import AIStageError, InsufficientCoordinates, ValidationError
from ...schemas.planning import (
    GeoPointModel,
    LineStyleModel,
    PlanRequestModel,
    PlanResponse,
    ProviderModel,
    RouteMarkerModel,
    RouteModel,
)
from ...services.geocoding.gate import IntervalGate
from ...services.pipeline import service as pipeline_service
from ...services.pipeline.session import PipelineSession
from ...services.routing.map_surface import RouteHandle, RouteMap
from ...services.sequencing.providers import PROVIDERS
from ...services.validation import validate_plan_input

router = APIRouter(tags=["planning"])

logger = logging.getLogger(__name__)


def _route_map(request: Request) -> RouteMap:
    return request.app.state.route_map


def _geocoding_gate(request: Request) -> IntervalGate:
    # One gate per process: every browser shares this server's Nominatim quota.
    return request.app.state.geocoding_gate


def _route_to_model(handle: RouteHandle) -> RouteModel:
    return RouteModel(
        route_id=handle.route_id,
        source=handle.source,
        style=LineStyleModel(
            color=handle.style.color,
            opacity=handle.style.opacity,
            weight=handle.style.weight,
        ),
        markers=[
            RouteMarkerModel(
                sequence=marker.sequence,
                label=marker.label,
                latitude=marker.latitude,
                longitude=marker.longitude,
            )
            for marker in handle.markers
        ],
        coordinates=[[lat, lon] for lat, lon in handle.geometry],
        distance_m=handle.distance_m,
        duration_s=handle.duration_s,
    )


def _session_to_response(session: PipelineSession) -> PlanResponse:
    plan = session.plan
    return PlanResponse(
        run_id=session.run_id,
        provider=session.request.provider,
        analysis=plan.analysis if plan else "",
        sorted_waypoints=list(plan.sorted_waypoints) if plan else [],
        points=[
            GeoPointModel(name=point.name, latitude=point.latitude, longitude=point.longitude)
            for point in session.points
        ],
        route=_route_to_model(session.route) if session.route else None,
        warnings=list(session.warnings),
        status_log=list(session.loading.history),
    )


@router.post("/plan", response_model=PlanResponse, status_code=status.HTTP_200_OK)
async def plan(payload: PlanRequestModel, request: Request) -> PlanResponse:
    try:
        plan_request = validate_plan_input(
            payload.api_key, payload.start, payload.end, payload.waypoints, payload.provider
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        session = await pipeline_service.plan_trip(
            plan_request, _route_map(request), gate=_geocoding_gate(request)
        )
    except AIStageError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"stage": "ai", "kind": exc.kind, "message": str(exc)},
        ) from exc
    except InsufficientCoordinates as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "stage": "geocoding",
                "message": str(exc),
                "resolved": exc.resolved,
                "warnings": exc.warnings,
            },
        ) from exc
    except Exception as exc:
        logger.exception(f"Error planning trip: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan trip: {str(exc)}",
        ) from exc

    return _session_to_response(session)


@router.get("/providers", response_model=list[ProviderModel], status_code=status.HTTP_200_OK)
def list_providers() -> list[ProviderModel]:
    return [
        ProviderModel(id=config.provider_id, label=config.label, endpoint=config.endpoint, model=config.model)
        for config in PROVIDERS.values()
    ]


@router.get("/map/routes", response_model=list[RouteModel], status_code=status.HTTP_200_OK)
def current_routes(request: Request) -> list[RouteModel]:
    """Routes currently drawn on the map surface (only the latest run's)."""
    return [_route_to_model(handle) for handle in _route_map(request).routes]
