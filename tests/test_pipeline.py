import asyncio

import pytest

from trip_planner.errors import AIStageError, GeocodingError, InsufficientCoordinates, ProviderMisconfigured
from trip_planner.models.domain import GeoPoint, PlanRequest
from trip_planner.services.geocoding.gate import IntervalGate
from trip_planner.services.pipeline import service as pipeline_service
from trip_planner.services.pipeline.session import LoadingIndicator, PipelineSession, loading_scope
from trip_planner.services.routing.map_surface import LineStyle, RouteMap

STYLE = LineStyle(color="#4f46e5", opacity=0.8, weight=6)

BEIJING = {
    "Beijing Railway Station": (39.9029, 116.4272),
    "Forbidden City": (39.9163, 116.3972),
    "Temple of Heaven": (39.8822, 116.4066),
    "Beijing Capital Airport": (40.0799, 116.6031),
}


def _request(waypoints=("Forbidden City", "Temple of Heaven")) -> PlanRequest:
    return PlanRequest(
        start="Beijing Railway Station",
        end="Beijing Capital Airport",
        waypoints=list(waypoints),
        provider="deepseek",
        api_key="sk-test",
    )


class DummyLLM:
    def __init__(self, reply: str):
        self.reply = reply
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class DummyGeocoder:
    def __init__(self, table: dict):
        self.table = table
        self.calls: list[str] = []

    async def search(self, name: str) -> GeoPoint | None:
        self.calls.append(name)
        value = self.table.get(name)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return GeoPoint(latitude=value[0], longitude=value[1], name=name)


class DummyRouter:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[list[tuple[float, float]]] = []

    async def route(self, coordinates):
        self.calls.append(list(coordinates))
        if self.fail:
            raise ConnectionError("routing backend down")
        return {"code": "Ok", "routes": [{"geometry": "", "distance": 10.0, "duration": 5.0}]}


class NoSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _run(reply: str, table: dict, *, request=None, router=None, policy="repair", session=None):
    router = router or DummyRouter()
    route_map = RouteMap(router_factory=lambda: router)
    geocoder = DummyGeocoder(table)
    sleep = NoSleep()
    session = session or PipelineSession(request=request or _request())
    result = asyncio.run(
        pipeline_service.plan_trip(
            session.request,
            route_map,
            session=session,
            llm_client=DummyLLM(reply),
            geocoder=geocoder,
            gate=IntervalGate(1.0, sleep=sleep),
            line_style=STYLE,
            waypoint_policy=policy,
        )
    )
    return result, route_map, geocoder, router, sleep


def test_scenario_a_four_points_in_order():
    reply = '{"sortedWaypoints":["Forbidden City","Temple of Heaven"],"analysis":"Take the subway."}'

    session, route_map, geocoder, router, sleep = _run(reply, BEIJING)

    expected = ["Beijing Railway Station", "Forbidden City", "Temple of Heaven", "Beijing Capital Airport"]
    assert geocoder.calls == expected
    assert [p.name for p in session.points] == expected
    assert router.calls == [[BEIJING[name] for name in expected]]
    assert sleep.calls == [1.0, 1.0, 1.0]
    assert session.plan.analysis == "Take the subway."
    assert session.route is not None
    assert session.route.markers[0].label == "Start: Beijing Railway Station"
    assert session.route.markers[-1].label == "End: Beijing Capital Airport"
    assert route_map.routes == [session.route]
    assert session.warnings == []
    assert session.loading.visible is False


def test_scenario_b_fenced_reply_with_no_stops():
    reply = '```json\n{"sortedWaypoints":[],"analysis":"ok"}\n```'

    session, _, geocoder, _, _ = _run(reply, BEIJING, request=_request(waypoints=()))

    assert session.plan.sorted_waypoints == []
    assert geocoder.calls == ["Beijing Railway Station", "Beijing Capital Airport"]
    assert len(session.points) == 2


def test_scenario_c_one_failed_lookup_still_draws():
    reply = '{"sortedWaypoints":["Forbidden City"],"analysis":"..."}'
    table = dict(BEIJING)
    table["Forbidden City"] = None

    session, route_map, geocoder, router, _ = _run(reply, table, request=_request(waypoints=("Forbidden City",)))

    assert len(geocoder.calls) == 3
    assert [p.name for p in session.points] == ["Beijing Railway Station", "Beijing Capital Airport"]
    assert len(router.calls[0]) == 2
    assert len(session.route.markers) == 2
    assert len(session.warnings) == 1
    assert '"Forbidden City" could not be found' in session.warnings[0]


def test_lookup_error_is_warned_and_skipped():
    reply = '{"sortedWaypoints":["Forbidden City","Temple of Heaven"],"analysis":""}'
    table = dict(BEIJING)
    table["Temple of Heaven"] = GeocodingError("Temple of Heaven", "map service busy (HTTP 429)")

    session, *_ = _run(reply, table)

    assert len(session.points) == 3
    assert any("Temple of Heaven" in w and "failed" in w for w in session.warnings)


def test_insufficient_coordinates_skips_presenter():
    reply = '{"sortedWaypoints":["Forbidden City"],"analysis":""}'
    router = DummyRouter()

    with pytest.raises(InsufficientCoordinates) as excinfo:
        _run(reply, {"Forbidden City": (39.9, 116.4)}, request=_request(waypoints=("Forbidden City",)), router=router)

    assert excinfo.value.resolved == 1
    assert len(excinfo.value.warnings) == 2
    assert router.calls == []


def test_insufficient_coordinates_hides_loading():
    session = PipelineSession(request=_request())
    with pytest.raises(InsufficientCoordinates):
        _run('{"sortedWaypoints":[],"analysis":""}', {}, session=session)
    assert session.loading.visible is False
    assert session.route is None


def test_ai_failure_aborts_before_geocoding():
    session = PipelineSession(request=_request())
    geocoder = DummyGeocoder(BEIJING)
    route_map = RouteMap(router_factory=DummyRouter)

    with pytest.raises(AIStageError) as excinfo:
        asyncio.run(
            pipeline_service.plan_trip(
                session.request,
                route_map,
                session=session,
                llm_client=DummyLLM("Sorry, I can only answer in prose."),
                geocoder=geocoder,
                gate=IntervalGate(0),
            )
        )

    assert excinfo.value.kind == "MalformedAIResponse"
    assert geocoder.calls == []
    assert session.loading.visible is False
    assert session.plan is None


def test_provider_misconfigured_propagates_as_ai_stage_error():
    class MisconfiguredLLM:
        async def complete(self, prompt):
            raise ProviderMisconfigured("HTML page returned")

    with pytest.raises(AIStageError) as excinfo:
        asyncio.run(
            pipeline_service.plan_trip(
                _request(),
                RouteMap(router_factory=DummyRouter),
                llm_client=MisconfiguredLLM(),
                geocoder=DummyGeocoder(BEIJING),
                gate=IntervalGate(0),
            )
        )
    assert excinfo.value.kind == "ProviderMisconfigured"


def test_routing_failure_is_a_warning_not_an_abort():
    reply = '{"sortedWaypoints":["Forbidden City","Temple of Heaven"],"analysis":"a"}'

    session, *_ = _run(reply, BEIJING, router=DummyRouter(fail=True))

    assert session.route is not None
    assert session.route.source == "straight_line"
    assert len(session.points) == 4
    assert any("Route drawing failed" in w for w in session.warnings)


def test_repair_policy_fixes_model_stop_list():
    reply = '{"sortedWaypoints":["Temple of Heaven","Summer Palace"],"analysis":""}'

    session, _, geocoder, _, _ = _run(reply, BEIJING, policy="repair")

    assert session.plan.sorted_waypoints == ["Temple of Heaven", "Forbidden City"]
    assert "Summer Palace" not in geocoder.calls
    assert len(session.warnings) == 2


def test_trust_policy_geocodes_model_output_as_is():
    reply = '{"sortedWaypoints":["Temple of Heaven","Summer Palace"],"analysis":""}'
    table = dict(BEIJING, **{"Summer Palace": (39.999, 116.275)})

    session, _, geocoder, _, _ = _run(reply, table, policy="trust")

    assert geocoder.calls[1:3] == ["Temple of Heaven", "Summer Palace"]
    assert session.warnings == []


def test_new_run_clears_previous_route():
    router = DummyRouter()
    route_map = RouteMap(router_factory=lambda: router)
    reply = '{"sortedWaypoints":["Forbidden City","Temple of Heaven"],"analysis":""}'

    async def two_runs():
        first = await pipeline_service.plan_trip(
            _request(), route_map, llm_client=DummyLLM(reply), geocoder=DummyGeocoder(BEIJING), gate=IntervalGate(0)
        )
        second = await pipeline_service.plan_trip(
            _request(), route_map, llm_client=DummyLLM(reply), geocoder=DummyGeocoder(BEIJING), gate=IntervalGate(0)
        )
        return first, second

    first, second = asyncio.run(two_runs())

    assert first.run_id != second.run_id
    assert route_map.routes == [second.route]


def test_overlapping_runs_sharing_a_gate_never_geocode_together():
    clock = {"now": 0.0}
    lookups: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        clock["now"] += seconds
        await asyncio.sleep(0)

    class TimedGeocoder(DummyGeocoder):
        async def search(self, name: str):
            lookups.append(clock["now"])
            await asyncio.sleep(0)
            return await super().search(name)

    gate = IntervalGate(0.5, sleep=fake_sleep)
    route_map = RouteMap(router_factory=DummyRouter)
    reply = '{"sortedWaypoints":["Forbidden City","Temple of Heaven"],"analysis":""}'

    async def overlapping_runs():
        return await asyncio.gather(
            *(
                pipeline_service.plan_trip(
                    _request(), route_map, llm_client=DummyLLM(reply), geocoder=TimedGeocoder(BEIJING), gate=gate
                )
                for _ in range(2)
            )
        )

    asyncio.run(overlapping_runs())

    assert len(lookups) == 8
    gaps = [later - earlier for earlier, later in zip(lookups, lookups[1:])]
    assert all(gap >= 0.5 for gap in gaps)


def test_loading_scope_hides_on_exception():
    indicator = LoadingIndicator()
    with pytest.raises(RuntimeError):
        with loading_scope(indicator, "working"):
            assert indicator.visible
            raise RuntimeError("boom")
    assert indicator.visible is False
    assert indicator.history == ["working"]
