import asyncio

import httpx
import pytest

from trip_planner.errors import GeocodingError
from trip_planner.models.domain import GeoPoint
from trip_planner.services.geocoding.gate import IntervalGate
from trip_planner.services.geocoding.nominatim_client import NominatimClient
from trip_planner.services.geocoding.resolver import resolve_coordinates


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class DummyGeocoder:
    """Resolves names from a table; names mapped to an exception raise it."""

    def __init__(self, table: dict, events: list | None = None):
        self.table = table
        self.calls: list[str] = []
        self.events = events

    async def search(self, name: str) -> GeoPoint | None:
        self.calls.append(name)
        if self.events is not None:
            self.events.append(("search", name))
        value = self.table.get(name)
        if isinstance(value, Exception):
            raise value
        if value is None:
            return None
        return GeoPoint(latitude=value[0], longitude=value[1], name=name)


class EventGate:
    def __init__(self, events: list):
        self.events = events

    async def acquire(self) -> None:
        self.events.append(("acquire", None))


def test_gate_waits_before_every_acquire_but_the_first():
    sleep = RecordingSleep()
    gate = IntervalGate(1.5, sleep=sleep)

    async def run():
        for _ in range(4):
            await gate.acquire()

    asyncio.run(run())
    assert sleep.calls == [1.5, 1.5, 1.5]
    assert gate.acquisitions == 4

    gate.reset()
    asyncio.run(gate.acquire())
    assert sleep.calls == [1.5, 1.5, 1.5]


def test_gate_rejects_negative_interval():
    with pytest.raises(ValueError):
        IntervalGate(-1)


@pytest.mark.parametrize("count", [0, 1, 2, 5])
def test_one_lookup_per_name_with_fixed_delays(count):
    names = [f"Place {i}" for i in range(count)]
    # Every other name fails in some way; pacing must not change.
    table = {}
    for i, name in enumerate(names):
        if i % 3 == 1:
            table[name] = GeocodingError(name, "HTTP 503")
        elif i % 3 == 2:
            table[name] = None
        else:
            table[name] = (float(i), float(i))
    geocoder = DummyGeocoder(table)
    sleep = RecordingSleep()

    asyncio.run(resolve_coordinates(names, geocoder=geocoder, gate=IntervalGate(1.2, sleep=sleep)))

    assert geocoder.calls == names
    assert sleep.calls == [1.2] * max(count - 1, 0)


def test_gate_is_acquired_before_each_lookup():
    events: list = []
    geocoder = DummyGeocoder({"A": (1.0, 1.0), "B": (2.0, 2.0)}, events=events)

    asyncio.run(resolve_coordinates(["A", "B"], geocoder=geocoder, gate=EventGate(events)))

    assert events == [("acquire", None), ("search", "A"), ("acquire", None), ("search", "B")]


def test_output_is_resolved_subsequence_in_order():
    names = ["Start", "Nowhere", "Mid", "Broken", "End"]
    geocoder = DummyGeocoder(
        {
            "Start": (39.9, 116.4),
            "Nowhere": None,
            "Mid": (39.91, 116.39),
            "Broken": GeocodingError("Broken", "timeout"),
            "End": (40.08, 116.58),
        }
    )
    missing: list[str] = []
    failed: list[str] = []
    progress: list[tuple[int, int, str]] = []

    points = asyncio.run(
        resolve_coordinates(
            names,
            geocoder=geocoder,
            gate=IntervalGate(0),
            on_progress=lambda i, total, name: progress.append((i, total, name)),
            on_missing=missing.append,
            on_error=lambda name, exc: failed.append(name),
        )
    )

    assert [p.name for p in points] == ["Start", "Mid", "End"]
    assert points[0].as_tuple() == (39.9, 116.4)
    assert missing == ["Nowhere"]
    assert failed == ["Broken"]
    assert progress == [(i, 5, name) for i, name in enumerate(names)]


def test_duplicate_names_are_looked_up_each_time():
    geocoder = DummyGeocoder({"A": (1.0, 2.0)})
    points = asyncio.run(resolve_coordinates(["A", "A"], geocoder=geocoder, gate=IntervalGate(0)))
    assert len(points) == 2
    assert geocoder.calls == ["A", "A"]


def _nominatim(handler) -> NominatimClient:
    return NominatimClient(
        base_url="https://geo.example.org/",
        user_agent="planner-tests/1.0",
        transport=httpx.MockTransport(handler),
    )


def test_nominatim_request_and_string_coordinates():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["ua"] = request.headers.get("User-Agent")
        return httpx.Response(200, json=[{"lat": "39.9163447", "lon": "116.3971546", "display_name": "Forbidden City"}])

    point = asyncio.run(_nominatim(handler).search("Forbidden City"))

    assert point == GeoPoint(latitude=39.9163447, longitude=116.3971546, name="Forbidden City")
    assert seen["path"] == "/search"
    assert seen["params"] == {"q": "Forbidden City", "format": "json", "limit": "1"}
    assert seen["ua"] == "planner-tests/1.0"


def test_nominatim_numeric_coordinates_and_empty_result():
    responses = iter([[{"lat": 1.5, "lon": -2.25}], []])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=next(responses))

    client = _nominatim(handler)
    assert asyncio.run(client.search("x")).as_tuple() == (1.5, -2.25)
    assert asyncio.run(client.search("y")) is None


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, text="Too Many Requests"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"error": "bad"}),
        httpx.Response(200, json=[{"lat": "abc", "lon": "1"}]),
    ],
)
def test_nominatim_failures_raise_geocoding_error(response):
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(GeocodingError) as excinfo:
        asyncio.run(_nominatim(handler).search("Somewhere"))
    assert excinfo.value.name == "Somewhere"


def test_nominatim_transport_error_raises_geocoding_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GeocodingError):
        asyncio.run(_nominatim(handler).search("Somewhere"))
