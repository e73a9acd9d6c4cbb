"""Serial, rate-limited resolution of place names to coordinates."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol, Sequence

from ...errors import GeocodingError
from ...models.domain import GeoPoint
from .gate import RateGate

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def search(self, name: str) -> GeoPoint | None: ...


async def resolve_coordinates(
    names: Sequence[str],
    *,
    geocoder: Geocoder,
    gate: RateGate,
    on_progress: Optional[Callable[[int, int, str], None]] = None,
    on_missing: Optional[Callable[[str], None]] = None,
    on_error: Optional[Callable[[str, GeocodingError], None]] = None,
) -> list[GeoPoint]:
    """Look up every name in order, one request at a time.

    Names the service cannot find, or whose lookup fails, are reported through
    the callbacks and left out of the result, so the output is the resolved
    subsequence of ``names`` in its original order.
    """
    points: list[GeoPoint] = []
    total = len(names)
    start_time = time.time()

    for index, name in enumerate(names):
        if on_progress:
            on_progress(index, total, name)
        await gate.acquire()

        try:
            point = await geocoder.search(name)
        except GeocodingError as exc:
            logger.error(f"Search failed for '{name}': {exc}")
            if on_error:
                on_error(name, exc)
            continue

        if point is None:
            logger.warning(f"No match for place '{name}', skipping")
            if on_missing:
                on_missing(name)
            continue

        logger.debug(f"Found {name}: {point.latitude}, {point.longitude}")
        points.append(point)

    duration = time.time() - start_time
    logger.info(f"Resolved {len(points)}/{total} places in {duration:.2f}s")
    return points
