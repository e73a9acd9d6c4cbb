"""Policies for model output that is not a permutation of the requested stops."""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import List, Literal, Sequence

from ...errors import AIStageError, MalformedAIResponse

WaypointPolicy = Literal["trust", "repair", "reject"]


@dataclass(slots=True)
class Reconciliation:
    waypoints: List[str]
    unknown: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.unknown or self.missing)


def _key(name: str) -> str:
    return " ".join(name.split()).casefold()


def compare_waypoints(requested: Sequence[str], returned: Sequence[str]) -> Reconciliation:
    """Match the model's order against the requested stops.

    Names are matched ignoring case and repeated whitespace, one returned
    entry per requested entry so duplicates are counted. Matched stops keep
    the model's order and the user's spelling.
    """
    available: dict[str, deque[str]] = defaultdict(deque)
    for name in requested:
        available[_key(name)].append(name)

    ordered: list[str] = []
    unknown: list[str] = []
    for name in returned:
        bucket = available.get(_key(name))
        if bucket:
            ordered.append(bucket.popleft())
        else:
            unknown.append(name)

    # Requested stops the model never returned, in request order.
    leftovers = {key: list(bucket) for key, bucket in available.items() if bucket}
    missing: list[str] = []
    for name in requested:
        bucket = leftovers.get(_key(name))
        if bucket and bucket[0] == name:
            missing.append(bucket.pop(0))

    return Reconciliation(waypoints=ordered + missing, unknown=unknown, missing=missing)


def apply_policy(policy: WaypointPolicy, requested: Sequence[str], returned: Sequence[str]) -> Reconciliation:
    if policy == "trust":
        return Reconciliation(waypoints=list(returned))

    result = compare_waypoints(requested, returned)
    if policy == "reject" and result.changed:
        cause = MalformedAIResponse(
            "The AI changed the stop list "
            f"(unknown: {result.unknown or 'none'}, missing: {result.missing or 'none'})."
        )
        raise AIStageError(f"AI stage failed: {cause}", cause=cause)
    return result
