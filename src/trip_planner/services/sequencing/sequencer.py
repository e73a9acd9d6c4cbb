"""Waypoint sequencing through a language model.

The model is asked to reorder the intermediate stops and explain the route.
Its reply is untrusted free text: code fences and commentary are tolerated,
the first ``{`` to last ``}`` span is parsed and validated against
``TripPlanPayload`` before anything downstream sees it.

The sequencer does not check that the returned stops are a permutation of the
input; see ``services.pipeline.reconcile`` for that policy.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Sequence

from pydantic import ValidationError as SchemaValidationError

from ...errors import AIStageError, MalformedAIResponse, ProviderMisconfigured, SequencerFailure
from ...models.domain import PlanRequest, TripPlan
from ...schemas.planning import TripPlanPayload
from .llm_client import ChatCompletionsClient
from .providers import get_provider

_LEADING_FENCE_RE = re.compile(r"^\s*```[\w-]*")
_TRAILING_FENCE_RE = re.compile(r"```\s*$")
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}")

logger = logging.getLogger(__name__)


def build_prompt(start: str, end: str, waypoints: Sequence[str]) -> str:
    return (
        "Task: order the stops of a trip so the route is logical and avoids backtracking.\n"
        f"Start: {start}\n"
        f"End: {end}\n"
        f"Stops: {json.dumps(list(waypoints), ensure_ascii=False)}\n"
        "\n"
        "Requirements:\n"
        "1. Reorder the stops so they can be visited in sequence from the start to the end.\n"
        "2. Use every stop exactly once and keep the names exactly as given.\n"
        "3. Reply with JSON only, no extra text.\n"
        "\n"
        "Reply format example:\n"
        "{\n"
        '    "sortedWaypoints": ["Place A", "Place B"],\n'
        '    "analysis": "Transport advice in markdown..."\n'
        "}\n"
    )


def extract_json_span(text: str) -> str:
    """Return the first-``{``-to-last-``}`` region of ``text``.

    Only a fence wrapping the reply is removed. Fences inside the JSON strings
    belong to the analysis markdown and are kept.
    """
    cleaned = _TRAILING_FENCE_RE.sub("", _LEADING_FENCE_RE.sub("", text, count=1), count=1)
    match = _JSON_SPAN_RE.search(cleaned)
    if not match:
        raise MalformedAIResponse("The AI reply does not contain a JSON object. Please try again.")
    return match.group(0)


def parse_trip_plan(text: str) -> TripPlan:
    span = extract_json_span(text)
    try:
        raw = json.loads(span)
    except json.JSONDecodeError as exc:
        raise MalformedAIResponse(f"The AI reply is not valid JSON: {exc.msg}") from exc
    try:
        payload = TripPlanPayload.model_validate(raw)
    except SchemaValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) or "<root>" for err in exc.errors())
        raise MalformedAIResponse(f"The AI reply does not match the expected plan format ({fields}).") from exc
    return TripPlan(sorted_waypoints=list(payload.sorted_waypoints), analysis=payload.analysis)


async def sequence_waypoints(
    request: PlanRequest,
    client: ChatCompletionsClient | None = None,
) -> TripPlan:
    """Ask the configured provider for a visiting order; every failure becomes ``AIStageError``."""
    try:
        if client is None:
            try:
                provider = get_provider(request.provider)
            except KeyError as exc:
                raise ProviderMisconfigured(str(exc.args[0])) from exc
            client = ChatCompletionsClient(provider, request.api_key)
        prompt = build_prompt(request.start, request.end, request.waypoints)
        content = await client.complete(prompt)
        logger.debug("Raw AI reply (%d chars): %s", len(content), content[:500])
        plan = parse_trip_plan(content)
    except SequencerFailure as exc:
        logger.warning(f"AI stage failed ({type(exc).__name__}): {exc}")
        raise AIStageError(f"AI stage failed: {exc}", cause=exc) from exc

    logger.info(
        f"AI ordered {len(plan.sorted_waypoints)} stop(s) for {len(request.waypoints)} requested"
    )
    return plan
