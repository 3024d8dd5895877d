"""Route-intent prompt template and JSON extraction from completions."""

from __future__ import annotations

import json

from veloroute.contracts.intent import TranslationContext
from veloroute.services.errors import UnparseableResponse

ROUTE_INTENT_PROMPT = """\
You are a cycling route planner. Extract the rider's route request as JSON.

{context}

Rider request: "{request}"

Route types:
- "loop": start and finish at the same place, returning on different roads
- "out_back": ride out and return the same way
- "point_to_point": different start and end

Return ONLY a JSON object with these keys:
{{
  "startLocation": "start place if mentioned, or null",
  "waypoints": ["place or trail names the rider mentioned, in riding order"],
  "routeType": "loop|out_back|point_to_point",
  "distance": number in km or null,
  "timeAvailable": number in minutes or null,
  "surfaceType": "paved|gravel|mixed" or null,
  "terrain": "flat|rolling|hilly" or null,
  "avoidHighways": true/false or null,
  "avoidTraffic": true/false or null,
  "trainingGoal": "endurance|intervals|recovery|tempo|hills" or null,
  "direction": "north|east|south|west" if the rider named a direction, else null
}}

Rules:
1. Trail and path names go into "waypoints" exactly as the rider wrote them.
2. "dirt", "gravel" or "unpaved" means surfaceType "gravel".
3. "and back on a different route" is a loop; the destination is a waypoint.
4. "and back the same way" is out_back.
5. Convert miles to km (1 mile = 1.609 km) and hours to minutes.
6. Never invent place names. Use null for anything not stated.
"""


def _context_lines(context: TranslationContext | None) -> str:
    if context is None:
        return "Context: none"
    lines = ["Context:"]
    if context.region_name:
        lines.append(f"- Rider is near {context.region_name}")
    if context.origin is not None:
        lon, lat = context.origin
        lines.append(f"- Current position: {lat:.5f}, {lon:.5f}")
    if context.weather_summary:
        lines.append(f"- Weather: {context.weather_summary}")
    if context.ride_history:
        lines.append(f"- Ride history: {len(context.ride_history)} recorded points")
    if len(lines) == 1:
        lines.append("- none")
    return "\n".join(lines)


def build_intent_prompt(text: str, context: TranslationContext | None = None) -> str:
    request = " ".join(text.split()).replace('"', "'")
    return ROUTE_INTENT_PROMPT.format(context=_context_lines(context), request=request)


def extract_json_object(text: str) -> dict:
    """Return the first ``{...}`` object embedded in *text*.

    Raises
    ------
    UnparseableResponse
        When no JSON object can be decoded.
    """
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise UnparseableResponse(f"no JSON object in completion: {text[:120]!r}")
