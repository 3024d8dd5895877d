"""Free-text route requests -> seeded, snapped route.

State machine::

    idle -> parsing -> resolved -> generating -> done | failed
               \\-> needs_clarification -> awaiting_answer -> parsing -> ...

The completion output is an untrusted parser boundary: its JSON is validated
strictly into a ``RouteIntent`` and anything else is ``UnparseableResponse``.
Routing-type phrasing in the rider's own words overrides the model.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from pydantic import ValidationError

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import (
    CardinalDirection,
    RideStyle,
    RouteType,
    RoutingProfile,
    SurfaceType,
    Terrain,
    TrafficAvoidance,
    TrainingGoal,
    TranslatorState,
)
from veloroute.contracts.intent import (
    ClarificationAnswer,
    ClarificationRequest,
    RouteIntent,
    TranslationContext,
    TranslationOutcome,
)
from veloroute.contracts.routing import RoutePreferences
from veloroute.contracts.waypoint import Waypoint
from veloroute.services.assistant.completion import TextCompleter
from veloroute.services.assistant.direction import (
    DIRECTION_BEARINGS,
    infer_direction,
    least_ridden_direction,
)
from veloroute.services.assistant.geocoding import Geocoder
from veloroute.services.assistant.prompt import build_intent_prompt, extract_json_object
from veloroute.services.errors import (
    GeocodeNotFound,
    InvalidTransition,
    NoStartingPoint,
    UnparseableResponse,
)
from veloroute.services.geometry import destination_point, same_point
from veloroute.services.route_engine import (
    DEFAULT_SPEED_KMH,
    RouteConstructionEngine,
    SetPreferences,
    SetProfile,
)

logger = logging.getLogger(__name__)

DEFAULT_RIDE_KM = 30.0
# Half-angle of the triangle used for direction-only loops
LOOP_SPREAD_DEG = 30.0

_NAME = r"[A-Z][\w'.-]*(?:\s+[A-Z][\w'.-]*)*"
_DIFFERENT_WAY_BACK = re.compile(
    r"\b(?:different|another|other)\s+(?:route|way|roads?)\s+back\b"
    r"|\bback\s+(?:on|by|via|along)\s+(?:a\s+)?(?:different|another|other)\s+(?:route|way|roads?)\b"
)
_SAME_WAY = re.compile(r"\bsame\s+(?:way|route|roads?)\b")
_RETURN = re.compile(r"\b(?:back|return|returning|loop|round\s+trip)\b")
_FROM_TO = re.compile(rf"\bfrom\s+(?P<start>{_NAME})\s+to\s+(?P<end>{_NAME})")
_DESTINATION = re.compile(rf"\b(?:to|towards?)\s+(?P<place>{_NAME})")
_GRAVEL_WORDS = re.compile(r"\b(?:dirt|gravel|unpaved)\b")


# ---------------------------------------------------------------------------
# Intent rules
# ---------------------------------------------------------------------------


def _contains_name(names: Sequence[str], name: str) -> bool:
    return name.lower() in (n.lower() for n in names)


def apply_phrasing_rules(text: str, intent: RouteIntent) -> RouteIntent:
    """Correct route type and surface from the rider's explicit wording."""
    lower = text.lower()
    update: dict = {}
    names = list(intent.waypoint_names)

    if _DIFFERENT_WAY_BACK.search(lower):
        # the fallback provider finds alternate roads back to the start
        update["route_type"] = RouteType.LOOP
        match = _DESTINATION.search(text)
        if match and not _contains_name(names, match["place"]):
            update["waypoint_names"] = names + [match["place"]]
    elif _SAME_WAY.search(lower):
        update["route_type"] = RouteType.OUT_BACK
    else:
        match = _FROM_TO.search(text)
        if match and not _RETURN.search(lower):
            update["route_type"] = RouteType.POINT_TO_POINT
            if intent.start_location_name is None:
                update["start_location_name"] = match["start"]
            if not names:
                update["waypoint_names"] = [match["end"]]

    if intent.surface_type is None and _GRAVEL_WORDS.search(lower):
        update["surface_type"] = SurfaceType.GRAVEL

    return intent.model_copy(update=update) if update else intent


def merge_answer(
    intent: RouteIntent, reply: ClarificationAnswer, context: TranslationContext
) -> RouteIntent:
    """Fold a clarification reply into *intent*.

    A destination already in the intent wins over ``reply.place_name``
    unless the rider explicitly overrides it.
    """
    update: dict = {}
    if reply.place_name and (not intent.waypoint_names or reply.override_destination):
        update["waypoint_names"] = [reply.place_name.strip()]
    if reply.terrain:
        update["terrain"] = reply.terrain
    if reply.surface_type:
        update["surface_type"] = reply.surface_type
    if reply.ride_style:
        update["ride_style"] = reply.ride_style

    if reply.direction:
        update["direction"] = reply.direction
    elif reply.ride_style and not reply.place_name and intent.direction is None:
        if RideStyle(reply.ride_style) == RideStyle.EXPLORE:
            update["direction"] = least_ridden_direction(context.origin, context.ride_history)
        else:
            update["direction"] = infer_direction(context.origin, context.ride_history)

    return intent.model_copy(update=update)


def missing_anchor_fields(intent: RouteIntent) -> list[str]:
    if intent.is_anchored:
        return []
    return ["waypoints", "direction"]


def profile_for(intent: RouteIntent) -> RoutingProfile:
    if intent.surface_type is not None and SurfaceType(intent.surface_type) == SurfaceType.GRAVEL:
        return RoutingProfile.GRAVEL
    return RoutingProfile.ROAD


def preferences_for(intent: RouteIntent) -> RoutePreferences:
    goal = intent.training_goal
    if goal is None:
        hilly = intent.terrain is not None and Terrain(intent.terrain) == Terrain.HILLY
        goal = TrainingGoal.HILLS if hilly else TrainingGoal.ENDURANCE
    return RoutePreferences(
        surface_type=intent.surface_type or SurfaceType.MIXED,
        avoid_traffic=TrafficAvoidance.HIGH if intent.avoid_traffic else None,
        avoid_highways=bool(intent.avoid_highways),
        training_goal=goal,
    )


def target_distance_m(intent: RouteIntent, speed_kmh: float = DEFAULT_SPEED_KMH) -> float:
    if intent.distance_km is not None:
        return intent.distance_km * 1000.0
    if intent.time_minutes is not None:
        return intent.time_minutes / 60.0 * speed_kmh * 1000.0
    return DEFAULT_RIDE_KM * 1000.0


def synthetic_waypoints(
    start: LonLat, direction: CardinalDirection, route_type: RouteType, distance_m: float
) -> list[LonLat]:
    """Turn points that give a route of about *distance_m* heading *direction*."""
    bearing = DIRECTION_BEARINGS[CardinalDirection(direction)]
    route_type = RouteType(route_type)
    if route_type == RouteType.LOOP:
        # equilateral triangle: three legs of a third each
        leg = distance_m / 3.0
        return [
            destination_point(start, bearing - LOOP_SPREAD_DEG, leg),
            destination_point(start, bearing + LOOP_SPREAD_DEG, leg),
        ]
    if route_type == RouteType.OUT_BACK:
        return [destination_point(start, bearing, distance_m / 2.0)]
    return [destination_point(start, bearing, distance_m)]


def _again(wp: Waypoint) -> Waypoint:
    """Same place visited twice: a new waypoint, since ids are unique."""
    return Waypoint(position=wp.position, label=wp.label)


def sequence_for(route_type: RouteType, start: Waypoint, stops: list[Waypoint]) -> list[Waypoint]:
    route_type = RouteType(route_type)
    if route_type == RouteType.LOOP:
        sequence = [start, *stops, _again(start)]
    elif route_type == RouteType.OUT_BACK:
        back = [_again(wp) for wp in reversed(stops[:-1])]
        sequence = [start, *stops, *back, _again(start)]
    else:
        sequence = [start, *stops]

    result: list[Waypoint] = []
    for wp in sequence:
        if result and same_point(result[-1].position, wp.position):
            continue
        result.append(wp)
    return result


def route_name(intent: RouteIntent) -> str:
    kind = {
        RouteType.LOOP: "loop",
        RouteType.OUT_BACK: "out and back",
        RouteType.POINT_TO_POINT: "ride",
    }[RouteType(intent.route_type)]
    parts = []
    if intent.distance_km is not None:
        parts.append(f"{intent.distance_km:g} km")
    parts.append(kind)
    if intent.waypoint_names:
        parts.append("via " + ", ".join(intent.waypoint_names))
    elif intent.direction is not None:
        parts.append(f"heading {CardinalDirection(intent.direction).value}")
    name = " ".join(parts)
    return name[0].upper() + name[1:]


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class NaturalLanguageRouteTranslator:
    """Drive one free-text request through parsing, clarification and seeding."""

    def __init__(
        self,
        completer: TextCompleter,
        geocoder: Geocoder,
        engine: RouteConstructionEngine,
    ):
        self._completer = completer
        self._geocoder = geocoder
        self._engine = engine
        self._state = TranslatorState.IDLE
        self._intent: RouteIntent | None = None
        self._context = TranslationContext()
        self._request_text: str | None = None

    @property
    def state(self) -> TranslatorState:
        return self._state

    @property
    def intent(self) -> RouteIntent | None:
        return self._intent

    def reset(self) -> None:
        if self._state in (TranslatorState.PARSING, TranslatorState.GENERATING):
            raise InvalidTransition(self._state.value, "reset")
        self._state = TranslatorState.IDLE
        self._intent = None
        self._request_text = None

    async def parse(self, text: str, context: TranslationContext | None = None) -> RouteIntent:
        """Ask the completer for an intent and validate it strictly.

        Raises
        ------
        UnparseableResponse
            Empty request, no JSON object in the completion, or JSON that
            does not match the intent schema.
        """
        if not text or not text.strip():
            raise UnparseableResponse("empty route request")

        completion = await self._completer.complete(build_intent_prompt(text, context))
        data = extract_json_object(completion)
        try:
            intent = RouteIntent.model_validate(data)
        except ValidationError as exc:
            raise UnparseableResponse(f"route intent failed validation: {exc}") from exc
        return apply_phrasing_rules(text, intent)

    async def translate(
        self, text: str, context: TranslationContext | None = None
    ) -> TranslationOutcome:
        """Start a new request; any earlier unfinished request is abandoned."""
        if self._state in (TranslatorState.PARSING, TranslatorState.GENERATING):
            raise InvalidTransition(self._state.value, "translate")

        self._context = context or TranslationContext()
        self._request_text = text
        self._intent = None
        self._state = TranslatorState.PARSING
        try:
            intent = await self.parse(text, self._context)
        except UnparseableResponse as exc:
            logger.warning("Could not parse route request %r: %s", text, exc)
            return self._fail(str(exc))
        except Exception as exc:
            logger.exception("Route assistant failed while parsing %r", text)
            return self._fail(f"Route assistant is unavailable: {exc}")

        self._intent = intent
        return await self._advance(intent)

    async def answer(self, reply: ClarificationAnswer) -> TranslationOutcome:
        """Resume after a ``ClarificationRequest``."""
        if self._state != TranslatorState.AWAITING_ANSWER or self._intent is None:
            raise InvalidTransition(self._state.value, "answer")

        self._intent = merge_answer(self._intent, reply, self._context)
        self._state = TranslatorState.PARSING
        return await self._advance(self._intent)

    async def _advance(self, intent: RouteIntent) -> TranslationOutcome:
        missing = missing_anchor_fields(intent)
        if missing:
            request = ClarificationRequest(
                original_intent=intent,
                missing_fields=missing,
                question=(
                    "Which direction would you like to head, or is there a place "
                    "you'd like to ride to? You can also let us pick from your "
                    "riding history or explore somewhere new."
                ),
            )
            self._state = TranslatorState.AWAITING_ANSWER
            return TranslationOutcome(
                state=TranslatorState.NEEDS_CLARIFICATION, intent=intent, clarification=request
            )

        self._state = TranslatorState.RESOLVED
        warnings: list[str] = []
        try:
            waypoints = await self.resolve(intent, warnings)
        except GeocodeNotFound as exc:
            logger.warning("Route request unresolved: %s", exc)
            return self._fail(str(exc), intent=intent, warnings=warnings)
        except Exception as exc:
            logger.exception("Geocoding failed for route request")
            return self._fail(f"Could not look up places: {exc}", intent=intent, warnings=warnings)

        self._state = TranslatorState.GENERATING
        engine = self._engine
        try:
            engine.dispatch(SetProfile(profile_for(intent)))
            engine.dispatch(SetPreferences(preferences_for(intent)))
            view = await engine.seed(
                waypoints, name=route_name(intent), description=self._request_text
            )
        except Exception as exc:
            logger.exception("Seeding the generated route failed")
            return self._fail(f"Could not build the route: {exc}", intent=intent, warnings=warnings)

        if view.error is not None:
            self._state = TranslatorState.FAILED
            return TranslationOutcome(
                state=TranslatorState.FAILED,
                intent=intent,
                view=view,
                warnings=warnings,
                error=view.error.message,
            )
        self._state = TranslatorState.DONE
        return TranslationOutcome(
            state=TranslatorState.DONE, intent=intent, view=view, warnings=warnings
        )

    async def resolve(self, intent: RouteIntent, warnings: list[str]) -> list[Waypoint]:
        """Geocode the intent into an ordered waypoint sequence.

        Unresolvable names are dropped with a warning.  Raises
        ``GeocodeNotFound`` when named places exist but none resolves, and
        its ``NoStartingPoint`` subclass when the only resolved place had to
        stand in for a missing start.
        """
        origin = self._context.origin
        start: Waypoint | None = None

        if intent.start_location_name:
            hit = await self._geocoder.geocode(intent.start_location_name, proximity=origin)
            if hit is not None:
                start = Waypoint(position=hit.coordinates, label=hit.name)
            else:
                self._warn(warnings, f"Could not find start '{intent.start_location_name}'")
        if start is None and origin is not None:
            start = Waypoint(position=origin, label="Start")

        bias = start.position if start is not None else origin
        stops: list[Waypoint] = []
        for name in intent.waypoint_names:
            hit = await self._geocoder.geocode(name, proximity=bias)
            if hit is None:
                self._warn(warnings, f"Could not find '{name}', skipping it")
                continue
            stops.append(Waypoint(position=hit.coordinates, label=hit.name))

        if intent.waypoint_names and not stops:
            raise GeocodeNotFound(list(intent.waypoint_names))

        if start is None:
            if not stops:
                raise NoStartingPoint([n for n in [intent.start_location_name] if n])
            start, stops = stops[0], stops[1:]

        if not stops:
            if intent.direction is None:
                raise NoStartingPoint(list(intent.waypoint_names))
            positions = synthetic_waypoints(
                start.position,
                intent.direction,
                intent.route_type,
                target_distance_m(intent, self._engine.session.speed_kmh),
            )
            stops = [Waypoint(position=p) for p in positions]

        return sequence_for(intent.route_type, start, stops)

    def _warn(self, warnings: list[str], message: str) -> None:
        logger.warning(message)
        warnings.append(message)

    def _fail(
        self,
        error: str,
        intent: RouteIntent | None = None,
        warnings: list[str] | None = None,
    ) -> TranslationOutcome:
        self._state = TranslatorState.FAILED
        return TranslationOutcome(
            state=TranslatorState.FAILED, intent=intent, warnings=warnings or [], error=error
        )
