"""Natural-language route request contracts.

``RouteIntent`` mirrors the JSON object the text-completion collaborator is
asked to return (camelCase keys as aliases).  Validation is strict on the
fields we consume: a wrong type or an unknown enum value is a parse failure,
never a guess.  Keys we do not consume are ignored.
"""

from typing import Self

from pydantic import ConfigDict, Field, field_validator, model_validator

from veloroute.contracts.common import FirestoreModel, LonLat, validate_lon_lat
from veloroute.contracts.enums import (
    CardinalDirection,
    RideStyle,
    RouteType,
    SurfaceType,
    Terrain,
    TrainingGoal,
    TranslatorState,
)
from veloroute.contracts.route import RouteView

# Phrases a model uses when the rider did not name a start
_CURRENT_LOCATION = {"current location", "my location", "here", "home", "unknown"}


class RouteIntent(FirestoreModel):
    """Structured form of a free-text route request."""

    model_config = ConfigDict(extra="ignore")

    start_location_name: str | None = Field(default=None, alias="startLocation")
    waypoint_names: list[str] = Field(default_factory=list, alias="waypoints")
    route_type: RouteType = Field(default=RouteType.LOOP, alias="routeType")
    distance_km: float | None = Field(default=None, gt=0, le=1000, alias="distance")
    time_minutes: float | None = Field(default=None, gt=0, le=24 * 60, alias="timeAvailable")
    surface_type: SurfaceType | None = Field(default=None, alias="surfaceType")
    terrain: Terrain | None = None
    avoid_highways: bool | None = Field(default=None, alias="avoidHighways")
    avoid_traffic: bool | None = Field(default=None, alias="avoidTraffic")
    training_goal: TrainingGoal | None = Field(default=None, alias="trainingGoal")
    direction: CardinalDirection | None = None
    ride_style: RideStyle | None = Field(default=None, alias="rideStyle")

    @field_validator("start_location_name", mode="before")
    @classmethod
    def drop_placeholder_start(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("startLocation must be a string")
        v = v.strip()
        if not v or v.lower() in _CURRENT_LOCATION:
            return None
        return v

    @field_validator("waypoint_names", mode="before")
    @classmethod
    def clean_waypoint_names(cls, v: list[str] | None) -> list[str]:
        if v is None:
            return []
        if not isinstance(v, list) or not all(isinstance(n, str) for n in v):
            raise ValueError("waypoints must be a list of strings")
        return [n.strip() for n in v if n.strip()]

    @field_validator("distance_km", "time_minutes", mode="before")
    @classmethod
    def reject_non_numeric(cls, v: object) -> object:
        if v is None:
            return None
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("must be a number or null")
        return v

    @field_validator("avoid_highways", "avoid_traffic", mode="before")
    @classmethod
    def reject_non_bool(cls, v: object) -> object:
        if v is not None and not isinstance(v, bool):
            raise ValueError("must be true, false or null")
        return v

    @property
    def has_extent(self) -> bool:
        """True when the request implies how far to ride."""
        return self.distance_km is not None or self.time_minutes is not None

    @property
    def is_anchored(self) -> bool:
        """True when the route can be placed on a map without asking."""
        return bool(self.waypoint_names) or self.direction is not None


class ClarificationRequest(FirestoreModel):
    """Raised when an intent lacks geographic anchoring."""

    original_intent: RouteIntent
    missing_fields: list[str] = Field(..., min_length=1)
    question: str
    direction_options: list[CardinalDirection] = Field(
        default_factory=lambda: list(CardinalDirection)
    )
    ride_style_options: list[RideStyle] = Field(default_factory=lambda: list(RideStyle))


class ClarificationAnswer(FirestoreModel):
    """User reply to a ``ClarificationRequest``; at least one field is set."""

    direction: CardinalDirection | None = None
    place_name: str | None = Field(default=None, max_length=200)
    terrain: Terrain | None = None
    surface_type: SurfaceType | None = None
    ride_style: RideStyle | None = None
    override_destination: bool = False

    @model_validator(mode="after")
    def not_empty(self) -> Self:
        if not any([self.direction, self.place_name, self.terrain, self.surface_type, self.ride_style]):
            raise ValueError("clarification answer must supply at least one field")
        return self


class TranslationContext(FirestoreModel):
    """Read-only context supplied by collaborators (location, history, weather)."""

    origin: LonLat | None = None
    region_name: str | None = None
    ride_history: list[LonLat] = Field(
        default_factory=list, description="Sampled start/end points of past rides"
    )
    weather_summary: str | None = None

    @field_validator("origin")
    @classmethod
    def check_origin(cls, v: LonLat | None) -> LonLat | None:
        return None if v is None else validate_lon_lat(v)


class TranslationOutcome(FirestoreModel):
    """Result of one step of the translator state machine."""

    state: TranslatorState
    intent: RouteIntent | None = None
    clarification: ClarificationRequest | None = None
    view: RouteView | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None
