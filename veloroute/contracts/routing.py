"""Routing contracts. Preferences in, snapped geometry (or a typed failure) out.

``RoutingResult`` and ``RoutingFailure`` are **calculated**; they are only
persisted indirectly, flattened into ``SavedRoute``.
"""

from typing import Literal, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from veloroute.contracts.common import FirestoreModel, LonLat
from veloroute.contracts.enums import SurfaceType, TrafficAvoidance, TrainingGoal


class RoutePreferences(FirestoreModel):
    """Rider preferences translated into provider-specific query parameters.

    Every field is optional; a provider that cannot express one ignores it.
    """

    surface_type: SurfaceType | None = None
    avoid_traffic: TrafficAvoidance | None = None
    avoid_highways: bool = False
    training_goal: TrainingGoal | None = None


class ProviderRoute(BaseModel):
    """Raw route as returned by a single provider, before gateway checks."""

    coordinates: list[LonLat]
    distance_m: float
    duration_s: float
    confidence: float | None = None

    @property
    def is_degenerate(self) -> bool:
        """Fewer than two coordinates, or no length at all."""
        return len(self.coordinates) < 2 or self.distance_m <= 0


class RoutingResult(FirestoreModel):
    """A road-snapped route accepted by the gateway."""

    coordinates: list[LonLat] = Field(..., min_length=2)
    distance_m: float = Field(..., gt=0)
    duration_s: float = Field(..., ge=0)
    confidence: float = Field(..., ge=0.0, le=1.0, description="Advisory only")
    provider_id: str = Field(..., min_length=1)


class ProviderAttempt(FirestoreModel):
    """Why one provider in the fallback chain was skipped."""

    provider_id: str
    reason: str


class RoutingFailure(FirestoreModel):
    """Typed outcome when no provider produced a usable route.

    ``code`` is ``no_route_found`` once the fallback chain is exhausted,
    or ``insufficient_waypoints`` when fewer than two waypoints were given.
    """

    code: Literal["no_route_found", "insufficient_waypoints"] = "no_route_found"
    message: str = "No routing provider could snap this route"
    attempts: list[ProviderAttempt] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def non_empty_message(cls, v: str) -> str:
        return v.strip() or "No routing provider could snap this route"

    @model_validator(mode="after")
    def attempts_only_when_tried(self) -> Self:
        if self.code == "insufficient_waypoints" and self.attempts:
            raise ValueError("insufficient_waypoints failures never carry attempts")
        return self
