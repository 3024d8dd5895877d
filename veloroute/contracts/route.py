"""RouteView and SavedRoute: the renderable route and its persisted form.

RouteView is **calculated** by the construction engine and published to
listeners after every mutation or reroute.

SavedRoute is **persisted** at: ``/users/{user_id}/routes/{route_id}``.
The snapped line is stored as an encoded polyline (precision 6) since
Firestore does not allow directly nested arrays.
"""

from datetime import datetime, timezone
from typing import Self

from pydantic import Field, computed_field, model_validator

from veloroute.contracts.common import FirestoreModel, LonLat
from veloroute.contracts.elevation import ElevationPoint, ElevationStats, GradeSegment
from veloroute.contracts.enums import RoutingProfile, UnitSystem
from veloroute.contracts.routing import RoutePreferences, RoutingFailure, RoutingResult
from veloroute.contracts.waypoint import Waypoint


class RouteStats(FirestoreModel):
    """Distance/duration of the current line, metric only.

    ``is_estimate`` is set while no routing result exists: distance is then
    the straight-line polyline length and duration assumes a fixed speed.
    """

    distance_m: float = Field(..., ge=0)
    duration_s: float = Field(..., ge=0)
    is_estimate: bool = True
    elevation: ElevationStats | None = None


class RouteView(FirestoreModel):
    """Snapshot of the route under construction, ready to render."""

    version: int = Field(..., ge=0)
    name: str | None = None
    description: str | None = None
    profile: RoutingProfile = RoutingProfile.ROAD
    preferences: RoutePreferences = Field(default_factory=RoutePreferences)
    unit_system: UnitSystem = UnitSystem.METRIC
    waypoints: list[Waypoint] = Field(default_factory=list)
    routing_result: RoutingResult | None = None
    line: list[LonLat] = Field(default_factory=list)
    elevation_profile: list[ElevationPoint] = Field(default_factory=list)
    grade_segments: list[GradeSegment] = Field(default_factory=list)
    stats: RouteStats
    display: dict[str, str] = Field(
        default_factory=dict, description="Stats formatted in the active unit system"
    )
    error: RoutingFailure | None = None

    @model_validator(mode="after")
    def profile_matches_line(self) -> Self:
        if self.elevation_profile and len(self.elevation_profile) != len(self.line):
            raise ValueError(
                f"elevation profile has {len(self.elevation_profile)} points "
                f"for a line of {len(self.line)} coordinates"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_snapped(self) -> bool:
        return self.routing_result is not None


class SavedRoute(FirestoreModel):
    """A constructed route persisted for later editing or export."""

    id: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    profile: RoutingProfile = RoutingProfile.ROAD
    preferences: RoutePreferences = Field(default_factory=RoutePreferences)
    waypoints: list[Waypoint] = Field(..., min_length=2)
    encoded_line: str = Field(..., min_length=1, description="Polyline, precision 6")
    elevations_m: list[float] = Field(default_factory=list)
    distance_m: float = Field(..., ge=0)
    duration_s: float = Field(..., ge=0)
    provider_id: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    updated_at: datetime | None = None
