"""VeloRoute data contracts: Pydantic v2 models for cycling route construction.

Data authority
--------------

**Firestore** (source of truth for user-owned data):
- ``SavedRoute``: ``/users/{uid}/routes/{id}``

**External providers** (fetched per request, never cached here):
- ``ProviderRoute``: Valhalla (Stadia Maps), BRouter, Mapbox Directions
- raw elevations: OpenTopoData, Open-Elevation
- geocoding: Mapbox, Nominatim
- ``InfrastructureSegment``: OSM Overpass cycling ways
- ``RouteIntent``: text-completion model output

Calculated (never persisted)
----------------------------
- ``RoutingResult`` / ``RoutingFailure``: gateway outcome
- ``ElevationPoint`` / ``GradeSegment`` / ``ElevationStats``: elevation profile
- ``RouteView`` / ``RouteStats``: renderable state of a construction session
- ``ClarificationRequest`` / ``TranslationOutcome``: NL translator steps
"""

from veloroute.contracts.enums import (
    CardinalDirection,
    InfrastructureType,
    RideStyle,
    RouteType,
    RoutingProfile,
    SlopeDirection,
    SurfaceType,
    Terrain,
    TrafficAvoidance,
    TrainingGoal,
    TranslatorState,
    UnitSystem,
    WaypointKind,
)
from veloroute.contracts.common import FirestoreModel, LonLat
from veloroute.contracts.waypoint import Waypoint, kind_for_position, new_waypoint_id
from veloroute.contracts.routing import (
    ProviderAttempt,
    ProviderRoute,
    RoutePreferences,
    RoutingFailure,
    RoutingResult,
)
from veloroute.contracts.elevation import ElevationPoint, ElevationStats, GradeSegment
from veloroute.contracts.route import RouteStats, RouteView, SavedRoute
from veloroute.contracts.intent import (
    ClarificationAnswer,
    ClarificationRequest,
    RouteIntent,
    TranslationContext,
    TranslationOutcome,
)
from veloroute.contracts.infrastructure import Bounds, InfrastructureSegment

__all__ = [
    # Enums
    "CardinalDirection",
    "InfrastructureType",
    "RideStyle",
    "RouteType",
    "RoutingProfile",
    "SlopeDirection",
    "SurfaceType",
    "Terrain",
    "TrafficAvoidance",
    "TrainingGoal",
    "TranslatorState",
    "UnitSystem",
    "WaypointKind",
    # Common
    "FirestoreModel",
    "LonLat",
    # Domain models
    "Waypoint",
    "kind_for_position",
    "new_waypoint_id",
    "ProviderAttempt",
    "ProviderRoute",
    "RoutePreferences",
    "RoutingFailure",
    "RoutingResult",
    "ElevationPoint",
    "ElevationStats",
    "GradeSegment",
    "RouteStats",
    "RouteView",
    "SavedRoute",
    "ClarificationAnswer",
    "ClarificationRequest",
    "RouteIntent",
    "TranslationContext",
    "TranslationOutcome",
    "Bounds",
    "InfrastructureSegment",
]
