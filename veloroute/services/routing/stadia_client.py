"""Stadia Maps hosted Valhalla: bicycle costing tuned per profile.

Docs: https://docs.stadiamaps.com/routing/
"""

from __future__ import annotations

import os
from typing import Any, Sequence

import httpx
import polyline

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile, SurfaceType, TrafficAvoidance, TrainingGoal
from veloroute.contracts.routing import ProviderRoute, RoutePreferences
from veloroute.services.routing.base import RoutingProvider

STADIA_ROUTE_URL = "https://api.stadiamaps.com/route/v1"
SHAPE_PRECISION = 6

PROFILE_COSTING: dict[RoutingProfile, dict[str, Any]] = {
    RoutingProfile.ROAD: {
        "bicycle_type": "road",
        "use_roads": 0.3,
        "use_hills": 0.5,
        "cycling_speed": 25,
        "avoid_bad_surfaces": 0.8,
    },
    RoutingProfile.GRAVEL: {
        "bicycle_type": "cross",
        "use_roads": 0.1,
        "use_hills": 0.6,
        "cycling_speed": 20,
        "avoid_bad_surfaces": 0.2,
    },
    RoutingProfile.MOUNTAIN: {
        "bicycle_type": "mountain",
        "use_roads": 0.1,
        "use_hills": 0.8,
        "cycling_speed": 16,
        "avoid_bad_surfaces": 0.0,
    },
    RoutingProfile.COMMUTING: {
        "bicycle_type": "hybrid",
        "use_roads": 0.0,
        "use_hills": 0.3,
        "cycling_speed": 18,
        "avoid_bad_surfaces": 0.6,
        "use_living_streets": 0.8,
    },
}

_SURFACE_AVOIDANCE = {
    SurfaceType.PAVED: 0.9,
    SurfaceType.GRAVEL: 0.1,
    SurfaceType.MIXED: 0.4,
}

_TRAFFIC_USE_ROADS = {
    TrafficAvoidance.HIGH: 0.0,
    TrafficAvoidance.MEDIUM: 0.2,
}


def build_costing(profile: RoutingProfile, preferences: RoutePreferences) -> dict[str, Any]:
    """Valhalla ``bicycle`` costing options for a profile plus preferences.

    ``avoid_highways`` has no Valhalla bicycle equivalent and is ignored.
    """
    costing = dict(PROFILE_COSTING.get(RoutingProfile(profile), PROFILE_COSTING[RoutingProfile.ROAD]))

    if preferences.avoid_traffic is not None:
        use_roads = _TRAFFIC_USE_ROADS.get(TrafficAvoidance(preferences.avoid_traffic))
        if use_roads is not None:
            costing["use_roads"] = use_roads

    if preferences.surface_type is not None:
        costing["avoid_bad_surfaces"] = _SURFACE_AVOIDANCE[SurfaceType(preferences.surface_type)]

    if preferences.training_goal == TrainingGoal.RECOVERY:
        costing["use_hills"] = min(costing["use_hills"], 0.2)
        costing["use_roads"] = 0.0
    elif preferences.training_goal == TrainingGoal.HILLS:
        costing["use_hills"] = max(costing["use_hills"], 0.8)

    return costing


def _parse_trip(data: dict) -> tuple[list[LonLat], float, float]:
    """Concatenate leg shapes and read the summary (km, seconds)."""
    trip = data["trip"]
    coordinates: list[LonLat] = []
    for i, leg in enumerate(trip["legs"]):
        points = [(lon, lat) for lat, lon in polyline.decode(leg["shape"], SHAPE_PRECISION)]
        # each leg starts where the previous one ended
        coordinates.extend(points if i == 0 else points[1:])
    summary = trip["summary"]
    return coordinates, float(summary["length"]) * 1000.0, float(summary["time"])


class StadiaMapsProvider(RoutingProvider):
    """Valhalla bicycle routing; primary provider for road and commuting."""

    provider_id = "stadia_maps"
    default_confidence = 0.9
    timeout_s = 15.0

    def __init__(
        self,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(http_client)
        self._api_key = api_key if api_key is not None else os.environ.get("STADIA_API_KEY", "")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def try_route(
        self,
        waypoints: Sequence[LonLat],
        profile: RoutingProfile,
        preferences: RoutePreferences,
    ) -> ProviderRoute:
        self._require_configured()
        body = {
            "locations": [{"lat": lat, "lon": lon, "type": "break"} for lon, lat in waypoints],
            "costing": "bicycle",
            "costing_options": {"bicycle": build_costing(profile, preferences)},
            "units": "kilometers",
            "directions_type": "none",
        }
        data = await self._request_json(
            "POST", STADIA_ROUTE_URL, params={"api_key": self._api_key}, json=body
        )
        try:
            coordinates, distance_m, duration_s = _parse_trip(data)
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise self._unavailable(f"unexpected response shape: {exc}") from exc

        return ProviderRoute(
            coordinates=coordinates, distance_m=distance_m, duration_s=duration_s
        )
