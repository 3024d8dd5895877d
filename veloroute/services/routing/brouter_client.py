"""BRouter: OSM-based router with dedicated gravel and MTB profiles.

Free public instance at brouter.de; override with ``BROUTER_URL``.
"""

from __future__ import annotations

import os
from typing import Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile, SurfaceType, TrafficAvoidance, TrainingGoal
from veloroute.contracts.routing import ProviderRoute, RoutePreferences
from veloroute.services.routing.base import RoutingProvider

DEFAULT_BROUTER_URL = "https://brouter.de/brouter"


def select_brouter_profile(profile: RoutingProfile, preferences: RoutePreferences) -> str:
    """Pick a BRouter profile name from routing profile and preferences."""
    profile = RoutingProfile(profile)
    if profile is RoutingProfile.MOUNTAIN:
        return "mtb"
    if profile is RoutingProfile.GRAVEL or preferences.surface_type == SurfaceType.GRAVEL:
        return "gravel"
    if preferences.training_goal == TrainingGoal.RECOVERY:
        return "safety"
    if preferences.avoid_traffic == TrafficAvoidance.HIGH:
        return "safety"
    if profile is RoutingProfile.ROAD and preferences.training_goal in (
        TrainingGoal.INTERVALS,
        TrainingGoal.TEMPO,
    ):
        return "fastbike"
    return "trekking"


class BRouterProvider(RoutingProvider):
    """BRouter GeoJSON routing; primary provider for gravel and mountain."""

    provider_id = "brouter"
    default_confidence = 0.85
    timeout_s = 20.0

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(http_client)
        self._base_url = base_url or os.environ.get("BROUTER_URL", DEFAULT_BROUTER_URL)

    async def try_route(
        self,
        waypoints: Sequence[LonLat],
        profile: RoutingProfile,
        preferences: RoutePreferences,
    ) -> ProviderRoute:
        params = {
            "lonlats": "|".join(f"{lon},{lat}" for lon, lat in waypoints),
            "profile": select_brouter_profile(profile, preferences),
            "alternativeidx": 0,
            "format": "geojson",
        }
        data = await self._request_json("GET", self._base_url, params=params)
        try:
            feature = data["features"][0]
            coordinates = [(c[0], c[1]) for c in feature["geometry"]["coordinates"]]
            props = feature.get("properties", {})
            distance_m = float(props["track-length"])
            duration_s = float(props.get("total-time", 0))
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise self._unavailable(f"unexpected response shape: {exc}") from exc

        return ProviderRoute(
            coordinates=coordinates, distance_m=distance_m, duration_s=duration_s
        )
