"""Mapbox Directions, cycling profile: last-resort fallback."""

from __future__ import annotations

import os
from typing import Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile
from veloroute.contracts.routing import ProviderRoute, RoutePreferences
from veloroute.services.routing.base import RoutingProvider

MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/cycling"
MAX_WAYPOINTS = 25


class MapboxDirectionsProvider(RoutingProvider):
    """Mapbox cycling directions.

    Only ``avoid_highways`` is expressible (as ``exclude=motorway``); surface,
    traffic and training preferences are ignored.
    """

    provider_id = "mapbox"
    default_confidence = 0.5
    timeout_s = 10.0

    def __init__(
        self,
        access_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(http_client)
        self._token = (
            access_token if access_token is not None else os.environ.get("MAPBOX_TOKEN", "")
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    async def try_route(
        self,
        waypoints: Sequence[LonLat],
        profile: RoutingProfile,
        preferences: RoutePreferences,
    ) -> ProviderRoute:
        self._require_configured()
        if len(waypoints) > MAX_WAYPOINTS:
            raise self._unavailable(f"more than {MAX_WAYPOINTS} waypoints")

        path = ";".join(f"{lon},{lat}" for lon, lat in waypoints)
        params = {
            "geometries": "geojson",
            "overview": "full",
            "access_token": self._token,
        }
        if preferences.avoid_highways:
            params["exclude"] = "motorway"

        data = await self._request_json("GET", f"{MAPBOX_DIRECTIONS_URL}/{path}", params=params)
        if data.get("code") not in (None, "Ok"):
            raise self._unavailable(f"Mapbox code {data.get('code')}")
        try:
            route = data["routes"][0]
            coordinates = [(c[0], c[1]) for c in route["geometry"]["coordinates"]]
            distance_m = float(route["distance"])
            duration_s = float(route["duration"])
        except (KeyError, TypeError, ValueError, IndexError) as exc:
            raise self._unavailable(f"unexpected response shape: {exc}") from exc

        return ProviderRoute(
            coordinates=coordinates, distance_m=distance_m, duration_s=duration_s
        )
