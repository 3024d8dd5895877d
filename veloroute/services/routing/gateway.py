"""Ordered provider fallback for road snapping.

Providers are ranked per profile and tried one at a time; the first usable
result wins.  A timeout, a ``ProviderUnavailable`` or a degenerate route
moves on to the next provider.  ``snap()`` never raises: when every provider
fails it returns a ``RoutingFailure`` listing each attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile
from veloroute.contracts.routing import (
    ProviderAttempt,
    ProviderRoute,
    RoutePreferences,
    RoutingFailure,
    RoutingResult,
)
from veloroute.contracts.waypoint import Waypoint
from veloroute.services.errors import ProviderUnavailable
from veloroute.services.geometry import haversine_m, same_point
from veloroute.services.routing.base import RoutingProvider
from veloroute.services.routing.brouter_client import BRouterProvider
from veloroute.services.routing.mapbox_client import MapboxDirectionsProvider
from veloroute.services.routing.stadia_client import StadiaMapsProvider

logger = logging.getLogger(__name__)

_GENERAL = ("stadia_maps", "brouter", "mapbox")
_OFFROAD = ("brouter", "stadia_maps", "mapbox")

DEFAULT_RANKINGS: dict[RoutingProfile, tuple[str, ...]] = {
    RoutingProfile.ROAD: _GENERAL,
    RoutingProfile.COMMUTING: _GENERAL,
    RoutingProfile.GRAVEL: _OFFROAD,
    RoutingProfile.MOUNTAIN: _OFFROAD,
}

ROUTE_END_TOLERANCE_DEG = 1e-4


def _position(waypoint: Waypoint | LonLat) -> LonLat:
    if isinstance(waypoint, Waypoint):
        return waypoint.position
    return (float(waypoint[0]), float(waypoint[1]))


class RoutingGateway:
    """Snap waypoints to roads through a ranked chain of providers."""

    def __init__(
        self,
        providers: Sequence[RoutingProvider],
        rankings: Mapping[RoutingProfile, Sequence[str]] | None = None,
    ):
        self._providers = {p.provider_id: p for p in providers}
        self._rankings = dict(rankings or DEFAULT_RANKINGS)

    def ranked_providers(self, profile: RoutingProfile) -> list[RoutingProvider]:
        """Providers in trial order for *profile*.

        Providers missing from the ranking are appended in registration
        order; ranked ids with no registered provider are skipped.
        """
        order = tuple(self._rankings.get(RoutingProfile(profile), ()))
        ranked = [self._providers[pid] for pid in order if pid in self._providers]
        ranked.extend(p for pid, p in self._providers.items() if pid not in order)
        return ranked

    async def snap(
        self,
        waypoints: Sequence[Waypoint | LonLat],
        profile: RoutingProfile = RoutingProfile.ROAD,
        preferences: RoutePreferences | None = None,
    ) -> RoutingResult | RoutingFailure:
        positions = [_position(w) for w in waypoints]
        if len(positions) < 2:
            return RoutingFailure(
                code="insufficient_waypoints",
                message=f"Routing needs at least 2 waypoints, got {len(positions)}",
            )
        preferences = preferences or RoutePreferences()

        attempts: list[ProviderAttempt] = []
        for provider in self.ranked_providers(profile):
            try:
                route = await asyncio.wait_for(
                    provider.try_route(positions, profile, preferences),
                    timeout=provider.timeout_s,
                )
            except asyncio.TimeoutError:
                reason = "timeout"
            except ProviderUnavailable as exc:
                reason = exc.reason
            except Exception as exc:
                logger.exception("Routing provider %s failed unexpectedly", provider.provider_id)
                reason = f"error: {exc}"
            else:
                if not route.is_degenerate:
                    return self._accept(provider, route, positions)
                reason = "degenerate route"

            logger.info("Routing provider %s unavailable: %s", provider.provider_id, reason)
            attempts.append(ProviderAttempt(provider_id=provider.provider_id, reason=reason))

        logger.warning(
            "No route found for %d waypoints (profile=%s, tried=%s)",
            len(positions),
            RoutingProfile(profile).value,
            [a.provider_id for a in attempts],
        )
        return RoutingFailure(attempts=attempts)

    @staticmethod
    def _accept(
        provider: RoutingProvider, route: ProviderRoute, positions: list[LonLat]
    ) -> RoutingResult:
        coordinates = list(route.coordinates)
        distance_m = route.distance_m
        # close the line when the provider stops short of the last waypoint
        if not same_point(coordinates[-1], positions[-1], ROUTE_END_TOLERANCE_DEG):
            distance_m += haversine_m(coordinates[-1], positions[-1])
            coordinates.append(positions[-1])

        if route.confidence is not None:
            confidence = max(0.0, min(1.0, route.confidence))
        else:
            confidence = provider.default_confidence

        return RoutingResult(
            coordinates=coordinates,
            distance_m=distance_m,
            duration_s=max(route.duration_s, 0.0),
            confidence=confidence,
            provider_id=provider.provider_id,
        )


def build_default_gateway(http_client: httpx.AsyncClient | None = None) -> RoutingGateway:
    """Gateway over Stadia Maps, BRouter and Mapbox configured from the environment."""
    return RoutingGateway(
        [
            StadiaMapsProvider(http_client=http_client),
            BRouterProvider(http_client=http_client),
            MapboxDirectionsProvider(http_client=http_client),
        ]
    )
