"""In-process stand-ins for the network collaborators of the route engine."""

from __future__ import annotations

import asyncio
from typing import Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile
from veloroute.contracts.routing import ProviderRoute, RoutePreferences
from veloroute.services.assistant.geocoding import GeocodeResult
from veloroute.services.geometry import polyline_length_m
from veloroute.services.routing.base import RoutingProvider


def _offline_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda req: httpx.Response(503)))


def densify(waypoints: Sequence[LonLat]) -> list[LonLat]:
    """Waypoints with a midpoint inserted in every leg."""
    out: list[LonLat] = [tuple(waypoints[0])]
    for a, b in zip(waypoints, waypoints[1:]):
        out.append(((a[0] + b[0]) / 2, (a[1] + b[1]) / 2))
        out.append(tuple(b))
    return out


class FakeProvider(RoutingProvider):
    """Provider answering with a straight, densified line.

    ``mode`` is ``"ok"``, ``"unavailable"``, ``"hang"`` (sleeps past its
    timeout), ``"degenerate"`` or ``"crash"``.
    """

    def __init__(
        self,
        provider_id: str,
        mode: str = "ok",
        *,
        timeout_s: float = 0.05,
        default_confidence: float = 0.7,
        confidence: float | None = None,
        delay_s: float = 0.0,
    ):
        super().__init__(http_client=_offline_client())
        self.provider_id = provider_id
        self.mode = mode
        self.timeout_s = timeout_s
        self.default_confidence = default_confidence
        self.confidence = confidence
        self.delay_s = delay_s
        self.calls: list[tuple[list[LonLat], str, RoutePreferences]] = []

    async def try_route(
        self,
        waypoints: Sequence[LonLat],
        profile: RoutingProfile,
        preferences: RoutePreferences,
    ) -> ProviderRoute:
        self.calls.append((list(waypoints), RoutingProfile(profile).value, preferences))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.mode == "hang":
            await asyncio.sleep(self.timeout_s * 20)
        if self.mode == "unavailable":
            raise self._unavailable("HTTP 503")
        if self.mode == "crash":
            raise RuntimeError("boom")
        if self.mode == "degenerate":
            return ProviderRoute(coordinates=[waypoints[0]], distance_m=0.0, duration_s=0.0)

        line = densify(waypoints)
        distance = polyline_length_m(line)
        return ProviderRoute(
            coordinates=line,
            distance_m=distance,
            duration_s=distance / 6.0,
            confidence=self.confidence,
        )


class FakeElevationClient:
    """Elevation rises 100 m per 0.01 degree of latitude above 40N."""

    def __init__(self, missing: bool = False):
        self.missing = missing
        self.requests: list[list[LonLat]] = []

    async def get_elevations(self, coordinates: Sequence[LonLat]) -> list[float | None]:
        self.requests.append(list(coordinates))
        if self.missing:
            return [None] * len(coordinates)
        return [1600.0 + (lat - 40.0) * 10_000.0 for _lon, lat in coordinates]


class FakeCompleter:
    """Replays canned completions in order; an exception in the queue is raised."""

    def __init__(self, *responses: str | Exception):
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("unexpected completion request")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeGeocoder:
    def __init__(self, places: dict[str, LonLat]):
        self.places = {k.lower(): v for k, v in places.items()}
        self.queries: list[tuple[str, LonLat | None]] = []

    async def geocode(self, name: str, proximity: LonLat | None = None) -> GeocodeResult | None:
        self.queries.append((name, proximity))
        coords = self.places.get(name.lower())
        if coords is None:
            return None
        return GeocodeResult(name=name, coordinates=coords, formatted_address=f"{name}, CO, USA")
