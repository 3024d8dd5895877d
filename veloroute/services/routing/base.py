"""Common interface for external road-routing providers.

Each provider turns ``(waypoints, profile, preferences)`` into its own HTTP
request and parses its own response shape.  Any failure (timeout, non-2xx,
transport error, malformed body) surfaces as ``ProviderUnavailable`` so the
gateway can iterate providers without knowing their shapes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import RoutingProfile
from veloroute.contracts.routing import ProviderRoute, RoutePreferences
from veloroute.services.errors import ProviderUnavailable


class RoutingProvider(ABC):
    """One external routing service."""

    provider_id: str = "provider"
    default_confidence: float = 0.5
    timeout_s: float = 15.0

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout_s)

    @property
    def is_configured(self) -> bool:
        """False when a required credential is missing."""
        return True

    @abstractmethod
    async def try_route(
        self,
        waypoints: Sequence[LonLat],
        profile: RoutingProfile,
        preferences: RoutePreferences,
    ) -> ProviderRoute:
        """Snap *waypoints* to the road network.

        Raises
        ------
        ProviderUnavailable
            On any failure; never returns a partial route.
        """

    def _unavailable(self, reason: str) -> ProviderUnavailable:
        return ProviderUnavailable(self.provider_id, reason)

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body, mapping every failure."""
        kwargs.setdefault("timeout", self.timeout_s)
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as exc:
            raise self._unavailable("timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise self._unavailable(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise self._unavailable(f"transport error: {exc}") from exc
        except ValueError as exc:
            raise self._unavailable("response is not JSON") from exc

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise self._unavailable("not configured")
