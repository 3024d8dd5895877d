"""Place-name geocoding (Mapbox, or Nominatim without a token).

Both geocoders return ``None`` for "not found" and for provider errors;
the translator decides what a missing place means.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from veloroute.contracts.common import LonLat

logger = logging.getLogger(__name__)

MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
NOMINATIM_USER_AGENT = "VeloRoute/0.1"
PROXIMITY_BOX_DEG = 0.5


@dataclass(frozen=True)
class GeocodeResult:
    name: str
    coordinates: LonLat
    formatted_address: str


class Geocoder(Protocol):
    async def geocode(self, name: str, proximity: LonLat | None = None) -> GeocodeResult | None: ...


class MapboxGeocoder:
    def __init__(self, access_token: str | None = None, http_client: httpx.AsyncClient | None = None):
        self.access_token = access_token or os.environ.get("MAPBOX_TOKEN")
        self._client = http_client or httpx.AsyncClient(timeout=10.0)

    async def geocode(self, name: str, proximity: LonLat | None = None) -> GeocodeResult | None:
        if not self.access_token:
            logger.warning("MAPBOX_TOKEN not configured, cannot geocode %r", name)
            return None
        params = {
            "access_token": self.access_token,
            "limit": 1,
            "types": "place,locality,neighborhood,address,poi",
        }
        if proximity is not None:
            params["proximity"] = f"{proximity[0]},{proximity[1]}"

        try:
            resp = await self._client.get(f"{MAPBOX_GEOCODING_URL}/{quote(name)}.json", params=params)
            resp.raise_for_status()
            features = resp.json().get("features") or []
        except Exception:
            logger.exception("Mapbox geocoding failed for %r", name)
            return None

        if not features:
            return None
        lon, lat = features[0]["center"]
        return GeocodeResult(
            name=name,
            coordinates=(float(lon), float(lat)),
            formatted_address=features[0].get("place_name", name),
        )


class NominatimGeocoder:
    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._client = http_client or httpx.AsyncClient(timeout=10.0)

    async def geocode(self, name: str, proximity: LonLat | None = None) -> GeocodeResult | None:
        params: dict[str, str | int] = {"q": name, "format": "json", "limit": 1}
        if proximity is not None:
            lon, lat = proximity
            d = PROXIMITY_BOX_DEG
            # viewbox biases without restricting (bounded=0)
            params["viewbox"] = f"{lon - d},{lat + d},{lon + d},{lat - d}"
            params["bounded"] = 0

        try:
            resp = await self._client.get(
                NOMINATIM_URL, params=params, headers={"User-Agent": NOMINATIM_USER_AGENT}
            )
            resp.raise_for_status()
            data = resp.json()
        except Exception:
            logger.exception("Nominatim geocoding failed for %r", name)
            return None

        if not data:
            return None
        hit = data[0]
        return GeocodeResult(
            name=name,
            coordinates=(float(hit["lon"]), float(hit["lat"])),
            formatted_address=hit.get("display_name", name),
        )


def default_geocoder(http_client: httpx.AsyncClient | None = None) -> Geocoder:
    if os.environ.get("MAPBOX_TOKEN"):
        return MapboxGeocoder(http_client=http_client)
    return NominatimGeocoder(http_client=http_client)
