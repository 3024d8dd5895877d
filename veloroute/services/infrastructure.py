"""Viewport-driven cycling-infrastructure overlay from OSM Overpass.

Map pans arrive far faster than Overpass can answer, so fetches are
debounced, skipped below a minimum zoom, and the query box is clamped to a
maximum size around the viewport center.  Only the latest viewport's
result is published.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import httpx

from veloroute.contracts.enums import InfrastructureType
from veloroute.contracts.infrastructure import Bounds, InfrastructureSegment
from veloroute.services.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

OVERPASS_SERVERS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
]

MAX_BBOX_SIZE_DEG = 0.15
MIN_OVERLAY_ZOOM = 13
OVERLAY_DEBOUNCE_S = 0.5

INFRASTRUCTURE_COLORS = {
    InfrastructureType.PROTECTED_CYCLEWAY: "#5c7a5e",
    InfrastructureType.BIKE_LANE: "#6b8c72",
    InfrastructureType.SHARED_PATH: "#507052",
    InfrastructureType.BIKE_FRIENDLY: "#b89040",
    InfrastructureType.SHARED_LANE: "#9a9c90",
}

_TIERS = list(InfrastructureType)


def classify_infrastructure(tags: dict[str, str] | None) -> InfrastructureType:
    """Classify an OSM way by its tags, safest tier first."""
    if not tags:
        return InfrastructureType.BIKE_FRIENDLY

    highway = tags.get("highway", "")
    bicycle = tags.get("bicycle", "")
    sides = [
        tags.get("cycleway", ""),
        tags.get("cycleway:both", ""),
        tags.get("cycleway:left", ""),
        tags.get("cycleway:right", ""),
    ]

    if highway == "cycleway" or "track" in sides:
        return InfrastructureType.PROTECTED_CYCLEWAY
    if "lane" in sides:
        return InfrastructureType.BIKE_LANE
    if highway == "path" and bicycle == "designated":
        return InfrastructureType.SHARED_PATH
    if highway == "footway" and bicycle in ("yes", "designated"):
        return InfrastructureType.SHARED_PATH
    if tags.get("route") == "bicycle":
        return InfrastructureType.SHARED_PATH
    if "shared_lane" in sides[:2]:
        return InfrastructureType.SHARED_LANE
    if bicycle in ("yes", "designated"):
        return InfrastructureType.BIKE_FRIENDLY
    if any(sides):
        return InfrastructureType.BIKE_LANE
    return InfrastructureType.BIKE_FRIENDLY


def build_overpass_query(bounds: Bounds) -> str:
    bbox = f"{bounds.south},{bounds.west},{bounds.north},{bounds.east}"
    return (
        f"[out:json][timeout:15][bbox:{bbox}];\n"
        "(\n"
        "  way[highway=cycleway];\n"
        "  way[cycleway=track];\n"
        "  way[cycleway=lane];\n"
        "  way[highway=path][bicycle=designated];\n"
        "  way[cycleway=shared_lane];\n"
        ");\n"
        "out geom;\n"
    )


def _parse_overpass(data: dict) -> list[InfrastructureSegment]:
    """Classify every way with geometry; safest tiers sort last (drawn on top)."""
    segments = []
    for el in data.get("elements", []):
        geometry = el.get("geometry") or []
        if el.get("type") != "way" or len(geometry) < 2:
            continue
        tags = el.get("tags") or {}
        infra_type = classify_infrastructure(tags)
        segments.append(
            InfrastructureSegment(
                osm_id=el["id"],
                name=tags.get("name"),
                infra_type=infra_type,
                color=INFRASTRUCTURE_COLORS[infra_type],
                coordinates=[(node["lon"], node["lat"]) for node in geometry],
                highway=tags.get("highway"),
                cycleway=tags.get("cycleway"),
                surface=tags.get("surface"),
            )
        )
    segments.sort(key=lambda s: _TIERS.index(InfrastructureType(s.infra_type)), reverse=True)
    return segments


class OverpassClient:
    """Async Overpass client rotating through mirror servers."""

    provider_id = "overpass"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        servers: list[str] | None = None,
    ):
        self._client = http_client or httpx.AsyncClient(timeout=20.0)
        self._servers = servers or list(OVERPASS_SERVERS)
        self._preferred = 0

    async def fetch(self, bounds: Bounds) -> list[InfrastructureSegment]:
        """Fetch classified ways in *bounds* (clamped to the maximum box size).

        Raises
        ------
        ProviderUnavailable
            When every server failed.
        """
        query = build_overpass_query(bounds.clamped(MAX_BBOX_SIZE_DEG))
        last_reason = "no servers configured"
        for attempt in range(len(self._servers)):
            index = (self._preferred + attempt) % len(self._servers)
            url = self._servers[index]
            try:
                resp = await self._client.post(
                    url, content=query, headers={"Content-Type": "text/plain"}
                )
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as exc:
                last_reason = f"HTTP {exc.response.status_code} from {url}"
            except (httpx.HTTPError, ValueError) as exc:
                last_reason = f"{type(exc).__name__} from {url}"
            else:
                self._preferred = index
                return _parse_overpass(data)
            logger.warning("Overpass server failed: %s", last_reason)

        raise ProviderUnavailable(self.provider_id, last_reason)


OverlayListener = Callable[[list[InfrastructureSegment]], Any]


class InfrastructureOverlay:
    """Debounced viewport -> overlay pipeline; the latest viewport wins."""

    def __init__(
        self,
        client: OverpassClient | None = None,
        *,
        debounce_s: float = OVERLAY_DEBOUNCE_S,
        min_zoom: float = MIN_OVERLAY_ZOOM,
    ):
        self._client = client or OverpassClient()
        self._debounce_s = debounce_s
        self._min_zoom = min_zoom
        self._listeners: list[OverlayListener] = []
        self._timer: asyncio.Task | None = None
        self._sequence = 0
        self.segments: list[InfrastructureSegment] = []

    def subscribe(self, listener: OverlayListener) -> None:
        self._listeners.append(listener)

    def on_viewport_change(self, bounds: Bounds, zoom: float) -> bool:
        """Schedule a fetch for *bounds*; False when gated by zoom."""
        self._sequence += 1
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

        if zoom < self._min_zoom:
            return False
        self._timer = asyncio.get_running_loop().create_task(
            self._fetch_after_delay(self._sequence, bounds)
        )
        return True

    async def _fetch_after_delay(self, sequence: int, bounds: Bounds) -> None:
        await asyncio.sleep(self._debounce_s)
        try:
            segments = await self._client.fetch(bounds)
        except ProviderUnavailable as exc:
            logger.warning("Infrastructure overlay unavailable: %s", exc.reason)
            return
        if sequence != self._sequence:
            logger.debug("Dropping overlay for superseded viewport %d", sequence)
            return
        self.segments = segments
        for listener in list(self._listeners):
            try:
                listener(segments)
            except Exception:
                logger.exception("Infrastructure overlay listener failed")

    async def wait_idle(self) -> None:
        timer = self._timer
        if timer is None:
            return
        try:
            await timer
        except asyncio.CancelledError:
            if not timer.cancelled():
                raise
