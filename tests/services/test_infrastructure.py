"""Tests for OSM cycling-infrastructure classification and overlay fetching."""

from __future__ import annotations

import re

import httpx
import pytest

from veloroute.contracts.enums import InfrastructureType
from veloroute.contracts.infrastructure import Bounds
from veloroute.services.errors import ProviderUnavailable
from veloroute.services.infrastructure import (
    INFRASTRUCTURE_COLORS,
    InfrastructureOverlay,
    OverpassClient,
    build_overpass_query,
    classify_infrastructure,
)

BOULDER_VIEW = Bounds(south=40.00, west=-105.30, north=40.05, east=-105.24)

OVERPASS_RESPONSE = {
    "elements": [
        {
            "type": "way",
            "id": 101,
            "tags": {"highway": "cycleway", "name": "Boulder Creek Path", "surface": "asphalt"},
            "geometry": [{"lat": 40.01, "lon": -105.28}, {"lat": 40.012, "lon": -105.27}],
        },
        {
            "type": "way",
            "id": 102,
            "tags": {"highway": "residential", "cycleway": "lane"},
            "geometry": [{"lat": 40.02, "lon": -105.28}, {"lat": 40.02, "lon": -105.26}],
        },
        {
            "type": "way",
            "id": 103,
            "tags": {"highway": "tertiary"},
            "geometry": [{"lat": 40.03, "lon": -105.28}],
        },
        {"type": "node", "id": 104, "lat": 40.0, "lon": -105.0},
    ]
}


def _bbox(request: httpx.Request) -> list[float]:
    match = re.search(r"\[bbox:([^\]]+)\]", request.content.decode())
    return [float(v) for v in match.group(1).split(",")]


class TestClassify:
    @pytest.mark.parametrize(
        "tags, expected",
        [
            ({"highway": "cycleway"}, InfrastructureType.PROTECTED_CYCLEWAY),
            ({"highway": "secondary", "cycleway:right": "track"}, InfrastructureType.PROTECTED_CYCLEWAY),
            ({"highway": "residential", "cycleway": "lane"}, InfrastructureType.BIKE_LANE),
            ({"highway": "path", "bicycle": "designated"}, InfrastructureType.SHARED_PATH),
            ({"highway": "footway", "bicycle": "yes"}, InfrastructureType.SHARED_PATH),
            ({"highway": "service", "route": "bicycle"}, InfrastructureType.SHARED_PATH),
            ({"highway": "tertiary", "cycleway": "shared_lane"}, InfrastructureType.SHARED_LANE),
            ({"highway": "residential", "bicycle": "yes"}, InfrastructureType.BIKE_FRIENDLY),
            ({"highway": "primary", "cycleway:left": "opposite"}, InfrastructureType.BIKE_LANE),
            ({}, InfrastructureType.BIKE_FRIENDLY),
            (None, InfrastructureType.BIKE_FRIENDLY),
        ],
    )
    def test_classify(self, tags, expected):
        assert classify_infrastructure(tags) == expected

    def test_colors_cover_every_type(self):
        assert set(INFRASTRUCTURE_COLORS) == set(InfrastructureType)

    def test_query(self):
        query = build_overpass_query(BOULDER_VIEW)
        assert query.startswith("[out:json][timeout:15][bbox:40.0,-105.3,40.05,-105.24];")
        assert "way[highway=path][bicycle=designated];" in query
        assert query.rstrip().endswith("out geom;")


class TestOverpassClient:
    async def test_parses_and_orders_segments(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(200, json=OVERPASS_RESPONSE))
        async with httpx.AsyncClient(transport=transport) as http:
            segments = await OverpassClient(http_client=http).fetch(BOULDER_VIEW)

        assert [s.osm_id for s in segments] == [102, 101]
        protected = segments[-1]
        assert protected.infra_type == InfrastructureType.PROTECTED_CYCLEWAY
        assert protected.name == "Boulder Creek Path"
        assert protected.surface == "asphalt"
        assert protected.coordinates[0] == (-105.28, 40.01)
        assert protected.color == "#5c7a5e"

    async def test_falls_back_to_next_mirror_and_remembers_it(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "a.test":
                return httpx.Response(504)
            return httpx.Response(200, json={"elements": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OverpassClient(http_client=http, servers=["http://a.test/api", "http://b.test/api"])
            assert await client.fetch(BOULDER_VIEW) == []
            await client.fetch(BOULDER_VIEW)

        assert hosts == ["a.test", "b.test", "b.test"]

    async def test_all_mirrors_down(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(429))
        async with httpx.AsyncClient(transport=transport) as http:
            client = OverpassClient(http_client=http, servers=["http://a.test/api", "http://b.test/api"])
            with pytest.raises(ProviderUnavailable) as info:
                await client.fetch(BOULDER_VIEW)
        assert info.value.reason == "HTTP 429 from http://b.test/api"

    async def test_large_box_clamped(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"elements": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            await OverpassClient(http_client=http).fetch(
                Bounds(south=39.0, west=-106.0, north=41.0, east=-104.0)
            )

        south, west, north, east = _bbox(seen[0])
        assert north - south == pytest.approx(0.15)
        assert east - west == pytest.approx(0.15)
        assert (south + north) / 2 == pytest.approx(40.0)
        assert seen[0].headers["content-type"] == "text/plain"


class TestInfrastructureOverlay:
    async def test_below_min_zoom_is_ignored(self):
        calls = []
        transport = httpx.MockTransport(lambda req: calls.append(req) or httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=transport) as http:
            overlay = InfrastructureOverlay(OverpassClient(http_client=http), debounce_s=0)
            assert not overlay.on_viewport_change(BOULDER_VIEW, zoom=12)
            await overlay.wait_idle()
        assert calls == []
        assert overlay.segments == []

    async def test_last_viewport_wins(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(_bbox(request))
            return httpx.Response(200, json=OVERPASS_RESPONSE)

        published = []
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            overlay = InfrastructureOverlay(OverpassClient(http_client=http), debounce_s=0.01)
            overlay.subscribe(published.append)
            overlay.on_viewport_change(BOULDER_VIEW, zoom=14)
            later = Bounds(south=40.10, west=-105.30, north=40.15, east=-105.24)
            assert overlay.on_viewport_change(later, zoom=14)
            await overlay.wait_idle()

        assert requests == [[40.10, -105.30, 40.15, -105.24]]
        assert len(published) == 1
        assert overlay.segments == published[0]

    async def test_zooming_out_cancels_pending_fetch(self):
        calls = []
        transport = httpx.MockTransport(lambda req: calls.append(req) or httpx.Response(200, json={}))
        async with httpx.AsyncClient(transport=transport) as http:
            overlay = InfrastructureOverlay(OverpassClient(http_client=http), debounce_s=0.01)
            overlay.on_viewport_change(BOULDER_VIEW, zoom=14)
            overlay.on_viewport_change(BOULDER_VIEW, zoom=10)
            await overlay.wait_idle()
        assert calls == []

    async def test_unavailable_keeps_previous_segments(self):
        published = []
        transport = httpx.MockTransport(lambda req: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as http:
            overlay = InfrastructureOverlay(
                OverpassClient(http_client=http, servers=["http://a.test/api"]), debounce_s=0
            )
            overlay.subscribe(published.append)
            overlay.on_viewport_change(BOULDER_VIEW, zoom=15)
            await overlay.wait_idle()
        assert published == []
        assert overlay.segments == []
