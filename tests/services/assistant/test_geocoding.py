"""Tests for the geocoders and the Anthropic completer with mocked transports."""

from __future__ import annotations

import os
from types import SimpleNamespace
from unittest.mock import patch

import anthropic
import httpx
import pytest

from veloroute.services.assistant.completion import AnthropicCompleter
from veloroute.services.assistant.geocoding import (
    MapboxGeocoder,
    NominatimGeocoder,
    default_geocoder,
)
from veloroute.services.errors import UnparseableResponse

NEAR_BOULDER = (-105.27, 40.015)


class TestMapboxGeocoder:
    async def test_first_feature(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"features": [{"center": [-105.2705, 40.2242], "place_name": "Lyons, Colorado, United States"}]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            geocoder = MapboxGeocoder(access_token="pk.test", http_client=http)
            hit = await geocoder.geocode("Lyons", proximity=NEAR_BOULDER)

        assert hit.name == "Lyons"
        assert hit.coordinates == (-105.2705, 40.2242)
        assert hit.formatted_address == "Lyons, Colorado, United States"
        params = seen[0].url.params
        assert seen[0].url.path.endswith("/mapbox.places/Lyons.json")
        assert params["proximity"] == "-105.27,40.015"
        assert params["limit"] == "1"

    async def test_name_is_quoted(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"features": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            hit = await MapboxGeocoder(access_token="pk.test", http_client=http).geocode("Left Hand Canyon")

        assert hit is None
        assert seen[0].url.raw_path.startswith(b"/geocoding/v5/mapbox.places/Left%20Hand%20Canyon.json")

    async def test_error_is_not_found(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(401))
        async with httpx.AsyncClient(transport=transport) as http:
            assert await MapboxGeocoder(access_token="bad", http_client=http).geocode("Lyons") is None

    async def test_no_token(self):
        calls = []
        transport = httpx.MockTransport(lambda req: calls.append(req) or httpx.Response(200))
        with patch.dict(os.environ, {}, clear=True):
            async with httpx.AsyncClient(transport=transport) as http:
                assert await MapboxGeocoder(http_client=http).geocode("Lyons") is None
        assert calls == []


class TestNominatimGeocoder:
    async def test_viewbox_bias_and_user_agent(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json=[{"lat": "40.0075", "lon": "-104.7163", "display_name": "Lochbuie, Weld County"}]
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            hit = await NominatimGeocoder(http_client=http).geocode("Lochbuie", proximity=(-105.0, 40.0))

        assert hit.coordinates == (-104.7163, 40.0075)
        assert hit.formatted_address == "Lochbuie, Weld County"
        request = seen[0]
        assert request.headers["user-agent"] == "VeloRoute/0.1"
        assert request.url.params["q"] == "Lochbuie"
        assert request.url.params["viewbox"] == "-105.5,40.5,-104.5,39.5"
        assert request.url.params["bounded"] == "0"

    async def test_empty_result(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(200, json=[]))
        async with httpx.AsyncClient(transport=transport) as http:
            assert await NominatimGeocoder(http_client=http).geocode("Atlantis") is None

    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await NominatimGeocoder(http_client=http).geocode("Lyons") is None


class TestDefaultGeocoder:
    def test_mapbox_with_token(self):
        with patch.dict(os.environ, {"MAPBOX_TOKEN": "pk.env"}):
            geocoder = default_geocoder()
        assert isinstance(geocoder, MapboxGeocoder)
        assert geocoder.access_token == "pk.env"

    def test_nominatim_without_token(self):
        with patch.dict(os.environ, {}, clear=True):
            assert isinstance(default_geocoder(), NominatimGeocoder)


class _FakeMessages:
    def __init__(self, content=None, error: Exception | None = None):
        self.content = content or []
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.content)


class TestAnthropicCompleter:
    async def test_joins_text_blocks(self):
        messages = _FakeMessages(
            content=[
                SimpleNamespace(type="text", text='{"distance": '),
                SimpleNamespace(type="tool_use", id="x"),
                SimpleNamespace(type="text", text="40}"),
            ]
        )
        completer = AnthropicCompleter(
            api_key="k", model="test-model", client=SimpleNamespace(messages=messages)
        )

        assert await completer.complete("plan a ride") == '{"distance": 40}'
        call = messages.calls[0]
        assert call["model"] == "test-model"
        assert call["max_tokens"] == 800
        assert call["messages"] == [{"role": "user", "content": "plan a ride"}]

    async def test_missing_key(self):
        with patch.dict(os.environ, {}, clear=True):
            completer = AnthropicCompleter()
            with pytest.raises(UnparseableResponse, match="ANTHROPIC_API_KEY"):
                await completer.complete("plan a ride")

    async def test_api_error(self):
        error = anthropic.APIError(
            "overloaded",
            httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
            body=None,
        )
        completer = AnthropicCompleter(
            api_key="k", client=SimpleNamespace(messages=_FakeMessages(error=error))
        )
        with pytest.raises(UnparseableResponse, match="text completion failed"):
            await completer.complete("plan a ride")

    def test_model_from_environment(self):
        with patch.dict(os.environ, {"ROUTE_ASSISTANT_MODEL": "env-model"}):
            assert AnthropicCompleter(api_key="k").model == "env-model"
