"""Shared fixtures for API tests."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from veloroute.api.app import app
from veloroute.api.deps import get_current_user
from veloroute.api.sessions import SessionRegistry
from veloroute.services.elevation import ElevationProcessor
from veloroute.services.infrastructure import OverpassClient
from veloroute.services.routing.gateway import RoutingGateway
from tests.persistence.fake_firestore import FakeFirestoreClient
from tests.services.fakes import FakeCompleter, FakeElevationClient, FakeGeocoder, FakeProvider

TEST_USER_ID = "api-test-user"

PLACES = {
    "Lochbuie": (-104.716, 40.007),
    "Boulder": (-105.270, 40.015),
    "Lyons": (-105.271, 40.225),
}

OVERPASS_ELEMENTS = {
    "elements": [
        {
            "type": "way",
            "id": 7,
            "tags": {"highway": "cycleway", "name": "Boulder Creek Path"},
            "geometry": [{"lat": 40.01, "lon": -105.28}, {"lat": 40.012, "lon": -105.27}],
        }
    ]
}


@pytest.fixture
def fake_client():
    """In-memory Firestore fake, shared across all repos in a single test."""
    return FakeFirestoreClient()


@pytest.fixture
def completer():
    """Canned completions; tests append what the assistant should return."""
    return FakeCompleter()


@pytest.fixture
def test_app(fake_client, completer):
    """FastAPI app with dependency overrides and offline collaborators."""
    # Override auth to return a fixed test user
    app.dependency_overrides[get_current_user] = lambda: TEST_USER_ID

    overpass_http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda req: httpx.Response(200, json=OVERPASS_ELEMENTS))
    )
    with patch(
        "veloroute.persistence.repositories.route_repo.get_firestore_client",
        return_value=fake_client,
    ):
        app.state.sessions = SessionRegistry(
            RoutingGateway([FakeProvider("brouter")]),
            ElevationProcessor(FakeElevationClient()),
            completer,
            FakeGeocoder(PLACES),
            debounce_s=0,
        )
        app.state.overpass = OverpassClient(http_client=overpass_http, servers=["http://overpass.test/api"])
        yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def client(test_app):
    """httpx AsyncClient wired to the test app."""
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await test_app.state.sessions.close_all()
