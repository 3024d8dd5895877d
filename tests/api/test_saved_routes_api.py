"""Tests for saved route list / get / delete / GPX download."""

from __future__ import annotations

from veloroute.adapters import gpx_codec


async def _saved_route(client, name: str = "Lunch loop") -> str:
    session_id = (await client.post("/api/builder/sessions")).json()["session_id"]
    base = f"/api/builder/sessions/{session_id}"
    await client.post(f"{base}/waypoints", json={"position": [-105.27, 40.02]})
    await client.post(f"{base}/waypoints", json={"position": [-105.25, 40.05]})
    await client.post(f"{base}/reroute")
    resp = await client.post(f"{base}/save", json={"name": name, "description": "Flat and fast"})
    return resp.json()["id"]


class TestSavedRoutes:
    async def test_list(self, client):
        route_id = await _saved_route(client)
        resp = await client.get("/api/routes")
        assert resp.status_code == 200
        (summary,) = resp.json()
        assert summary["id"] == route_id
        assert summary["name"] == "Lunch loop"
        assert summary["waypoint_count"] == 2
        assert summary["profile"] == "road"
        assert summary["distance_m"] > 0

    async def test_list_empty(self, client):
        resp = await client.get("/api/routes")
        assert resp.json() == []

    async def test_get_rebuilds_view(self, client):
        route_id = await _saved_route(client)
        view = (await client.get(f"/api/routes/{route_id}")).json()
        assert view["id"] == route_id
        assert view["description"] == "Flat and fast"
        assert view["is_snapped"] is True
        assert len(view["grade_segments"]) == len(view["line"]) - 1

    async def test_get_missing(self, client):
        assert (await client.get("/api/routes/missing")).status_code == 404

    async def test_delete(self, client):
        route_id = await _saved_route(client)
        assert (await client.delete(f"/api/routes/{route_id}")).status_code == 204
        assert (await client.get(f"/api/routes/{route_id}")).status_code == 404

    async def test_gpx_download(self, client):
        route_id = await _saved_route(client, name="Lunch loop #2")
        resp = await client.get(f"/api/routes/{route_id}/gpx")
        assert resp.status_code == 200
        assert resp.headers["content-disposition"] == 'attachment; filename="Lunch_loop__2.gpx"'

        document = gpx_codec.decode(resp.content)
        assert document.name == "Lunch loop #2"
        assert all(e is not None for e in document.elevations)
