"""Repository for constructed routes.

A ``RouteView`` is flattened into a ``SavedRoute`` on save and rebuilt
through a ``RouteConstructionSession`` on load, so grades and stats are
always re-derived from the stored raw elevations.  Documents live under
``/users/{user_id}/routes``.
"""

from __future__ import annotations

from datetime import datetime, timezone

import polyline

from veloroute.contracts.route import RouteView, SavedRoute
from veloroute.contracts.routing import RoutingResult
from veloroute.persistence.errors import DocumentNotFoundError
from veloroute.persistence.firestore_client import get_firestore_client
from veloroute.services.elevation import build_profile
from veloroute.services.route_engine import RouteConstructionSession
from veloroute.services.waypoint_store import WaypointStore

COLLECTION = "routes"
POLYLINE_PRECISION = 6


def encode_line(coordinates: list) -> str:
    return polyline.encode(coordinates, POLYLINE_PRECISION, geojson=True)


def decode_line(encoded: str) -> list[tuple[float, float]]:
    return polyline.decode(encoded, POLYLINE_PRECISION, geojson=True)


class RouteRepository:
    """Saved routes of one Firestore user subcollection."""

    def _routes(self, user_id: str):
        db = get_firestore_client()
        return db.collection("users").document(user_id).collection(COLLECTION)

    async def get(self, user_id: str, route_id: str) -> SavedRoute | None:
        """Fetch a saved route by ID. Returns *None* if missing."""
        doc = await self._routes(user_id).document(route_id).get()
        if not doc.exists:
            return None
        return _from_doc(doc)

    async def list_all(self, user_id: str) -> list[SavedRoute]:
        return [_from_doc(doc) async for doc in self._routes(user_id).stream()]

    async def delete(self, user_id: str, route_id: str) -> None:
        await self._routes(user_id).document(route_id).delete()

    async def save_view(
        self,
        user_id: str,
        view: RouteView,
        name: str | None = None,
        description: str | None = None,
        route_id: str | None = None,
    ) -> str:
        """Persist *view*; overwrites ``route_id`` when given.

        Returns the route document ID.

        Raises
        ------
        ValueError
            If the view has fewer than two waypoints.
        DocumentNotFoundError
            If ``route_id`` is given but no longer exists.
        """
        saved = to_saved_route(view, name=name, description=description)
        data = saved.to_firestore()
        data.pop("id", None)
        if route_id is None:
            _, ref = await self._routes(user_id).add(data)
            return ref.id

        existing = await self.get(user_id, route_id)
        if existing is None:
            raise DocumentNotFoundError(COLLECTION, route_id)
        data["created_at"] = existing.to_firestore()["created_at"]
        data["updated_at"] = datetime.now(tz=timezone.utc).isoformat()
        await self._routes(user_id).document(route_id).set(data)
        return route_id

    async def load_session(self, user_id: str, route_id: str) -> RouteConstructionSession | None:
        saved = await self.get(user_id, route_id)
        if saved is None:
            return None
        return to_session(saved)

    async def load_view(self, user_id: str, route_id: str) -> RouteView | None:
        session = await self.load_session(user_id, route_id)
        return session.view() if session is not None else None


def _from_doc(doc) -> SavedRoute:
    data = doc.to_dict()
    data["id"] = doc.id
    return SavedRoute.from_firestore(data)


def to_saved_route(
    view: RouteView, name: str | None = None, description: str | None = None
) -> SavedRoute:
    if len(view.waypoints) < 2:
        raise ValueError("need at least 2 waypoints to save a route")

    result = view.routing_result
    elevations = [p.raw_elevation_m for p in view.elevation_profile]
    return SavedRoute(
        name=name or view.name or "Untitled route",
        description=description if description is not None else view.description,
        profile=view.profile,
        preferences=view.preferences,
        waypoints=view.waypoints,
        encoded_line=encode_line(view.line),
        elevations_m=elevations,
        distance_m=view.stats.distance_m,
        duration_s=view.stats.duration_s,
        provider_id=result.provider_id if result is not None else None,
        confidence=result.confidence if result is not None else None,
    )


def to_session(saved: SavedRoute) -> RouteConstructionSession:
    """Rebuild an editable session; history starts at the saved sequence."""
    session = RouteConstructionSession(
        store=WaypointStore(saved.waypoints),
        profile=saved.profile,
        preferences=saved.preferences,
        name=saved.name,
        description=saved.description,
    )
    line = decode_line(saved.encoded_line)
    if saved.provider_id is None or len(line) < 2 or saved.distance_m <= 0:
        return session

    result = RoutingResult(
        coordinates=line,
        distance_m=saved.distance_m,
        duration_s=saved.duration_s,
        confidence=saved.confidence if saved.confidence is not None else 0.5,
        provider_id=saved.provider_id,
    )
    profile = []
    if len(saved.elevations_m) == len(line):
        profile = build_profile(line, saved.elevations_m)
    session.record_route(result, profile)
    return session
