"""Route-builder session endpoints: one per engine action, plus GPX and save."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel, Field, field_validator

from veloroute.api.deps import (
    get_builder_session,
    get_current_user,
    get_overpass_client,
    get_route_repo,
    get_session_registry,
)
from veloroute.api.sessions import BuilderSession, SessionRegistry
from veloroute.contracts.common import LonLat, validate_lon_lat
from veloroute.contracts.enums import RoutingProfile, UnitSystem
from veloroute.contracts.infrastructure import Bounds
from veloroute.contracts.routing import RoutePreferences
from veloroute.persistence.errors import DocumentNotFoundError
from veloroute.persistence.repositories.route_repo import RouteRepository
from veloroute.services.errors import InvalidGpx, ProviderUnavailable, WaypointNotFoundError
from veloroute.services.infrastructure import MIN_OVERLAY_ZOOM, OverpassClient
from veloroute.services.route_engine import (
    AddWaypoint,
    ClearRoute,
    InsertWaypoint,
    MoveWaypoint,
    Redo,
    RemoveWaypoint,
    ReverseRoute,
    RouteAction,
    SetPreferences,
    SetProfile,
    SetUnitSystem,
    Undo,
)

router = APIRouter(prefix="/builder", tags=["builder"])


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class _PositionBody(BaseModel):
    position: LonLat
    label: str | None = Field(default=None, max_length=200)

    @field_validator("position")
    @classmethod
    def check_position(cls, v: LonLat) -> LonLat:
        return validate_lon_lat(v)


class AddWaypointBody(_PositionBody):
    at_end: bool = True


class MoveWaypointBody(BaseModel):
    position: LonLat
    final: bool = True

    @field_validator("position")
    @classmethod
    def check_position(cls, v: LonLat) -> LonLat:
        return validate_lon_lat(v)


class CreateSessionBody(BaseModel):
    profile: RoutingProfile = RoutingProfile.ROAD
    unit_system: UnitSystem = UnitSystem.METRIC


class ProfileBody(BaseModel):
    profile: RoutingProfile


class UnitsBody(BaseModel):
    unit_system: UnitSystem


class SaveBody(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=2000)


def _session_payload(builder: BuilderSession) -> dict:
    return {
        "session_id": builder.id,
        "saved_route_id": builder.saved_route_id,
        "view": builder.engine.view.model_dump(mode="json"),
    }


def _dispatch(builder: BuilderSession, action: RouteAction) -> dict:
    try:
        view = builder.engine.dispatch(action)
    except WaypointNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return view.model_dump(mode="json")


# ------------------------------------------------------------------
# Sessions
# ------------------------------------------------------------------


@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionBody | None = None,
    user_id: str = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict:
    builder = await registry.create(user_id)
    if body is not None:
        builder.engine.dispatch(SetProfile(body.profile))
        builder.engine.dispatch(SetUnitSystem(body.unit_system))
    return _session_payload(builder)


@router.post("/sessions/from-route/{route_id}", status_code=201)
async def open_saved_route(
    route_id: str,
    user_id: str = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
    repo: RouteRepository = Depends(get_route_repo),
) -> dict:
    """Reopen a saved route for editing."""
    session = await repo.load_session(user_id, route_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Route not found")
    builder = await registry.create(user_id, session=session, saved_route_id=route_id)
    return _session_payload(builder)


@router.get("/sessions/{session_id}")
async def get_session(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    return _session_payload(builder)


@router.delete("/sessions/{session_id}", status_code=204, response_class=Response)
async def close_session(
    session_id: str,
    user_id: str = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    await registry.close(user_id, session_id)
    return Response(status_code=204)


# ------------------------------------------------------------------
# Waypoint gestures
# ------------------------------------------------------------------


@router.post("/sessions/{session_id}/waypoints")
async def add_waypoint(
    body: AddWaypointBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    return _dispatch(builder, AddWaypoint(body.position, at_end=body.at_end, label=body.label))


@router.post("/sessions/{session_id}/waypoints/insert")
async def insert_waypoint(
    body: _PositionBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    """Click on the route line: insert a via point on the nearest segment."""
    return _dispatch(builder, InsertWaypoint(body.position, label=body.label))


@router.patch("/sessions/{session_id}/waypoints/{waypoint_id}")
async def move_waypoint(
    waypoint_id: str,
    body: MoveWaypointBody,
    builder: BuilderSession = Depends(get_builder_session),
) -> dict:
    return _dispatch(builder, MoveWaypoint(waypoint_id, body.position, final=body.final))


@router.delete("/sessions/{session_id}/waypoints/{waypoint_id}")
async def remove_waypoint(
    waypoint_id: str, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    return _dispatch(builder, RemoveWaypoint(waypoint_id))


@router.post("/sessions/{session_id}/reverse")
async def reverse_route(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    return _dispatch(builder, ReverseRoute())


@router.post("/sessions/{session_id}/clear")
async def clear_route(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    return _dispatch(builder, ClearRoute())


@router.post("/sessions/{session_id}/undo")
async def undo(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    return _dispatch(builder, Undo())


@router.post("/sessions/{session_id}/redo")
async def redo(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    return _dispatch(builder, Redo())


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------


@router.put("/sessions/{session_id}/profile")
async def set_profile(
    body: ProfileBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    return _dispatch(builder, SetProfile(body.profile))


@router.put("/sessions/{session_id}/preferences")
async def set_preferences(
    body: RoutePreferences, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    return _dispatch(builder, SetPreferences(body))


@router.put("/sessions/{session_id}/units")
async def set_units(
    body: UnitsBody, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    return _dispatch(builder, SetUnitSystem(body.unit_system))


# ------------------------------------------------------------------
# Snapping
# ------------------------------------------------------------------


@router.post("/sessions/{session_id}/reroute")
async def reroute(builder: BuilderSession = Depends(get_builder_session)) -> dict:
    """Snap the current waypoints now and return the settled view."""
    view = await builder.engine.flush(force=True)
    return view.model_dump(mode="json")


# ------------------------------------------------------------------
# GPX and save
# ------------------------------------------------------------------


@router.post("/sessions/{session_id}/gpx")
async def import_gpx(
    file: UploadFile, builder: BuilderSession = Depends(get_builder_session)
) -> dict:
    content = await file.read()
    try:
        view = await builder.engine.import_gpx(content)
    except InvalidGpx as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return view.model_dump(mode="json")


@router.get("/sessions/{session_id}/gpx")
async def export_gpx(builder: BuilderSession = Depends(get_builder_session)) -> Response:
    try:
        text = builder.engine.export_gpx()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(
        content=text,
        media_type="application/gpx+xml",
        headers={"Content-Disposition": 'attachment; filename="route.gpx"'},
    )


@router.post("/sessions/{session_id}/save")
async def save_route(
    body: SaveBody,
    builder: BuilderSession = Depends(get_builder_session),
    repo: RouteRepository = Depends(get_route_repo),
) -> dict:
    """Persist the session's route; saving again overwrites the same record."""
    try:
        route_id = await repo.save_view(
            builder.user_id,
            builder.engine.view,
            name=body.name,
            description=body.description,
            route_id=builder.saved_route_id,
        )
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    builder.saved_route_id = route_id
    return {"id": route_id}


# ------------------------------------------------------------------
# Infrastructure overlay
# ------------------------------------------------------------------


@router.get("/infrastructure")
async def infrastructure(
    south: float = Query(..., ge=-90, le=90),
    west: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    zoom: float = Query(..., ge=0, le=24),
    user_id: str = Depends(get_current_user),
    client: OverpassClient = Depends(get_overpass_client),
) -> list[dict]:
    """Cycling infrastructure in the viewport; empty below the minimum zoom."""
    if zoom < MIN_OVERLAY_ZOOM:
        return []
    try:
        bounds = Bounds(south=south, west=west, north=north, east=east)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        segments = await client.fetch(bounds)
    except ProviderUnavailable as exc:
        raise HTTPException(status_code=503, detail=exc.reason) from exc
    return [s.to_firestore() for s in segments]
