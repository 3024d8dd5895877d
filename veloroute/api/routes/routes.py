"""Saved route list / get / delete / GPX download."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from veloroute.adapters import gpx_codec
from veloroute.api.deps import get_current_user, get_route_repo
from veloroute.persistence.repositories.route_repo import RouteRepository

router = APIRouter(prefix="/routes", tags=["routes"])


@router.get("")
async def list_routes(
    user_id: str = Depends(get_current_user),
    repo: RouteRepository = Depends(get_route_repo),
) -> list[dict]:
    routes = await repo.list_all(user_id)
    return [
        {
            "id": r.id,
            "name": r.name,
            "description": r.description,
            "profile": r.profile,
            "distance_m": r.distance_m,
            "duration_s": r.duration_s,
            "waypoint_count": len(r.waypoints),
            "created_at": r.created_at.isoformat(),
        }
        for r in sorted(routes, key=lambda r: r.created_at, reverse=True)
    ]


@router.get("/{route_id}")
async def get_route(
    route_id: str,
    user_id: str = Depends(get_current_user),
    repo: RouteRepository = Depends(get_route_repo),
) -> dict:
    view = await repo.load_view(user_id, route_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Route not found")
    result = view.model_dump(mode="json")
    result["id"] = route_id
    return result


@router.delete("/{route_id}", status_code=204, response_class=Response)
async def delete_route(
    route_id: str,
    user_id: str = Depends(get_current_user),
    repo: RouteRepository = Depends(get_route_repo),
) -> Response:
    await repo.delete(user_id, route_id)
    return Response(status_code=204)


@router.get("/{route_id}/gpx")
async def download_gpx(
    route_id: str,
    user_id: str = Depends(get_current_user),
    repo: RouteRepository = Depends(get_route_repo),
) -> Response:
    view = await repo.load_view(user_id, route_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Route not found")

    text = gpx_codec.encode(
        view.line,
        view.name or "VeloRoute",
        description=view.description,
        elevation_profile=view.elevation_profile or None,
    )
    filename = "".join(c if c.isalnum() or c in "-_" else "_" for c in (view.name or route_id))
    return Response(
        content=text,
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="{filename}.gpx"'},
    )
