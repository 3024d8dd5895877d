"""FastAPI dependency injection wiring."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from veloroute.api.auth import UserClaims, verify_firebase_token
from veloroute.api.sessions import BuilderSession, SessionRegistry
from veloroute.persistence.repositories.route_repo import RouteRepository
from veloroute.services.infrastructure import OverpassClient

# ------------------------------------------------------------------
# Current user
# ------------------------------------------------------------------


def get_current_user(
    claims: UserClaims = Depends(verify_firebase_token),
) -> str:
    """Return the authenticated user ID."""
    return claims.uid


# ------------------------------------------------------------------
# Repositories (stateless, new instance per request is fine)
# ------------------------------------------------------------------


def get_route_repo() -> RouteRepository:
    return RouteRepository()


# ------------------------------------------------------------------
# Singletons from app.state
# ------------------------------------------------------------------


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_overpass_client(request: Request) -> OverpassClient:
    return request.app.state.overpass


def get_builder_session(
    session_id: str,
    user_id: str = Depends(get_current_user),
    registry: SessionRegistry = Depends(get_session_registry),
) -> BuilderSession:
    builder = registry.get(user_id, session_id)
    if builder is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return builder
