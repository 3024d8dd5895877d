"""FastAPI application."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load .env file from project root (must be before other imports)
load_dotenv()
import firebase_admin  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from veloroute.api.routes import assistant, builder, routes  # noqa: E402
from veloroute.api.sessions import build_default_registry  # noqa: E402
from veloroute.services.infrastructure import OverpassClient  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize Firebase Admin, the session registry and shared clients."""
    try:
        firebase_admin.initialize_app()
        logger.info("Firebase Admin SDK initialized")
    except ValueError:
        # Already initialized
        logger.info("Firebase Admin SDK already initialized")

    app.state.sessions = build_default_registry()
    app.state.overpass = OverpassClient()
    yield
    await app.state.sessions.close_all()


app = FastAPI(
    title="VeloRoute API",
    description="Cycling route construction and multi-provider routing",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(builder.router, prefix="/api")
app.include_router(assistant.router, prefix="/api")
app.include_router(routes.router, prefix="/api")


@app.get("/api/health")
async def health():
    sessions = getattr(app.state, "sessions", None)
    return {
        "status": "ok",
        "open_sessions": len(sessions) if sessions is not None else 0,
    }
