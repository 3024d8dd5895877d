"""In-memory registry of route-builder sessions.

Each session owns one ``RouteConstructionEngine`` and the
``NaturalLanguageRouteTranslator`` that seeds it.  Network collaborators
(gateway, elevation, completion, geocoding) are shared across sessions.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from veloroute.services.assistant.completion import AnthropicCompleter, TextCompleter
from veloroute.services.assistant.geocoding import Geocoder, default_geocoder
from veloroute.services.assistant.translator import NaturalLanguageRouteTranslator
from veloroute.services.elevation import ElevationProcessor
from veloroute.services.route_engine import (
    REROUTE_DEBOUNCE_S,
    RouteConstructionEngine,
    RouteConstructionSession,
)
from veloroute.services.routing.gateway import RoutingGateway, build_default_gateway

logger = logging.getLogger(__name__)

MAX_SESSIONS_PER_USER = 5


@dataclass
class BuilderSession:
    id: str
    user_id: str
    engine: RouteConstructionEngine
    translator: NaturalLanguageRouteTranslator
    saved_route_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


class SessionRegistry:
    def __init__(
        self,
        gateway: RoutingGateway,
        elevation: ElevationProcessor,
        completer: TextCompleter,
        geocoder: Geocoder,
        *,
        debounce_s: float = REROUTE_DEBOUNCE_S,
        max_per_user: int = MAX_SESSIONS_PER_USER,
    ):
        self._gateway = gateway
        self._elevation = elevation
        self._completer = completer
        self._geocoder = geocoder
        self._debounce_s = debounce_s
        self._max_per_user = max_per_user
        self._sessions: dict[str, BuilderSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(
        self,
        user_id: str,
        session: RouteConstructionSession | None = None,
        saved_route_id: str | None = None,
    ) -> BuilderSession:
        """Open a session; the user's oldest one is closed past the limit."""
        owned = sorted(
            (s for s in self._sessions.values() if s.user_id == user_id),
            key=lambda s: s.created_at,
        )
        while len(owned) >= self._max_per_user:
            oldest = owned.pop(0)
            logger.info("Closing session %s for %s (limit reached)", oldest.id, user_id)
            await self.close(user_id, oldest.id)

        engine = RouteConstructionEngine(
            self._gateway, self._elevation, session=session, debounce_s=self._debounce_s
        )
        translator = NaturalLanguageRouteTranslator(self._completer, self._geocoder, engine)
        builder = BuilderSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            engine=engine,
            translator=translator,
            saved_route_id=saved_route_id,
        )
        self._sessions[builder.id] = builder
        return builder

    def get(self, user_id: str, session_id: str) -> BuilderSession | None:
        """Session *session_id*, only if *user_id* owns it."""
        builder = self._sessions.get(session_id)
        if builder is None or builder.user_id != user_id:
            return None
        return builder

    async def close(self, user_id: str, session_id: str) -> bool:
        builder = self.get(user_id, session_id)
        if builder is None:
            return False
        del self._sessions[session_id]
        await builder.engine.close()
        return True

    async def close_all(self) -> None:
        for builder in list(self._sessions.values()):
            await builder.engine.close()
        self._sessions.clear()


def build_default_registry() -> SessionRegistry:
    """Registry wired to the real providers, configured from the environment."""
    return SessionRegistry(
        gateway=build_default_gateway(),
        elevation=ElevationProcessor(),
        completer=AnthropicCompleter(),
        geocoder=default_geocoder(),
    )
