"""Route construction: waypoint session + debounced snapping + elevation.

``RouteConstructionSession`` is the single aggregate for one route under
construction.  All state changes go through ``apply(action)``; any change to
the waypoint sequence bumps ``version`` and drops the routing result and
everything derived from it.

``RouteConstructionEngine`` drives the reactive pipeline::

    dispatch(action) -> [count changed or drag ended] -> debounce -> gateway.snap()
        -> elevation.profile() -> grades/stats -> publish(RouteView)

Reroutes are never cancelled once started.  Each captures the session
version up front; a result arriving after a newer mutation is dropped
("last request wins").
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence, Union

from veloroute.adapters import gpx_codec
from veloroute.contracts.common import LonLat
from veloroute.contracts.elevation import ElevationPoint, ElevationStats, GradeSegment
from veloroute.contracts.enums import RoutingProfile, UnitSystem
from veloroute.contracts.route import RouteStats, RouteView
from veloroute.contracts.routing import RoutePreferences, RoutingFailure, RoutingResult
from veloroute.contracts.waypoint import Waypoint
from veloroute.services.elevation import (
    ElevationProcessor,
    build_profile,
    compute_stats,
    grade_segments,
)
from veloroute.services.geometry import polyline_length_m
from veloroute.services.routing.gateway import RoutingGateway
from veloroute.services.units import display_stats
from veloroute.services.waypoint_store import WaypointStore

logger = logging.getLogger(__name__)

REROUTE_DEBOUNCE_S = 1.0
DEFAULT_SPEED_KMH = 25.0
GPX_IMPORT_PROVIDER_ID = "gpx_import"
GPX_IMPORT_DENSE_TRACK = 100
GPX_IMPORT_SEGMENTS = 5


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddWaypoint:
    position: LonLat
    at_end: bool = True
    label: str | None = None


@dataclass(frozen=True)
class InsertWaypoint:
    """Click on the route line: insert after the nearest segment's start."""
    position: LonLat
    label: str | None = None


@dataclass(frozen=True)
class MoveWaypoint:
    waypoint_id: str
    position: LonLat
    final: bool = True


@dataclass(frozen=True)
class RemoveWaypoint:
    waypoint_id: str


@dataclass(frozen=True)
class ReverseRoute:
    pass


@dataclass(frozen=True)
class ClearRoute:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


@dataclass(frozen=True)
class SeedWaypoints:
    """Replace the whole sequence (GPX import, natural-language request)."""
    waypoints: tuple[Waypoint, ...]
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SetProfile:
    profile: RoutingProfile


@dataclass(frozen=True)
class SetPreferences:
    preferences: RoutePreferences


@dataclass(frozen=True)
class SetUnitSystem:
    unit_system: UnitSystem


RouteAction = Union[
    AddWaypoint,
    InsertWaypoint,
    MoveWaypoint,
    RemoveWaypoint,
    ReverseRoute,
    ClearRoute,
    Undo,
    Redo,
    SeedWaypoints,
    SetProfile,
    SetPreferences,
    SetUnitSystem,
]


# ---------------------------------------------------------------------------
# Session aggregate
# ---------------------------------------------------------------------------


@dataclass
class RouteConstructionSession:
    """Everything known about one route under construction.

    Invariants:
    - ``routing_result`` is None or was produced for the current waypoint
      sequence, profile and preferences (``version`` guards this).
    - ``elevation_profile`` is empty or aligned 1:1 with ``routing_result``.
    - ``grade_segments`` has ``len(elevation_profile) - 1`` entries (or none).
    - ``error`` describes the last failed reroute of the current version.
    """

    store: WaypointStore = field(default_factory=WaypointStore)
    profile: RoutingProfile = RoutingProfile.ROAD
    preferences: RoutePreferences = field(default_factory=RoutePreferences)
    unit_system: UnitSystem = UnitSystem.METRIC
    name: str | None = None
    description: str | None = None
    speed_kmh: float = DEFAULT_SPEED_KMH
    routing_result: RoutingResult | None = None
    elevation_profile: list[ElevationPoint] = field(default_factory=list)
    grade_segments: list[GradeSegment] = field(default_factory=list)
    elevation_stats: ElevationStats | None = None
    error: RoutingFailure | None = None
    version: int = 0

    def apply(self, action: RouteAction) -> bool:
        """Apply one action synchronously; True when observable state changed."""
        store = self.store
        before = store.revision

        if isinstance(action, AddWaypoint):
            store.add(action.position, at_end=action.at_end, label=action.label)
        elif isinstance(action, InsertWaypoint):
            store.insert_on_route(action.position, label=action.label)
        elif isinstance(action, MoveWaypoint):
            store.move(action.waypoint_id, action.position, final=action.final)
        elif isinstance(action, RemoveWaypoint):
            store.remove(action.waypoint_id)
        elif isinstance(action, ReverseRoute):
            store.reverse()
        elif isinstance(action, ClearRoute):
            store.clear()
        elif isinstance(action, Undo):
            store.undo()
        elif isinstance(action, Redo):
            store.redo()
        elif isinstance(action, SeedWaypoints):
            store.replace(action.waypoints)
            self.name = action.name or self.name
            self.description = action.description or self.description
        elif isinstance(action, SetProfile):
            profile = RoutingProfile(action.profile)
            if profile == self.profile:
                return False
            self.profile = profile
            self.invalidate()
            return True
        elif isinstance(action, SetPreferences):
            if action.preferences == self.preferences:
                return False
            self.preferences = action.preferences
            self.invalidate()
            return True
        elif isinstance(action, SetUnitSystem):
            units = UnitSystem(action.unit_system)
            if units == self.unit_system:
                return False
            # display only: stats are re-derived from stored meters
            self.unit_system = units
            return True
        else:
            raise TypeError(f"unsupported route action: {action!r}")

        if store.revision == before:
            return False
        self.invalidate()
        return True

    def invalidate(self) -> None:
        """Drop the routing result and everything derived from it."""
        self.version += 1
        self.routing_result = None
        self.elevation_profile = []
        self.grade_segments = []
        self.elevation_stats = None
        self.error = None

    def record_route(self, result: RoutingResult, profile: list[ElevationPoint]) -> None:
        self.routing_result = result
        self.elevation_profile = profile
        self.grade_segments = grade_segments(profile)
        self.elevation_stats = compute_stats(profile, self.grade_segments)
        self.error = None

    def record_failure(self, failure: RoutingFailure) -> None:
        self.routing_result = None
        self.elevation_profile = []
        self.grade_segments = []
        self.elevation_stats = None
        self.error = failure

    @property
    def line(self) -> list[LonLat]:
        """Snapped geometry, or the straight-line polyline through the waypoints."""
        if self.routing_result is not None:
            return list(self.routing_result.coordinates)
        return self.store.positions

    def stats(self) -> RouteStats:
        if self.routing_result is not None:
            return RouteStats(
                distance_m=self.routing_result.distance_m,
                duration_s=self.routing_result.duration_s or self._estimate_duration(
                    self.routing_result.distance_m
                ),
                is_estimate=False,
                elevation=self.elevation_stats,
            )
        distance = polyline_length_m(self.store.positions)
        return RouteStats(
            distance_m=distance,
            duration_s=self._estimate_duration(distance),
            is_estimate=True,
        )

    def _estimate_duration(self, distance_m: float) -> float:
        return distance_m / (self.speed_kmh / 3.6)

    def view(self) -> RouteView:
        stats = self.stats()
        return RouteView(
            version=self.version,
            name=self.name,
            description=self.description,
            profile=self.profile,
            preferences=self.preferences,
            unit_system=self.unit_system,
            waypoints=list(self.store.waypoints),
            routing_result=self.routing_result,
            line=self.line,
            elevation_profile=self.elevation_profile,
            grade_segments=self.grade_segments,
            stats=stats,
            display=display_stats(stats, self.unit_system),
            error=self.error,
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


Listener = Callable[[RouteView], Any]


def sample_import_indices(count: int) -> list[int]:
    """Start, end, and for dense tracks a handful of evenly spaced points."""
    indices = [0]
    if count > GPX_IMPORT_DENSE_TRACK:
        step = count // GPX_IMPORT_SEGMENTS
        indices.extend(range(step, count - step, step))
    indices.append(count - 1)
    return indices


class RouteConstructionEngine:
    """Reactive pipeline from waypoint gestures to a renderable ``RouteView``."""

    def __init__(
        self,
        gateway: RoutingGateway,
        elevation: ElevationProcessor,
        *,
        session: RouteConstructionSession | None = None,
        debounce_s: float = REROUTE_DEBOUNCE_S,
    ):
        self._gateway = gateway
        self._elevation = elevation
        self._session = session or RouteConstructionSession()
        self._debounce_s = debounce_s
        self._listeners: list[Listener] = []
        self._timer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._reroute_pending = False

    @property
    def session(self) -> RouteConstructionSession:
        return self._session

    @property
    def view(self) -> RouteView:
        return self._session.view()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for every published view; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> RouteView:
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Route view listener failed")
        return view

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def dispatch(self, action: RouteAction) -> RouteView:
        """Apply *action* now; schedule a debounced reroute when it qualifies.

        Rerouting qualifies when the waypoint count changed, when a drag
        ended (a final ``MoveWaypoint``), or when the profile or preferences
        changed.  Intermediate drag frames never snap.
        """
        count_before = self._session.store.count
        if not self._session.apply(action):
            return self.view

        count_changed = self._session.store.count != count_before
        drag_ended = isinstance(action, MoveWaypoint) and action.final
        if count_changed or drag_ended or isinstance(action, (SetProfile, SetPreferences)):
            self._schedule_reroute()
        return self._publish()

    def _schedule_reroute(self) -> None:
        if self._session.store.count < 2:
            self._cancel_timer()
            self._reroute_pending = False
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._reroute_pending = True
            return
        self._cancel_timer()
        self._reroute_pending = True
        self._timer = loop.create_task(self._debounced_reroute())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _debounced_reroute(self) -> None:
        await asyncio.sleep(self._debounce_s)
        self._timer = None
        self._spawn_reroute()

    def _spawn_reroute(self) -> asyncio.Task:
        self._reroute_pending = False
        task = asyncio.get_running_loop().create_task(self.reroute())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def reroute(self) -> RouteView:
        """Snap the current sequence and publish; stale results are dropped."""
        session = self._session
        version = session.version
        waypoints = list(session.store.waypoints)
        if len(waypoints) < 2:
            return self.view

        result = await self._gateway.snap(waypoints, session.profile, session.preferences)
        if session.version != version:
            logger.debug("Dropping routing result for v%d (now v%d)", version, session.version)
            return self.view

        if isinstance(result, RoutingFailure):
            session.record_failure(result)
            return self._publish()

        try:
            profile = await self._elevation.profile(result.coordinates)
        except Exception:
            logger.exception("Elevation profile failed for %d points", len(result.coordinates))
            profile = []
        if session.version != version:
            logger.debug("Dropping elevation for v%d (now v%d)", version, session.version)
            return self.view

        session.record_route(result, profile)
        logger.info(
            "Route v%d snapped by %s: %.0f m", version, result.provider_id, result.distance_m
        )
        return self._publish()

    async def flush(self, *, force: bool = False) -> RouteView:
        """Skip the debounce window: reroute now if one is pending or *force* is set."""
        pending = force or self._reroute_pending or self._timer is not None
        self._cancel_timer()
        if pending and self._session.store.count >= 2:
            await self._spawn_reroute()
        await self.wait_idle()
        return self.view

    async def wait_idle(self) -> None:
        """Wait for the debounce timer and every in-flight reroute."""
        while self._timer is not None or self._inflight:
            if self._timer is not None:
                timer = self._timer
                try:
                    await timer
                except asyncio.CancelledError:
                    if not timer.cancelled():
                        raise
                if self._timer is timer:
                    self._timer = None
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def close(self) -> None:
        """Stop the pending debounce; in-flight reroutes finish on their own."""
        self._cancel_timer()
        self._reroute_pending = False

    # ------------------------------------------------------------------
    # Seeding, import and export
    # ------------------------------------------------------------------

    async def seed(
        self,
        positions: Sequence[Waypoint | LonLat],
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> RouteView:
        """Replace the sequence and snap immediately (no debounce)."""
        waypoints = tuple(
            p if isinstance(p, Waypoint) else Waypoint(position=p) for p in positions
        )
        self._session.apply(SeedWaypoints(waypoints, name=name, description=description))
        self._cancel_timer()
        self._reroute_pending = False
        self._publish()
        return await self.reroute()

    async def import_gpx(self, text: str | bytes) -> RouteView:
        """Load a GPX track as the route.

        The track geometry is used as-is (no re-snapping) and waypoints are
        sampled from it for further editing.  ``InvalidGpx`` propagates and
        leaves the session untouched.
        """
        document = gpx_codec.decode(text)
        coordinates = document.coordinates
        indices = sample_import_indices(len(coordinates))
        waypoints = tuple(document.waypoints[i] for i in indices)

        session = self._session
        session.apply(
            SeedWaypoints(waypoints, name=document.name, description=document.description)
        )
        self._cancel_timer()
        self._reroute_pending = False
        version = session.version

        distance_m = polyline_length_m(coordinates)
        result = RoutingResult(
            coordinates=coordinates,
            distance_m=max(distance_m, 0.1),
            duration_s=distance_m / (session.speed_kmh / 3.6),
            confidence=1.0,
            provider_id=GPX_IMPORT_PROVIDER_ID,
        )
        if any(e is not None for e in document.elevations):
            profile = build_profile(coordinates, document.elevations)
        else:
            try:
                profile = await self._elevation.profile(coordinates)
            except Exception:
                logger.exception("Elevation profile failed for imported GPX")
                profile = []

        if session.version == version:
            session.record_route(result, profile)
        logger.info("Imported GPX %r: %d points, %d waypoints", document.name, len(coordinates), len(waypoints))
        return self._publish()

    def export_gpx(self, name: str | None = None, description: str | None = None) -> str:
        """Serialize the current line (snapped or straight) as GPX."""
        session = self._session
        line = session.line
        if len(line) < 2:
            raise ValueError("need at least 2 points to export GPX")
        return gpx_codec.encode(
            line,
            name or session.name or "VeloRoute",
            description=description or session.description,
            elevation_profile=session.elevation_profile or None,
        )
