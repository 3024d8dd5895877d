"""Ordered waypoint list with linear undo/redo.

The store is the single owner of the waypoint sequence for one route under
construction.  Every committed mutation pushes an immutable snapshot onto a
bounded ``History``; drag frames (``move(..., final=False)``) update the
live sequence without touching history until the drag ends.

Kinds are positional and re-derived after every change: the first waypoint
is ``START``, the last (when there are two or more) is ``END``, everything
in between is ``VIA``.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from veloroute.contracts.common import LonLat, validate_lon_lat
from veloroute.contracts.waypoint import Waypoint, kind_for_position
from veloroute.services.errors import WaypointNotFoundError
from veloroute.services.geometry import closest_segment_index

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 50

HistorySnapshot = tuple[Waypoint, ...]


class History:
    """Bounded linear undo stack with a cursor.

    ``entries[cursor]`` is the committed state; cursor ``-1`` designates the
    base snapshot (the initial state, or the oldest entry evicted once the
    bound is reached).  Pushing discards every entry beyond the cursor.
    """

    def __init__(self, max_size: int = MAX_HISTORY_SIZE):
        if max_size < 1:
            raise ValueError("history needs room for at least one entry")
        self._max_size = max_size
        self._entries: list[HistorySnapshot] = []
        self._cursor = -1
        self._base: HistorySnapshot = ()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> HistorySnapshot:
        return self._entries[self._cursor] if self._cursor >= 0 else self._base

    @property
    def can_undo(self) -> bool:
        return self._cursor >= 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def reset(self, base: HistorySnapshot = ()) -> None:
        self._entries.clear()
        self._cursor = -1
        self._base = base

    def push(self, snapshot: HistorySnapshot) -> None:
        del self._entries[self._cursor + 1 :]
        self._entries.append(snapshot)
        if len(self._entries) > self._max_size:
            self._base = self._entries.pop(0)
        self._cursor = len(self._entries) - 1

    def undo(self) -> HistorySnapshot | None:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self.current

    def redo(self) -> HistorySnapshot | None:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self.current


def _retag(waypoints: Iterable[Waypoint]) -> list[Waypoint]:
    items = list(waypoints)
    n = len(items)
    out = []
    for i, wp in enumerate(items):
        kind = kind_for_position(i, n).value
        out.append(wp if wp.kind == kind else wp.model_copy(update={"kind": kind}))
    return out


class WaypointStore:
    """Mutation API for the waypoint sequence, driven by UI gestures."""

    def __init__(
        self,
        waypoints: Iterable[Waypoint] = (),
        max_history: int = MAX_HISTORY_SIZE,
    ):
        self._waypoints = _retag(waypoints)
        self._history = History(max_history)
        self._history.reset(tuple(self._waypoints))
        self._revision = 0
        self._uncommitted = False

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @property
    def waypoints(self) -> HistorySnapshot:
        return tuple(self._waypoints)

    @property
    def positions(self) -> list[LonLat]:
        return [wp.position for wp in self._waypoints]

    @property
    def count(self) -> int:
        return len(self._waypoints)

    def __len__(self) -> int:
        return len(self._waypoints)

    @property
    def revision(self) -> int:
        """Incremented on every change to the live sequence."""
        return self._revision

    @property
    def history(self) -> History:
        return self._history

    @property
    def can_undo(self) -> bool:
        return self._uncommitted or self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return not self._uncommitted and self._history.can_redo

    def get(self, waypoint_id: str) -> Waypoint:
        return self._waypoints[self._index_of(waypoint_id)]

    def _index_of(self, waypoint_id: str) -> int:
        for i, wp in enumerate(self._waypoints):
            if wp.id == waypoint_id:
                return i
        raise WaypointNotFoundError(waypoint_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _set(self, waypoints: Iterable[Waypoint]) -> None:
        self._waypoints = _retag(waypoints)
        self._revision += 1

    def _commit(self) -> None:
        self._history.push(tuple(self._waypoints))
        self._uncommitted = False

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, position: LonLat, at_end: bool = True, label: str | None = None) -> Waypoint:
        """Append (or prepend when ``at_end`` is False) a new waypoint."""
        waypoint = Waypoint(position=validate_lon_lat(position), label=label)
        items = list(self._waypoints)
        if at_end:
            items.append(waypoint)
        else:
            items.insert(0, waypoint)
        self._set(items)
        self._commit()
        return self.get(waypoint.id)

    def insert_on_route(self, position: LonLat, label: str | None = None) -> Waypoint:
        """Insert a via point after the start of the nearest segment.

        With fewer than two waypoints there is no segment yet, so this
        behaves like ``add``.
        """
        if self.count < 2:
            return self.add(position, label=label)
        position = validate_lon_lat(position)
        index = closest_segment_index(position, self.positions)
        waypoint = Waypoint(position=position, label=label)
        items = list(self._waypoints)
        items.insert(index + 1, waypoint)
        self._set(items)
        self._commit()
        return self.get(waypoint.id)

    def move(self, waypoint_id: str, position: LonLat, *, final: bool = True) -> Waypoint:
        """Reposition a waypoint.

        Intermediate drag frames pass ``final=False``: the live sequence
        changes but no history entry is pushed until the final frame.
        """
        index = self._index_of(waypoint_id)
        items = list(self._waypoints)
        items[index] = items[index].model_copy(update={"position": validate_lon_lat(position)})
        self._set(items)
        if final:
            self._commit()
        else:
            self._uncommitted = True
        return self._waypoints[index]

    def remove(self, waypoint_id: str) -> Waypoint:
        index = self._index_of(waypoint_id)
        items = list(self._waypoints)
        removed = items.pop(index)
        self._set(items)
        self._commit()
        return removed

    def reverse(self) -> bool:
        """Reverse travel direction; no-op (False) with fewer than two waypoints."""
        if self.count < 2:
            return False
        self._set(reversed(self._waypoints))
        self._commit()
        return True

    def clear(self) -> bool:
        """Remove every waypoint; no-op (False) when already empty."""
        if not self._waypoints:
            return False
        self._set([])
        self._commit()
        return True

    def replace(self, items: Sequence[Waypoint | LonLat]) -> None:
        """Swap in a whole new sequence (GPX import, NL seeding) as one undo step."""
        waypoints = [
            wp if isinstance(wp, Waypoint) else Waypoint(position=validate_lon_lat(wp))
            for wp in items
        ]
        self._set(waypoints)
        self._commit()

    def undo(self) -> bool:
        """Step back one committed state; False (and no change) at the bound.

        An uncommitted drag is discarded first, restoring the state it
        started from.
        """
        if self._uncommitted:
            self._set(self._history.current)
            self._uncommitted = False
            return True
        snapshot = self._history.undo()
        if snapshot is None:
            logger.debug("undo ignored at history start")
            return False
        self._set(snapshot)
        return True

    def redo(self) -> bool:
        """Re-apply the next committed state; False (and no change) at the bound."""
        if self._uncommitted:
            return False
        snapshot = self._history.redo()
        if snapshot is None:
            logger.debug("redo ignored at history end")
            return False
        self._set(snapshot)
        return True
