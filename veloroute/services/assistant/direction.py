"""Heading heuristics for requests with a distance but no destination."""

from __future__ import annotations

from collections import Counter
from typing import Sequence

from veloroute.contracts.common import LonLat
from veloroute.contracts.enums import CardinalDirection
from veloroute.services.geometry import bearing_deg, haversine_m

DEFAULT_DIRECTION = CardinalDirection.NORTH
# History points this close to the origin say nothing about heading
MIN_HISTORY_DISTANCE_M = 500.0

DIRECTION_BEARINGS = {
    CardinalDirection.NORTH: 0.0,
    CardinalDirection.EAST: 90.0,
    CardinalDirection.SOUTH: 180.0,
    CardinalDirection.WEST: 270.0,
}


def quadrant(bearing: float) -> CardinalDirection:
    """Cardinal quadrant of a bearing; boundaries go clockwise."""
    b = bearing % 360.0
    if b >= 315.0 or b < 45.0:
        return CardinalDirection.NORTH
    if b < 135.0:
        return CardinalDirection.EAST
    if b < 225.0:
        return CardinalDirection.SOUTH
    return CardinalDirection.WEST


def _quadrant_counts(origin: LonLat, history: Sequence[LonLat]) -> Counter:
    counts: Counter = Counter({d: 0 for d in CardinalDirection})
    for point in history:
        if haversine_m(origin, point) < MIN_HISTORY_DISTANCE_M:
            continue
        counts[quadrant(bearing_deg(origin, point))] += 1
    return counts


def infer_direction(origin: LonLat | None, history: Sequence[LonLat]) -> CardinalDirection:
    """Most frequent quadrant of past rides around *origin*.

    Falls back to north with no origin or no usable history.  Ties go to
    the first direction clockwise from north.
    """
    if origin is None:
        return DEFAULT_DIRECTION
    counts = _quadrant_counts(origin, history)
    if not any(counts.values()):
        return DEFAULT_DIRECTION
    return max(CardinalDirection, key=lambda d: counts[d])


def least_ridden_direction(origin: LonLat | None, history: Sequence[LonLat]) -> CardinalDirection:
    """Quadrant with the fewest past rides, for "explore something new"."""
    if origin is None:
        return DEFAULT_DIRECTION
    counts = _quadrant_counts(origin, history)
    if not any(counts.values()):
        return DEFAULT_DIRECTION
    return min(CardinalDirection, key=lambda d: counts[d])
