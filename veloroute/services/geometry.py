"""Pure geometry on ``(lon, lat)`` coordinates.

Great-circle distances use the haversine formula.  Point-to-segment
distance works in a local equirectangular projection centred on the query
point, which is accurate at the scale of a click next to a route.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from veloroute.contracts.common import LonLat

EARTH_RADIUS_M = 6_371_008.8


def haversine_m(a: LonLat, b: LonLat) -> float:
    """Haversine distance in meters."""
    lo1, la1 = math.radians(a[0]), math.radians(a[1])
    lo2, la2 = math.radians(b[0]), math.radians(b[1])
    dlat = la2 - la1
    dlon = lo2 - lo1
    h = math.sin(dlat / 2) ** 2 + math.cos(la1) * math.cos(la2) * math.sin(dlon / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(h))) * EARTH_RADIUS_M


def bearing_deg(a: LonLat, b: LonLat) -> float:
    """Initial true bearing from *a* to *b*, in [0, 360)."""
    la1, la2 = math.radians(a[1]), math.radians(b[1])
    dlon = math.radians(b[0] - a[0])
    x = math.sin(dlon) * math.cos(la2)
    y = math.cos(la1) * math.sin(la2) - math.sin(la1) * math.cos(la2) * math.cos(dlon)
    return (math.degrees(math.atan2(x, y)) + 360.0) % 360.0


def destination_point(origin: LonLat, bearing: float, distance_m: float) -> LonLat:
    """Point reached travelling *distance_m* from *origin* on *bearing* (degrees)."""
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing)
    la1, lo1 = math.radians(origin[1]), math.radians(origin[0])
    la2 = math.asin(
        math.sin(la1) * math.cos(delta) + math.cos(la1) * math.sin(delta) * math.cos(theta)
    )
    lo2 = lo1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(la1),
        math.cos(delta) - math.sin(la1) * math.sin(la2),
    )
    lon = (math.degrees(lo2) + 540.0) % 360.0 - 180.0
    return (lon, math.degrees(la2))


def _project(p: LonLat, origin: LonLat) -> tuple[float, float]:
    """Equirectangular projection of *p* in meters relative to *origin*."""
    k = math.cos(math.radians(origin[1]))
    x = math.radians(p[0] - origin[0]) * k * EARTH_RADIUS_M
    y = math.radians(p[1] - origin[1]) * EARTH_RADIUS_M
    return x, y


def point_to_segment_distance(p: LonLat, a: LonLat, b: LonLat) -> float:
    """Shortest distance in meters from *p* to segment *a* to *b*.

    A degenerate segment (``a == b``) reduces to the point distance.
    """
    ax, ay = _project(a, p)
    bx, by = _project(b, p)
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return math.hypot(ax, ay)
    # p sits at the projection origin
    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / length_sq))
    return math.hypot(ax + t * dx, ay + t * dy)


def closest_segment_index(p: LonLat, vertices: Sequence[LonLat]) -> int:
    """Index *i* of the segment from ``vertices[i]`` to ``vertices[i+1]`` nearest to *p*.

    Ties go to the first segment in sequence order.  Returns -1 when fewer
    than two vertices are given.
    """
    best_index = -1
    best_distance = math.inf
    for i in range(len(vertices) - 1):
        d = point_to_segment_distance(p, vertices[i], vertices[i + 1])
        if d < best_distance:
            best_distance = d
            best_index = i
    return best_index


def cumulative_distances_m(coords: Sequence[LonLat]) -> list[float]:
    """Running distance from the first coordinate, one entry per coordinate."""
    if not coords:
        return []
    out = [0.0]
    for prev, cur in zip(coords, coords[1:]):
        out.append(out[-1] + haversine_m(prev, cur))
    return out


def polyline_length_m(coords: Sequence[LonLat]) -> float:
    """Total length of a polyline in meters (0 for fewer than two points)."""
    return sum(haversine_m(a, b) for a, b in zip(coords, coords[1:]))


def line_string(coords: Sequence[LonLat]) -> dict[str, Any]:
    """GeoJSON ``LineString`` geometry for *coords*."""
    return {
        "type": "LineString",
        "coordinates": [[lon, lat] for lon, lat in coords],
    }


def same_point(a: LonLat, b: LonLat, tolerance_deg: float = 1e-4) -> bool:
    """True when both axes differ by at most *tolerance_deg*."""
    return abs(a[0] - b[0]) <= tolerance_deg and abs(a[1] - b[1]) <= tolerance_deg
