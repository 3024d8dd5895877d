"""Elevation profile: acquisition, gap filling, smoothing, grades and colors.

Elevations come from OpenTopoData (SRTM 30 m, free, no key) with
Open-Elevation as fallback.  All math is metric; missing provider values
are gaps, never failures, and are linearly interpolated before smoothing.
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from veloroute.contracts.common import LonLat
from veloroute.contracts.elevation import ElevationPoint, ElevationStats, GradeSegment
from veloroute.contracts.enums import SlopeDirection
from veloroute.services.geometry import cumulative_distances_m

logger = logging.getLogger(__name__)

OPENTOPODATA_URL = "https://api.opentopodata.org/v1/srtm30m"
OPEN_ELEVATION_URL = "https://api.open-elevation.com/api/v1/lookup"

BATCH_SIZE = 100
MAX_SAMPLE_POINTS = 150
MAX_SMOOTHING_HALF_WINDOW = 5
MIN_GRADE_DISTANCE_M = 5.0
SMALL_RISE_M = 1.5
SMALL_RISE_DAMPING = 0.3
GRADE_CLAMP_PCT = 25.0
GAIN_THRESHOLD_M = 3.0

FLAT_COLOR = "#4a7c7e"

# (upper bound of |grade| %, uphill color, downhill color)
GRADE_COLOR_TABLE: list[tuple[float, str, str]] = [
    (0.5, FLAT_COLOR, FLAT_COLOR),
    (1.5, "#5c9961", "#7ab8d4"),
    (2.5, "#6db35c", "#6aa8c9"),
    (3.5, "#7fc954", "#5a98be"),
    (4.5, "#9fd147", "#4a88b3"),
    (5.5, "#c4d938", "#3a78a8"),
    (6.5, "#e8c82a", "#2a689d"),
    (9.5, "#f5a623", "#1a5892"),
    (13.5, "#f57c2b", "#0a4887"),
]
STEEPEST_UPHILL_COLOR = "#e74c3c"
STEEPEST_DOWNHILL_COLOR = "#003f7c"


# ---------------------------------------------------------------------------
# Provider client
# ---------------------------------------------------------------------------


class ElevationClient:
    """Async batch elevation lookups, in meters.

    Each batch tries OpenTopoData first, then Open-Elevation when
    OpenTopoData produced nothing for it.  Never raises: a failed batch
    becomes None values and the other batches are kept.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._client = http_client or httpx.AsyncClient(timeout=30.0)

    async def get_elevations(self, coordinates: Sequence[LonLat]) -> list[float | None]:
        """Return one elevation (or None) per ``(lon, lat)`` coordinate."""
        results: list[float | None] = []
        for start in range(0, len(coordinates), BATCH_SIZE):
            batch = coordinates[start : start + BATCH_SIZE]
            values = await self._opentopodata(batch)
            if all(v is None for v in values):
                values = await self._open_elevation(batch)
            results.extend(values)
        return results

    async def _opentopodata(self, batch: Sequence[LonLat]) -> list[float | None]:
        locations = "|".join(f"{lat},{lon}" for lon, lat in batch)
        try:
            resp = await self._client.get(OPENTOPODATA_URL, params={"locations": locations})
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("OpenTopoData request failed for %d points", len(batch))
            return [None] * len(batch)

        if data.get("status") != "OK":
            logger.error("OpenTopoData error: %s", data.get("error", data.get("status")))
            return [None] * len(batch)
        return _align(data.get("results", []), len(batch))

    async def _open_elevation(self, batch: Sequence[LonLat]) -> list[float | None]:
        payload = {"locations": [{"latitude": lat, "longitude": lon} for lon, lat in batch]}
        try:
            resp = await self._client.post(OPEN_ELEVATION_URL, json=payload)
            resp.raise_for_status()
            entries = resp.json().get("results", [])
        except (httpx.HTTPError, ValueError):
            logger.exception("Open-Elevation request failed for %d points", len(batch))
            return [None] * len(batch)
        return _align(entries, len(batch))


def _align(entries: list, count: int) -> list[float | None]:
    """One value per requested point; short or malformed results are gaps."""
    values: list[float | None] = []
    for i in range(count):
        entry = entries[i] if i < len(entries) else None
        elev = entry.get("elevation") if isinstance(entry, dict) else None
        values.append(float(elev) if elev is not None else None)
    return values


# ---------------------------------------------------------------------------
# Pure processing steps
# ---------------------------------------------------------------------------


def sample_indices(count: int, max_points: int = MAX_SAMPLE_POINTS) -> list[int]:
    """Evenly spaced indices into a sequence of *count*, first and last included."""
    if count <= max_points:
        return list(range(count))
    step = (count - 1) / (max_points - 1)
    indices = [round(i * step) for i in range(max_points - 1)]
    indices.append(count - 1)
    return sorted(set(indices))


def interpolate_gaps(
    values: Sequence[float | None], distances: Sequence[float] | None = None
) -> list[float] | None:
    """Fill None gaps linearly between known neighbours.

    Interpolation is along *distances* when given, else along the index.
    Leading/trailing gaps take the nearest known value.  Returns None when
    no value is known at all.
    """
    known = [i for i, v in enumerate(values) if v is not None]
    if not known:
        return None
    xs = list(distances) if distances is not None else list(range(len(values)))

    filled: list[float] = [0.0] * len(values)
    for i in range(0, known[0]):
        filled[i] = values[known[0]]  # type: ignore[assignment]
    for i in range(known[-1], len(values)):
        filled[i] = values[known[-1]]  # type: ignore[assignment]

    for left, right in zip(known, known[1:]):
        v0, v1 = values[left], values[right]
        filled[left] = v0  # type: ignore[assignment]
        span = xs[right] - xs[left]
        for i in range(left + 1, right):
            t = (xs[i] - xs[left]) / span if span > 0 else (i - left) / (right - left)
            filled[i] = v0 + (v1 - v0) * t  # type: ignore[operator]
    return filled


def smooth_elevations(values: Sequence[float], half_window: int | None = None) -> list[float]:
    """Symmetric moving mean.

    The half-window defaults to ``min(5, n // 10)``; windows are truncated at
    both ends of the sequence.
    """
    n = len(values)
    w = min(MAX_SMOOTHING_HALF_WINDOW, n // 10) if half_window is None else half_window
    if w <= 0:
        return list(values)

    smoothed = []
    for i in range(n):
        lo, hi = max(0, i - w), min(n - 1, i + w)
        window = values[lo : hi + 1]
        smoothed.append(sum(window) / len(window))
    return smoothed


def segment_grade(distance_m: float, rise_m: float) -> float:
    """Grade in percent for one stretch, damped and clamped."""
    if distance_m <= MIN_GRADE_DISTANCE_M:
        return 0.0
    grade = rise_m / distance_m * 100.0
    if abs(rise_m) < SMALL_RISE_M:
        grade *= SMALL_RISE_DAMPING
    return max(-GRADE_CLAMP_PCT, min(GRADE_CLAMP_PCT, grade))


def grade_direction(grade_pct: float) -> SlopeDirection:
    if abs(grade_pct) < GRADE_COLOR_TABLE[0][0]:
        return SlopeDirection.FLAT
    return SlopeDirection.UPHILL if grade_pct > 0 else SlopeDirection.DOWNHILL


def grade_color(grade_pct: float) -> str:
    """Map a grade to its display color token (deterministic, no blending)."""
    magnitude = abs(grade_pct)
    uphill = grade_pct > 0
    for upper, up_color, down_color in GRADE_COLOR_TABLE:
        if magnitude < upper:
            return up_color if uphill else down_color
    return STEEPEST_UPHILL_COLOR if uphill else STEEPEST_DOWNHILL_COLOR


def grade_segments(points: Sequence[ElevationPoint]) -> list[GradeSegment]:
    """One ``GradeSegment`` per consecutive pair, from smoothed elevations."""
    segments = []
    for a, b in zip(points, points[1:]):
        distance = b.distance_m - a.distance_m
        grade = segment_grade(distance, b.elevation_m - a.elevation_m)
        segments.append(
            GradeSegment(
                start=a.coordinate,
                end=b.coordinate,
                distance_m=max(distance, 0.0),
                grade_pct=round(grade, 2),
                direction=grade_direction(grade),
                color=grade_color(grade),
            )
        )
    return segments


def compute_stats(
    points: Sequence[ElevationPoint], segments: Sequence[GradeSegment]
) -> ElevationStats | None:
    """Fold a profile into gain/loss/min/max and grade summaries.

    Gain and loss count only changes of at least 3 m from the last counted
    elevation, which filters provider noise.
    """
    if len(points) < 2:
        return None

    raw = [p.raw_elevation_m for p in points]
    gain = loss = 0.0
    anchor = raw[0]
    for elev in raw[1:]:
        change = elev - anchor
        if abs(change) >= GAIN_THRESHOLD_M:
            if change > 0:
                gain += change
            else:
                loss -= change
            anchor = elev

    total = sum(s.distance_m for s in segments)
    avg_grade = (
        sum(abs(s.grade_pct) * s.distance_m for s in segments) / total if total > 0 else 0.0
    )
    max_grade = max((s.grade_pct for s in segments), default=0.0)

    return ElevationStats(
        gain_m=round(gain, 1),
        loss_m=round(loss, 1),
        min_m=round(min(raw), 1),
        max_m=round(max(raw), 1),
        avg_grade_pct=round(avg_grade, 2),
        max_grade_pct=round(max(max_grade, 0.0), 2),
    )


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class ElevationProcessor:
    """Build an elevation profile aligned 1:1 with a route's coordinates."""

    def __init__(
        self,
        client: ElevationClient | None = None,
        max_samples: int = MAX_SAMPLE_POINTS,
    ):
        self._client = client or ElevationClient()
        self._max_samples = max_samples

    async def profile(self, coordinates: Sequence[LonLat]) -> list[ElevationPoint]:
        """Fetch, gap-fill and smooth elevations for *coordinates*.

        Returns an empty list when the route is too short or the provider
        returned nothing usable (degraded view without elevation).
        """
        if len(coordinates) < 2:
            return []

        distances = cumulative_distances_m(coordinates)
        indices = sample_indices(len(coordinates), self._max_samples)
        sampled = await self._client.get_elevations([coordinates[i] for i in indices])

        full: list[float | None] = [None] * len(coordinates)
        for idx, elev in zip(indices, sampled):
            full[idx] = elev

        points = build_profile(coordinates, full, distances)
        if not points:
            logger.warning("No elevation data for %d coordinates", len(coordinates))
        return points


def build_profile(
    coordinates: Sequence[LonLat],
    elevations: Sequence[float | None],
    distances: Sequence[float] | None = None,
) -> list[ElevationPoint]:
    """Gap-fill and smooth known elevations into a profile aligned with *coordinates*.

    Empty when no elevation is known at all.
    """
    if len(coordinates) != len(elevations):
        raise ValueError(
            f"{len(elevations)} elevations for {len(coordinates)} coordinates"
        )
    if distances is None:
        distances = cumulative_distances_m(coordinates)

    raw = interpolate_gaps(elevations, distances)
    if raw is None:
        return []

    smoothed = smooth_elevations(raw)
    return [
        ElevationPoint(
            coordinate=coord,
            distance_m=distances[i],
            elevation_m=smoothed[i],
            raw_elevation_m=raw[i],
        )
        for i, coord in enumerate(coordinates)
    ]
