"""Display formatting for route stats.

Inputs are always metric (meters, seconds).  Conversion to imperial happens
here and nowhere else, so switching unit systems re-derives every label from
the same stored meters.
"""

from __future__ import annotations

from veloroute.contracts.enums import UnitSystem
from veloroute.contracts.route import RouteStats

METERS_PER_MILE = 1609.344
FEET_PER_METER = 3.28084


def format_distance(meters: float, units: UnitSystem) -> str:
    if UnitSystem(units) is UnitSystem.IMPERIAL:
        return f"{meters / METERS_PER_MILE:.1f} mi"
    return f"{meters / 1000.0:.1f} km"


def format_elevation(meters: float, units: UnitSystem) -> str:
    if UnitSystem(units) is UnitSystem.IMPERIAL:
        return f"{round(meters * FEET_PER_METER):,} ft"
    return f"{round(meters):,} m"


def format_duration(seconds: float) -> str:
    minutes = int(round(seconds / 60.0))
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m"


def display_stats(stats: RouteStats, units: UnitSystem) -> dict[str, str]:
    """Human-readable labels for *stats* in the given unit system."""
    out = {
        "distance": format_distance(stats.distance_m, units),
        "duration": format_duration(stats.duration_s),
    }
    if stats.is_estimate:
        out["duration"] = f"~{out['duration']}"
    if stats.elevation is not None:
        out["gain"] = format_elevation(stats.elevation.gain_m, units)
        out["loss"] = format_elevation(stats.elevation.loss_m, units)
        out["min_elevation"] = format_elevation(stats.elevation.min_m, units)
        out["max_elevation"] = format_elevation(stats.elevation.max_m, units)
        out["avg_grade"] = f"{stats.elevation.avg_grade_pct:.1f}%"
        out["max_grade"] = f"{stats.elevation.max_grade_pct:.1f}%"
    return out
