"""Elevation profile contracts: derived, never persisted on their own."""

from pydantic import Field

from veloroute.contracts.common import FirestoreModel, LonLat
from veloroute.contracts.enums import SlopeDirection


class ElevationPoint(FirestoreModel):
    """Elevation sample aligned 1:1 with a route coordinate.

    ``elevation_m`` is smoothed; ``raw_elevation_m`` is the provider value
    after gap interpolation and is what unit conversions and GPX export use.
    """

    coordinate: LonLat
    distance_m: float = Field(..., ge=0, description="Distance from route start")
    elevation_m: float
    raw_elevation_m: float


class GradeSegment(FirestoreModel):
    """Steepness of the stretch between two consecutive elevation points."""

    start: LonLat
    end: LonLat
    distance_m: float = Field(..., ge=0)
    grade_pct: float = Field(..., ge=-25.0, le=25.0)
    direction: SlopeDirection
    color: str = Field(..., pattern=r"^#[0-9a-f]{6}$")


class ElevationStats(FirestoreModel):
    """Fold over an elevation profile."""

    gain_m: float = Field(..., ge=0)
    loss_m: float = Field(..., ge=0)
    min_m: float
    max_m: float
    avg_grade_pct: float = Field(..., ge=0, description="Distance-weighted mean |grade|")
    max_grade_pct: float = Field(..., description="Steepest climbing grade")
