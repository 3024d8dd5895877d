"""Cycling-infrastructure overlay contracts (OpenStreetMap ways)."""

from typing import Self

from pydantic import Field, model_validator

from veloroute.contracts.common import FirestoreModel, LonLat
from veloroute.contracts.enums import InfrastructureType


class Bounds(FirestoreModel):
    """Map viewport in decimal degrees."""

    south: float = Field(..., ge=-90.0, le=90.0)
    west: float = Field(..., ge=-180.0, le=180.0)
    north: float = Field(..., ge=-90.0, le=90.0)
    east: float = Field(..., ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def ordered(self) -> Self:
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) must not exceed north ({self.north})")
        if self.west > self.east:
            raise ValueError(f"west ({self.west}) must not exceed east ({self.east})")
        return self

    @property
    def center(self) -> LonLat:
        return ((self.west + self.east) / 2, (self.south + self.north) / 2)

    def clamped(self, max_size_deg: float) -> "Bounds":
        """Same box, or one of *max_size_deg* per side around its center."""
        if self.north - self.south <= max_size_deg and self.east - self.west <= max_size_deg:
            return self
        lon, lat = self.center
        half = max_size_deg / 2
        return Bounds(
            south=max(-90.0, lat - half),
            north=min(90.0, lat + half),
            west=max(-180.0, lon - half),
            east=min(180.0, lon + half),
        )


class InfrastructureSegment(FirestoreModel):
    """One classified OSM way, ready to draw."""

    osm_id: int
    name: str | None = None
    infra_type: InfrastructureType
    color: str
    coordinates: list[LonLat] = Field(..., min_length=2)
    highway: str | None = None
    cycleway: str | None = None
    surface: str | None = None
