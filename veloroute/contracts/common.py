"""Base classes and shared types for VeloRoute contracts.

Unit conventions (all contracts and API responses):
- **Distances**: meters, suffix ``_m``
- **Durations**: seconds, suffix ``_s``
- **Elevations**: meters above sea level, suffix ``_m``
- **Grades**: percent rise over horizontal run, suffix ``_pct``
- **Coordinates**: WGS84 decimal degrees, ordered ``(lon, lat)``

Imperial display values (miles, feet) are produced only by
``veloroute.services.units`` at formatting time.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict

LonLat = tuple[float, float]
"""A ``(longitude, latitude)`` pair in decimal degrees."""


class FirestoreModel(BaseModel):
    """Base model with Firestore-friendly serialization.

    - Enums serialize as string values (Firestore stores strings).
    - ``to_firestore()`` produces a JSON-safe dict (datetimes as ISO 8601).
    - ``from_firestore()`` hydrates from a Firestore document dict.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_firestore(self) -> dict[str, Any]:
        """Dump to Firestore-compatible dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_firestore(cls, data: dict[str, Any]) -> "FirestoreModel":
        """Create model instance from Firestore document dict."""
        return cls.model_validate(data)


def validate_lon_lat(value: LonLat) -> LonLat:
    """Reject coordinates outside the WGS84 range."""
    lon, lat = value
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"longitude {lon} out of range [-180, 180]")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude {lat} out of range [-90, 90]")
    return (float(lon), float(lat))
