"""Waypoint: a user-placed anchor defining the desired route path.

Waypoints are immutable values: moving one produces a copy with a new
``position`` and the same ``id``.  The ordered sequence is owned by
``WaypointStore``; persisted routes embed them inside ``SavedRoute``.
"""

import uuid

from pydantic import ConfigDict, Field, field_validator

from veloroute.contracts.common import FirestoreModel, LonLat, validate_lon_lat
from veloroute.contracts.enums import WaypointKind


def new_waypoint_id() -> str:
    """Random waypoint ID: ``wp_`` + 12 hex chars."""
    return f"wp_{uuid.uuid4().hex[:12]}"


def kind_for_position(index: int, count: int) -> WaypointKind:
    """First is START, last is END once there are two or more, else VIA."""
    if index == 0:
        return WaypointKind.START
    if index == count - 1:
        return WaypointKind.END
    return WaypointKind.VIA


class Waypoint(FirestoreModel):
    """An anchor point (start, via or end) of the route under construction."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_waypoint_id, min_length=1)
    position: LonLat
    kind: WaypointKind = WaypointKind.VIA
    label: str | None = Field(default=None, max_length=200)

    @field_validator("position")
    @classmethod
    def check_position(cls, v: LonLat) -> LonLat:
        return validate_lon_lat(v)

    @field_validator("label", mode="before")
    @classmethod
    def strip_label(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def lon(self) -> float:
        return self.position[0]

    @property
    def lat(self) -> float:
        return self.position[1]
