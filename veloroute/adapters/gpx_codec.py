"""GPX 1.1 encoder/decoder for constructed routes.

Writes a single track (``<trk><trkseg><trkpt lat lon><ele/>``) with route
name/description metadata.  Reads GPX 1.0 or 1.1 regardless of namespace,
preferring track points and falling back to route points.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from veloroute.contracts.common import LonLat
from veloroute.contracts.elevation import ElevationPoint
from veloroute.contracts.waypoint import Waypoint, kind_for_position
from veloroute.services.errors import InvalidGpx

GPX_NS = "http://www.topografix.com/GPX/1/1"
CREATOR = "VeloRoute"
COORD_PRECISION = 7
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

ET.register_namespace("", GPX_NS)


@dataclass
class GpxDocument:
    """Decoded GPX content."""

    waypoints: list[Waypoint]
    name: str | None = None
    description: str | None = None
    elevations: list[float | None] = field(default_factory=list)

    @property
    def coordinates(self) -> list[LonLat]:
        return [wp.position for wp in self.waypoints]


def _tag(name: str) -> str:
    return f"{{{GPX_NS}}}{name}"


def _local(tag: str) -> str:
    """Strip any ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def encode(
    coordinates: Sequence[LonLat],
    name: str,
    *,
    description: str | None = None,
    elevation_profile: Sequence[ElevationPoint] | None = None,
) -> str:
    """Serialize a coordinate sequence as a GPX 1.1 track.

    When *elevation_profile* is given and aligned with *coordinates*, each
    track point carries its raw (unsmoothed) elevation in meters.
    """
    elevations: list[float] | None = None
    if elevation_profile and len(elevation_profile) == len(coordinates):
        elevations = [p.raw_elevation_m for p in elevation_profile]

    root = ET.Element(_tag("gpx"), {"version": "1.1", "creator": CREATOR})
    metadata = ET.SubElement(root, _tag("metadata"))
    ET.SubElement(metadata, _tag("name")).text = name
    if description:
        ET.SubElement(metadata, _tag("desc")).text = description

    trk = ET.SubElement(root, _tag("trk"))
    ET.SubElement(trk, _tag("name")).text = name
    seg = ET.SubElement(trk, _tag("trkseg"))
    for i, (lon, lat) in enumerate(coordinates):
        pt = ET.SubElement(
            seg,
            _tag("trkpt"),
            {"lat": f"{lat:.{COORD_PRECISION}f}", "lon": f"{lon:.{COORD_PRECISION}f}"},
        )
        if elevations is not None:
            ET.SubElement(pt, _tag("ele")).text = f"{elevations[i]:.1f}"

    ET.indent(root)
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


def _children(el: ET.Element, name: str) -> Iterator[ET.Element]:
    return (c for c in el if _local(c.tag) == name)


def _child_text(el: ET.Element | None, name: str) -> str | None:
    if el is None:
        return None
    for child in _children(el, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def _parse_point(el: ET.Element) -> tuple[LonLat, float | None] | None:
    """Read one ``trkpt``/``rtept``; None when its coordinates are unusable."""
    try:
        lat = float(el.attrib["lat"])
        lon = float(el.attrib["lon"])
    except (KeyError, ValueError):
        return None
    if math.isnan(lat) or math.isnan(lon):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None

    ele: float | None = None
    ele_text = _child_text(el, "ele")
    if ele_text is not None:
        try:
            ele = float(ele_text)
        except ValueError:
            ele = None
    return (lon, lat), ele


def decode(text: str | bytes) -> GpxDocument:
    """Parse GPX text into ordered waypoints plus metadata.

    Raises
    ------
    InvalidGpx
        If the XML is malformed, the root is not ``<gpx>``, or fewer than
        two usable points are found.  No partial result is returned.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise InvalidGpx(f"malformed GPX: {exc}") from exc

    if _local(root.tag) != "gpx":
        raise InvalidGpx(f"root element is <{_local(root.tag)}>, expected <gpx>")

    points = [el for el in root.iter() if _local(el.tag) == "trkpt"]
    if not points:
        points = [el for el in root.iter() if _local(el.tag) == "rtept"]

    parsed = [p for p in (_parse_point(el) for el in points) if p is not None]
    if len(parsed) < 2:
        raise InvalidGpx(f"GPX must contain at least 2 track points, found {len(parsed)}")

    metadata = next(_children(root, "metadata"), None)
    trk = next(_children(root, "trk"), None)
    if trk is None:
        trk = next(_children(root, "rte"), None)
    name = _child_text(metadata, "name") or _child_text(trk, "name")
    description = _child_text(metadata, "desc") or _child_text(trk, "desc")

    n = len(parsed)
    waypoints = [
        Waypoint(position=pos, kind=kind_for_position(i, n))
        for i, (pos, _ele) in enumerate(parsed)
    ]
    return GpxDocument(
        waypoints=waypoints,
        name=name,
        description=description,
        elevations=[ele for _pos, ele in parsed],
    )
