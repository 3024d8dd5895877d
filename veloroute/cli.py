"""Command-line entry point.

Usage:
    veloroute snap --waypoint=-105.27,40.02 --waypoint=-105.25,40.03 --profile road --gpx out.gpx
    veloroute gpx-info ride.gpx
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from veloroute.adapters import gpx_codec
from veloroute.contracts.common import LonLat, validate_lon_lat
from veloroute.contracts.enums import RoutingProfile, UnitSystem
from veloroute.services.elevation import (
    ElevationClient,
    ElevationProcessor,
    build_profile,
    compute_stats,
    grade_segments,
)
from veloroute.services.errors import InvalidGpx
from veloroute.services.geometry import polyline_length_m
from veloroute.services.route_engine import RouteConstructionEngine, SetProfile, SetUnitSystem
from veloroute.services.routing.gateway import build_default_gateway
from veloroute.services.units import format_distance, format_elevation

logger = logging.getLogger(__name__)


def parse_lon_lat(text: str) -> LonLat:
    """``"LON,LAT"`` -> ``(lon, lat)``."""
    try:
        lon, lat = (float(part) for part in text.split(","))
        return validate_lon_lat((lon, lat))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected LON,LAT, got {text!r}") from exc


async def _snap(args: argparse.Namespace) -> int:
    async with httpx.AsyncClient(timeout=30.0) as http:
        engine = RouteConstructionEngine(
            build_default_gateway(http_client=http),
            ElevationProcessor(ElevationClient(http_client=http)),
        )
        engine.dispatch(SetProfile(RoutingProfile(args.profile)))
        engine.dispatch(SetUnitSystem(UnitSystem(args.units)))
        view = await engine.seed(args.waypoint, name=args.name)

    if view.error is not None:
        logger.error("No route: %s", view.error.message)
        for attempt in view.error.attempts:
            logger.error("  %s: %s", attempt.provider_id, attempt.reason)
        return 1

    result = view.routing_result
    logger.info(
        "Snapped by %s (confidence %.2f): %d points",
        result.provider_id,
        result.confidence,
        len(result.coordinates),
    )
    for key, value in view.display.items():
        logger.info("  %s: %s", key, value)

    if args.gpx:
        args.gpx.write_text(engine.export_gpx(), encoding="utf-8")
        logger.info("Wrote %s", args.gpx)
    return 0


def _gpx_info(args: argparse.Namespace) -> int:
    try:
        document = gpx_codec.decode(args.file.read_bytes())
    except InvalidGpx as exc:
        logger.error("%s: %s", args.file, exc)
        return 1

    units = UnitSystem(args.units)
    coordinates = document.coordinates
    logger.info("Name: %s", document.name or "(unnamed)")
    if document.description:
        logger.info("Description: %s", document.description)
    logger.info("Points: %d", len(coordinates))
    logger.info("Distance: %s", format_distance(polyline_length_m(coordinates), units))

    if any(e is not None for e in document.elevations):
        profile = build_profile(coordinates, document.elevations)
        stats = compute_stats(profile, grade_segments(profile))
        if stats is not None:
            logger.info(
                "Elevation: +%s / -%s (min %s, max %s), max grade %.1f%%",
                format_elevation(stats.gain_m, units),
                format_elevation(stats.loss_m, units),
                format_elevation(stats.min_m, units),
                format_elevation(stats.max_m, units),
                stats.max_grade_pct,
            )
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="VeloRoute cycling route tools")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument(
        "--units", choices=[u.value for u in UnitSystem], default=UnitSystem.METRIC.value
    )
    sub = parser.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snap", help="Snap waypoints to roads through the provider chain")
    snap.add_argument(
        "-w", "--waypoint", type=parse_lon_lat, action="append", required=True,
        help="Waypoint as LON,LAT (repeat, in riding order)",
    )
    snap.add_argument(
        "--profile", choices=[p.value for p in RoutingProfile], default=RoutingProfile.ROAD.value
    )
    snap.add_argument("--name", default=None, help="Route name for GPX export")
    snap.add_argument("--gpx", type=Path, default=None, help="Write the snapped route as GPX")

    info = sub.add_parser("gpx-info", help="Summarize a GPX track")
    info.add_argument("file", type=Path)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "snap":
        if len(args.waypoint) < 2:
            parser.error("snap needs at least 2 waypoints")
        code = asyncio.run(_snap(args))
    else:
        code = _gpx_info(args)
    sys.exit(code)


if __name__ == "__main__":
    main()
