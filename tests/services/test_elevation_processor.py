"""Tests for elevation acquisition, smoothing, grades and stats."""

from __future__ import annotations

import json

import httpx
import pytest

from veloroute.contracts.elevation import ElevationPoint
from veloroute.contracts.enums import SlopeDirection
from veloroute.services.elevation import (
    FLAT_COLOR,
    STEEPEST_DOWNHILL_COLOR,
    STEEPEST_UPHILL_COLOR,
    ElevationClient,
    ElevationProcessor,
    build_profile,
    compute_stats,
    grade_color,
    grade_direction,
    grade_segments,
    interpolate_gaps,
    sample_indices,
    segment_grade,
    smooth_elevations,
)
from tests.services.fakes import FakeElevationClient


def _points(raw: list[float], spacing_m: float = 100.0) -> list[ElevationPoint]:
    return [
        ElevationPoint(
            coordinate=(-105.0, 40.0 + i * 0.001),
            distance_m=i * spacing_m,
            elevation_m=e,
            raw_elevation_m=e,
        )
        for i, e in enumerate(raw)
    ]


class TestGradeColors:
    def test_six_percent_up_and_down(self):
        assert grade_color(6.0) == "#e8c82a"
        assert grade_color(-6.0) == "#2a689d"

    def test_flat_band(self):
        assert grade_color(0.3) == FLAT_COLOR
        assert grade_color(-0.3) == FLAT_COLOR
        assert grade_direction(0.3) == SlopeDirection.FLAT

    def test_steepest_band(self):
        assert grade_color(18.0) == STEEPEST_UPHILL_COLOR
        assert grade_color(-18.0) == STEEPEST_DOWNHILL_COLOR

    def test_band_edges_are_exclusive(self):
        assert grade_color(1.5) == "#6db35c"
        assert grade_color(1.49) == "#5c9961"

    def test_direction(self):
        assert grade_direction(4.0) == SlopeDirection.UPHILL
        assert grade_direction(-4.0) == SlopeDirection.DOWNHILL


class TestSegmentGrade:
    def test_plain_grade(self):
        assert segment_grade(100.0, 10.0) == pytest.approx(10.0)

    def test_small_rise_damped(self):
        assert segment_grade(100.0, 1.0) == pytest.approx(0.3)

    def test_short_stretch_is_flat(self):
        assert segment_grade(4.0, 3.0) == 0.0

    def test_clamped(self):
        assert segment_grade(10.0, 5.0) == 25.0
        assert segment_grade(10.0, -5.0) == -25.0


class TestGapsAndSmoothing:
    def test_interpolate_by_index(self):
        assert interpolate_gaps([None, 10.0, None, 30.0, None]) == [10.0, 10.0, 20.0, 30.0, 30.0]

    def test_interpolate_by_distance(self):
        filled = interpolate_gaps([10.0, None, 40.0], distances=[0.0, 100.0, 300.0])
        assert filled == pytest.approx([10.0, 20.0, 40.0])

    def test_all_missing(self):
        assert interpolate_gaps([None, None]) is None

    def test_short_series_not_smoothed(self):
        assert smooth_elevations([1.0, 5.0, 2.0]) == [1.0, 5.0, 2.0]

    def test_explicit_window_truncated_at_ends(self):
        assert smooth_elevations([0.0, 3.0, 6.0], half_window=1) == pytest.approx([1.5, 3.0, 4.5])

    def test_sample_indices(self):
        assert sample_indices(10) == list(range(10))
        indices = sample_indices(1000, 150)
        assert indices[0] == 0
        assert indices[-1] == 999
        assert len(indices) <= 150
        assert indices == sorted(indices)


class TestStats:
    def test_gain_loss_threshold(self):
        points = _points([100.0, 102.0, 106.0, 104.0, 99.0])
        stats = compute_stats(points, grade_segments(points))
        assert stats.gain_m == 6.0
        assert stats.loss_m == 7.0
        assert stats.min_m == 99.0
        assert stats.max_m == 106.0

    def test_max_grade_floored_at_zero_on_descent(self):
        points = _points([200.0, 180.0, 160.0])
        stats = compute_stats(points, grade_segments(points))
        assert stats.max_grade_pct == 0.0
        assert stats.avg_grade_pct == pytest.approx(20.0)

    def test_needs_two_points(self):
        assert compute_stats(_points([100.0]), []) is None

    def test_segments_per_pair(self):
        points = _points([100.0, 106.0, 106.0])
        segments = grade_segments(points)
        assert len(segments) == 2
        assert segments[0].grade_pct == pytest.approx(6.0)
        assert segments[0].color == "#e8c82a"
        assert segments[1].direction == SlopeDirection.FLAT


class TestBuildProfile:
    def test_aligned_with_coordinates(self):
        coords = [(-105.0, 40.0), (-105.0, 40.001), (-105.0, 40.002)]
        profile = build_profile(coords, [1600.0, None, 1620.0])
        assert [p.coordinate for p in profile] == coords
        assert profile[1].raw_elevation_m == pytest.approx(1610.0, abs=0.01)
        assert profile[0].distance_m == 0.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            build_profile([(0.0, 0.0), (0.0, 0.1)], [1.0])

    def test_no_data(self):
        assert build_profile([(0.0, 0.0), (0.0, 0.1)], [None, None]) == []


class TestElevationClient:
    async def test_opentopodata(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"status": "OK", "results": [{"elevation": 1655.2}, {"elevation": None}]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = ElevationClient(http_client=http)
            result = await client.get_elevations([(-105.27, 40.02), (-105.25, 40.03)])

        assert result == [1655.2, None]
        assert seen[0].url.host == "api.opentopodata.org"
        assert seen[0].url.params["locations"] == "40.02,-105.27|40.03,-105.25"

    async def test_falls_back_to_open_elevation(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.opentopodata.org":
                return httpx.Response(500)
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"results": [{"elevation": 1500 + i} for i, _ in enumerate(body["locations"])]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = ElevationClient(http_client=http)
            result = await client.get_elevations([(0.0, 0.0), (0.0, 0.1)])

        assert result == [1500.0, 1501.0]

    async def test_failed_batch_keeps_other_batches(self):
        coords = [(-105.0, 40.0 + i * 0.001) for i in range(150)]
        calls = {"opentopodata": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host != "api.opentopodata.org":
                return httpx.Response(503)
            calls["opentopodata"] += 1
            if calls["opentopodata"] == 2:
                return httpx.Response(429)
            count = len(request.url.params["locations"].split("|"))
            return httpx.Response(
                200, json={"status": "OK", "results": [{"elevation": 1600.0}] * count}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            result = await ElevationClient(http_client=http).get_elevations(coords)

        assert len(result) == 150
        assert result[:100] == [1600.0] * 100
        assert result[100:] == [None] * 50

    async def test_failed_batch_falls_back_alone(self):
        coords = [(-105.0, 40.0 + i * 0.001) for i in range(150)]
        fallback_sizes = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.opentopodata.org":
                count = len(request.url.params["locations"].split("|"))
                if count == 50:
                    return httpx.Response(429)
                return httpx.Response(
                    200, json={"status": "OK", "results": [{"elevation": 1600.0}] * count}
                )
            body = json.loads(request.content)
            fallback_sizes.append(len(body["locations"]))
            return httpx.Response(
                200, json={"results": [{"elevation": 1700.0} for _ in body["locations"]]}
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            result = await ElevationClient(http_client=http).get_elevations(coords)

        assert fallback_sizes == [50]
        assert result == [1600.0] * 100 + [1700.0] * 50

    async def test_both_down(self):
        transport = httpx.MockTransport(lambda req: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as http:
            client = ElevationClient(http_client=http)
            assert await client.get_elevations([(0.0, 0.0), (0.0, 0.1)]) == [None, None]

    async def test_empty_request(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as http:
            assert await ElevationClient(http_client=http).get_elevations([]) == []


class TestElevationProcessor:
    async def test_long_route_is_sampled(self):
        fake = FakeElevationClient()
        coords = [(-105.0, 40.0 + i * 0.0001) for i in range(400)]
        profile = await ElevationProcessor(fake, max_samples=150).profile(coords)

        assert len(fake.requests[0]) <= 150
        assert len(profile) == 400
        assert profile[-1].raw_elevation_m == pytest.approx(1600.0 + 0.0399 * 10_000, abs=0.01)

    async def test_missing_data_degrades_to_empty(self):
        profile = await ElevationProcessor(FakeElevationClient(missing=True)).profile(
            [(0.0, 0.0), (0.0, 0.01)]
        )
        assert profile == []

    async def test_single_point(self):
        fake = FakeElevationClient()
        assert await ElevationProcessor(fake).profile([(0.0, 0.0)]) == []
        assert fake.requests == []
