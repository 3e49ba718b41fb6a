"""
test_projector.py — Placing bucket counts on the 800×400 canvas.
"""

import pytest

from qr_analytics.models.heatmap import HeatmapDataPoint
from qr_analytics.services.aggregator import CountryBucket
from qr_analytics.services.projector import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    analyze_temporal_patterns,
    calculate_country_data,
    calculate_geographic_bounds,
    calculate_zoom_level,
    detect_business_hour_pattern,
    detect_cyclical_patterns,
    latitude_to_y,
    longitude_to_x,
    project_countries,
    project_devices,
    project_time_buckets,
    summarize,
    temporal_y,
    time_key_anchor,
    x_to_longitude,
    y_to_latitude,
)


def _hour_points(counts: dict[int, int]) -> list[HeatmapDataPoint]:
    return project_time_buckets({str(h): c for h, c in counts.items()}, "hour")


# ── Projection ────────────────────────────────────────────────────────────────

class TestEquirectangular:
    def test_corners(self):
        assert longitude_to_x(-180) == 0
        assert longitude_to_x(180) == CANVAS_WIDTH
        assert latitude_to_y(90) == 0
        assert latitude_to_y(-90) == CANVAS_HEIGHT

    def test_origin_is_canvas_centre(self):
        assert (longitude_to_x(0), latitude_to_y(0)) == (400, 200)

    def test_inverse(self):
        assert x_to_longitude(longitude_to_x(18.6435)) == pytest.approx(18.6435)
        assert y_to_latitude(latitude_to_y(60.1282)) == pytest.approx(60.1282)


class TestSummarize:
    def test_empty(self):
        assert summarize([]) == (0, 0, 0)

    def test_values(self):
        points = _hour_points({1: 2, 2: 4, 3: 6})
        assert summarize(points) == (6, 2, 4)


# ── Geographic ────────────────────────────────────────────────────────────────

class TestProjectCountries:
    buckets = [CountryBucket("SE", "Sweden", 2), CountryBucket("NO", "Norway", 1)]

    def test_points_at_country_centroids(self):
        se, no = project_countries(self.buckets)
        assert se.x == pytest.approx(longitude_to_x(18.6435))
        assert se.y == pytest.approx(latitude_to_y(60.1282))
        assert no.metadata["coordinates"] == {"lat": 60.4720, "lng": 8.4689}

    def test_intensity_relative_to_largest_country(self):
        se, no = project_countries(self.buckets)
        assert (se.value, se.intensity) == (2, 1.0)
        assert (no.value, no.intensity) == (1, 0.5)

    def test_metadata(self):
        se = project_countries(self.buckets)[0]
        assert se.metadata["countryCode"] == "SE"
        assert se.metadata["countryName"] == "Sweden"

    def test_unknown_country_placed_at_origin(self):
        (point,) = project_countries([CountryBucket("WA", "Wakanda", 3)])
        assert (point.x, point.y) == (400, 200)
        assert point.metadata["coordinates"] == {"lat": 0.0, "lng": 0.0}

    def test_country_data_intensity_is_share_of_all_scans(self):
        se, no = calculate_country_data(self.buckets, total_scans=3)
        assert se.intensity == pytest.approx(2 / 3)
        assert no.intensity == pytest.approx(1 / 3)
        assert (se.country_name, se.scans) == ("Sweden", 2)


class TestBoundsAndZoom:
    def test_empty_points(self):
        bounds = calculate_geographic_bounds([])
        assert (bounds.north, bounds.south, bounds.east, bounds.west) == (0, 0, 0, 0)
        assert calculate_zoom_level([]) == 2

    def test_bounds_enclose_points(self):
        points = project_countries([
            CountryBucket("SE", "Sweden", 1),
            CountryBucket("AU", "Australia", 1),
        ])
        bounds = calculate_geographic_bounds(points)
        assert bounds.north == pytest.approx(60.1282)
        assert bounds.south == pytest.approx(-25.2744)
        assert bounds.east == pytest.approx(133.7751)
        assert bounds.west == pytest.approx(18.6435)

    @pytest.mark.parametrize(
        "codes, zoom",
        [
            (["US", "JP"], 2),     # span > 100°
            (["SE", "NO"], 8),     # lng span ≈ 10.2°
            (["SE"], 10),          # single point
        ],
    )
    def test_zoom_by_span(self, codes, zoom):
        points = project_countries([CountryBucket(c, c, 1) for c in codes])
        assert calculate_zoom_level(points) == zoom


# ── Temporal ──────────────────────────────────────────────────────────────────

class TestProjectTimeBuckets:
    def test_spread_across_width_in_key_order(self):
        points = _hour_points({0: 1, 6: 1, 12: 1, 18: 1})
        assert [p.x for p in points] == [0, 200, 400, 600]

    def test_hour_y_is_fraction_of_day(self):
        (point,) = _hour_points({12: 5})
        assert point.y == CANVAS_HEIGHT / 2

    def test_day_y_starts_on_sunday(self):
        assert temporal_y("2026-03-15", "day") == 0                    # Sunday
        assert temporal_y("2026-03-16", "day") == pytest.approx(CANVAS_HEIGHT / 7)    # Monday

    def test_iso_week_53_stays_on_canvas(self):
        # 2026 has 53 ISO weeks
        assert temporal_y("2026-W53", "week") == CANVAS_HEIGHT
        assert temporal_y("2026-W52", "week") == CANVAS_HEIGHT
        assert temporal_y("2026-W13", "week") == pytest.approx(CANVAS_HEIGHT / 4)

    def test_month_y_is_zero_based(self):
        assert temporal_y("2026-01", "month") == 0

    def test_metadata_anchor(self):
        (point,) = project_time_buckets({"2026-W12": 3}, "week")
        assert point.metadata == {"timeKey": "2026-W12", "granularity": "week", "timestamp": "2026-03-16"}
        assert time_key_anchor("7", "hour") == "07:00"
        assert time_key_anchor("2026-03", "month") == "2026-03-01"

    def test_intensity_bounds(self):
        points = _hour_points({h: h + 1 for h in range(24)})
        assert all(0.0 <= p.intensity <= 1.0 for p in points)
        assert max(p.intensity for p in points) == 1.0

    def test_intensity_is_local_to_each_heatmap(self):
        small = _hour_points({1: 5, 2: 10})
        large = _hour_points({1: 5, 2: 20})
        assert small[0].value == large[0].value == 5
        assert (small[0].intensity, large[0].intensity) == (0.5, 0.25)

    def test_empty(self):
        assert project_time_buckets({}, "hour") == []


class TestPatternAnalysis:
    def test_business_hours_only(self):
        pattern = detect_business_hour_pattern(_hour_points({9: 3, 12: 5, 17: 1}))
        assert pattern.confidence == 1.0
        assert detect_cyclical_patterns(_hour_points({9: 3, 12: 5}), "hour")[0].pattern.startswith("Business")

    def test_night_only(self):
        points = _hour_points({0: 4, 3: 2, 22: 1})
        assert detect_business_hour_pattern(points).confidence == 0.0
        assert detect_cyclical_patterns(points, "hour") == []

    def test_fixed_placeholders(self):
        points = project_time_buckets({"2026-03-16": 1}, "day")
        assert [p.confidence for p in detect_cyclical_patterns(points, "day")] == [0.7]
        # 0.6 is not above the reporting threshold
        assert detect_cyclical_patterns(project_time_buckets({"2026-W12": 1}, "week"), "week") == []
        assert [p.confidence for p in detect_cyclical_patterns(project_time_buckets({"2026-03": 1}, "month"), "month")] == [0.65]

    def test_strongest_and_weakest_periods(self):
        analysis = analyze_temporal_patterns(_hour_points({1: 1, 2: 2, 3: 3, 4: 4, 5: 5, 6: 6, 7: 7}), "hour")
        assert [p.period for p in analysis.strongest_periods] == ["7", "6", "5"]
        assert [p.period for p in analysis.weakest_periods] == ["3", "2", "1"]


# ── Device ────────────────────────────────────────────────────────────────────

class TestProjectDevices:
    def test_two_rows_share_one_scale(self):
        points = project_devices({"mobile": 4, "desktop": 2}, {"iOS": 3, "Android": 8})

        devices = [p for p in points if p.metadata["type"] == "device"]
        platforms = [p for p in points if p.metadata["type"] == "platform"]

        assert [(p.x, p.y) for p in devices] == [(0, 100), (100, 100)]
        assert [(p.x, p.y) for p in platforms] == [(0, 200), (100, 200)]
        assert devices[0].intensity == 0.5           # 4 / 8, max taken over both rows
        assert platforms[1].intensity == 1.0
        assert platforms[1].metadata["name"] == "Android"

    def test_empty(self):
        assert project_devices({}, {}) == []
