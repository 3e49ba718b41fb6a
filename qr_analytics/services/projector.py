"""
projector.py — Stage 2 of the heatmap engine: counts → positioned data points.

Turns the Aggregator's bucket counts into HeatmapDataPoints on the fixed
800×400 canvas, each with a value (raw count) and an intensity normalised
against the largest count in the SAME heatmap. Also derives the
kind-specific metadata: geographic bounds and zoom level, temporal
pattern analysis.

USAGE
─────
    from qr_analytics.services.aggregator import aggregate_countries
    from qr_analytics.services.projector import project_countries, calculate_zoom_level

    points = project_countries(aggregate_countries(events))
    zoom   = calculate_zoom_level(points)

Pattern detectors
─────────────────
Only detect_business_hour_pattern() computes anything from the data. The
weekday / monthly / seasonal detectors return fixed confidences; they are
placeholders until real seasonality statistics are specified, and callers
must not read them as measurements.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from qr_analytics.models.heatmap import (
    CountryData,
    CyclicalPattern,
    GeographicBounds,
    HeatmapDataPoint,
    PatternAnalysis,
    PeriodIntensity,
)
from qr_analytics.services.aggregator import CountryBucket
from qr_analytics.services.countries import lookup_country

CANVAS_WIDTH  = 800
CANVAS_HEIGHT = 400

# ── Tunables ──────────────────────────────────────────────────────────────────

# (span in degrees, zoom); the first threshold the span exceeds wins
_ZOOM_THRESHOLDS = [
    (100, 2),
    (50,  4),
    (20,  6),
    (10,  8),
]
_MAX_ZOOM = 10

_PATTERN_CONFIDENCE_THRESHOLD = 0.6
_BUSINESS_HOURS = range(9, 18)          # 09:00 – 17:59, i.e. hours 9..17
_PERIOD_SAMPLE = 3                      # strongest / weakest periods reported

_DEVICE_ROW_Y   = 100
_PLATFORM_ROW_Y = 200
_ROW_SPACING    = 100


# ── Equirectangular projection ────────────────────────────────────────────────

def longitude_to_x(longitude: float) -> float:
    return ((longitude + 180) / 360) * CANVAS_WIDTH


def latitude_to_y(latitude: float) -> float:
    return ((90 - latitude) / 180) * CANVAS_HEIGHT


def x_to_longitude(x: float) -> float:
    return (x / CANVAS_WIDTH) * 360 - 180


def y_to_latitude(y: float) -> float:
    return ((CANVAS_HEIGHT - y) / CANVAS_HEIGHT) * 180 - 90


# ── Summary statistics ────────────────────────────────────────────────────────

def summarize(points: Sequence[HeatmapDataPoint]) -> tuple[float, float, float]:
    """Return (max, min, average) of the point values; all 0 for no points."""
    if not points:
        return 0, 0, 0
    values = [p.value for p in points]
    return max(values), min(values), sum(values) / len(values)


def _intensity(value: int, max_value: int) -> float:
    return value / max_value if max_value > 0 else 0.0


# ── Geographic ────────────────────────────────────────────────────────────────

def project_countries(buckets: Sequence[CountryBucket]) -> list[HeatmapDataPoint]:
    """
    Place one point per country at its centroid.

    Countries missing from the reference table are placed at (0°, 0°).
    """
    if not buckets:
        return []
    max_scans = max(b.scans for b in buckets)

    points = []
    for bucket in buckets:
        info = lookup_country(bucket.code)
        lat, lng = (info.lat, info.lng) if info else (0.0, 0.0)
        points.append(HeatmapDataPoint(
            x=longitude_to_x(lng),
            y=latitude_to_y(lat),
            value=bucket.scans,
            intensity=_intensity(bucket.scans, max_scans),
            metadata={
                "countryCode": bucket.code,
                "countryName": bucket.name,
                "coordinates": {"lat": lat, "lng": lng},
            },
        ))
    return points


def calculate_country_data(buckets: Sequence[CountryBucket], total_scans: int) -> list[CountryData]:
    """Per-country summary; intensity here is the country's share of all scans."""
    return [
        CountryData(
            country_code=b.code,
            country_name=b.name,
            intensity=_intensity(b.scans, total_scans),
            scans=b.scans,
        )
        for b in buckets
    ]


def calculate_geographic_bounds(points: Sequence[HeatmapDataPoint]) -> GeographicBounds:
    """
    Lat/lng box around the plotted points.

    Inverse-projects the points themselves, so the box fits the countries
    present in the data rather than the whole world.
    """
    if not points:
        return GeographicBounds()
    lats = [y_to_latitude(p.y) for p in points]
    lngs = [x_to_longitude(p.x) for p in points]
    return GeographicBounds(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


def calculate_zoom_level(points: Sequence[HeatmapDataPoint]) -> int:
    """Coarse map zoom: the tighter the data spread, the deeper the zoom."""
    if not points:
        return _ZOOM_THRESHOLDS[0][1]
    bounds = calculate_geographic_bounds(points)
    span = max(bounds.north - bounds.south, bounds.east - bounds.west)
    for threshold, zoom in _ZOOM_THRESHOLDS:
        if span > threshold:
            return zoom
    return _MAX_ZOOM


# ── Temporal ──────────────────────────────────────────────────────────────────

def _parse_week_key(key: str) -> tuple[int, int]:
    year, week = key.split("-W")
    return int(year), int(week)


def temporal_y(time_key: str, granularity: str) -> float:
    """
    Vertical position of a bucket by its place in the natural cycle.

    hour → hour/24, day → weekday/7 (Sunday = 0), week → ISO week/52 (week 53
    shares the bottom edge with week 52),
    month → month index/12; each scaled to the canvas height. Purely visual.
    """
    if granularity == "hour":
        fraction = int(time_key) / 24
    elif granularity == "day":
        fraction = ((date.fromisoformat(time_key).weekday() + 1) % 7) / 7
    elif granularity == "week":
        fraction = min(_parse_week_key(time_key)[1], 52) / 52
    elif granularity == "month":
        fraction = (int(time_key.split("-")[1]) - 1) / 12
    else:
        return CANVAS_HEIGHT / 2
    return fraction * CANVAS_HEIGHT


def time_key_anchor(time_key: str, granularity: str) -> str:
    """ISO anchor of a bucket: "HH:00", a date, the ISO week's Monday, or the 1st of the month."""
    if granularity == "hour":
        return f"{int(time_key):02d}:00"
    if granularity == "day":
        return date.fromisoformat(time_key).isoformat()
    if granularity == "week":
        year, week = _parse_week_key(time_key)
        return date.fromisocalendar(year, week, 1).isoformat()
    if granularity == "month":
        year, month = time_key.split("-")
        return date(int(year), int(month), 1).isoformat()
    return time_key


def project_time_buckets(counts: dict[str, int], granularity: str) -> list[HeatmapDataPoint]:
    """Spread buckets evenly across the canvas width, in key order."""
    if not counts:
        return []
    max_count = max(counts.values())
    step = CANVAS_WIDTH / len(counts)

    return [
        HeatmapDataPoint(
            x=index * step,
            y=temporal_y(key, granularity),
            value=count,
            intensity=_intensity(count, max_count),
            metadata={
                "timeKey": key,
                "granularity": granularity,
                "timestamp": time_key_anchor(key, granularity),
            },
        )
        for index, (key, count) in enumerate(counts.items())
    ]


def detect_business_hour_pattern(points: Iterable[HeatmapDataPoint]) -> CyclicalPattern:
    """Confidence = share of total intensity that falls in hours 9–17."""
    points = list(points)
    total = sum(p.intensity for p in points)
    business = sum(
        p.intensity for p in points
        if int(p.metadata.get("timeKey", 0)) in _BUSINESS_HOURS
    )
    return CyclicalPattern(
        pattern="Business Hours Peak (9 AM - 5 PM)",
        confidence=business / total if total > 0 else 0.0,
    )


def detect_weekday_pattern(points: Iterable[HeatmapDataPoint]) -> CyclicalPattern:
    # Placeholder: fixed confidence, not derived from the data.
    return CyclicalPattern(pattern="Weekday Activity Pattern", confidence=0.7)


def detect_monthly_pattern(points: Iterable[HeatmapDataPoint]) -> CyclicalPattern:
    # Placeholder: fixed confidence, not derived from the data.
    return CyclicalPattern(pattern="Monthly Cycle Pattern", confidence=0.6)


def detect_seasonal_pattern(points: Iterable[HeatmapDataPoint]) -> CyclicalPattern:
    # Placeholder: fixed confidence, not derived from the data.
    return CyclicalPattern(pattern="Seasonal Variation Pattern", confidence=0.65)


_DETECTORS = {
    "hour":  detect_business_hour_pattern,
    "day":   detect_weekday_pattern,
    "week":  detect_monthly_pattern,
    "month": detect_seasonal_pattern,
}


def detect_cyclical_patterns(points: Sequence[HeatmapDataPoint], granularity: str) -> list[CyclicalPattern]:
    """Run the one detector for this granularity; keep it if confidence > 0.6."""
    detector = _DETECTORS.get(granularity)
    if detector is None:
        return []
    pattern = detector(points)
    return [pattern] if pattern.confidence > _PATTERN_CONFIDENCE_THRESHOLD else []


def analyze_temporal_patterns(points: Sequence[HeatmapDataPoint], granularity: str) -> PatternAnalysis:
    """
    Top and bottom periods by intensity, plus cyclical patterns.

    With fewer than six points the strongest and weakest lists overlap.
    """
    ranked = sorted(points, key=lambda p: p.intensity, reverse=True)

    def _periods(selection: Sequence[HeatmapDataPoint]) -> list[PeriodIntensity]:
        return [
            PeriodIntensity(period=str(p.metadata.get("timeKey", "Unknown")), intensity=p.intensity)
            for p in selection
        ]

    return PatternAnalysis(
        strongest_periods=_periods(ranked[:_PERIOD_SAMPLE]),
        weakest_periods=_periods(ranked[-_PERIOD_SAMPLE:]),
        cyclical_patterns=detect_cyclical_patterns(points, granularity),
    )


# ── Device ────────────────────────────────────────────────────────────────────

def project_devices(device_counts: dict[str, int], platform_counts: dict[str, int]) -> list[HeatmapDataPoint]:
    """
    Devices on row 1 (y=100), platforms on row 2 (y=200), 100 px apart.

    Both rows share one intensity scale: the max over devices AND platforms.
    """
    max_count = max([*device_counts.values(), *platform_counts.values()], default=0)

    points = []
    for row_y, kind, counts in (
        (_DEVICE_ROW_Y,   "device",   device_counts),
        (_PLATFORM_ROW_Y, "platform", platform_counts),
    ):
        for index, (name, count) in enumerate(counts.items()):
            points.append(HeatmapDataPoint(
                x=index * _ROW_SPACING,
                y=row_y,
                value=count,
                intensity=_intensity(count, max_count),
                metadata={"type": kind, "name": name},
            ))
    return points
