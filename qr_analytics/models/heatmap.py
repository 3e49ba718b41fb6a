"""
heatmap.py — Pydantic models for the scan heatmap engine.

Attributes are snake_case in Python and camelCase on the wire
(qrCodeId, dataPoints, maxValue, ...) so the dashboard keeps reading the
same JSON shape the analytics gateway has always returned.

Shapes
──────
  ScanEvent          raw input row from the scan-event store (read-only)
  HeatmapOptions     caller options; validated by HeatmapService, not here,
                     so a bad option becomes a VALIDATION_ERROR response
                     instead of a pydantic exception
  HeatmapDataPoint   one positioned, normalised bucket
  HeatmapData        common heatmap shape (device / combined kinds)
  GeographicHeatmap  + bounds, zoomLevel, countryData
  TemporalHeatmap    + timeGranularity, patternAnalysis
  ServiceResponse[T] success/failure envelope returned by every service call

A heatmap is ephemeral: it is computed per request and never persisted
here. Intensity is always relative to the heatmap's own maximum.
"""

from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Granularity = Literal["hour", "day", "week", "month"]
HeatmapType = Literal["geographic", "temporal", "device", "combined"]

GRANULARITIES: tuple[str, ...] = ("hour", "day", "week", "month")
COLOR_SCHEMES: tuple[str, ...] = ("viridis", "plasma", "inferno", "magma", "cool", "warm")


class CamelModel(BaseModel):
    """Base model: camelCase aliases, construction by field name allowed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Input ─────────────────────────────────────────────────────────────────────

class ScanEvent(CamelModel):
    """A single QR scan as stored by the redirect service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    timestamp: datetime
    country:   Optional[str] = None   # free text ("Sweden") or code ("SE")
    device:    Optional[str] = None   # "mobile" | "desktop" | "tablet" | ...
    platform:  Optional[str] = None   # "iOS" | "Android" | "Windows" | ...


class TimeRange(CamelModel):
    start_date: Optional[datetime] = None
    end_date:   Optional[datetime] = None


class HeatmapOptions(CamelModel):
    """
    Options accepted by every generator.

    granularity is required for all three kinds even though only the
    temporal projection uses it, so every generator shares one signature.
    """

    time_range:   Optional[TimeRange] = None
    granularity:  Optional[str] = None
    color_scheme: Optional[str] = None   # None → settings.heatmap_default_color_scheme


# ── Output ────────────────────────────────────────────────────────────────────

class HeatmapDataPoint(CamelModel):
    x: float
    y: float
    value: int                                      # raw bucket count
    intensity: float = Field(..., ge=0.0, le=1.0)   # value / max(value) in this heatmap
    metadata: dict[str, Any] = Field(default_factory=dict)


class HeatmapData(CamelModel):
    id: str
    type: HeatmapType
    qr_code_id: str
    data_points: list[HeatmapDataPoint] = Field(default_factory=list)
    max_value: float = 0
    min_value: float = 0
    average_value: float = 0
    generated_at: datetime
    time_range: TimeRange


class GeographicBounds(CamelModel):
    north: float = 0.0
    south: float = 0.0
    east:  float = 0.0
    west:  float = 0.0


class CountryData(CamelModel):
    country_code: str
    country_name: str
    intensity: float    # share of all scans in the window
    scans: int


class GeographicHeatmap(HeatmapData):
    type: Literal["geographic"] = "geographic"
    bounds: GeographicBounds = Field(default_factory=GeographicBounds)
    zoom_level: int = 2
    country_data: list[CountryData] = Field(default_factory=list)


class PeriodIntensity(CamelModel):
    period: str
    intensity: float


class CyclicalPattern(CamelModel):
    pattern: str
    confidence: float


class PatternAnalysis(CamelModel):
    strongest_periods: list[PeriodIntensity] = Field(default_factory=list)
    weakest_periods:   list[PeriodIntensity] = Field(default_factory=list)
    cyclical_patterns: list[CyclicalPattern] = Field(default_factory=list)


class TemporalHeatmap(HeatmapData):
    type: Literal["temporal"] = "temporal"
    time_granularity: Granularity
    pattern_analysis: PatternAnalysis = Field(default_factory=PatternAnalysis)


# ── Envelope ──────────────────────────────────────────────────────────────────

T = TypeVar("T")


class ServiceError(CamelModel):
    code: str
    message: str
    status_code: int
    details: Optional[Any] = None


class ResponseMetadata(CamelModel):
    timestamp: str          # ISO-8601
    version: str = "1.0"


class ServiceResponse(CamelModel, Generic[T]):
    """Result of a heatmap service call. Exactly one of data / error is set."""

    success: bool
    data: Optional[T] = None
    error: Optional[ServiceError] = None
    metadata: Optional[ResponseMetadata] = None
