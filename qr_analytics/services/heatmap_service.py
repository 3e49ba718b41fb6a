"""
heatmap_service.py — Public entry points of the scan heatmap engine.

Wires the three stages together for one QR code and time window:

    fetch (repository) → aggregate (aggregator.py) → project (projector.py)
                                                        ↓
                                              HeatmapData value
    generate_heatmap_image(): HeatmapData → render (renderer.py) → bytes

Every public method returns a ServiceResponse and never raises:
  - AppError (incl. ValidationError, DatabaseError) → its own code/status
  - anything else → <KIND>_HEATMAP_FAILED / HEATMAP_IMAGE_FAILED, 500
Failures are logged with the qr code (or heatmap id), operation and stage.

No retries: output is a deterministic function of the fetched events.
No shared mutable state: one service instance may serve concurrent calls.

USAGE
─────
    from qr_analytics.services.heatmap_service import HeatmapService
    from qr_analytics.services.scan_events import MongoScanEventRepository

    service = HeatmapService(MongoScanEventRepository(db))
    result = await service.generate_geographic_heatmap("qr1", HeatmapOptions(
        time_range=TimeRange(start_date=start, end_date=end), granularity="day",
    ))
    if result.success:
        image = await service.generate_heatmap_image(result.data, "png")

TESTING
────────
    pytest tests/test_heatmap_service.py -v
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone, tzinfo
from typing import Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from qr_analytics.core.config import settings
from qr_analytics.core.errors import AppError, ValidationError
from qr_analytics.models.heatmap import (
    COLOR_SCHEMES,
    GRANULARITIES,
    GeographicHeatmap,
    HeatmapData,
    HeatmapOptions,
    PatternAnalysis,
    ResponseMetadata,
    ScanEvent,
    ServiceError,
    ServiceResponse,
    TemporalHeatmap,
    TimeRange,
)
from qr_analytics.services.aggregator import (
    aggregate_countries,
    aggregate_devices,
    aggregate_time_buckets,
)
from qr_analytics.services.projector import (
    analyze_temporal_patterns,
    calculate_country_data,
    calculate_geographic_bounds,
    calculate_zoom_level,
    project_countries,
    project_devices,
    project_time_buckets,
    summarize,
)
from qr_analytics.services.renderer import render_heatmap_image
from qr_analytics.services.scan_events import ScanEventRepository

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ("png", "svg")
RESPONSE_VERSION = "1.0"


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _resolve_timezone(name: str) -> tzinfo:
    return timezone.utc if name.upper() == "UTC" else ZoneInfo(name)


def generate_heatmap_id() -> str:
    return f"heatmap_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


class HeatmapService:
    def __init__(
        self,
        repository: ScanEventRepository,
        timezone_name: Optional[str] = None,
        default_color_scheme: Optional[str] = None,
    ):
        self._repository = repository
        self._tz = _resolve_timezone(timezone_name or settings.heatmap_timezone)
        self._default_color_scheme = default_color_scheme or settings.heatmap_default_color_scheme

    # ── Generators ────────────────────────────────────────────────────────────

    async def generate_geographic_heatmap(
        self, qr_code_id: str, options: HeatmapOptions
    ) -> ServiceResponse[GeographicHeatmap]:
        stage = "validate"
        try:
            self.validate_heatmap_options(options)
            logger.info(
                "Generating geographic heatmap (qr=%s, range=%s → %s)",
                qr_code_id, options.time_range.start_date, options.time_range.end_date,
            )

            stage = "fetch"
            events = await self._fetch(qr_code_id, options)
            if not events:
                return self._success(self.create_empty_geographic_heatmap(qr_code_id, options.time_range))

            stage = "aggregate"
            buckets = aggregate_countries(events)

            stage = "project"
            points = project_countries(buckets)
            max_value, min_value, average_value = summarize(points)
            heatmap = GeographicHeatmap(
                id=generate_heatmap_id(),
                qr_code_id=qr_code_id,
                data_points=points,
                max_value=max_value,
                min_value=min_value,
                average_value=average_value,
                generated_at=datetime.now(tz=timezone.utc),
                time_range=options.time_range,
                bounds=calculate_geographic_bounds(points),
                zoom_level=calculate_zoom_level(points),
                country_data=calculate_country_data(buckets, len(events)),
            )

            logger.info(
                "Geographic heatmap generated (qr=%s, points=%d, countries=%d)",
                qr_code_id, len(points), len(buckets),
            )
            return self._success(heatmap)
        except Exception as exc:
            return self._failure(
                exc,
                operation="generate_geographic_heatmap",
                stage=stage,
                subject=f"qr={qr_code_id}",
                code="GEOGRAPHIC_HEATMAP_FAILED",
                message="Failed to generate geographic heatmap",
            )

    async def generate_temporal_heatmap(
        self, qr_code_id: str, options: HeatmapOptions
    ) -> ServiceResponse[TemporalHeatmap]:
        stage = "validate"
        try:
            self.validate_heatmap_options(options)
            logger.info(
                "Generating temporal heatmap (qr=%s, granularity=%s)",
                qr_code_id, options.granularity,
            )

            stage = "fetch"
            events = await self._fetch(qr_code_id, options)
            if not events:
                return self._success(self.create_empty_temporal_heatmap(qr_code_id, options))

            stage = "aggregate"
            counts = aggregate_time_buckets(events, options.granularity, self._tz)

            stage = "project"
            points = project_time_buckets(counts, options.granularity)
            max_value, min_value, average_value = summarize(points)
            heatmap = TemporalHeatmap(
                id=generate_heatmap_id(),
                qr_code_id=qr_code_id,
                data_points=points,
                max_value=max_value,
                min_value=min_value,
                average_value=average_value,
                generated_at=datetime.now(tz=timezone.utc),
                time_range=options.time_range,
                time_granularity=options.granularity,
                pattern_analysis=analyze_temporal_patterns(points, options.granularity),
            )

            logger.info(
                "Temporal heatmap generated (qr=%s, points=%d, granularity=%s)",
                qr_code_id, len(points), options.granularity,
            )
            return self._success(heatmap)
        except Exception as exc:
            return self._failure(
                exc,
                operation="generate_temporal_heatmap",
                stage=stage,
                subject=f"qr={qr_code_id}",
                code="TEMPORAL_HEATMAP_FAILED",
                message="Failed to generate temporal heatmap",
            )

    async def generate_device_heatmap(
        self, qr_code_id: str, options: HeatmapOptions
    ) -> ServiceResponse[HeatmapData]:
        stage = "validate"
        try:
            self.validate_heatmap_options(options)
            logger.info("Generating device heatmap (qr=%s)", qr_code_id)

            stage = "fetch"
            events = await self._fetch(qr_code_id, options)
            if not events:
                return self._success(self.create_empty_device_heatmap(qr_code_id, options.time_range))

            stage = "aggregate"
            device_counts, platform_counts = aggregate_devices(events)

            stage = "project"
            points = project_devices(device_counts, platform_counts)
            max_value, min_value, average_value = summarize(points)
            heatmap = HeatmapData(
                id=generate_heatmap_id(),
                type="device",
                qr_code_id=qr_code_id,
                data_points=points,
                max_value=max_value,
                min_value=min_value,
                average_value=average_value,
                generated_at=datetime.now(tz=timezone.utc),
                time_range=options.time_range,
            )

            logger.info("Device heatmap generated (qr=%s, points=%d)", qr_code_id, len(points))
            return self._success(heatmap)
        except Exception as exc:
            return self._failure(
                exc,
                operation="generate_device_heatmap",
                stage=stage,
                subject=f"qr={qr_code_id}",
                code="DEVICE_HEATMAP_FAILED",
                message="Failed to generate device heatmap",
            )

    async def generate_heatmap_image(
        self,
        heatmap: HeatmapData,
        fmt: str = "png",
        color_scheme: Optional[str] = None,
    ) -> ServiceResponse[bytes]:
        """
        Render a heatmap produced by one of the generators.

        png → PNG bytes, svg → an SVG document. Drawing runs in a worker
        thread so the event loop stays responsive.
        """
        stage = "validate"
        try:
            if fmt not in IMAGE_FORMATS:
                raise ValidationError(
                    f"Unsupported image format '{fmt}'",
                    details={"allowed": list(IMAGE_FORMATS)},
                )
            scheme = self._color_scheme(color_scheme)
            logger.info("Generating heatmap image (id=%s, type=%s, format=%s)", heatmap.id, heatmap.type, fmt)

            stage = "render"
            image = await asyncio.to_thread(render_heatmap_image, heatmap, fmt, scheme)

            logger.info("Heatmap image generated (id=%s, format=%s, bytes=%d)", heatmap.id, fmt, len(image))
            return self._success(image)
        except Exception as exc:
            return self._failure(
                exc,
                operation="generate_heatmap_image",
                stage=stage,
                subject=f"heatmap={heatmap.id}",
                code="HEATMAP_IMAGE_FAILED",
                message="Failed to generate heatmap image",
            )

    # ── Validation ────────────────────────────────────────────────────────────

    @staticmethod
    def validate_heatmap_options(options: Optional[HeatmapOptions]) -> None:
        """Raise ValidationError for a missing/inverted time range or a bad granularity."""
        time_range = options.time_range if options is not None else None
        if time_range is None or time_range.start_date is None or time_range.end_date is None:
            raise ValidationError("Time range is required")

        if _as_utc(time_range.start_date) > _as_utc(time_range.end_date):
            raise ValidationError("Start date cannot be after end date")

        if options.granularity not in GRANULARITIES:
            raise ValidationError(
                "Invalid granularity specified",
                details={"allowed": list(GRANULARITIES)},
            )

        if options.color_scheme is not None and options.color_scheme not in COLOR_SCHEMES:
            raise ValidationError(
                "Invalid color scheme specified",
                details={"allowed": list(COLOR_SCHEMES)},
            )

    def _color_scheme(self, requested: Optional[str]) -> str:
        scheme = requested or self._default_color_scheme
        if scheme not in COLOR_SCHEMES:
            raise ValidationError(
                "Invalid color scheme specified",
                details={"allowed": list(COLOR_SCHEMES)},
            )
        return scheme

    # ── Empty heatmaps ────────────────────────────────────────────────────────

    @staticmethod
    def create_empty_geographic_heatmap(qr_code_id: str, time_range: TimeRange) -> GeographicHeatmap:
        return GeographicHeatmap(
            id=generate_heatmap_id(),
            qr_code_id=qr_code_id,
            generated_at=datetime.now(tz=timezone.utc),
            time_range=time_range,
        )

    @staticmethod
    def create_empty_temporal_heatmap(qr_code_id: str, options: HeatmapOptions) -> TemporalHeatmap:
        return TemporalHeatmap(
            id=generate_heatmap_id(),
            qr_code_id=qr_code_id,
            generated_at=datetime.now(tz=timezone.utc),
            time_range=options.time_range,
            time_granularity=options.granularity,
            pattern_analysis=PatternAnalysis(),
        )

    @staticmethod
    def create_empty_device_heatmap(qr_code_id: str, time_range: TimeRange) -> HeatmapData:
        return HeatmapData(
            id=generate_heatmap_id(),
            type="device",
            qr_code_id=qr_code_id,
            generated_at=datetime.now(tz=timezone.utc),
            time_range=time_range,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _fetch(self, qr_code_id: str, options: HeatmapOptions) -> list[ScanEvent]:
        return await self._repository.get_scan_events_by_qr_code(
            qr_code_id,
            options.time_range.start_date,
            options.time_range.end_date,
        )

    @staticmethod
    def _success(data) -> ServiceResponse:
        return ServiceResponse(
            success=True,
            data=data,
            metadata=ResponseMetadata(
                timestamp=datetime.now(tz=timezone.utc).isoformat(),
                version=RESPONSE_VERSION,
            ),
        )

    @staticmethod
    def _failure(
        exc: Exception,
        *,
        operation: str,
        stage: str,
        subject: str,
        code: str,
        message: str,
    ) -> ServiceResponse:
        if isinstance(exc, AppError):
            logger.error(
                "%s failed (%s, stage=%s): %s [%s]",
                operation, subject, stage, exc.message, exc.code,
            )
            error = ServiceError(
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code,
                details=exc.details,
            )
        else:
            logger.exception("%s failed (%s, stage=%s)", operation, subject, stage)
            error = ServiceError(code=code, message=message, status_code=500)
        return ServiceResponse(success=False, error=error)
