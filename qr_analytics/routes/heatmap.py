"""
heatmap.py — Scan heatmap routes.

Routes:
  GET  /api/v1/heatmap/geographic        — scans per country, positioned on a world canvas
  GET  /api/v1/heatmap/temporal          — scans per time bucket + pattern analysis
  GET  /api/v1/heatmap/device            — scans per device and per platform
  GET  /api/v1/heatmap/{kind}/image      — the same heatmap rendered as PNG or SVG

HOW THE DATA FLOWS
──────────────────
1. The dashboard calls one of the data routes with ?qrCodeId=… and an
   optional window (startDate / endDate, ISO-8601) and granularity.
2. The route builds HeatmapOptions, filling in the defaults below, and
   hands them to HeatmapService together with a MongoScanEventRepository
   over the injected database handle.
3. The service answers with a ServiceResponse envelope. The route returns
   it as JSON with HTTP 200 on success, otherwise error.statusCode.
4. The /image variant generates the heatmap first, then renders it. Bytes
   come back with image/png or image/svg+xml; failures use the JSON envelope.

DEFAULTS
────────
  geographic, device   last 30 days, granularity "day"
  temporal             last 7 days,  granularity "hour"
  colorScheme          settings.heatmap_default_color_scheme

EXAMPLE
───────
  curl "localhost:8000/api/v1/heatmap/temporal?qrCodeId=qr_demo&granularity=day"
  curl -o map.png "localhost:8000/api/v1/heatmap/geographic/image?qrCodeId=qr_demo"
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from qr_analytics.core.config import settings
from qr_analytics.core.database import get_db
from qr_analytics.core.errors import NotFoundError
from qr_analytics.core.rate_limit import limiter
from qr_analytics.models.heatmap import (
    HeatmapOptions,
    ServiceError,
    ServiceResponse,
    TimeRange,
)
from qr_analytics.services.heatmap_service import HeatmapService
from qr_analytics.services.renderer import media_type_for
from qr_analytics.services.scan_events import MongoScanEventRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/heatmap", tags=["heatmap"])

# kind → (lookback days, default granularity)
_DEFAULTS = {
    "geographic": (30, "day"),
    "temporal":   (7,  "hour"),
    "device":     (30, "day"),
}


# ── Helpers ───────────────────────────────────────────────────────────────────

def _service(db) -> HeatmapService:
    return HeatmapService(MongoScanEventRepository(db))


def _build_options(
    kind: str,
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    granularity: Optional[str],
    color_scheme: Optional[str],
) -> HeatmapOptions:
    lookback_days, default_granularity = _DEFAULTS[kind]
    end = end_date or datetime.now(tz=timezone.utc)
    start = start_date or end - timedelta(days=lookback_days)
    return HeatmapOptions(
        time_range=TimeRange(start_date=start, end_date=end),
        granularity=granularity or default_granularity,
        color_scheme=color_scheme,
    )


def _failure(code: str, message: str, status_code: int) -> ServiceResponse:
    return ServiceResponse(
        success=False,
        error=ServiceError(code=code, message=message, status_code=status_code),
    )


def _missing_qr_code_id() -> ServiceResponse:
    return _failure("MISSING_QR_CODE_ID", "QR code ID is required", 400)


def _json(result: ServiceResponse) -> JSONResponse:
    status_code = 200 if result.success else result.error.status_code
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True),
    )


async def _generate(service: HeatmapService, kind: str, qr_code_id: str, options: HeatmapOptions):
    if kind == "geographic":
        return await service.generate_geographic_heatmap(qr_code_id, options)
    if kind == "temporal":
        return await service.generate_temporal_heatmap(qr_code_id, options)
    return await service.generate_device_heatmap(qr_code_id, options)


async def _heatmap_json(
    kind: str,
    db,
    qr_code_id: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    granularity: Optional[str],
    color_scheme: Optional[str],
) -> JSONResponse:
    if not qr_code_id:
        return _json(_missing_qr_code_id())
    options = _build_options(kind, start_date, end_date, granularity, color_scheme)
    return _json(await _generate(_service(db), kind, qr_code_id, options))


# ── Data routes ───────────────────────────────────────────────────────────────

@router.get("/geographic")
@limiter.limit(settings.heatmap_data_rate_limit)
async def get_geographic_heatmap(
    request: Request,
    qr_code_id: Optional[str] = Query(default=None, alias="qrCodeId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    granularity: Optional[str] = Query(default=None),
    color_scheme: Optional[str] = Query(default=None, alias="colorScheme"),
    db=Depends(get_db),  # None when MongoDB is down → DATABASE_UNAVAILABLE
):
    """Scans per country for one QR code (default window: last 30 days)."""
    return await _heatmap_json(
        "geographic", db, qr_code_id, start_date, end_date, granularity, color_scheme
    )


@router.get("/temporal")
@limiter.limit(settings.heatmap_data_rate_limit)
async def get_temporal_heatmap(
    request: Request,
    qr_code_id: Optional[str] = Query(default=None, alias="qrCodeId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    granularity: Optional[str] = Query(default=None),
    color_scheme: Optional[str] = Query(default=None, alias="colorScheme"),
    db=Depends(get_db),
):
    """
    Scans per time bucket for one QR code.

    Default window is the last 7 days bucketed by hour of day, which is
    what the dashboard's "when do people scan" card shows.
    """
    return await _heatmap_json(
        "temporal", db, qr_code_id, start_date, end_date, granularity, color_scheme
    )


@router.get("/device")
@limiter.limit(settings.heatmap_data_rate_limit)
async def get_device_heatmap(
    request: Request,
    qr_code_id: Optional[str] = Query(default=None, alias="qrCodeId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    granularity: Optional[str] = Query(default=None),
    color_scheme: Optional[str] = Query(default=None, alias="colorScheme"),
    db=Depends(get_db),
):
    """Scans per device type and per platform (default window: last 30 days)."""
    return await _heatmap_json(
        "device", db, qr_code_id, start_date, end_date, granularity, color_scheme
    )


# ── Image route ───────────────────────────────────────────────────────────────

@router.get("/{kind}/image")
@limiter.limit(settings.heatmap_image_rate_limit)
async def get_heatmap_image(
    request: Request,
    kind: str,
    qr_code_id: Optional[str] = Query(default=None, alias="qrCodeId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    granularity: Optional[str] = Query(default=None),
    color_scheme: Optional[str] = Query(default=None, alias="colorScheme"),
    fmt: str = Query(default="png", alias="format"),
    db=Depends(get_db),
):
    """
    Render a heatmap as an image.

    kind is one of geographic | temporal | device. format=png returns PNG
    bytes, format=svg an SVG document. Any failure (unknown kind, bad
    options, database down, render error) returns the JSON envelope.
    """
    if kind not in _DEFAULTS:
        error = NotFoundError(f"Unknown heatmap kind '{kind}'")
        return _json(_failure(error.code, error.message, error.status_code))
    if not qr_code_id:
        return _json(_missing_qr_code_id())

    service = _service(db)
    options = _build_options(kind, start_date, end_date, granularity, color_scheme)
    heatmap = await _generate(service, kind, qr_code_id, options)
    if not heatmap.success:
        return _json(heatmap)

    image = await service.generate_heatmap_image(heatmap.data, fmt, color_scheme)
    if not image.success:
        return _json(image)

    logger.debug("Serving %s heatmap image (qr=%s, format=%s)", kind, qr_code_id, fmt)
    return Response(content=image.data, media_type=media_type_for(fmt))
