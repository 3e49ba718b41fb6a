"""
aggregator.py — Stage 1 of the heatmap engine: bucket scan events and count.

Pure functions, no I/O. Each heatmap kind groups events by one dimension:

  geographic  country code  (aggregate_countries)
  temporal    time bucket   (aggregate_time_buckets)
  device      device name AND platform name, two independent counts
              (aggregate_devices)

Callers short-circuit empty event lists to the empty heatmap constructors
before reaching this module, but every function here still returns an
empty result for an empty input.

Temporal bucket keys
────────────────────
  hour   "0" … "23"     hour of day, aggregated across all days
  day    "2026-03-14"   calendar date
  week   "2026-W11"     ISO year + ISO week
  month  "2026-03"
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Optional

from qr_analytics.models.heatmap import ScanEvent
from qr_analytics.services.countries import get_country_code, lookup_country

UNKNOWN = "Unknown"

_KEY_FORMATS = {
    "day":   "%Y-%m-%d",
    "month": "%Y-%m",
}


@dataclass
class CountryBucket:
    code: str
    name: str
    scans: int = 0


def _label(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or UNKNOWN


# ── Geographic ────────────────────────────────────────────────────────────────

def aggregate_countries(events: Iterable[ScanEvent]) -> list[CountryBucket]:
    """
    Count scans per country code, in first-seen order.

    The bucket name is the reference-table name when the code is known,
    otherwise the first raw country string seen for that code.
    """
    buckets: dict[str, CountryBucket] = {}
    for event in events:
        raw = _label(event.country)
        code = get_country_code(raw)
        bucket = buckets.get(code)
        if bucket is None:
            info = lookup_country(code)
            bucket = buckets[code] = CountryBucket(code=code, name=info.name if info else raw)
        bucket.scans += 1
    return list(buckets.values())


# ── Temporal ──────────────────────────────────────────────────────────────────

def _localize(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    # Motor hands back naive UTC datetimes.
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(tz or timezone.utc)


def time_bucket_key(timestamp: datetime, granularity: str, tz: Optional[tzinfo] = None) -> str:
    """Return the bucket key for one timestamp at the given granularity."""
    local = _localize(timestamp, tz)
    if granularity == "hour":
        return str(local.hour)
    if granularity == "week":
        iso = local.isocalendar()
        return f"{iso.year}-W{iso.week:02d}"
    fmt = _KEY_FORMATS.get(granularity)
    if fmt is None:
        raise ValueError(f"Unsupported granularity: {granularity!r}")
    return local.strftime(fmt)


def _bucket_sort_key(key: str, granularity: str):
    return int(key) if granularity == "hour" else key


def aggregate_time_buckets(
    events: Iterable[ScanEvent],
    granularity: str,
    tz: Optional[tzinfo] = None,
) -> dict[str, int]:
    """
    Count scans per time bucket.

    Every event lands in exactly one bucket, so the counts always sum to the
    number of events. Keys come back in chronological order (hours
    numerically).
    """
    counts = Counter(time_bucket_key(e.timestamp, granularity, tz) for e in events)
    ordered = sorted(counts, key=lambda k: _bucket_sort_key(k, granularity))
    return {key: counts[key] for key in ordered}


# ── Device ────────────────────────────────────────────────────────────────────

def aggregate_devices(events: Iterable[ScanEvent]) -> tuple[dict[str, int], dict[str, int]]:
    """Count scans per device and, independently, per platform (first-seen order)."""
    devices: Counter[str] = Counter()
    platforms: Counter[str] = Counter()
    for event in events:
        devices[_label(event.device)] += 1
        platforms[_label(event.platform)] += 1
    return dict(devices), dict(platforms)
