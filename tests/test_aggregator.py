"""
test_aggregator.py — Bucketing scan events by country, time and device.

Pure functions, no DB and no app: events are built with conftest.scan().
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import scan
from qr_analytics.services.aggregator import (
    UNKNOWN,
    aggregate_countries,
    aggregate_devices,
    aggregate_time_buckets,
    time_bucket_key,
)
from qr_analytics.services.countries import get_country_code, lookup_country


# ── Country codes ─────────────────────────────────────────────────────────────

class TestCountryCode:
    def test_reference_name_resolves_to_code(self):
        assert get_country_code("Sweden") == "SE"
        assert get_country_code("United Kingdom") == "UK"

    def test_code_resolves_to_itself(self):
        assert get_country_code("NO") == "NO"

    def test_aliases(self):
        assert get_country_code("GB") == "UK"
        assert get_country_code("USA") == "US"

    def test_surrounding_whitespace_ignored(self):
        assert get_country_code("  Germany ") == "DE"

    def test_unknown_name_falls_back_to_first_two_letters(self):
        assert get_country_code("Wakanda") == "WA"
        assert lookup_country("WA") is None


# ── Geographic ────────────────────────────────────────────────────────────────

class TestAggregateCountries:
    def test_counts_per_code_in_first_seen_order(self):
        buckets = aggregate_countries([scan("SE"), scan("Sweden"), scan("NO")])

        assert [(b.code, b.name, b.scans) for b in buckets] == [
            ("SE", "Sweden", 2),
            ("NO", "Norway", 1),
        ]

    def test_unknown_country_keeps_raw_name(self):
        (bucket,) = aggregate_countries([scan("Wakanda"), scan("Wakanda")])
        assert (bucket.code, bucket.name, bucket.scans) == ("WA", "Wakanda", 2)

    def test_missing_country_is_bucketed_as_unknown(self):
        buckets = aggregate_countries([scan(None), scan("  ")])
        assert len(buckets) == 1
        assert buckets[0].name == UNKNOWN
        assert buckets[0].scans == 2

    def test_every_event_counted_once(self):
        events = [scan(c) for c in ("SE", "NO", "Denmark", "Wakanda", None, "SE")]
        assert sum(b.scans for b in aggregate_countries(events)) == len(events)

    def test_empty_input(self):
        assert aggregate_countries([]) == []


# ── Temporal ──────────────────────────────────────────────────────────────────

class TestTimeBucketKey:
    ts = datetime(2026, 3, 16, 10, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "granularity, expected",
        [("hour", "10"), ("day", "2026-03-16"), ("week", "2026-W12"), ("month", "2026-03")],
    )
    def test_key_formats(self, granularity, expected):
        assert time_bucket_key(self.ts, granularity) == expected

    def test_week_uses_iso_year(self):
        # 2024-12-30 is Monday of ISO week 1 of 2025
        assert time_bucket_key(datetime(2024, 12, 30, tzinfo=timezone.utc), "week") == "2025-W01"

    def test_naive_timestamp_treated_as_utc(self):
        assert time_bucket_key(datetime(2026, 3, 16, 23, 15), "hour") == "23"

    def test_timezone_shifts_bucket(self):
        stockholm = ZoneInfo("Europe/Stockholm")
        late = datetime(2026, 3, 16, 23, 15, tzinfo=timezone.utc)
        assert time_bucket_key(late, "hour", stockholm) == "0"
        assert time_bucket_key(late, "day", stockholm) == "2026-03-17"

    def test_unsupported_granularity(self):
        with pytest.raises(ValueError):
            time_bucket_key(self.ts, "minute")


class TestAggregateTimeBuckets:
    def test_hours_sorted_numerically(self):
        events = [scan(timestamp=datetime(2026, 3, 16, h, tzinfo=timezone.utc)) for h in (10, 2, 10, 9)]
        counts = aggregate_time_buckets(events, "hour")
        assert list(counts.items()) == [("2", 1), ("9", 1), ("10", 2)]

    def test_days_sorted_chronologically(self):
        start = datetime(2026, 3, 14, 12, tzinfo=timezone.utc)
        events = [scan(timestamp=start + timedelta(days=d)) for d in (2, 0, 1, 2)]
        counts = aggregate_time_buckets(events, "day")
        assert list(counts) == ["2026-03-14", "2026-03-15", "2026-03-16"]
        assert counts["2026-03-16"] == 2

    @pytest.mark.parametrize("granularity", ["hour", "day", "week", "month"])
    def test_counts_sum_to_event_count(self, granularity):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        events = [scan(timestamp=start + timedelta(hours=7 * i)) for i in range(200)]
        assert sum(aggregate_time_buckets(events, granularity).values()) == 200


# ── Device ────────────────────────────────────────────────────────────────────

class TestAggregateDevices:
    def test_devices_and_platforms_counted_independently(self):
        devices, platforms = aggregate_devices([
            scan(device="mobile", platform="iOS"),
            scan(device="mobile", platform="Android"),
            scan(device="desktop", platform="iOS"),
        ])
        assert devices == {"mobile": 2, "desktop": 1}
        assert platforms == {"iOS": 2, "Android": 1}

    def test_missing_values_are_unknown(self):
        devices, platforms = aggregate_devices([scan(device="tablet"), scan(platform="")])
        assert devices == {"tablet": 1, UNKNOWN: 1}
        assert platforms == {UNKNOWN: 2}

    def test_both_rows_sum_to_event_count(self):
        events = [scan(device=d, platform=p) for d, p in [("a", "x"), ("b", None), (None, "y")]]
        devices, platforms = aggregate_devices(events)
        assert sum(devices.values()) == sum(platforms.values()) == 3
