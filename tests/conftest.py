"""
pytest configuration and shared fixtures for the QR Analytics API tests.

Key concern: tests must not require a live MongoDB.
We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.

Route tests that need scan events override get_db with an in-memory
FakeDB (see test_heatmap.py). Service tests use FakeRepository below.
"""

import os
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("HEATMAP_TIMEZONE", "UTC")


@pytest.fixture(autouse=True)
async def mock_db():
    """
    Run every test against a disconnected scan-event store.

    The lifecycle hooks become no-op AsyncMocks and the Motor singleton is
    emptied, so get_db() yields None (→ DATABASE_UNAVAILABLE) unless a test
    overrides it. Originals are restored afterwards.
    """
    with (
        patch("qr_analytics.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("qr_analytics.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import qr_analytics.core.database as db_module

        # Save originals so we can restore after the test
        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 — mock_db must run first
    """
    HTTPX async test client wired to the FastAPI app.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from qr_analytics.core.rate_limit import limiter
    from qr_analytics.main import app

    # Reset in-memory rate-limit counters so tests are independent.
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ── Scan event helpers ────────────────────────────────────────────────────────

def scan(
    country=None,
    device=None,
    platform=None,
    timestamp=datetime(2026, 3, 16, 10, 30, tzinfo=timezone.utc),
):
    """Build a ScanEvent; defaults to Monday 2026-03-16 10:30 UTC."""
    from qr_analytics.models.heatmap import ScanEvent

    return ScanEvent(timestamp=timestamp, country=country, device=device, platform=platform)


class FakeRepository:
    """In-memory ScanEventRepository; records the last query it answered."""

    def __init__(self, events=(), error=None):
        self.events = list(events)
        self.error = error
        self.calls = []

    async def get_scan_events_by_qr_code(self, qr_code_id, start_date, end_date):
        self.calls.append((qr_code_id, start_date, end_date))
        if self.error is not None:
            raise self.error
        return list(self.events)
