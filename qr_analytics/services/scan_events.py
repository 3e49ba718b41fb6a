"""
scan_events.py — Read access to raw scan events.

The heatmap engine consumes exactly one query from the persistence layer:

    get_scan_events_by_qr_code(qr_code_id, start_date, end_date) → list[ScanEvent]

The returned list is finite and already filtered to the time window; the
engine never filters again.

Document shape in the `scan_events` collection (written by the QR redirect
service, see scripts/seed_scan_events.py for a local generator):

  {
    "qr_code_id": "qr_7f3a…",
    "timestamp":  ISODate("2026-03-14T09:12:44Z"),
    "country":    "Sweden",          ← free text or two-letter code
    "device":     "mobile",
    "platform":   "iOS"
  }

Served by the { qr_code_id: 1, timestamp: 1 } index that
core.database.connect_to_mongo ensures at startup.
"""

import logging
from datetime import datetime
from typing import Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase

from qr_analytics.core.config import settings
from qr_analytics.core.errors import DatabaseError
from qr_analytics.models.heatmap import ScanEvent

logger = logging.getLogger(__name__)

_PROJECTION = {"_id": 0, "timestamp": 1, "country": 1, "device": 1, "platform": 1}


class ScanEventRepository(Protocol):
    async def get_scan_events_by_qr_code(
        self, qr_code_id: str, start_date: datetime, end_date: datetime
    ) -> list[ScanEvent]: ...


class MongoScanEventRepository:
    """ScanEventRepository backed by the Motor database handle from get_db()."""

    def __init__(self, db: AsyncIOMotorDatabase | None, collection: str | None = None):
        self._db = db
        self._collection = collection or settings.scan_events_collection

    async def get_scan_events_by_qr_code(
        self, qr_code_id: str, start_date: datetime, end_date: datetime
    ) -> list[ScanEvent]:
        if self._db is None:
            raise DatabaseError(
                "Scan event store is unavailable",
                code="DATABASE_UNAVAILABLE",
                status_code=503,
            )

        query = {
            "qr_code_id": qr_code_id,
            "timestamp": {"$gte": start_date, "$lte": end_date},
        }
        try:
            cursor = self._db[self._collection].find(query, _PROJECTION).sort("timestamp", 1)
            docs = await cursor.to_list(length=None)
        except Exception as exc:
            logger.error("Scan event query failed (qr=%s): %s", qr_code_id, exc)
            raise DatabaseError("Failed to fetch scan events", details=str(exc)) from exc

        logger.debug("Fetched %d scan events (qr=%s)", len(docs), qr_code_id)
        return [ScanEvent.model_validate(doc) for doc in docs]
