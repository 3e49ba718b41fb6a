"""
Scan-event store connection (Motor, async).

The heatmap engine only reads from MongoDB: raw scan events written by the
QR redirect service live in `settings.scan_events_collection`. Every
heatmap query filters on qr_code_id and a timestamp window, then sorts by
timestamp, so startup makes sure the compound index serving that query
exists before the first request arrives.

Lifecycle (driven by FastAPI's lifespan in main.py):

  connect_to_mongo()        open client → ping → ensure scan-event index
  close_mongo_connection()  close client on shutdown

If the ping fails the API starts anyway in degraded mode: get_db() yields
None, the repository answers DATABASE_UNAVAILABLE (503) and /health
reports "disconnected".
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from qr_analytics.core.config import settings

logger = logging.getLogger(__name__)

# Matches the repository query: equality on qr_code_id, range + sort on timestamp
SCAN_EVENT_INDEX_KEYS = [("qr_code_id", 1), ("timestamp", 1)]
SCAN_EVENT_INDEX_NAME = "qr_code_id_asc_ts_asc"


class DatabaseClient:
    """
    Motor client plus the database holding the scan events.

    Tests swap .client and .db on the singleton to simulate a connected
    or disconnected store.
    """

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


db_client = DatabaseClient()


async def ensure_scan_event_indexes(db: AsyncIOMotorDatabase, collection: str | None = None) -> str:
    """
    Create the (qr_code_id, timestamp) index on the scan-event collection.

    create_index is a no-op when an identical index already exists, so this
    is safe on every startup. Returns the index name.
    """
    name = collection or settings.scan_events_collection
    return await db[name].create_index(SCAN_EVENT_INDEX_KEYS, name=SCAN_EVENT_INDEX_NAME)


async def connect_to_mongo() -> None:
    """Open the scan-event store, or fall back to degraded mode."""
    logger.info("Connecting to scan-event store at %s", _redact_uri(settings.mongo_uri))
    try:
        client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            tlsCAFile=certifi.where(),
        )
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning("Scan-event store unavailable at startup: %s. Heatmap endpoints will return 503.", exc)
        db_client.client = None
        db_client.db = None
        return

    db_client.client = client
    db_client.db = client[settings.mongo_db_name]
    logger.info(
        "Scan-event store ready (db: %s, collection: %s)",
        settings.mongo_db_name,
        settings.scan_events_collection,
    )

    # A read-only user may lack createIndex; queries still work without it.
    try:
        index = await ensure_scan_event_indexes(db_client.db)
        logger.info("Scan-event index ensured: %s", index)
    except Exception as exc:
        logger.warning("Could not ensure scan-event index %s: %s", SCAN_EVENT_INDEX_NAME, exc)


async def close_mongo_connection() -> None:
    if db_client.client is not None:
        db_client.client.close()
        logger.info("Scan-event store connection closed")
    db_client.client = None
    db_client.db = None


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency: the scan-event database, or None in degraded mode.

    The scan-event repository turns None into a DATABASE_UNAVAILABLE error.
    """
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)
