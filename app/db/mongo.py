# app/db/mongo.py
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from app.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def get_client() -> AsyncIOMotorClient:
    assert _client is not None, "Mongo client not initialized"
    return _client


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def _new_client(uri: str) -> AsyncIOMotorClient:
    kwargs = dict(
        uuidRepresentation="standard",
        serverSelectionTimeoutMS=6000,
        connectTimeoutMS=6000,
    )
    # Atlas (SRV) needs the CA bundle explicitly inside slim containers
    if uri.startswith("mongodb+srv://"):
        kwargs.update(tls=True, tlsCAFile=certifi.where())
    return AsyncIOMotorClient(uri, **kwargs)


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Indexes backing the ranking engine's queries (idempotent)."""
    await db["products"].create_index([("status", ASCENDING), ("category_id", ASCENDING), ("rating", DESCENDING)])
    await db["products"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    await db["products"].create_index("product_id", unique=True)
    await db["orders"].create_index([("user_id", ASCENDING), ("status", ASCENDING)])
    await db["orders"].create_index([("product_id", ASCENDING), ("status", ASCENDING)])
    await db["users"].create_index("user_id", unique=True)
    await db["events"].create_index([("event_type", ASCENDING), ("user_id", ASCENDING)])
    await db["experiments"].create_index("name", unique=True)
    await db["recommendation_events"].create_index(
        [("user_id", ASCENDING), ("experiment", ASCENDING), ("created_at", DESCENDING)]
    )


async def connect():
    """
    Create the Motor client.
    Do not crash the app if the initial ping fails: Motor connects lazily, so
    requests can succeed once the cluster is reachable.
    """
    global _client, _db
    settings = get_settings()

    _client = _new_client(settings.MONGO_URI)
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
        logger.info("Mongo connected (ping ok) db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed, will connect lazily: %s", e)
        return

    try:
        await ensure_indexes(_db)
    except Exception as e:
        logger.warning("Mongo index creation failed: %s", e)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
