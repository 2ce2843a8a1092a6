# recoengine/db/mongo.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from recoengine.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)
settings = get_settings()

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def _new_client() -> AsyncIOMotorClient:
    opts = dict(
        tz_aware=True,                          # product ages are computed in UTC
        uuidRepresentation="standard",
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        connectTimeoutMS=settings.mongo_timeout_ms,
        socketTimeoutMS=settings.mongo_timeout_ms,
        readPreference="secondaryPreferred",    # the engine only reads
    )
    if settings.MONGO_TLS:
        opts.update(tls=True, tlsCAFile=certifi.where())
    return AsyncIOMotorClient(settings.MONGO_URI, **opts)


async def connect():
    """
    Create the Motor client.
    A failed ping at startup is logged but not fatal: the client connects
    lazily and every query surfaces store failures on its own.
    """
    global _client, _db

    _client = _new_client()
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
        logger.info("mongo connected db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("mongo ping at startup failed, will connect lazily err=%s", e)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
