# app/db/mongo.py
import logging

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import get_settings

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
    # Atlas / SRV needs an explicit CA bundle inside slim containers
    if uri.startswith("mongodb+srv://") or "tls=true" in uri.lower():
        kwargs.update(tls=True, tlsCAFile=certifi.where())
    return AsyncIOMotorClient(uri, **kwargs)


async def connect():
    """
    Create the Motor client and ping once.
    A failed ping is not fatal: the client stays lazy and the first real
    query retries the connection.
    """
    global _client, _db
    settings = get_settings()
    _client = _new_client(settings.MONGO_URI)
    _db = _client[settings.MONGO_DB]
    try:
        await _client.admin.command("ping")
        logger.info("Mongo connected db=%s (ping ok)", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed, connecting lazily: %s", e)


async def disconnect():
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
