# app/core/lifespan.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import Settings, get_settings
from app.db import mongo, redis as r
from app.domain.repositories.history_repo import HistoryRepo
from app.domain.repositories.product_repo import ProductRepo
from app.domain.repositories.reco_cache_repo import MemoryRecoCache, RedisRecoCache
from app.domain.services.llm_client import LLMClient
from app.domain.services.upsell_svc import EngineConfig, UpsellDeps

logger = logging.getLogger(__name__)


def build_cache(settings: Settings, redis_client=None):
    if settings.reco_cache_backend == "redis":
        if redis_client is not None:
            return RedisRecoCache(redis_client, ttl=settings.reco_cache_ttl)
        logger.warning("reco_cache_backend=redis but Redis is unavailable; using in-memory cache")
    return MemoryRecoCache(ttl=settings.reco_cache_ttl, max_entries=settings.reco_cache_max_entries)


def build_upsell_deps(settings: Settings, db, redis_client=None) -> UpsellDeps:
    """Wire the engine's capabilities from settings and live clients."""
    return UpsellDeps(
        catalog=ProductRepo(db),
        history=HistoryRepo(
            db,
            window_days=settings.history_window_days,
            browsing_top_n=settings.browsing_top_n,
            cart_top_n=settings.cart_top_n,
        ),
        llm=LLMClient.from_settings(settings),
        cache=build_cache(settings, redis_client),
        config=EngineConfig.from_settings(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    await mongo.connect()

    # Redis is optional
    if settings.REDIS_URL:
        await r.connect()
    else:
        logger.info("No REDIS_URL provided, skipping Redis connection")

    deps = build_upsell_deps(settings, mongo.get_db(), r.get_redis())
    app.state.upsell_deps = deps
    if not deps.llm.configured:
        logger.warning("LLM_API_KEY not set; every request will use the fallback ranking")
    logger.info("upsell engine ready cache=%s model=%s", type(deps.cache).__name__, settings.LLM_MODEL)

    yield

    # --- Shutdown ---
    try:
        await r.disconnect()
    except Exception as e:
        logger.warning("Redis disconnect failed: %s", e)
    await mongo.disconnect()
