from __future__ import annotations
from collections import OrderedDict
from typing import Callable, Iterable, Optional, Tuple
import logging
import threading
import time

from app.domain.models.product import CachedRecommendations
from app.domain.services.constants import ANON_USER, CONTEXT_PRODUCT

logger = logging.getLogger(__name__)

KEY_PREFIX = "upsell"


def cache_key(context: str, shop: str, subject_ids: Iterable[str], user_id: Optional[str]) -> str:
    """
    Deterministic key for one recommendation request.
    Subject ids are sorted so cart order never matters; anonymous users share "anon".
    """
    subject = ",".join(sorted(str(s) for s in subject_ids))
    return f"{KEY_PREFIX}:{context}:{shop}:{subject}:{user_id or ANON_USER}"


class MemoryRecoCache:
    """
    In-process TTL cache for final recommendation lists.
    Bounded: when full, the oldest *inserted* entry is evicted (reads do not refresh).
    Instances are injected, so tests build a fresh one each time.
    """

    def __init__(self, ttl: float = 300, max_entries: int = 500, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._store: "OrderedDict[str, Tuple[float, CachedRecommendations]]" = OrderedDict()
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[CachedRecommendations]:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                return None
            created, value = item
            if self._clock() - created >= self.ttl:
                self._store.pop(key, None)
                logger.debug("reco cache expired key=%s", key)
                return None
            return value

    async def set(self, key: str, value: CachedRecommendations) -> None:
        with self._lock:
            # re-inserting counts as a new insertion
            self._store.pop(key, None)
            while len(self._store) >= self.max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("reco cache evicted key=%s", evicted)
            self._store[key] = (self._clock(), value)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    async def invalidate(self, shop: str, product_id: str, user_id: Optional[str]) -> bool:
        return await self.delete(cache_key(CONTEXT_PRODUCT, shop, [product_id], user_id))

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store


class RedisRecoCache:
    """
    Redis-backed variant with the same interface, for multi-worker deployments.
    Expiry is delegated to Redis (SET EX); capacity to the server's maxmemory policy.
    Redis failures are logged and behave like a miss.
    """

    def __init__(self, redis, ttl: int = 300):
        self.cache = redis  # Use the passed Redis instance
        self.ttl = ttl

    async def get(self, key: str) -> Optional[CachedRecommendations]:
        try:
            raw = await self.cache.get(key)
        except Exception as e:
            logger.warning("reco cache redis.get error key=%s err=%s", key, e)
            return None
        if not raw:
            return None
        try:
            return CachedRecommendations.model_validate_json(raw)
        except Exception as e:
            logger.warning("reco cache decode error key=%s err=%s", key, e)
            return None

    async def set(self, key: str, value: CachedRecommendations) -> None:
        try:
            await self.cache.set(key, value.model_dump_json(), ex=self.ttl)
        except Exception as e:
            logger.warning("reco cache redis.set error key=%s err=%s", key, e)

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.cache.delete(key))
        except Exception as e:
            logger.warning("reco cache redis.delete error key=%s err=%s", key, e)
            return False

    async def invalidate(self, shop: str, product_id: str, user_id: Optional[str]) -> bool:
        return await self.delete(cache_key(CONTEXT_PRODUCT, shop, [product_id], user_id))
