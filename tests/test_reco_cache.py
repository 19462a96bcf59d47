# tests/test_reco_cache.py
from unittest.mock import AsyncMock

from app.domain.models.product import CachedRecommendations, Product, Recommendation
from app.domain.repositories.reco_cache_repo import MemoryRecoCache, RedisRecoCache, cache_key


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _entry(limit=2, pid="1"):
    rec = Recommendation.from_product(Product(product_id=pid, title="T"), reason="r", confidence=0.5,
                                      recommendation_type="similar", source="fallback")
    return CachedRecommendations(limit=limit, items=[rec])


def test_cache_key_is_order_independent_and_anon_aware():
    assert cache_key("cart", "s", ["2", "1"], None) == "upsell:cart:s:1,2:anon"
    assert cache_key("cart", "s", ["1", "2"], None) == cache_key("cart", "s", ["2", "1"], "")
    assert cache_key("product", "s", ["9"], "u1") == "upsell:product:s:9:u1"


async def test_get_set_delete():
    cache = MemoryRecoCache()
    assert await cache.get("k") is None
    entry = _entry()
    await cache.set("k", entry)
    assert await cache.get("k") is entry
    assert "k" in cache and len(cache) == 1
    assert await cache.delete("k") is True
    assert await cache.delete("k") is False


async def test_entries_expire_after_ttl():
    clock = _Clock()
    cache = MemoryRecoCache(ttl=300, clock=clock)
    await cache.set("k", _entry())
    clock.now += 299
    assert await cache.get("k") is not None
    clock.now += 1
    assert await cache.get("k") is None
    assert len(cache) == 0


async def test_capacity_evicts_oldest_inserted_not_least_recent():
    cache = MemoryRecoCache(max_entries=2)
    await cache.set("a", _entry())
    await cache.set("b", _entry())
    await cache.get("a")
    await cache.set("c", _entry())
    assert "a" not in cache
    assert "b" in cache and "c" in cache


async def test_reinsert_counts_as_new():
    cache = MemoryRecoCache(max_entries=2)
    await cache.set("a", _entry())
    await cache.set("b", _entry())
    await cache.set("a", _entry(limit=3))
    await cache.set("c", _entry())
    assert "b" not in cache
    assert (await cache.get("a")).limit == 3


async def test_invalidate_drops_exact_product_entry():
    cache = MemoryRecoCache()
    key = cache_key("product", "shop", ["5"], "u1")
    other = cache_key("product", "shop", ["5"], "u2")
    await cache.set(key, _entry())
    await cache.set(other, _entry())
    assert await cache.invalidate("shop", "5", "u1") is True
    assert key not in cache and other in cache
    cache.clear()
    assert len(cache) == 0


async def test_redis_cache_round_trips_json_with_ttl():
    redis = AsyncMock()
    cache = RedisRecoCache(redis, ttl=300)
    entry = _entry(limit=4, pid="77")
    await cache.set("k", entry)
    key, payload = redis.set.await_args.args
    assert key == "k"
    assert redis.set.await_args.kwargs == {"ex": 300}

    redis.get.return_value = payload
    got = await cache.get("k")
    assert got.limit == 4
    assert got.items[0].product_id == "77"


async def test_redis_errors_behave_like_a_miss():
    redis = AsyncMock()
    redis.get.side_effect = ConnectionError("down")
    redis.set.side_effect = ConnectionError("down")
    redis.delete.side_effect = ConnectionError("down")
    cache = RedisRecoCache(redis)
    assert await cache.get("k") is None
    await cache.set("k", _entry())
    assert await cache.delete("k") is False


async def test_redis_garbage_is_a_miss():
    redis = AsyncMock()
    redis.get.return_value = "not json"
    assert await RedisRecoCache(redis).get("k") is None
