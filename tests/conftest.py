# tests/conftest.py
# In-memory stand-ins for the catalog, the time-tracking store and the LLM.
import json
from typing import Dict, List, Optional

import pytest

from app.domain.models.product import BrowsedItem, CartedItem, EngagementStat, Product
from app.domain.repositories.reco_cache_repo import MemoryRecoCache
from app.domain.services.upsell_svc import EngineConfig, UpsellDeps

SHOP = "demo.myshopify.com"


def make_doc(pid, title, category, brand="", color=None, keywords=(), price="10.00"):
    return {
        "shopId": SHOP,
        "productId": pid,
        "title": title,
        "handle": title.lower().replace(" ", "-"),
        "status": "active",
        "aiData": {
            "category": category,
            "brand": brand,
            "price": price,
            "color": color,
            "keywords": list(keywords),
        },
    }


JEWELRY_DOCS = [
    make_doc(101, "Gold Bracelet", "jewelry", brand="Aurum", color="gold", keywords=["bracelet", "gold"]),
    make_doc(102, "Silver Bracelet", "jewelry", brand="Argent", color="silver", keywords=["bracelet", "silver"]),
    make_doc(103, "Pearl Necklace", "jewelry", brand="Argent", color="white", keywords=["necklace", "pearl"]),
    make_doc(104, "Leather Wallet", "accessories", brand="Hide", color="brown", keywords=["wallet", "leather"]),
]


class FakeCatalog:
    def __init__(self, docs):
        self.products = [Product.from_doc(d) for d in docs]
        self.list_calls = 0

    async def get_by_product_id(self, shop: str, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.product_id == str(product_id)), None)

    async def list_by_shop(self, shop: str) -> List[Product]:
        self.list_calls += 1
        return list(self.products)


class FakeHistory:
    def __init__(self, browsed=None, carted=None, stats=None, stats_error: Optional[Exception] = None):
        self.browsed = [BrowsedItem(**b) for b in (browsed or [])]
        self.carted = [CartedItem(**c) for c in (carted or [])]
        self.stats: Dict[str, EngagementStat] = {
            pid: EngagementStat(product_id=pid, **s) for pid, s in (stats or {}).items()
        }
        self.stats_error = stats_error
        self.recorded: List[dict] = []
        self.recorded_carts: List[dict] = []

    async def browsing_profile(self, user_id, shop, exclude=()):
        if not user_id:
            return []
        return [b for b in self.browsed if b.product_id not in set(exclude)]

    async def cart_profile(self, user_id, shop, exclude=()):
        if not user_id:
            return []
        return [c for c in self.carted if c.product_id not in set(exclude)]

    async def engagement_stats(self, shop, product_ids):
        if self.stats_error:
            raise self.stats_error
        return {pid: s for pid, s in self.stats.items() if pid in set(product_ids)}

    async def record_product_time(self, **kwargs):
        self.recorded.append(kwargs)

    async def record_cart_time(self, **kwargs):
        self.recorded_carts.append(kwargs)


class FakeLLM:
    """Returns canned text (or raises) and counts calls."""

    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None, configured: bool = True):
        self.text = text
        self.error = error
        self.configured = configured
        self.calls = 0
        self.prompts: List[str] = []

    async def generate(self, prompt: str, *, system: str = "") -> str:
        self.calls += 1
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.text


def picks(*items):
    """Model-style JSON array: picks((102, 0.9), (103, 0.8))."""
    return json.dumps([
        {"productId": pid, "reason": f"Goes well with it ({pid})", "confidence": conf, "recommendationType": "complementary"}
        for pid, conf in items
    ])


@pytest.fixture
def catalog():
    return FakeCatalog(JEWELRY_DOCS)


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def cache():
    return MemoryRecoCache(ttl=300, max_entries=500)


@pytest.fixture
def make_deps(catalog, history, cache):
    def _make(llm=None, **overrides):
        return UpsellDeps(
            catalog=overrides.get("catalog", catalog),
            history=overrides.get("history", history),
            llm=llm or FakeLLM(configured=False),
            cache=overrides.get("cache", cache),
            config=overrides.get("config", EngineConfig()),
        )
    return _make
