# tests/test_routes.py
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import upsell_deps
from app.domain.repositories.reco_cache_repo import MemoryRecoCache, cache_key
from app.domain.services.upsell_svc import EngineConfig, UpsellDeps
from app.main import app

from conftest import JEWELRY_DOCS, SHOP, FakeCatalog, FakeHistory, FakeLLM, picks


@pytest.fixture
def deps():
    d = UpsellDeps(
        catalog=FakeCatalog(JEWELRY_DOCS),
        history=FakeHistory(),
        llm=FakeLLM(configured=False),
        cache=MemoryRecoCache(),
        config=EngineConfig(),
    )
    app.dependency_overrides[upsell_deps] = lambda: d
    yield d
    app.dependency_overrides.clear()


@pytest.fixture
def client(deps):
    return TestClient(app)


def test_product_upsell(client):
    r = client.get("/products/101/upsell", params={"shop": SHOP, "limit": 2})
    assert r.status_code == 200
    data = r.json()
    assert data["subject_ids"] == ["101"]
    assert data["count"] == 2
    assert [i["product_id"] for i in data["items"]] == ["102", "103"]
    assert data["items"][0]["reason"] == "Recommended based on product similarity"
    assert data["items"][0]["url"] == "/products/silver-bracelet"
    assert data["items"][0]["available"] is True


def test_product_upsell_accepts_gid(client):
    r = client.get("/products/gid://shopify/Product/101/upsell", params={"shop": SHOP, "limit": 1})
    assert r.status_code == 200
    assert r.json()["subject_ids"] == ["101"]


def test_product_upsell_rejects_bad_id(client):
    r = client.get("/products/not-a-product/upsell", params={"shop": SHOP})
    assert r.status_code == 400


def test_product_upsell_requires_shop_and_valid_limit(client):
    assert client.get("/products/101/upsell").status_code == 422
    assert client.get("/products/101/upsell", params={"shop": SHOP, "limit": 0}).status_code == 422


def test_default_limit_is_four(client):
    r = client.get("/products/101/upsell", params={"shop": SHOP})
    # only three other products exist
    assert r.json()["count"] == 3


def test_cart_upsell(client, deps):
    deps.llm = FakeLLM(text=picks((101, 0.9)))
    r = client.post("/cart/upsell", json={"shop": SHOP, "product_ids": [102, "gid://shopify/Product/103"], "limit": 4})
    assert r.status_code == 200
    data = r.json()
    assert data["subject_ids"] == ["102", "103"]
    assert [i["product_id"] for i in data["items"]][0] == "101"
    assert data["items"][0]["source"] == "model"


def test_empty_cart_is_empty_result(client):
    r = client.post("/cart/upsell", json={"shop": SHOP, "product_ids": []})
    assert r.status_code == 200
    assert r.json()["items"] == []


def test_cart_without_valid_ids_is_400(client):
    r = client.post("/cart/upsell", json={"shop": SHOP, "product_ids": ["abc", ""]})
    assert r.status_code == 400


def test_cart_of_unknown_products_is_404(client):
    r = client.post("/cart/upsell", json={"shop": SHOP, "product_ids": [998]})
    assert r.status_code == 404


def test_tracking_records_and_invalidates(client, deps):
    client.get("/products/101/upsell", params={"shop": SHOP, "limit": 2, "user_id": "u1"})
    key = cache_key("product", SHOP, ["101"], "u1")
    assert key in deps.cache

    r = client.post("/tracking/time", json={
        "shop": SHOP, "product_id": "gid://shopify/Product/101", "product_title": "Gold Bracelet",
        "time_spent_seconds": 42, "user_id": "u1",
    })
    assert r.status_code == 200
    assert r.json() == {"success": True, "context": "product", "product_id": "101", "cache_invalidated": True}
    assert key not in deps.cache
    assert deps.history.recorded == [{
        "shop": SHOP, "product_id": "101", "time_spent_seconds": 42, "user_id": "u1", "product_title": "Gold Bracelet",
    }]


def test_anonymous_tracking_does_not_invalidate(client, deps):
    r = client.post("/tracking/time", json={"shop": SHOP, "product_id": 101, "time_spent_seconds": 5})
    assert r.status_code == 200
    assert r.json()["cache_invalidated"] is False
    assert len(deps.history.recorded) == 1


@pytest.mark.parametrize("seconds", [0, 86401])
def test_tracking_rejects_out_of_range_durations(client, seconds):
    r = client.post("/tracking/time", json={"shop": SHOP, "product_id": 101, "time_spent_seconds": seconds})
    assert r.status_code == 422


def test_tracking_store_failure_is_500(client, deps):
    deps.history.record_product_time = AsyncMock(side_effect=RuntimeError("down"))
    r = client.post("/tracking/time", json={"shop": SHOP, "product_id": 101, "time_spent_seconds": 5})
    assert r.status_code == 500


def test_cart_tracking_records_cart_session(client, deps):
    client.get("/products/101/upsell", params={"shop": SHOP, "limit": 2, "user_id": "u1"})
    r = client.post("/tracking/time", json={
        "shop": SHOP, "context": "cart", "time_spent_seconds": 30, "user_id": "u1",
        "cart_product_ids": [101, "102"], "cart_item_count": 2,
    })
    assert r.status_code == 200
    assert r.json() == {"success": True, "context": "cart", "product_id": None, "cache_invalidated": False}
    assert deps.history.recorded == []
    [saved] = deps.history.recorded_carts
    assert saved["shop"] == SHOP and saved["user_id"] == "u1"
    assert saved["cart_product_ids"] == [101, "102"]
    assert saved["cart_item_count"] == 2
    # cart sessions leave product-context entries alone
    assert cache_key("product", SHOP, ["101"], "u1") in deps.cache


def test_product_tracking_requires_product_id(client, deps):
    r = client.post("/tracking/time", json={"shop": SHOP, "time_spent_seconds": 5})
    assert r.status_code == 422
    assert deps.history.recorded == []


def test_cart_tracking_store_failure_is_500(client, deps):
    deps.history.record_cart_time = AsyncMock(side_effect=RuntimeError("down"))
    r = client.post("/tracking/time", json={"shop": SHOP, "context": "cart", "time_spent_seconds": 5})
    assert r.status_code == 500


def test_health_reports_checks(monkeypatch, deps):
    from app.api.v1.routers import health as health_mod

    db = MagicMock()
    db.command = AsyncMock(return_value={"ok": 1})
    monkeypatch.setattr(health_mod.mongo, "get_db", lambda: db)
    monkeypatch.setattr(health_mod, "get_redis", lambda: None)
    app.state.upsell_deps = deps
    try:
        r = TestClient(app).get("/health")
    finally:
        del app.state.upsell_deps
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["checks"]["mongodb"] == "ok"
    assert body["checks"]["redis"] == "skipped"
    assert body["checks"]["llm_api_key_set"] is False
    assert body["checks"]["reco_cache"] == "MemoryRecoCache"
