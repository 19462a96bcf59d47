# app/domain/repositories/history_repo.py

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
import json
import logging
import math
import time

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.domain.models.product import BrowsedItem, CartedItem, EngagementStat
from app.utils.ids import normalize_product_id

logger = logging.getLogger(__name__)


def _json_preview(obj: Any, limit: int = 1000) -> str:
    """Minify and truncate JSON for debug logs."""
    try:
        s = json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)
        return s if len(s) <= limit else s[:limit] + "…[truncated]"
    except Exception:
        return "<unserializable>"


class HistoryRepo:
    """
    Time-tracking store over two collections written by the storefront:
      product_time_events: { shop, productId(str), productTitle, timeSpentSeconds, userId, recordedAt }
      cart_time_events:    { shop, userId, cartProductIds[int], timeSpentSeconds, recordedAt }

    Profile reads are best-effort: they return [] for anonymous users and on any
    store failure. Engagement stats raise, the booster decides what to do.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        *,
        window_days: int = 30,
        browsing_top_n: int = 5,
        cart_top_n: int = 8,
        product_collection: str = "product_time_events",
        cart_collection: str = "cart_time_events",
    ):
        self.product_col = db[product_collection]
        self.cart_col = db[cart_collection]
        self.window_days = window_days
        self.browsing_top_n = browsing_top_n
        self.cart_top_n = cart_top_n

    def _since(self) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=self.window_days)

    async def browsing_profile(self, user_id: Optional[str], shop: str, exclude: Iterable[str] = ()) -> List[BrowsedItem]:
        """Products this user spent the most time on (trailing window), desc."""
        if not user_id:
            return []
        excluded = [str(x) for x in exclude]
        pipeline: List[Dict[str, Any]] = [
            {"$match": {
                "shop": shop,
                "userId": user_id,
                "recordedAt": {"$gte": self._since()},
                "productId": {"$nin": excluded},
            }},
            # $last below needs chronological input
            {"$sort": {"recordedAt": 1}},
            {"$group": {
                "_id": "$productId",
                "total_time": {"$sum": "$timeSpentSeconds"},
                "title": {"$last": "$productTitle"},
            }},
            {"$sort": {"total_time": -1, "_id": 1}},
            {"$limit": self.browsing_top_n},
        ]
        logger.debug("history browsing pipeline=%s", _json_preview(pipeline))
        t0 = time.perf_counter()
        try:
            docs = await self.product_col.aggregate(pipeline).to_list(length=None)
        except Exception as e:
            logger.warning("history browsing_profile error user_id=%s shop=%s err=%s", user_id, shop, e)
            return []
        items = [
            BrowsedItem(product_id=pid, title=d.get("title"), total_time_seconds=float(d.get("total_time") or 0))
            for d in docs
            if (pid := normalize_product_id(d.get("_id")))
        ]
        logger.info("history browsing_profile user_id=%s n=%s db_time=%.3fs", user_id, len(items), time.perf_counter() - t0)
        return items

    async def cart_profile(self, user_id: Optional[str], shop: str, exclude: Iterable[str] = ()) -> List[CartedItem]:
        """Products found in the most distinct past cart sessions (trailing window), desc."""
        if not user_id:
            return []
        excluded = {str(x) for x in exclude}
        pipeline: List[Dict[str, Any]] = [
            {"$match": {
                "shop": shop,
                "userId": user_id,
                "recordedAt": {"$gte": self._since()},
                "cartProductIds.0": {"$exists": True},
            }},
            # one vote per session even if an id was recorded twice
            {"$project": {"_id": 0, "ids": {"$setUnion": ["$cartProductIds", []]}}},
            {"$unwind": "$ids"},
            {"$group": {"_id": "$ids", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            # stored ids are numeric, exclusions are applied after normalization
            {"$limit": self.cart_top_n + len(excluded)},
        ]
        logger.debug("history cart pipeline=%s", _json_preview(pipeline))
        t0 = time.perf_counter()
        try:
            docs = await self.cart_col.aggregate(pipeline).to_list(length=None)
        except Exception as e:
            logger.warning("history cart_profile error user_id=%s shop=%s err=%s", user_id, shop, e)
            return []
        items: List[CartedItem] = []
        for d in docs:
            pid = normalize_product_id(d.get("_id"))
            if not pid or pid in excluded:
                continue
            items.append(CartedItem(product_id=pid, count=int(d.get("count") or 0)))
        items = items[: self.cart_top_n]
        logger.info("history cart_profile user_id=%s n=%s db_time=%.3fs", user_id, len(items), time.perf_counter() - t0)
        return items

    async def engagement_stats(self, shop: str, product_ids: Iterable[str]) -> Dict[str, EngagementStat]:
        """Shop-wide average time and session count per product (trailing window)."""
        ids = [str(p) for p in product_ids]
        if not ids:
            return {}
        pipeline: List[Dict[str, Any]] = [
            {"$match": {"shop": shop, "productId": {"$in": ids}, "recordedAt": {"$gte": self._since()}}},
            {"$group": {"_id": "$productId", "avg_time": {"$avg": "$timeSpentSeconds"}, "sessions": {"$sum": 1}}},
        ]
        t0 = time.perf_counter()
        docs = await self.product_col.aggregate(pipeline).to_list(length=None)
        stats = {
            pid: EngagementStat(product_id=pid, avg_time_seconds=float(d.get("avg_time") or 0), sessions=int(d.get("sessions") or 0))
            for d in docs
            if (pid := normalize_product_id(d.get("_id")))
        }
        logger.info("history engagement_stats shop=%s asked=%s found=%s db_time=%.3fs", shop, len(ids), len(stats), time.perf_counter() - t0)
        return stats

    async def record_product_time(
        self,
        *,
        shop: str,
        product_id: str,
        time_spent_seconds: int,
        user_id: Optional[str] = None,
        product_title: Optional[str] = None,
    ) -> None:
        """Store one product-page time-tracking session."""
        await self.product_col.insert_one({
            "shop": shop,
            "productId": str(product_id),
            "productTitle": product_title,
            "timeSpentSeconds": int(time_spent_seconds),
            "userId": user_id or None,
            "recordedAt": datetime.now(timezone.utc),
        })
        logger.info("history time_tracked product_id=%s shop=%s seconds=%s user_id=%s", product_id, shop, time_spent_seconds, user_id or "anonymous")

    async def record_cart_time(
        self,
        *,
        shop: str,
        time_spent_seconds: int,
        user_id: Optional[str] = None,
        cart_product_ids: Optional[Iterable[Any]] = None,
        cart_item_count: Optional[int] = None,
        cart_total_price: Optional[float] = None,
    ) -> None:
        """Store one cart-page time-tracking session. Non-numeric or non-positive ids are dropped."""
        doc: Dict[str, Any] = {
            "shop": shop,
            "timeSpentSeconds": int(time_spent_seconds),
            "userId": user_id or None,
            "cartProductIds": _positive_ids(cart_product_ids or []),
            "recordedAt": datetime.now(timezone.utc),
        }
        if cart_item_count is not None and cart_item_count >= 0:
            doc["cartItemCount"] = int(cart_item_count)
        if cart_total_price is not None and cart_total_price >= 0:
            doc["cartTotalPrice"] = round(float(cart_total_price))
        await self.cart_col.insert_one(doc)
        logger.info(
            "history cart_time_tracked shop=%s seconds=%s items=%s user_id=%s",
            shop, time_spent_seconds, len(doc["cartProductIds"]), user_id or "anonymous",
        )


def _positive_ids(values: Iterable[Any]) -> List[int]:
    out: List[int] = []
    for v in values:
        try:
            n = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(n) and n > 0 and n == int(n):
            out.append(int(n))
    return out
