# app/domain/services/fallback.py
"""
Deterministic, model-free ranking used whenever the LLM path yields nothing.
Pure functions: same inputs, same order.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Sequence
import logging

from app.domain.models.product import Product, Recommendation
from app.domain.services.constants import (
    FALLBACK_CART_MAX_CONFIDENCE,
    FALLBACK_CART_REASON,
    FALLBACK_PRODUCT_REASON,
    LAST_RESORT_CONFIDENCE,
    LAST_RESORT_REASON,
    SIM_BRAND,
    SIM_CATEGORY,
    SIM_COLOR,
    SIM_KEYWORD,
    SIM_KEYWORD_CAP,
)

logger = logging.getLogger(__name__)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a == b


def similarity(p1: Optional[Product], p2: Optional[Product]) -> int:
    """Weighted attribute overlap, 0..100."""
    if p1 is None or p2 is None:
        return 0
    score = 0
    if _same(p1.category, p2.category):
        score += SIM_CATEGORY
    if _same(p1.brand, p2.brand):
        score += SIM_BRAND
    if _same(p1.color, p2.color):
        score += SIM_COLOR
    kw2 = set(p2.keywords)
    overlap = sum(1 for k in p1.keywords if k in kw2)
    score += min(overlap * SIM_KEYWORD, SIM_KEYWORD_CAP)
    return score


def last_resort(products: Sequence[Product], limit: int, exclude: Iterable[str] = (), *, recommendation_type: str = "similar") -> List[Recommendation]:
    """First `limit` shop products with a flat confidence. Never raises."""
    excluded = set(exclude)
    return [
        Recommendation.from_product(
            p, reason=LAST_RESORT_REASON, confidence=LAST_RESORT_CONFIDENCE,
            recommendation_type=recommendation_type, source="fallback",
        )
        for p in products
        if p.product_id not in excluded
    ][: max(limit, 0)]


def fallback_for_product(subject: Optional[Product], candidates: Sequence[Product], limit: int) -> List[Recommendation]:
    if subject is None:
        logger.warning("fallback subject missing; returning first %s shop products", limit)
        return last_resort(candidates, limit)
    scored = [(similarity(subject, p), p) for p in candidates if p.product_id != subject.product_id]
    scored.sort(key=lambda sp: sp[0], reverse=True)  # stable: ties keep catalog order
    recs = [
        Recommendation.from_product(
            p, reason=FALLBACK_PRODUCT_REASON, confidence=score / 100,
            recommendation_type="similar", source="fallback",
        )
        for score, p in scored[: max(limit, 0)]
    ]
    logger.info("fallback product_id=%s items=%s", subject.product_id, len(recs))
    return recs


def fallback_for_cart(cart_products: Sequence[Product], candidates: Sequence[Product], limit: int) -> List[Recommendation]:
    if not cart_products:
        logger.warning("fallback cart empty; returning first %s shop products", limit)
        return last_resort(candidates, limit, recommendation_type="complementary")
    cart_ids = {p.product_id for p in cart_products}
    scored = []
    for p in candidates:
        if p.product_id in cart_ids:
            continue
        avg = sum(similarity(c, p) for c in cart_products) / len(cart_products)
        scored.append((avg, p))
    scored.sort(key=lambda sp: sp[0], reverse=True)
    recs = [
        Recommendation.from_product(
            p, reason=FALLBACK_CART_REASON, confidence=min(score / 100, FALLBACK_CART_MAX_CONFIDENCE),
            recommendation_type="complementary", source="fallback",
        )
        for score, p in scored[: max(limit, 0)]
    ]
    logger.info("fallback cart items_in_cart=%s items=%s", len(cart_products), len(recs))
    return recs
