from __future__ import annotations
from typing import Dict, List, Mapping, Sequence, Set, Tuple
import logging

from app.domain.models.product import Product, Recommendation, UserProfile
from app.domain.services.constants import (
    BROWSED_CONFIDENCE,
    BROWSED_REASON,
    BROWSED_REASON_NO_TITLE,
    CARTED_CONFIDENCE,
    CARTED_REASON,
)

logger = logging.getLogger(__name__)


def _history_recs(
    profile: UserProfile,
    products: Mapping[str, Product],
    ranked_by_id: Mapping[str, Recommendation],
) -> Tuple[List[Tuple[float, Recommendation]], List[Tuple[float, Recommendation]]]:
    """(score, recommendation) pairs for browsing and cart history, in profile order."""

    def _tag(pid: str, source: str, fresh: Recommendation) -> Recommendation:
        # A product the model also picked keeps the model's reason
        picked = ranked_by_id.get(pid)
        if picked is not None and picked.source == "model":
            return picked.model_copy(update={"source": source})
        return fresh

    browsed: List[Tuple[float, Recommendation]] = []
    for b in profile.browsed:
        p = products.get(b.product_id)
        if p is None:
            continue
        title = b.title or p.title
        reason = BROWSED_REASON.format(title=title) if title else BROWSED_REASON_NO_TITLE
        rec = Recommendation.from_product(
            p, reason=reason, confidence=BROWSED_CONFIDENCE, recommendation_type="similar", source="time",
        )
        browsed.append((float(b.total_time_seconds), _tag(p.product_id, "time", rec)))

    carted: List[Tuple[float, Recommendation]] = []
    for c in profile.carted:
        p = products.get(c.product_id)
        if p is None:
            continue
        rec = Recommendation.from_product(
            p, reason=CARTED_REASON, confidence=CARTED_CONFIDENCE, recommendation_type="complementary", source="cart",
        )
        carted.append((float(c.count), _tag(p.product_id, "cart", rec)))
    return browsed, carted


def merge_history(
    ranked: Sequence[Recommendation],
    profile: UserProfile,
    products: Mapping[str, Product],
    limit: int,
) -> List[Recommendation]:
    """
    Blend ranked output with the shopper's history.

    1. one guaranteed slot for the top browsed item, then one for the top carted item
    2. history pool (both kinds, by their own score desc) up to limit // 2 history slots
    3. ranked output in its original order
    4. leftover history if still short

    `products` maps candidate ids to catalog products; history ids outside it are ignored.
    """
    if limit <= 0:
        return []
    if not profile.has_history:
        return list(ranked[:limit])

    ranked_by_id: Dict[str, Recommendation] = {r.product_id: r for r in ranked}
    browsed, carted = _history_recs(profile, products, ranked_by_id)

    result: List[Recommendation] = []
    used: Set[str] = set()

    def _add(rec: Recommendation) -> bool:
        if len(result) >= limit or rec.product_id in used:
            return False
        used.add(rec.product_id)
        result.append(rec)
        return True

    # 1) Guaranteed slots
    n_history = 0
    for pool in (browsed, carted):
        for _, rec in pool:
            if rec.product_id not in used:
                if _add(rec):
                    n_history += 1
                break

    # 2) History pool up to half the slots
    pool = sorted(browsed + carted, key=lambda sr: sr[0], reverse=True)
    budget = max(limit // 2, n_history)
    for _, rec in pool:
        if n_history >= budget:
            break
        if _add(rec):
            n_history += 1

    # 3) Ranked output
    for rec in ranked:
        _add(rec)

    # 4) Leftover history
    for _, rec in pool:
        _add(rec)

    logger.info(
        "history_merge limit=%s history_slots=%s ranked_in=%s total=%s",
        limit, sum(1 for r in result if r.source in ("time", "cart")), len(ranked), len(result),
    )
    return result
