from __future__ import annotations
from typing import List, Mapping, Optional, Sequence
import logging

from app.domain.models.product import EngagementStat, Recommendation
from app.domain.services.constants import (
    ENGAGEMENT_MAX_BONUS,
    ENGAGEMENT_MIN_SESSIONS,
    ENGAGEMENT_TIME_CAP_S,
)

logger = logging.getLogger(__name__)


def engagement_bonus(stat: Optional[EngagementStat]) -> float:
    """min(avg, 300) / 300 * 0.15, only for products with at least two sessions."""
    if stat is None or stat.sessions < ENGAGEMENT_MIN_SESSIONS:
        return 0.0
    avg = max(float(stat.avg_time_seconds), 0.0)
    return min(avg, ENGAGEMENT_TIME_CAP_S) / ENGAGEMENT_TIME_CAP_S * ENGAGEMENT_MAX_BONUS


def apply_boost(recs: Sequence[Recommendation], stats: Mapping[str, EngagementStat]) -> List[Recommendation]:
    """Raise confidences by engagement and re-sort (stable) by confidence desc."""
    boosted: List[Recommendation] = []
    for rec in recs:
        bonus = engagement_bonus(stats.get(rec.product_id))
        if bonus <= 0:
            boosted.append(rec)
            continue
        confidence = max(round(min(rec.confidence + bonus, 1.0), 4), rec.confidence)
        boosted.append(rec.model_copy(update={"confidence": confidence, "engagement_boost": round(bonus, 4)}))
    boosted.sort(key=lambda r: r.confidence, reverse=True)
    return boosted


async def boost_by_engagement(recs: Sequence[Recommendation], history, shop: str) -> List[Recommendation]:
    """
    Fetch engagement stats for the final ids and apply the boost.
    Any failure returns the input list untouched.
    """
    if not recs:
        return list(recs)
    try:
        stats = await history.engagement_stats(shop, [r.product_id for r in recs])
    except Exception as e:
        logger.warning("engagement stats failed; skipping boost shop=%s err=%s", shop, e)
        return list(recs)
    out = apply_boost(recs, stats or {})
    logger.info("engagement boosted=%s/%s", sum(1 for r in out if r.engagement_boost), len(out))
    return out
