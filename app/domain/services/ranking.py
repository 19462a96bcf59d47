# app/domain/services/ranking.py
"""
Ranking & padding: model output first, then progressively blunter heuristics.

    filter   -> parsed picks of the same type (no profile only)
    tier 1   -> parsed picks that the filter removed
    tier 2   -> unused same-type candidates          (0.65)
    tier 2b  -> unused candidates of the same category (0.55)
    tier 3   -> anything left                        (0.50)

The result is truncated to `limit` and never repeats a product id.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Set
import logging

from app.domain.models.product import Candidate, Recommendation
from app.domain.services.constants import (
    ANY_CONFIDENCE,
    ANY_REASON,
    SAME_CATEGORY_CONFIDENCE,
    SAME_CATEGORY_REASON,
    SAME_TYPE_CONFIDENCE,
    SAME_TYPE_REASON,
)
from app.domain.services.type_matcher import is_same_type

logger = logging.getLogger(__name__)


def _round_robin(groups: Sequence[Sequence[Candidate]]) -> List[Candidate]:
    """Interleave groups (one per cart item type), skipping repeats."""
    out: List[Candidate] = []
    seen: Set[str] = set()
    depth = max((len(g) for g in groups), default=0)
    for i in range(depth):
        for g in groups:
            if i < len(g) and g[i].product.product_id not in seen:
                seen.add(g[i].product.product_id)
                out.append(g[i])
    return out


def _same_type_pool(
    candidates: Sequence[Candidate],
    item_token_sets: Optional[Sequence[Set[str]]],
) -> List[Candidate]:
    same = [c for c in candidates if c.same_type]
    if not item_token_sets or len(item_token_sets) < 2:
        return same
    # Cart: cover every cart item's type before taking seconds of any one type
    groups = [[c for c in same if tokens and is_same_type(tokens, c.product.title)] for tokens in item_token_sets]
    spread = _round_robin([g for g in groups if g])
    spread_ids = {c.product.product_id for c in spread}
    return spread + [c for c in same if c.product.product_id not in spread_ids]


def rank_and_pad(
    parsed: Sequence[Recommendation],
    candidates: Sequence[Candidate],
    reference_tokens: Set[str],
    limit: int,
    *,
    has_profile: bool,
    item_token_sets: Optional[Sequence[Set[str]]] = None,
    subject_categories: Iterable[str] = (),
) -> List[Recommendation]:
    """
    Merge parsed model output with padding tiers until `limit` is reached.

    - `candidates` carry the same_type flag computed from `reference_tokens`.
    - `item_token_sets` (cart only) are the per-item token sets used to spread
      tier-2 picks across the cart's product types.
    - `subject_categories` feed the same-category tier.
    """
    if limit <= 0:
        return []

    same_type_ids = {c.product.product_id for c in candidates if c.same_type}
    result: List[Recommendation] = []
    used: Set[str] = set()

    def _add(rec: Recommendation) -> None:
        if len(result) < limit and rec.product_id not in used:
            used.add(rec.product_id)
            result.append(rec)

    # 1) Filter
    if has_profile or not reference_tokens:
        primary = list(parsed)
    else:
        primary = [r for r in parsed if r.product_id in same_type_ids] or list(parsed)
    for rec in primary:
        _add(rec)
    n_model = len(result)

    # 2) Tier 1: model picks removed by the filter
    for rec in parsed:
        _add(rec)
    n_tier1 = len(result) - n_model

    # 3) Tier 2: same type
    for c in _same_type_pool(candidates, item_token_sets):
        if len(result) >= limit:
            break
        _add(Recommendation.from_product(
            c.product, reason=SAME_TYPE_REASON, confidence=SAME_TYPE_CONFIDENCE,
            recommendation_type="similar", source="fallback",
        ))

    # 4) Tier 2b: same category
    categories = {c.strip().lower() for c in subject_categories if c and c.strip()}
    if categories:
        for c in candidates:
            if len(result) >= limit:
                break
            if c.product.category.strip().lower() in categories:
                _add(Recommendation.from_product(
                    c.product, reason=SAME_CATEGORY_REASON, confidence=SAME_CATEGORY_CONFIDENCE,
                    recommendation_type="similar", source="fallback",
                ))

    # 5) Tier 3: anything
    for c in candidates:
        if len(result) >= limit:
            break
        _add(Recommendation.from_product(
            c.product, reason=ANY_REASON, confidence=ANY_CONFIDENCE,
            recommendation_type="complementary", source="fallback",
        ))

    logger.info(
        "ranking limit=%s model=%s tier1=%s padded=%s total=%s profile=%s",
        limit, n_model, n_tier1, len(result) - n_model - n_tier1, len(result), has_profile,
    )
    return result
