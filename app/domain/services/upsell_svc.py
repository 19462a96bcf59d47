# app/domain/services/upsell_svc.py
"""
Public entry points of the upsell engine.

    cache -> (subject | candidates | profile) -> prompt -> LLM -> parse -> rank & pad
          or fallback on any model-chain failure
    -> history merge -> engagement boost -> cache store

Everything the engine touches is injected through UpsellDeps.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.core.config import Settings
from app.domain.errors import ParseError, RemoteError, SubjectNotFoundError, UpsellError
from app.domain.models.product import CachedRecommendations, Candidate, Product, Recommendation, UserProfile
from app.domain.repositories.reco_cache_repo import cache_key
from app.domain.services.constants import CONTEXT_CART, CONTEXT_PRODUCT
from app.domain.services.engagement import boost_by_engagement
from app.domain.services.fallback import fallback_for_cart, fallback_for_product, last_resort
from app.domain.services.history_merge import merge_history
from app.domain.services.profile_svc import build_profile, restrict_profile
from app.domain.services.prompts import build_cart_prompt, build_product_prompt, system_prompt
from app.domain.services.ranking import rank_and_pad
from app.domain.services.response_parser import parse_recommendations
from app.domain.services.type_matcher import annotate, tokenize, tokenize_many
from app.utils.ids import normalize_product_id, normalize_product_ids

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    default_limit: int = 4
    max_limit: int = 20
    llm_timeout_s: float = 15.0
    cache_enabled: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
            llm_timeout_s=settings.llm_timeout_s,
            cache_enabled=settings.reco_cache_enabled,
        )


@dataclass
class UpsellDeps:
    catalog: Any   # get_by_product_id, list_by_shop
    history: Any   # browsing_profile, cart_profile, engagement_stats
    llm: Any       # configured, generate
    cache: Any     # async get / set / delete
    config: EngineConfig = EngineConfig()


def _clamp_limit(limit: Optional[int], config: EngineConfig) -> int:
    if limit is None:
        return config.default_limit
    return max(0, min(int(limit), config.max_limit))


async def _cached(deps: UpsellDeps, key: str, limit: int) -> Optional[List[Recommendation]]:
    if not deps.config.cache_enabled:
        return None
    entry = await deps.cache.get(key)
    # an entry computed for a smaller limit cannot answer a bigger request
    if entry is None or entry.limit < limit:
        return None
    logger.info("upsell cache_hit key=%s items=%s", key, min(len(entry.items), limit))
    return list(entry.items[:limit])


async def _store(deps: UpsellDeps, key: str, limit: int, items: Sequence[Recommendation]) -> None:
    if deps.config.cache_enabled:
        await deps.cache.set(key, CachedRecommendations(limit=limit, items=list(items)))


async def _ask_model(
    deps: UpsellDeps,
    *,
    context: str,
    prompt: str,
    candidates: Sequence[Candidate],
) -> List[Recommendation]:
    """One LLM round-trip, parsed. Raises RemoteError / ParseError."""
    if not deps.llm.configured:
        raise RemoteError("LLM API key is not configured")
    t0 = time.perf_counter()
    try:
        text = await asyncio.wait_for(
            deps.llm.generate(prompt, system=system_prompt(context)),
            timeout=deps.config.llm_timeout_s,
        )
    except asyncio.TimeoutError as e:
        raise RemoteError(f"LLM call timed out after {deps.config.llm_timeout_s}s") from e
    logger.info("upsell llm context=%s time=%.3fs chars=%s", context, time.perf_counter() - t0, len(text or ""))
    parsed = parse_recommendations(text, candidates)
    if not parsed:
        raise ParseError("LLM response had no usable recommendations")
    return parsed


async def _load(deps: UpsellDeps, shop: str, subject_ids: List[str], user_id: Optional[str]):
    """Subject(s), shop products and shopper profile, fetched concurrently."""
    subjects, products, profile = await asyncio.gather(
        asyncio.gather(*(deps.catalog.get_by_product_id(shop, pid) for pid in subject_ids)),
        deps.catalog.list_by_shop(shop),
        build_profile(deps.history, user_id=user_id, shop=shop, exclude=subject_ids),
    )
    return [s for s in subjects if s is not None], products, profile


async def _finish(
    deps: UpsellDeps,
    *,
    shop: str,
    key: str,
    limit: int,
    ranked: List[Recommendation],
    profile: UserProfile,
    others: Sequence[Product],
) -> List[Recommendation]:
    by_id: Dict[str, Product] = {p.product_id: p for p in others}
    merged = merge_history(ranked, profile, by_id, limit)
    final = await boost_by_engagement(merged, deps.history, shop)
    await _store(deps, key, limit, final)
    return final


async def recommend_for_product(
    deps: UpsellDeps,
    shop: str,
    product_id: Any,
    limit: Optional[int] = None,
    user_id: Optional[str] = None,
) -> List[Recommendation]:
    """
    Upsell recommendations for one viewed product.
    Never raises for model or history failures; an unknown product yields
    the first shop products instead.
    """
    pid = normalize_product_id(product_id)
    if not pid:
        raise ValueError(f"invalid product id: {product_id!r}")
    limit = _clamp_limit(limit, deps.config)
    if limit == 0:
        return []

    key = cache_key(CONTEXT_PRODUCT, shop, [pid], user_id)
    if (hit := await _cached(deps, key, limit)) is not None:
        return hit

    t0 = time.perf_counter()
    subjects, products, profile = await _load(deps, shop, [pid], user_id)
    others = [p for p in products if p.product_id != pid]

    if not subjects:
        logger.warning("upsell subject not found shop=%s product_id=%s; using last-resort tier", shop, pid)
        return last_resort(others, limit)
    subject = subjects[0]

    tokens = tokenize(subject.title)
    candidates = annotate(others, tokens)
    if not candidates:
        logger.info("upsell no candidates shop=%s product_id=%s", shop, pid)
        return []
    profile = restrict_profile(profile, [c.product.product_id for c in candidates])

    try:
        prompt = build_product_prompt(subject, candidates, limit, profile)
        parsed = await _ask_model(deps, context=CONTEXT_PRODUCT, prompt=prompt, candidates=candidates)
        ranked = rank_and_pad(
            parsed, candidates, tokens, limit,
            has_profile=profile.has_history,
            subject_categories=[subject.category],
        )
        source = "model"
    except UpsellError as e:
        logger.warning("upsell model path failed product_id=%s err=%s; using fallback", pid, e)
        ranked, source = fallback_for_product(subject, others, limit), "fallback"
    except Exception as e:
        logger.warning("upsell model path error product_id=%s type=%s err=%s; using fallback", pid, type(e).__name__, e)
        ranked, source = fallback_for_product(subject, others, limit), "fallback"

    final = await _finish(deps, shop=shop, key=key, limit=limit, ranked=ranked, profile=profile, others=others)
    logger.info(
        "upsell product shop=%s product_id=%s user_id=%s path=%s items=%s time=%.3fs",
        shop, pid, user_id or "anonymous", source, len(final), time.perf_counter() - t0,
    )
    return final


async def recommend_for_cart(
    deps: UpsellDeps,
    shop: str,
    cart_product_ids: Iterable[Any],
    limit: Optional[int] = None,
    user_id: Optional[str] = None,
) -> List[Recommendation]:
    """
    Upsell recommendations for a whole cart.
    Raises SubjectNotFoundError when none of the cart products exist in the catalog.
    """
    ids = normalize_product_ids(cart_product_ids)
    limit = _clamp_limit(limit, deps.config)
    if not ids or limit == 0:
        return []

    key = cache_key(CONTEXT_CART, shop, ids, user_id)
    if (hit := await _cached(deps, key, limit)) is not None:
        return hit

    t0 = time.perf_counter()
    cart_products, products, profile = await _load(deps, shop, ids, user_id)
    if not cart_products:
        raise SubjectNotFoundError(shop, ids)

    cart_ids = set(ids)
    others = [p for p in products if p.product_id not in cart_ids]
    item_tokens = [tokenize(p.title) for p in cart_products]
    tokens = tokenize_many(p.title for p in cart_products)
    candidates = annotate(others, tokens)
    if not candidates:
        logger.info("upsell no candidates shop=%s cart=%s", shop, ids)
        return []
    profile = restrict_profile(profile, [c.product.product_id for c in candidates])

    try:
        prompt = build_cart_prompt(cart_products, candidates, limit, profile)
        parsed = await _ask_model(deps, context=CONTEXT_CART, prompt=prompt, candidates=candidates)
        ranked = rank_and_pad(
            parsed, candidates, tokens, limit,
            has_profile=profile.has_history,
            item_token_sets=item_tokens,
            subject_categories=[p.category for p in cart_products],
        )
        source = "model"
    except UpsellError as e:
        logger.warning("upsell model path failed cart=%s err=%s; using fallback", ids, e)
        ranked, source = fallback_for_cart(cart_products, others, limit), "fallback"
    except Exception as e:
        logger.warning("upsell model path error cart=%s type=%s err=%s; using fallback", ids, type(e).__name__, e)
        ranked, source = fallback_for_cart(cart_products, others, limit), "fallback"

    final = await _finish(deps, shop=shop, key=key, limit=limit, ranked=ranked, profile=profile, others=others)
    logger.info(
        "upsell cart shop=%s items_in_cart=%s user_id=%s path=%s items=%s time=%.3fs",
        shop, len(cart_products), user_id or "anonymous", source, len(final), time.perf_counter() - t0,
    )
    return final


async def invalidate(deps: UpsellDeps, shop: str, product_id: Any, user_id: Optional[str]) -> bool:
    """Drop the cached product-context entry for (shop, product, user)."""
    pid = normalize_product_id(product_id)
    if not pid:
        return False
    dropped = await deps.cache.delete(cache_key(CONTEXT_PRODUCT, shop, [pid], user_id))
    logger.info("upsell cache invalidated shop=%s product_id=%s user_id=%s dropped=%s", shop, pid, user_id or "anonymous", dropped)
    return bool(dropped)
