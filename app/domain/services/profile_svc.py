# app/domain/services/profile_svc.py
import asyncio
import logging
from typing import Iterable, Optional

from app.domain.models.product import UserProfile

logger = logging.getLogger(__name__)


def restrict_profile(profile: UserProfile, candidate_ids: Iterable[str]) -> UserProfile:
    """Keep only history entries that are still recommendable in this shop."""
    allowed = set(candidate_ids)
    return UserProfile(
        browsed=[b for b in profile.browsed if b.product_id in allowed],
        carted=[c for c in profile.carted if c.product_id in allowed],
    )


async def build_profile(history, *, user_id: Optional[str], shop: str, exclude: Iterable[str] = ()) -> UserProfile:
    """
    Browsing and cart history for one shopper, read concurrently.
    Anonymous shoppers get an empty profile without touching the store.
    """
    if not user_id:
        return UserProfile()
    excluded = list(exclude)
    browsed, carted = await asyncio.gather(
        history.browsing_profile(user_id, shop, exclude=excluded),
        history.cart_profile(user_id, shop, exclude=excluded),
    )
    profile = UserProfile(browsed=browsed or [], carted=carted or [])
    logger.debug("profile user_id=%s browsed=%s carted=%s", user_id, len(profile.browsed), len(profile.carted))
    return profile
