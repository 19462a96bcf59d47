# app/api/v1/routers/tracking.py
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import upsell_deps
from app.api.v1.schemas.upsell import TimeTrackingIn, TimeTrackingOut
from app.domain.services.upsell_svc import UpsellDeps, invalidate
from app.utils.ids import normalize_product_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tracking"])


async def _track_cart(deps: UpsellDeps, body: TimeTrackingIn) -> TimeTrackingOut:
    try:
        await deps.history.record_cart_time(
            shop=body.shop,
            time_spent_seconds=body.time_spent_seconds,
            user_id=body.user_id,
            cart_product_ids=body.cart_product_ids,
            cart_item_count=body.cart_item_count,
            cart_total_price=body.cart_total_price,
        )
    except Exception as e:
        logger.error("tracking cart store failed shop=%s err=%s", body.shop, e)
        raise HTTPException(status_code=500, detail="Failed to record time tracking")
    return TimeTrackingOut(context="cart")


@router.post("/tracking/time", response_model=TimeTrackingOut)
async def track_time(deps: Annotated[UpsellDeps, Depends(upsell_deps)], body: TimeTrackingIn) -> TimeTrackingOut:
    """
    Store one product-page or cart-page dwell time.
    For a product session, a known shopper's cached upsells for that product
    are dropped so the next request reflects the new browsing signal.
    """
    if body.context == "cart":
        return await _track_cart(deps, body)

    pid = normalize_product_id(body.product_id)
    if not pid:
        raise HTTPException(status_code=400, detail=f"Invalid product id: {body.product_id}")
    try:
        await deps.history.record_product_time(
            shop=body.shop,
            product_id=pid,
            time_spent_seconds=body.time_spent_seconds,
            user_id=body.user_id,
            product_title=body.product_title,
        )
    except Exception as e:
        logger.error("tracking store failed shop=%s product_id=%s err=%s", body.shop, pid, e)
        raise HTTPException(status_code=500, detail="Failed to record time tracking")

    invalidated = False
    if body.user_id:
        invalidated = await invalidate(deps, body.shop, pid, body.user_id)
    return TimeTrackingOut(product_id=pid, cache_invalidated=invalidated)
