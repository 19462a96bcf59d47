# app/api/v1/routers/upsell.py
from typing import Annotated, List, Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import upsell_deps
from app.api.v1.schemas.upsell import CartUpsellIn, UpsellItemOut, UpsellOut
from app.domain.errors import SubjectNotFoundError
from app.domain.models.product import Recommendation
from app.domain.services.upsell_svc import UpsellDeps, recommend_for_cart, recommend_for_product
from app.utils.ids import normalize_product_id, normalize_product_ids

router = APIRouter(tags=["upsell"])

DepsDep = Annotated[UpsellDeps, Depends(upsell_deps)]


def _items(recs: Sequence[Recommendation]) -> List[UpsellItemOut]:
    return [UpsellItemOut.model_validate(r.model_dump()) for r in recs]


@router.get("/products/{product_id:path}/upsell", response_model=UpsellOut)
async def product_upsell(
    deps: DepsDep,
    product_id: str,
    shop: str = Query(..., min_length=1),
    user_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=20),
) -> UpsellOut:
    """Upsells for a product page. `product_id` may be numeric or a Shopify GID."""
    pid = normalize_product_id(product_id)
    if not pid or not pid.isdigit():
        raise HTTPException(status_code=400, detail=f"Invalid product id: {product_id}")
    items = await recommend_for_product(deps, shop, pid, limit, user_id=user_id)
    return UpsellOut(shop=shop, subject_ids=[pid], user_id=user_id, items=_items(items), count=len(items))


@router.post("/cart/upsell", response_model=UpsellOut)
async def cart_upsell(deps: DepsDep, body: CartUpsellIn) -> UpsellOut:
    """Upsells for a cart; an empty cart yields an empty list."""
    if not body.product_ids:
        return UpsellOut(shop=body.shop, subject_ids=[], user_id=body.user_id, items=[], count=0)
    ids = [pid for pid in normalize_product_ids(body.product_ids) if pid.isdigit()]
    if not ids:
        raise HTTPException(status_code=400, detail="No valid product ids in cart")
    try:
        items = await recommend_for_cart(deps, body.shop, ids, body.limit, user_id=body.user_id)
    except SubjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return UpsellOut(shop=body.shop, subject_ids=ids, user_id=body.user_id, items=_items(items), count=len(items))
