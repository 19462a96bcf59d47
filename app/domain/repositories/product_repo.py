# app/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional, List
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.domain.models.product import Product
from app.utils.ids import id_query_values

logger = logging.getLogger(__name__)

# Only what Product.from_doc reads
_PROJECTION = {
    "_id": 0,
    "productId": 1,
    "title": 1,
    "handle": 1,
    "status": 1,
    "images": {"$slice": 1},
    "image.src": 1,
    "tags": 1,
    "productType": 1,
    "vendor": 1,
    "aiData.category": 1,
    "aiData.brand": 1,
    "aiData.price": 1,
    "aiData.color": 1,
    "aiData.keywords": 1,
}


class ProductRepo:
    """
    Read-only catalog accessor backed by the 'products' collection.
    Documents are keyed by (shopId, productId); productId may be stored as int or str.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def get_by_product_id(self, shop: str, product_id: str) -> Optional[Product]:
        doc = await self.col.find_one(
            {"shopId": shop, "productId": {"$in": id_query_values(product_id)}},
            _PROJECTION,
        )
        return Product.from_doc(doc) if doc else None

    async def list_by_shop(self, shop: str) -> List[Product]:
        """All products of a shop, in natural (insertion) order."""
        cursor = self.col.find({"shopId": shop}, _PROJECTION)
        products = [Product.from_doc(doc) async for doc in cursor]
        logger.debug("catalog list_by_shop shop=%s n=%s", shop, len(products))
        return [p for p in products if p.product_id]
