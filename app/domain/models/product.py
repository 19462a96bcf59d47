from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Any, Dict
from datetime import datetime, timezone

from app.utils.ids import normalize_product_id

RecommendationType = Literal["complementary", "similar", "upgrade", "bundle"]
RecommendationSource = Literal["model", "fallback", "time", "cart"]


class Product(BaseModel):
    product_id: str
    title: str = ""
    handle: Optional[str] = None
    category: str = ""
    brand: str = ""
    price: str = "0"
    color: Optional[str] = None
    tags: List[str] = []
    keywords: List[str] = []
    status: Optional[str] = None
    image_url: Optional[str] = None

    model_config = {"frozen": True}  # immuable = safe

    @property
    def is_active(self) -> bool:
        return (self.status or "active").lower() == "active"

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Product":
        """
        Map a catalog document (as written by the storefront sync) to a Product.
        Enrichment lives under `aiData`; productType/vendor are the raw fallbacks.
        """
        ai = doc.get("aiData") or {}
        tags = doc.get("tags") or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(",") if t.strip()]
        price = ai.get("price", doc.get("price"))
        images = doc.get("images") or []
        image = (images[0] if images and isinstance(images[0], dict) else None) or doc.get("image") or {}
        return cls(
            product_id=normalize_product_id(doc.get("productId")) or "",
            title=doc.get("title") or "",
            handle=doc.get("handle"),
            category=ai.get("category") or doc.get("productType") or "",
            brand=ai.get("brand") or doc.get("vendor") or "",
            price=str(price) if price is not None else "0",
            color=ai.get("color") or None,
            tags=list(tags),
            keywords=list(ai.get("keywords") or []),
            status=doc.get("status"),
            image_url=(image.get("src") if isinstance(image, dict) else None) or None,
        )


class Candidate(BaseModel):
    """A product annotated for a single recommendation computation."""
    product: Product
    same_type: bool = False

    model_config = {"frozen": True}


class Recommendation(BaseModel):
    product_id: str
    title: str
    handle: Optional[str] = None
    image_url: Optional[str] = None
    price: str = "0"
    available: bool = True
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)
    recommendation_type: RecommendationType = "complementary"
    source: Optional[RecommendationSource] = None
    engagement_boost: Optional[float] = None

    model_config = {"frozen": True}  # immuable = safe

    @classmethod
    def from_product(
        cls,
        product: Product,
        *,
        reason: str,
        confidence: float,
        recommendation_type: RecommendationType,
        source: Optional[RecommendationSource] = None,
    ) -> "Recommendation":
        # Only the named catalog fields travel into the response
        return cls(
            product_id=product.product_id,
            title=product.title,
            handle=product.handle,
            image_url=product.image_url,
            price=product.price,
            available=product.is_active,
            reason=reason,
            confidence=min(max(float(confidence), 0.0), 1.0),
            recommendation_type=recommendation_type,
            source=source,
        )


class BrowsedItem(BaseModel):
    product_id: str
    title: Optional[str] = None
    total_time_seconds: float = 0
    model_config = {"frozen": True}


class CartedItem(BaseModel):
    product_id: str
    count: int = 0
    model_config = {"frozen": True}


class UserProfile(BaseModel):
    browsed: List[BrowsedItem] = []
    carted: List[CartedItem] = []
    model_config = {"frozen": True}

    @property
    def has_history(self) -> bool:
        return bool(self.browsed or self.carted)


class EngagementStat(BaseModel):
    product_id: str
    avg_time_seconds: float = 0
    sessions: int = 0
    model_config = {"frozen": True}


class CachedRecommendations(BaseModel):
    limit: int
    items: List[Recommendation]
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model_config = {"frozen": True}
