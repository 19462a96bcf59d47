# api/v1/schemas/upsell.py
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from app.domain.models.product import Recommendation


class UpsellItemOut(Recommendation):
    @computed_field
    @property
    def url(self) -> str:
        return f"/products/{self.handle}" if self.handle else ""


class UpsellOut(BaseModel):
    shop: str
    subject_ids: List[str]
    user_id: Optional[str] = None
    items: List[UpsellItemOut]
    count: int


class CartUpsellIn(BaseModel):
    shop: str = Field(min_length=1)
    product_ids: List[str | int] = Field(default_factory=list)
    user_id: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=20)


class TimeTrackingIn(BaseModel):
    shop: str = Field(min_length=1)
    context: Literal["product", "cart"] = "product"
    product_id: Optional[str | int] = None
    product_title: Optional[str] = None
    time_spent_seconds: int = Field(ge=1, le=86400)
    user_id: Optional[str] = None
    cart_product_ids: Optional[List[Any]] = None
    cart_item_count: Optional[int] = Field(None, ge=0)
    cart_total_price: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def _product_needs_id(self):
        if self.context == "product" and self.product_id in (None, ""):
            raise ValueError("product_id is required for product context")
        return self


class TimeTrackingOut(BaseModel):
    success: bool = True
    context: Literal["product", "cart"] = "product"
    product_id: Optional[str] = None
    cache_invalidated: bool = False
