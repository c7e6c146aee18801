"""Product schemas - normalized Shopee affiliate offers"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Optional


class Product(BaseModel):
    """Normalized product record.

    Serialized with the camelCase keys used by the affiliate API
    (``model_dump(by_alias=True)``). Either ``priceDiscountRate`` or
    ``calculatedOriginalPrice`` may be supplied; the other is derived.
    """

    item_id: str = Field(..., alias="itemId")
    product_name: str = Field(..., alias="productName")
    price: float = 0.0
    original_price: Optional[float] = Field(None, alias="calculatedOriginalPrice")
    price_discount_rate: float = Field(0.0, alias="priceDiscountRate", ge=0, lt=100)
    sales: int = 0
    rating_star: float = Field(0.0, alias="ratingStar")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    images: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)
    offer_link: Optional[str] = Field(None, alias="offerLink")
    shop_id: Optional[str] = Field(None, alias="shopId")
    shop_name: Optional[str] = Field(None, alias="shopName")
    category_id: Optional[str] = Field(None, alias="categoryId")
    category_name: Optional[str] = Field(None, alias="categoryName")
    commission_rate: Optional[float] = Field(None, alias="commissionRate")
    free_shipping: bool = Field(False, alias="freeShipping")
    description: Optional[str] = None
    attributes: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True

    @field_validator("item_id", "shop_id", "category_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Shopee returns numeric ids; keep them as strings."""
        if v is None:
            return v
        return str(v)

    @field_validator("price", "price_discount_rate", "sales", "rating_star", mode="before")
    @classmethod
    def null_to_zero(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0
        return v

    @field_validator("sales", mode="before")
    @classmethod
    def coerce_sales(cls, v: Any) -> Any:
        if isinstance(v, float):
            return int(v)
        return v

    @model_validator(mode="after")
    def derive_prices(self) -> "Product":
        if self.original_price is None and self.price_discount_rate > 0 and self.price > 0:
            self.original_price = round(self.price / (1 - self.price_discount_rate / 100), 2)
        elif (
            self.price_discount_rate == 0
            and self.original_price is not None
            and self.original_price > self.price > 0
        ):
            self.price_discount_rate = round(
                (self.original_price - self.price) / self.original_price * 100, 2
            )
        if self.image_url and not self.images:
            self.images = [self.image_url]
        return self

    @property
    def discount_percentage(self) -> int:
        """Whole-number discount shown on cards (0 when not discounted)."""
        return int(round(self.price_discount_rate))

    @property
    def has_discount(self) -> bool:
        return self.discount_percentage > 0

    @classmethod
    def from_shopee(cls, node: dict[str, Any]) -> "Product":
        """Build a product from a ``productOfferV2`` / ``productDetailV2`` node."""
        data = dict(node)
        if not data.get("price") and data.get("priceMin"):
            data["price"] = data["priceMin"]
        if data.get("productLink") and not data.get("offerLink"):
            data["offerLink"] = data["productLink"]
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ProductMedia(BaseModel):
    """Media descriptor for one product.

    ``error`` is set instead of raising when the upstream lookup fails, so
    callers always get an explicit answer.
    """

    product_id: str = Field(..., alias="productId")
    name: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    videos: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    class Config:
        populate_by_name = True
