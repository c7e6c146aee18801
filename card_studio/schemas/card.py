"""Card, description and video request schemas"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Literal, Optional

from card_studio.schemas.product import Product

Tone = Literal["youthful", "humorous", "persuasive", "professional", "casual"]
TemplateName = Literal["default", "modern", "minimal", "bold"]
CardFormat = Literal["portrait", "square", "landscape"]

# Pixel dimensions per card/video format
FORMAT_DIMENSIONS: dict[str, tuple[int, int]] = {
    "portrait": (1080, 1920),
    "square": (1080, 1080),
    "landscape": (1920, 1080),
}


class TextGenerationOptions(BaseModel):
    """Style options for generated product descriptions"""

    tone: list[Tone] = Field(default_factory=lambda: ["youthful", "persuasive"])
    max_length: int = Field(300, alias="maxLength", ge=50, le=2000)
    include_emojis: bool = Field(True, alias="includeEmojis")
    include_hashtags: bool = Field(True, alias="includeHashtags")
    highlight_discount: bool = Field(True, alias="highlightDiscount")
    highlight_features: bool = Field(True, alias="highlightFeatures")
    highlight_urgency: bool = Field(True, alias="highlightUrgency")

    class Config:
        populate_by_name = True

    @field_validator("tone", mode="before")
    @classmethod
    def single_tone_to_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v


class CardOptions(BaseModel):
    """Rendering options for a product card"""

    template: TemplateName = "default"
    format: CardFormat = "portrait"
    color_scheme: Literal["light", "dark"] = Field("dark", alias="colorScheme")
    accent_color: str = Field("#ee4d2d", alias="accentColor", pattern=r"^#[0-9a-fA-F]{6}$")
    show_badge: bool = Field(True, alias="showBadge")
    image_format: Literal["png", "jpeg", "html"] = Field("png", alias="imageFormat")

    class Config:
        populate_by_name = True

    @property
    def dimensions(self) -> tuple[int, int]:
        return FORMAT_DIMENSIONS[self.format]


class DescriptionRequest(BaseModel):
    """Body of POST /generate-description.

    ``productId`` and ``productName`` are checked by the route so a missing
    value answers 400 rather than a validation 422.
    """

    product_id: Optional[str] = Field(None, alias="productId")
    product_name: Optional[str] = Field(None, alias="productName")
    price: Optional[float] = None
    price_discount_rate: Optional[float] = Field(None, alias="priceDiscountRate", ge=0, lt=100)
    sales: Optional[int] = None
    rating_star: Optional[float] = Field(None, alias="ratingStar")
    shop_name: Optional[str] = Field(None, alias="shopName")
    options: Optional[TextGenerationOptions] = None
    force_regenerate: bool = Field(False, alias="forceRegenerate")

    class Config:
        populate_by_name = True

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_product_id(cls, v: Any) -> Any:
        if v is None:
            return v
        return str(v)

    def to_product(self) -> Product:
        return Product(
            itemId=self.product_id,
            productName=self.product_name,
            price=self.price or 0,
            priceDiscountRate=self.price_discount_rate or 0,
            sales=self.sales or 0,
            ratingStar=self.rating_star or 0,
            shopName=self.shop_name,
        )


class DescriptionSave(BaseModel):
    """Body of POST /descriptions"""

    product_id: Optional[str] = Field(None, alias="productId")
    description: Optional[str] = None

    class Config:
        populate_by_name = True


class CardRequest(BaseModel):
    """Body of POST /generate-product-card.

    Either a full ``product`` payload or a cached ``productId``.
    """

    product: Optional[dict[str, Any]] = None
    product_id: Optional[str] = Field(None, alias="productId")
    options: CardOptions = Field(default_factory=CardOptions)
    description: Optional[str] = None

    class Config:
        populate_by_name = True


class VideoRequest(BaseModel):
    """Body of POST /generate-product-video"""

    product_id: Optional[str] = Field(None, alias="productId")
    duration: float = Field(5.0, gt=0, le=60)
    style: CardFormat = "portrait"
    template: TemplateName = "default"

    class Config:
        populate_by_name = True


class SlideshowRequest(BaseModel):
    """Body of POST /generate-slideshow"""

    product_id: Optional[str] = Field(None, alias="productId")
    seconds_per_image: float = Field(2.0, alias="secondsPerImage", gt=0, le=10)
    style: CardFormat = "portrait"

    class Config:
        populate_by_name = True


class AnimatedCardRequest(BaseModel):
    """Body of POST /generate-animated-card.

    ``images`` overrides the product's own media; when given it needs at
    least two frames.
    """

    product_id: Optional[str] = Field(None, alias="productId")
    images: Optional[list[str]] = None
    seconds_per_image: float = Field(1.0, alias="secondsPerImage", gt=0, le=10)
    style: CardFormat = "square"

    class Config:
        populate_by_name = True
