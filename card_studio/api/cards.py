"""Card rendering endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import ValidationError

from card_studio.api.deps import file_response, get_card_generator, require_product
from card_studio.rate_limit import GENERATION_LIMIT, limiter
from card_studio.schemas.card import AnimatedCardRequest, CardOptions, CardRequest
from card_studio.schemas.product import Product
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.card_generator import ArtifactGenerationError, CardGenerator

logger = logging.getLogger(__name__)
router = APIRouter(tags=["cards"])

_IMAGE_FORMATS = {"png": "png", "jpeg": "jpeg", "jpg": "jpeg", "html": "html"}


@router.post("/generate-product-card")
@limiter.limit(GENERATION_LIMIT)
async def generate_product_card(
    request: Request,
    payload: CardRequest = Body(...),
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
):
    """Card HTML for an inline product payload or a cached product id."""
    if payload.product:
        try:
            product = Product.model_validate(payload.product)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid product: {exc.errors()[0]['msg']}")
    elif payload.product_id:
        product = await require_product(store, payload.product_id)
    else:
        raise HTTPException(status_code=400, detail="product or productId is required")

    text, source = await generator.resolve_description(product, custom=payload.description)
    try:
        html = generator.render_html(product, text, payload.options)
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return {
        "success": True,
        "html": html,
        "productId": product.item_id,
        "template": payload.options.template,
        "description": text,
        "descriptionSource": source,
    }


@router.get("/render-card/{image_format}/{product_id}")
@limiter.limit(GENERATION_LIMIT)
async def render_card(
    request: Request,
    image_format: str,
    product_id: str,
    template: str = Query("default"),
    color_scheme: str = Query("dark", alias="colorScheme"),
    style: str = Query("portrait"),
    accent_color: Optional[str] = Query(None, alias="accentColor"),
    show_badge: bool = Query(True, alias="showBadge"),
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
):
    fmt = _IMAGE_FORMATS.get(image_format.lower())
    if fmt is None:
        raise HTTPException(status_code=400, detail="Format must be png, jpeg or html")

    options_data = {
        "template": template,
        "format": style,
        "colorScheme": color_scheme,
        "showBadge": show_badge,
        "imageFormat": fmt,
    }
    if accent_color:
        options_data["accentColor"] = accent_color
    try:
        options = CardOptions.model_validate(options_data)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {error['msg']}")

    product = await require_product(store, product_id)
    try:
        artifact = await generator.generate_card(product, options)
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    return file_response(artifact.content, artifact.media_type, artifact.filename, inline=True)


@router.get("/download-card-package/{product_id}")
@limiter.limit(GENERATION_LIMIT)
async def download_card_package(
    request: Request,
    product_id: str,
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
):
    product = await require_product(store, product_id)
    try:
        artifact = await generator.build_card_package(product)
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return file_response(artifact.content, artifact.media_type, artifact.filename)


@router.post("/generate-animated-card")
@limiter.limit(GENERATION_LIMIT)
async def generate_animated_card(
    request: Request,
    payload: AnimatedCardRequest = Body(...),
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
):
    """Looping GIF of the product images."""
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    if payload.images is not None and len(payload.images) < 2:
        raise HTTPException(status_code=400, detail="At least 2 images are required")
    product = await require_product(store, payload.product_id)

    try:
        artifact = await generator.generate_animated_card(
            product,
            image_urls=payload.images,
            seconds_per_image=payload.seconds_per_image,
            style=payload.style,
        )
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return file_response(artifact.content, artifact.media_type, artifact.filename)
