"""Product description endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from redis.exceptions import RedisError

from card_studio.api.deps import file_response, get_card_generator, require_product
from card_studio.rate_limit import GENERATION_LIMIT, limiter
from card_studio.schemas.card import DescriptionRequest, DescriptionSave
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.card_generator import MEDIA_TYPES, CardGenerator, artifact_filename, build_info_text

logger = logging.getLogger(__name__)
router = APIRouter(tags=["descriptions"])


@router.post("/generate-description")
@limiter.limit(GENERATION_LIMIT)
async def generate_description(
    request: Request,
    payload: DescriptionRequest = Body(...),
    generator: CardGenerator = Depends(get_card_generator),
):
    """Stored description when present, otherwise Gemini (or the local template)."""
    if not payload.product_id or not payload.product_name:
        raise HTTPException(status_code=400, detail="productId and productName are required")

    product = payload.to_product()
    text, source = await generator.resolve_description(
        product,
        options=payload.options,
        force_regenerate=payload.force_regenerate,
    )
    logger.info("Description for %s served from %s", product.item_id, source)
    return {"success": True, "productId": product.item_id, "description": text, "source": source}


@router.get("/descriptions")
async def list_descriptions(store: CacheStore = Depends(get_cache_store)):
    descriptions = await store.list_descriptions()
    return {"success": True, "count": len(descriptions), "descriptions": descriptions}


@router.post("/descriptions")
async def save_description(
    payload: DescriptionSave,
    store: CacheStore = Depends(get_cache_store),
):
    if not payload.product_id or not payload.description:
        raise HTTPException(status_code=400, detail="productId and description are required")
    try:
        await store.save_description(payload.product_id, payload.description)
    except RedisError as exc:
        logger.error("Failed to save description for %s: %s", payload.product_id, exc)
        raise HTTPException(status_code=500, detail="Failed to save description")
    return {"success": True, "productId": payload.product_id}


@router.get("/download-description/{product_id}")
async def download_description(
    product_id: str,
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
):
    product = await require_product(store, product_id)
    text, _ = await generator.resolve_description(product)
    return file_response(
        build_info_text(product, text).encode("utf-8"),
        MEDIA_TYPES["txt"],
        artifact_filename(product.item_id, "info", "txt"),
    )
