"""Cache maintenance and processed-id endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, Field
from redis.exceptions import RedisError

from card_studio.api.deps import get_video_manager
from card_studio.schemas.video import CleanupVideosRequest
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.video_manager import VideoManager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["cache"])


class ProcessedIdRequest(BaseModel):
    product_id: Optional[str] = Field(None, alias="productId")

    class Config:
        populate_by_name = True


def _redis_failure(action: str, exc: RedisError) -> HTTPException:
    logger.error("Cache %s failed: %s", action, exc)
    return HTTPException(status_code=500, detail=f"Cache {action} failed: {exc}")


@router.get("/cache/status")
async def cache_status(store: CacheStore = Depends(get_cache_store)):
    try:
        status = await store.status()
    except RedisError as exc:
        raise _redis_failure("status", exc)
    return {"success": True, **status}


@router.post("/cache/cleanup")
async def cache_cleanup(store: CacheStore = Depends(get_cache_store)):
    """Drop products, processed ids and descriptions."""
    try:
        result = await store.cleanup()
    except RedisError as exc:
        raise _redis_failure("cleanup", exc)
    return {"success": True, **result}


@router.post("/cache/cleanup-videos")
async def cleanup_videos(
    payload: Optional[CleanupVideosRequest] = Body(None),
    videos: VideoManager = Depends(get_video_manager),
):
    payload = payload or CleanupVideosRequest()
    try:
        result = await videos.cleanup_temp_files(older_than_hours=payload.older_than, dry_run=payload.dry_run)
    except RedisError as exc:
        raise _redis_failure("video cleanup", exc)
    return {"success": True, **result}


@router.post("/cache/clear-all")
async def clear_all(store: CacheStore = Depends(get_cache_store)):
    try:
        deleted = await store.clear_all()
    except RedisError as exc:
        raise _redis_failure("clear", exc)
    return {"success": True, "deletedKeys": deleted}


@router.get("/processed-ids")
async def list_processed_ids(store: CacheStore = Depends(get_cache_store)):
    ids = await store.processed_ids()
    return {"success": True, "count": len(ids), "processedIds": ids}


@router.post("/processed-ids")
async def mark_processed(
    payload: ProcessedIdRequest,
    store: CacheStore = Depends(get_cache_store),
):
    """Idempotent: marking an id twice keeps a single entry."""
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    try:
        added = await store.mark_processed(payload.product_id)
    except RedisError as exc:
        raise _redis_failure("update", exc)
    return {"success": True, "productId": payload.product_id, "added": added}


@router.post("/validate-id")
async def validate_id(
    payload: ProcessedIdRequest,
    store: CacheStore = Depends(get_cache_store),
):
    """Whether a product is still available for generation (not yet processed)."""
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="Product ID is required")
    if await store.is_processed(payload.product_id):
        return {
            "success": False,
            "valid": False,
            "productId": payload.product_id,
            "message": "This product has already been processed",
        }
    return {
        "success": True,
        "valid": True,
        "productId": payload.product_id,
        "message": "Product ID is valid for processing",
    }


@router.put("/validate-id")
async def claim_id(
    payload: ProcessedIdRequest,
    store: CacheStore = Depends(get_cache_store),
):
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="Product ID is required")
    try:
        await store.mark_processed(payload.product_id)
    except RedisError as exc:
        raise _redis_failure("update", exc)
    return {"success": True, "productId": payload.product_id, "message": "Product ID marked as processed"}
