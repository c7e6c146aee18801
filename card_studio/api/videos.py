"""Video generation and registry endpoints."""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from redis.exceptions import RedisError

from card_studio.api.deps import (
    file_response,
    get_card_generator,
    get_connector,
    get_video_manager,
    require_product,
)
from card_studio.config import get_settings
from card_studio.rate_limit import GENERATION_LIMIT, limiter
from card_studio.schemas.card import SlideshowRequest, VideoRequest
from card_studio.schemas.video import SaveVideoRequest, VideoIdRequest
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.card_generator import (
    MEDIA_TYPES,
    ArtifactGenerationError,
    CardGenerator,
    GeneratedArtifact,
)
from card_studio.services.shopee_connector import ShopeeAffiliateConnector
from card_studio.services.video_manager import VideoManager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["videos"])

LOCAL_FILES_DISABLED = "Local file downloads are not available in serverless mode"
INVALID_VIDEO_PATH = "videoPath must be inside the output or temp directory"


async def _store_video(
    artifact: GeneratedArtifact,
    duration: float,
    generator: CardGenerator,
    videos: VideoManager,
):
    """Persist the MP4 (blob or OUTPUT_DIR) and register it. Returns the record."""
    settings = get_settings()
    location = {}
    if generator.blob.enabled or not settings.VERCEL:
        try:
            location = await generator.persist_artifact(artifact, folder="videos")
        except (ArtifactGenerationError, OSError) as exc:
            logger.warning("Could not persist video for %s: %s", artifact.product_id, exc)
    try:
        return await videos.register_video(
            artifact.product_id,
            duration=duration,
            blob_url=location.get("url"),
            video_path=location.get("path"),
        )
    except RedisError as exc:
        logger.warning("Could not register video for %s: %s", artifact.product_id, exc)
        return None


def _video_response(artifact: GeneratedArtifact, record) -> object:
    headers = {"X-Video-Id": record.id} if record is not None else None
    return file_response(artifact.content, artifact.media_type, artifact.filename, headers=headers)


def _local_file(path_value: str, videos: VideoManager) -> Path:
    """Resolve a download path inside OUTPUT_DIR or TEMP_DIR (403 outside, 404 missing)."""
    resolved = videos.local_path(path_value)
    if resolved is None:
        raise HTTPException(status_code=403, detail="Access to this path is not allowed")
    if not resolved.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return resolved


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


@router.post("/generate-product-video")
@limiter.limit(GENERATION_LIMIT)
async def generate_product_video(
    request: Request,
    payload: VideoRequest = Body(...),
    store: CacheStore = Depends(get_cache_store),
    generator: CardGenerator = Depends(get_card_generator),
    videos: VideoManager = Depends(get_video_manager),
):
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    product = await require_product(store, payload.product_id)

    try:
        artifact = await generator.generate_video(
            product, duration=payload.duration, style=payload.style, template=payload.template
        )
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    record = await _store_video(artifact, payload.duration, generator, videos)
    return _video_response(artifact, record)


@router.post("/generate-slideshow")
@limiter.limit(GENERATION_LIMIT)
async def generate_slideshow(
    request: Request,
    payload: SlideshowRequest = Body(...),
    store: CacheStore = Depends(get_cache_store),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
    generator: CardGenerator = Depends(get_card_generator),
    videos: VideoManager = Depends(get_video_manager),
):
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    product = await require_product(store, payload.product_id)

    image_urls = None
    if connector is not None:
        media = await connector.get_product_media(product.item_id)
        if media.error is None and media.images:
            image_urls = media.images
        else:
            logger.info("Using cached images for %s slideshow: %s", product.item_id, media.error)

    try:
        artifact = await generator.generate_slideshow(
            product,
            image_urls=image_urls,
            seconds_per_image=payload.seconds_per_image,
            style=payload.style,
        )
    except ArtifactGenerationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    record = await _store_video(artifact, artifact.extra["duration"], generator, videos)
    return _video_response(artifact, record)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@router.get("/videos")
async def list_videos(store: CacheStore = Depends(get_cache_store)):
    records = await store.list_videos()
    return {
        "success": True,
        "count": len(records),
        "videos": [r.model_dump(by_alias=True) for r in records],
    }


@router.post("/save-video")
async def save_video(
    payload: SaveVideoRequest,
    videos: VideoManager = Depends(get_video_manager),
):
    if not payload.product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    if payload.video_path and videos.local_path(payload.video_path) is None:
        raise HTTPException(status_code=400, detail=INVALID_VIDEO_PATH)
    try:
        record = await videos.register_video(
            payload.product_id,
            duration=payload.duration,
            blob_url=payload.blob_url,
            video_path=payload.video_path,
        )
    except RedisError as exc:
        logger.error("Failed to register video for %s: %s", payload.product_id, exc)
        raise HTTPException(status_code=500, detail="Failed to save video")
    return {"success": True, "video": record.model_dump(by_alias=True)}


@router.post("/publish-video")
async def publish_video(
    payload: VideoIdRequest,
    videos: VideoManager = Depends(get_video_manager),
):
    if not payload.video_id:
        raise HTTPException(status_code=400, detail="videoId is required")
    record = await videos.publish_video(payload.video_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Video {payload.video_id} not found")
    return {"success": True, "video": record.model_dump(by_alias=True)}


@router.post("/videos/delete")
async def delete_video(
    payload: VideoIdRequest,
    videos: VideoManager = Depends(get_video_manager),
):
    if not payload.video_id:
        raise HTTPException(status_code=400, detail="videoId is required")
    if not await videos.delete_video(payload.video_id):
        raise HTTPException(status_code=404, detail=f"Video {payload.video_id} not found")
    return {"success": True, "videoId": payload.video_id}


@router.get("/download-video")
async def download_video(
    path: Optional[str] = Query(None),
    videos: VideoManager = Depends(get_video_manager),
):
    if not path:
        raise HTTPException(status_code=400, detail="path is required")
    if get_settings().VERCEL:
        raise HTTPException(status_code=400, detail=LOCAL_FILES_DISABLED)
    file_path = _local_file(path, videos)
    return file_response(file_path.read_bytes(), MEDIA_TYPES["mp4"], file_path.name)


@router.get("/videos/{video_id}")
async def get_video(video_id: str, store: CacheStore = Depends(get_cache_store)):
    record = await store.get_video(video_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Video {video_id} not found")
    return {"success": True, "video": record.model_dump(by_alias=True)}


@router.get("/videos/{video_id}/download")
async def download_registered_video(
    video_id: str,
    store: CacheStore = Depends(get_cache_store),
    videos: VideoManager = Depends(get_video_manager),
):
    if get_settings().VERCEL:
        raise HTTPException(status_code=400, detail=LOCAL_FILES_DISABLED)

    record = await store.get_video(video_id)
    if record is not None and record.video_path:
        candidate = record.video_path
    else:
        candidate = str(videos.output_dir / f"video_{video_id}.mp4")
    file_path = _local_file(candidate, videos)
    return file_response(file_path.read_bytes(), MEDIA_TYPES["mp4"], f"video_{video_id}.mp4")
