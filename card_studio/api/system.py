"""Availability of the backing services (Redis, Shopee, Gemini, Blob, Celery, renderers)."""

from __future__ import annotations

import importlib.util
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from card_studio.api.deps import get_blob, get_connector
from card_studio.config import get_settings
from card_studio.services.blob_storage import BlobStorage
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.gemini_client import GeminiError, get_gemini_client
from card_studio.services.renderer import ffmpeg_available
from card_studio.services.shopee_connector import ShopeeAffiliateConnector

logger = logging.getLogger(__name__)
router = APIRouter(tags=["system"])

# Reported by /env-check as set/unset, never with their values
_ENV_FLAGS = (
    "REDIS_URL",
    "SHOPEE_APP_ID",
    "SHOPEE_APP_SECRET",
    "SHOPEE_AFFILIATE_ID",
    "GEMINI_API_KEY",
    "BLOB_READ_WRITE_TOKEN",
    "CELERY_BROKER_URL",
    "SENTRY_DSN",
)


async def _celery_status() -> dict:
    settings = get_settings()
    if not settings.CELERY_BROKER_URL and not settings.REDIS_URL:
        return {"status": "disabled", "worker_alive": False}
    from card_studio.services.celery_health import get_celery_health

    return await run_in_threadpool(get_celery_health)


@router.get("/system-status")
async def system_status(
    store: CacheStore = Depends(get_cache_store),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
    blob: BlobStorage = Depends(get_blob),
):
    settings = get_settings()
    redis_connected = await store.ping()
    return {
        "success": True,
        "services": {
            "redis": {"backend": store.backend, "connected": redis_connected},
            "shopee": {"configured": connector is not None},
            "gemini": {"configured": bool(settings.GEMINI_API_KEY), "models": settings.GEMINI_MODELS},
            "blob": {"enabled": blob.enabled},
            "celery": await _celery_status(),
            "rendering": {
                "ffmpeg": ffmpeg_available(),
                "playwright": importlib.util.find_spec("playwright") is not None,
            },
        },
        "serverless": settings.VERCEL,
    }


@router.get("/redis-status")
async def redis_status(store: CacheStore = Depends(get_cache_store)):
    connected = await store.ping()
    return {"success": connected or store.backend == "memory", "backend": store.backend, "connected": connected}


@router.get("/gemini-status")
async def gemini_status():
    client = get_gemini_client()
    if client is None:
        return {"success": False, "working": False, "error": "GEMINI_API_KEY not configured"}
    status = await client.check_status()
    if status["working"]:
        try:
            status["available"] = await client.list_models()
        except GeminiError as exc:
            logger.warning("Could not list Gemini models: %s", exc)
    return {"success": status["working"], **status}


@router.get("/blob-status")
async def blob_status(blob: BlobStorage = Depends(get_blob)):
    return await blob.status()


@router.get("/env-check")
async def env_check():
    settings = get_settings()
    return {
        "success": True,
        "variables": {name: bool(getattr(settings, name)) for name in _ENV_FLAGS},
        "vercel": settings.VERCEL,
        "outputDir": settings.OUTPUT_DIR,
        "tempDir": settings.TEMP_DIR,
    }
