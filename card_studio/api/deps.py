"""Shared FastAPI dependencies and response helpers"""

import io
from typing import Optional
from urllib.parse import quote

from fastapi import Depends, HTTPException
from fastapi.responses import StreamingResponse

from card_studio.schemas.product import Product
from card_studio.services.blob_storage import BlobStorage, get_blob_storage
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.card_generator import CardGenerator
from card_studio.services.shopee_connector import ShopeeAffiliateConnector, get_shopee_connector
from card_studio.services.text_generation import TextGenerationService, get_text_generation_service
from card_studio.services.video_manager import VideoManager


def get_connector() -> Optional[ShopeeAffiliateConnector]:
    return get_shopee_connector()


def get_blob() -> BlobStorage:
    return get_blob_storage()


def get_card_generator(
    store: CacheStore = Depends(get_cache_store),
    text_service: TextGenerationService = Depends(get_text_generation_service),
    blob: BlobStorage = Depends(get_blob),
) -> CardGenerator:
    return CardGenerator(store, text_service, blob=blob)


def get_video_manager(store: CacheStore = Depends(get_cache_store)) -> VideoManager:
    return VideoManager(store)


def file_response(
    content: bytes,
    media_type: str,
    filename: str,
    inline: bool = False,
    headers: Optional[dict] = None,
) -> StreamingResponse:
    """Binary/text payload with a Content-Disposition header."""
    disposition = "inline" if inline else "attachment"
    all_headers = {"Content-Disposition": f'{disposition}; filename="{quote(filename)}"'}
    if headers:
        all_headers.update(headers)
    return StreamingResponse(io.BytesIO(content), media_type=media_type, headers=all_headers)


async def require_product(store: CacheStore, product_id: str) -> Product:
    """Cached product or 404."""
    product = await store.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return product
