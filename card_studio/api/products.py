"""Product catalog endpoints (Shopee Affiliate API with sample-data fallback)."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from card_studio.api.deps import get_connector
from card_studio.services.cache_store import CacheStore, get_cache_store
from card_studio.services.sample_data import FALLBACK_PRODUCTS, search_sample_catalog
from card_studio.services.shopee_connector import (
    ShopeeAffiliateConnector,
    ShopeeAPIError,
    ShopeeNotFoundError,
)
from card_studio.services.trending import MAIN_CATEGORIES, get_trending_by_category, get_trending_products

logger = logging.getLogger(__name__)
router = APIRouter(tags=["products"])

PRODUCTS_FETCH_LIMIT = 50


def _dump(products) -> list:
    return [p.to_dict() for p in products]


@router.get("/products")
async def list_products(
    store: CacheStore = Depends(get_cache_store),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    """Cached products; on a cold cache fetch best sellers and cache them."""
    products = await store.get_products(use_fallback=connector is None)
    if products:
        return {"success": True, "source": "cache" if connector else "sample", "products": _dump(products)}

    try:
        products = await connector.get_best_sellers(limit=PRODUCTS_FETCH_LIMIT)
    except ShopeeAPIError as exc:
        raise HTTPException(status_code=500, detail=str(exc))

    await store.save_products(products)
    return {"success": True, "source": "shopee", "products": _dump(products)}


@router.get("/search-products")
async def search_products(
    query: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query parameter is required")

    if connector is not None:
        try:
            products = await connector.search_products(query.strip(), limit=limit)
            return {"success": True, "source": "shopee", "query": query, "products": _dump(products)}
        except ShopeeAPIError as exc:
            logger.warning("Shopee search failed for %r, using sample catalog: %s", query, exc)

    products = search_sample_catalog(query, limit)
    return {"success": True, "source": "sample", "query": query, "products": _dump(products)}


@router.get("/best-sellers")
async def best_sellers(
    limit: int = Query(20, ge=1, le=100),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    if connector is None:
        return {"success": True, "source": "sample", "products": _dump(FALLBACK_PRODUCTS[:limit])}
    try:
        products = await connector.get_best_sellers(limit=limit)
    except ShopeeAPIError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {"success": True, "source": "shopee", "products": _dump(products)}


@router.get("/product-details")
async def product_details(
    item_id: Optional[str] = Query(None, alias="itemId"),
    store: CacheStore = Depends(get_cache_store),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    if not item_id:
        raise HTTPException(status_code=400, detail="itemId is required")

    if connector is None:
        product = await store.get_product(item_id)
        if product is None:
            raise HTTPException(status_code=404, detail=f"Product {item_id} not found")
        return {"success": True, "source": "cache", "product": product.to_dict()}

    try:
        product = await connector.get_product_detail(item_id)
    except ShopeeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ShopeeAPIError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return {"success": True, "source": "shopee", "product": product.to_dict()}


@router.get("/product-media")
async def product_media(
    product_id: Optional[str] = Query(None, alias="productId"),
    store: CacheStore = Depends(get_cache_store),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    """Media descriptor; upstream failures come back in ``error``, not as a 5xx."""
    if not product_id:
        raise HTTPException(status_code=400, detail="productId is required")

    if connector is None:
        product = await store.get_product(product_id)
        if product is None:
            media = {"productId": product_id, "name": None, "images": [], "videos": [], "error": "Product not found"}
        else:
            media = {
                "productId": product_id,
                "name": product.product_name,
                "images": product.images,
                "videos": product.videos,
                "error": None,
            }
        return {"success": media["error"] is None, **media}

    media = await connector.get_product_media(product_id)
    return {"success": media.error is None, **media.model_dump(by_alias=True)}


@router.get("/trending-products")
async def trending_products(
    category: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    all_categories: bool = Query(False, alias="all"),
    connector: Optional[ShopeeAffiliateConnector] = Depends(get_connector),
):
    """Top-ranked offers overall, for one category, or (``all=true``) per main category."""
    if category is not None and not category.isdigit():
        raise HTTPException(status_code=400, detail="category must be a numeric category id")

    try:
        if all_categories:
            groups = await get_trending_by_category(connector, limit)
            data = [{**group, "products": _dump(group["products"])} for group in groups]
        else:
            data = _dump(await get_trending_products(connector, category, limit))
    except ShopeeAPIError as exc:
        logger.error("Trending products lookup failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    return {"success": True, "source": "shopee" if connector else "sample", "data": data}


@router.post("/trending-products")
async def trending_categories():
    """Main categories accepted by ``GET /trending-products?category=``."""
    return {
        "success": True,
        "data": [{"id": category_id, "name": name} for category_id, name in MAIN_CATEGORIES.items()],
    }
