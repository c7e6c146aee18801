"""Trending product selection.

A product qualifies when it sells well, is well rated, has an image and a
descriptive name. Qualifying products are ranked by a score built from sales,
rating, discount and name length.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from card_studio.schemas.product import Product
from card_studio.services.sample_data import SEARCH_CATALOG
from card_studio.services.shopee_connector import SORT_SALES, ShopeeAffiliateConnector

logger = logging.getLogger(__name__)

MAIN_CATEGORIES: Dict[str, str] = {
    "100630": "Eletrônicos",
    "100632": "Moda Feminina",
    "100633": "Saúde & Beleza",
    "100634": "Casa & Decoração",
}

MIN_SALES = 500
MIN_RATING = 4.5
MIN_NAME_LENGTH = 10

# Offers pulled per category before filtering
CANDIDATE_POOL_SIZE = 50
MAX_ALL_CATEGORIES_LIMIT = 20


def is_high_quality(product: Product) -> bool:
    return (
        product.sales >= MIN_SALES
        and product.rating_star >= MIN_RATING
        and bool(product.image_url)
        and len(product.product_name) >= MIN_NAME_LENGTH
    )


def trending_score(product: Product) -> float:
    """Sales (max 50) + rating x5 (max 25) + discount/2 (max 15) + name length/10 (max 10)."""
    return (
        min(product.sales / 100, 50)
        + product.rating_star * 5
        + min(product.price_discount_rate / 2, 15)
        + min(len(product.product_name) / 10, 10)
    )


def select_trending(products: List[Product], limit: int) -> List[Product]:
    candidates = [p for p in products if is_high_quality(p)]
    candidates.sort(key=trending_score, reverse=True)
    for product in candidates[:3]:
        logger.debug("Trending candidate %s score=%.1f", product.item_id, trending_score(product))
    return candidates[:limit]


async def get_trending_products(
    connector: Optional[ShopeeAffiliateConnector],
    category_id: Optional[str] = None,
    limit: int = 20,
) -> List[Product]:
    """Best trending offers, optionally within one category.

    Without a connector the sample catalog is ranked instead.

    Raises:
        ShopeeAPIError: the affiliate API call failed.
    """
    if connector is None:
        pool = [p for p in SEARCH_CATALOG if category_id is None or p.category_id == category_id]
    else:
        pool = await connector.search_products(
            limit=CANDIDATE_POOL_SIZE,
            sort_type=SORT_SALES,
            category_id=int(category_id) if category_id else None,
        )

    selected = select_trending(pool, limit)
    logger.info(
        "Trending products (category=%s): %d of %d candidates",
        category_id or "all", len(selected), len(pool),
    )
    return selected


async def get_trending_by_category(
    connector: Optional[ShopeeAffiliateConnector],
    limit: int = 5,
) -> List[Dict[str, Any]]:
    limit = min(limit, MAX_ALL_CATEGORIES_LIMIT)
    results = []
    for category_id, name in MAIN_CATEGORIES.items():
        products = await get_trending_products(connector, category_id, limit)
        results.append({"categoryId": category_id, "categoryName": name, "products": products})
    return results
