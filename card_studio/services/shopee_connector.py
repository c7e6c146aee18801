"""Shopee Affiliate Open API connector (GraphQL).

Requests are signed with::

    Authorization: SHA256 Credential=<appId>,Timestamp=<ts>,Signature=<sig>
    sig = sha256(appId + ts + payload + secret).hexdigest()

where ``payload`` is the exact JSON body sent. One attempt per call; no
retries.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from card_studio.config import get_settings
from card_studio.schemas.product import Product, ProductMedia

logger = logging.getLogger(__name__)

# productOfferV2 sortType values
SORT_RELEVANCE = 1
SORT_SALES = 2
SORT_PRICE_ASC = 3
SORT_PRICE_DESC = 4

_OFFER_FIELDS = """
      itemId
      productName
      commissionRate
      price
      priceDiscountRate
      priceMin
      priceMax
      sales
      imageUrl
      shopId
      shopName
      offerLink
      productLink
      ratingStar
"""

PRODUCT_OFFER_QUERY = (
    """
query ProductOffers($page: Int!, $limit: Int!, $sortType: Int, $keyword: String, $categoryId: Int64) {
  productOfferV2(page: $page, limit: $limit, sortType: $sortType, keyword: $keyword, productCatId: $categoryId) {
    nodes {"""
    + _OFFER_FIELDS
    + """    }
    pageInfo {
      page
      limit
      hasNextPage
    }
  }
}
"""
)

PRODUCT_DETAIL_QUERY = """
query ProductDetail($itemId: String!) {
  productDetailV2(itemId: $itemId) {
    itemId
    productName
    description
    price
    priceDiscountRate
    sales
    ratingStar
    shopName
    offerLink
    imageUrl
    images
    videos
    attributes {
      name
      value
    }
    categories
  }
}
"""

PRODUCT_MEDIA_QUERY = """
query ProductMedia($itemId: String!) {
  productDetailV2(itemId: $itemId) {
    itemId
    productName
    imageUrl
    images
    videos
  }
}
"""


class ShopeeAPIError(Exception):
    """Affiliate API call failed (transport, status, GraphQL errors or no data)."""


class ShopeeNotFoundError(ShopeeAPIError):
    """The API answered but returned no record for the requested id."""


class ShopeeAffiliateConnector:
    """
    Async connector for the Shopee Affiliate Open API.

    Docs:
    - https://affiliate.shopee.com.br/open_api
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        api_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id.strip()
        self.app_secret = app_secret.strip()
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    def sign(self, timestamp: int, payload: str) -> str:
        base = f"{self.app_id}{timestamp}{payload}{self.app_secret}"
        return hashlib.sha256(base.encode("utf-8")).hexdigest()

    def auth_header(self, timestamp: int, payload: str) -> str:
        signature = self.sign(timestamp, payload)
        return f"SHA256 Credential={self.app_id},Timestamp={timestamp},Signature={signature}"

    async def _request(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        payload = json.dumps({"query": query, "variables": variables}, separators=(",", ":"))
        timestamp = int(time.time())
        headers = {
            "Authorization": self.auth_header(timestamp, payload),
            "Content-Type": "application/json",
        }

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, content=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Shopee API timeout after %.1fs", time.monotonic() - started)
            raise ShopeeAPIError(f"Shopee API timeout after {self.timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            logger.error("Shopee API request failed: %s", exc)
            raise ShopeeAPIError(f"Shopee API request failed: {exc}") from exc

        if response.status_code != 200:
            body = response.text[:500]
            logger.error("Shopee API error %s: %s", response.status_code, body)
            raise ShopeeAPIError(f"Shopee API returned HTTP {response.status_code}: {body}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ShopeeAPIError("Shopee API returned invalid JSON") from exc

        if data.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in data["errors"])
            logger.error("Shopee GraphQL errors: %s", messages)
            raise ShopeeAPIError(f"Shopee GraphQL error: {messages}")

        logger.debug("Shopee API call ok in %.2fs", time.monotonic() - started)
        return data.get("data") or {}

    async def search_products(
        self,
        keyword: Optional[str] = None,
        *,
        page: int = 1,
        limit: int = 20,
        sort_type: int = SORT_RELEVANCE,
        category_id: Optional[int] = None,
    ) -> List[Product]:
        """Search offers. An empty result is ``[]``, not an error."""
        variables: Dict[str, Any] = {"page": page, "limit": limit, "sortType": sort_type}
        if keyword:
            variables["keyword"] = keyword
        if category_id is not None:
            variables["categoryId"] = category_id

        data = await self._request(PRODUCT_OFFER_QUERY, variables)
        nodes = (data.get("productOfferV2") or {}).get("nodes") or []
        products = []
        for node in nodes:
            try:
                products.append(Product.from_shopee(node))
            except ValueError as exc:
                logger.warning("Skipping malformed Shopee node %s: %s", node.get("itemId"), exc)
        logger.info("Shopee search keyword=%r sort=%s -> %d products", keyword, sort_type, len(products))
        return products

    async def get_best_sellers(self, limit: int = 20, page: int = 1) -> List[Product]:
        return await self.search_products(page=page, limit=limit, sort_type=SORT_SALES)

    async def get_product_detail(self, item_id: str) -> Product:
        data = await self._request(PRODUCT_DETAIL_QUERY, {"itemId": str(item_id)})
        detail = data.get("productDetailV2")
        if not detail:
            raise ShopeeNotFoundError(f"Product {item_id} not found")
        node = dict(detail)
        categories = node.pop("categories", None) or []
        if categories and not node.get("categoryName"):
            node["categoryName"] = str(categories[-1])
        return Product.from_shopee(node)

    async def get_product_media(self, item_id: str) -> ProductMedia:
        """Images and videos for one product.

        Never raises: failures are reported in ``ProductMedia.error``.
        """
        try:
            data = await self._request(PRODUCT_MEDIA_QUERY, {"itemId": str(item_id)})
        except ShopeeAPIError as exc:
            return ProductMedia(productId=str(item_id), error=str(exc))

        detail = data.get("productDetailV2")
        if not detail:
            return ProductMedia(productId=str(item_id), error=f"Product {item_id} not found")

        images = detail.get("images") or [u for u in [detail.get("imageUrl")] if u]
        return ProductMedia(
            productId=str(item_id),
            name=detail.get("productName") or f"Produto {item_id}",
            images=images,
            videos=detail.get("videos") or [],
        )


def get_shopee_connector() -> Optional[ShopeeAffiliateConnector]:
    """Connector from settings, or None when credentials are not configured."""
    settings = get_settings()
    if not settings.SHOPEE_APP_ID or not settings.SHOPEE_APP_SECRET:
        logger.debug("Shopee credentials not configured - serving sample data")
        return None
    return ShopeeAffiliateConnector(
        app_id=settings.SHOPEE_APP_ID,
        app_secret=settings.SHOPEE_APP_SECRET,
        api_url=settings.SHOPEE_AFFILIATE_API_URL,
        timeout=settings.SHOPEE_TIMEOUT_SECONDS,
    )
