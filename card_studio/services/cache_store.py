"""Redis-backed cache for products, descriptions, processed ids and videos.

Key namespace (all under ``CACHE_KEY_PREFIX``, default ``shopee``)::

    shopee:products            string  JSON list of products
    shopee:description:<id>    string  description text
    shopee:processed_ids       set     product ids already turned into cards
    shopee:videos              set     video ids
    shopee:video:<id>          string  JSON video record (7-day TTL)
    shopee:lock:<name>         string  lock token with TTL

Each key keeps one value type for its whole life.

Degraded modes:
- ``REDIS_URL`` unset: state lives in process memory and reads fall back to
  the fixed sample dataset.
- Redis configured but failing: reads log and fall back the same way;
  writes raise ``RedisError`` to the caller.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from card_studio.config import get_settings
from card_studio.schemas.product import Product
from card_studio.schemas.video import VideoRecord
from card_studio.services.sample_data import FALLBACK_DESCRIPTIONS, FALLBACK_PRODUCTS

logger = logging.getLogger(__name__)

VIDEO_TTL_SECONDS = 60 * 60 * 24 * 7
_DESCRIPTION_SAMPLE_SIZE = 5

# Delete the lock only while it still holds the caller's token
_RELEASE_LOCK_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class CacheStore:
    """Get/set/delete over the fixed key namespace.

    Pass ``redis_client=None`` for the in-memory mode used in development
    and tests.
    """

    def __init__(self, redis_client: Optional[aioredis.Redis] = None, prefix: str = "shopee") -> None:
        self._redis = redis_client
        self.prefix = prefix
        # In-memory mode state
        self._strings: Dict[str, str] = {}
        self._sets: Dict[str, set[str]] = {}
        self._locks: Dict[str, float] = {}
        self._release_script = None

    @classmethod
    def from_settings(cls) -> "CacheStore":
        settings = get_settings()
        client = None
        if settings.REDIS_URL:
            client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        else:
            logger.warning("REDIS_URL not configured - using in-memory cache with sample data")
        return cls(client, prefix=settings.CACHE_KEY_PREFIX)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    @property
    def products_key(self) -> str:
        return f"{self.prefix}:products"

    @property
    def processed_key(self) -> str:
        return f"{self.prefix}:processed_ids"

    @property
    def videos_key(self) -> str:
        return f"{self.prefix}:videos"

    def description_key(self, product_id: str) -> str:
        return f"{self.prefix}:description:{product_id}"

    def video_key(self, video_id: str) -> str:
        return f"{self.prefix}:video:{video_id}"

    def lock_key(self, name: str) -> str:
        return f"{self.prefix}:lock:{name}"

    # ------------------------------------------------------------------
    # Low-level primitives (redis or memory)
    # ------------------------------------------------------------------

    async def _get(self, key: str) -> Optional[str]:
        if self._redis is None:
            return self._strings.get(key)
        return await self._redis.get(key)

    async def _set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        if self._redis is None:
            self._strings[key] = value
            return
        await self._redis.set(key, value, ex=ex)

    async def _delete(self, *keys: str) -> int:
        if not keys:
            return 0
        if self._redis is None:
            removed = 0
            for key in keys:
                if self._strings.pop(key, None) is not None or self._sets.pop(key, None) is not None:
                    removed += 1
            return removed
        return await self._redis.delete(*keys)

    async def _keys(self, pattern_prefix: str) -> List[str]:
        if self._redis is None:
            names = set(self._strings) | set(self._sets)
            return sorted(k for k in names if k.startswith(pattern_prefix))
        return sorted([key async for key in self._redis.scan_iter(match=f"{pattern_prefix}*")])

    async def _smembers(self, key: str) -> set[str]:
        if self._redis is None:
            return set(self._sets.get(key, set()))
        return set(await self._redis.smembers(key))

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def get_products(self, use_fallback: bool = True) -> List[Product]:
        """Return cached products.

        Falls back to ``FALLBACK_PRODUCTS`` when nothing is cached in memory
        mode, or when Redis is unreachable. With a healthy Redis and an empty
        key, returns ``[]`` so callers know to refetch.
        """
        fallback = [p.model_copy(deep=True) for p in FALLBACK_PRODUCTS] if use_fallback else []
        try:
            raw = await self._get(self.products_key)
        except RedisError as exc:
            logger.warning("Redis read failed for %s: %s", self.products_key, exc)
            return fallback

        if not raw:
            return fallback if self._redis is None else []

        try:
            return [Product.model_validate(item) for item in json.loads(raw)]
        except (ValueError, TypeError) as exc:
            logger.error("Corrupt product cache at %s: %s", self.products_key, exc)
            return fallback

    async def save_products(self, products: List[Product]) -> None:
        payload = json.dumps([p.to_dict() for p in products], ensure_ascii=False)
        await self._set(self.products_key, payload)
        logger.info("Cached %d products", len(products))

    async def get_product(self, product_id: str) -> Optional[Product]:
        for product in await self.get_products():
            if product.item_id == str(product_id):
                return product
        return None

    # ------------------------------------------------------------------
    # Descriptions
    # ------------------------------------------------------------------

    async def get_description(self, product_id: str) -> Optional[str]:
        try:
            value = await self._get(self.description_key(product_id))
        except RedisError as exc:
            logger.warning("Redis read failed for description %s: %s", product_id, exc)
            value = None
        if value is None:
            return FALLBACK_DESCRIPTIONS.get(str(product_id))
        return value

    async def save_description(self, product_id: str, description: str) -> None:
        await self._set(self.description_key(product_id), description)

    async def list_descriptions(self) -> Dict[str, str]:
        prefix = self.description_key("")
        try:
            keys = await self._keys(prefix)
            result: Dict[str, str] = {}
            for key in keys:
                value = await self._get(key)
                if value is not None:
                    result[key[len(prefix):]] = value
            return result
        except RedisError as exc:
            logger.warning("Redis read failed listing descriptions: %s", exc)
            return dict(FALLBACK_DESCRIPTIONS)

    # ------------------------------------------------------------------
    # Processed ids
    # ------------------------------------------------------------------

    async def is_processed(self, product_id: str) -> bool:
        if self._redis is None:
            return str(product_id) in self._sets.get(self.processed_key, set())
        try:
            return bool(await self._redis.sismember(self.processed_key, str(product_id)))
        except RedisError as exc:
            logger.warning("Redis read failed for processed id %s: %s", product_id, exc)
            return False

    async def mark_processed(self, product_id: str) -> bool:
        """Add ``product_id`` to the processed set.

        Returns True if it was newly added. Repeated calls leave a single
        member.
        """
        if self._redis is None:
            members = self._sets.setdefault(self.processed_key, set())
            added = str(product_id) not in members
            members.add(str(product_id))
            return added
        return bool(await self._redis.sadd(self.processed_key, str(product_id)))

    async def processed_ids(self) -> List[str]:
        try:
            return sorted(await self._smembers(self.processed_key))
        except RedisError as exc:
            logger.warning("Redis read failed for processed ids: %s", exc)
            return []

    # ------------------------------------------------------------------
    # Video registry
    # ------------------------------------------------------------------

    async def save_video(self, record: VideoRecord, ttl: int = VIDEO_TTL_SECONDS) -> None:
        payload = record.model_dump_json(by_alias=True)
        await self._set(self.video_key(record.id), payload, ex=ttl)
        if self._redis is None:
            self._sets.setdefault(self.videos_key, set()).add(record.id)
        else:
            await self._redis.sadd(self.videos_key, record.id)

    async def get_video(self, video_id: str) -> Optional[VideoRecord]:
        try:
            raw = await self._get(self.video_key(video_id))
        except RedisError as exc:
            logger.warning("Redis read failed for video %s: %s", video_id, exc)
            return None
        if not raw:
            return None
        return VideoRecord.model_validate_json(raw)

    async def list_videos(self) -> List[VideoRecord]:
        """All registered videos, newest first. Ids whose record expired are skipped."""
        try:
            ids = await self._smembers(self.videos_key)
        except RedisError as exc:
            logger.warning("Redis read failed for video registry: %s", exc)
            return []
        records = []
        for video_id in ids:
            record = await self.get_video(video_id)
            if record is not None:
                records.append(record)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def delete_video(self, video_id: str) -> bool:
        """Remove a video from the registry. Returns False if it was unknown."""
        if self._redis is None:
            members = self._sets.get(self.videos_key, set())
            known = video_id in members
            members.discard(video_id)
        else:
            known = bool(await self._redis.srem(self.videos_key, video_id))
        deleted = await self._delete(self.video_key(video_id))
        return known or deleted > 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup(self) -> Dict[str, Any]:
        """Drop products, processed ids and descriptions so the next fetch starts fresh."""
        description_keys = await self._keys(self.description_key(""))
        deleted = await self._delete(self.products_key, self.processed_key, *description_keys)
        logger.info("Cache cleanup removed %d keys", deleted)
        return {"deletedKeys": deleted, "descriptionsRemoved": len(description_keys)}

    async def clear_all(self) -> int:
        """Delete every key in the namespace, including videos and locks."""
        keys = await self._keys(f"{self.prefix}:")
        deleted = await self._delete(*keys)
        if self._redis is None:
            self._locks.clear()
        logger.info("Cleared %d cache keys", deleted)
        return deleted

    async def ping(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    async def status(self) -> Dict[str, Any]:
        connected = await self.ping()
        if self._redis is not None and not connected:
            return {"backend": self.backend, "connected": False}

        raw_products = await self._get(self.products_key)
        description_keys = await self._keys(self.description_key(""))
        all_keys = await self._keys(f"{self.prefix}:")
        prefix = self.description_key("")
        return {
            "backend": self.backend,
            "connected": connected,
            "productsCached": bool(raw_products),
            "productCount": len(json.loads(raw_products)) if raw_products else 0,
            "processedCount": len(await self._smembers(self.processed_key)),
            "descriptionCount": len(description_keys),
            "descriptionSamples": [k[len(prefix):] for k in description_keys[:_DESCRIPTION_SAMPLE_SIZE]],
            "totalKeys": len(all_keys),
        }

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    async def acquire_lock(self, name: str, ttl: int) -> Optional[str]:
        """Atomically take a lock with expiry. Returns the token or None if held."""
        token = uuid.uuid4().hex
        key = self.lock_key(name)
        if self._redis is None:
            now = time.monotonic()
            expires = self._locks.get(key)
            if expires is not None and expires > now:
                return None
            self._locks[key] = now + ttl
            return token
        acquired = await self._redis.set(key, token, nx=True, ex=ttl)
        return token if acquired else None

    async def release_lock(self, name: str, token: Optional[str] = None) -> None:
        """Release a lock. With a token, only the holder's lock is deleted."""
        key = self.lock_key(name)
        if self._redis is None:
            self._locks.pop(key, None)
            return
        if token is None:
            await self._redis.delete(key)
            return
        if self._release_script is None:
            self._release_script = self._redis.register_script(_RELEASE_LOCK_LUA)
        if not await self._release_script(keys=[key], args=[token]):
            logger.warning("Lock %s is held by another owner, not releasing", key)


# ---------------------------------------------------------------------------
# Singleton access (FastAPI dependency)
# ---------------------------------------------------------------------------

_store: Optional[CacheStore] = None


def get_cache_store() -> CacheStore:
    """Return the process-wide store, created from settings on first use."""
    global _store
    if _store is None:
        _store = CacheStore.from_settings()
    return _store


def reset_cache_store() -> None:
    """Drop the singleton (tests, settings reload)."""
    global _store
    _store = None
