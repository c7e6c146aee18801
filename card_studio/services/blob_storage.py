"""Vercel Blob storage client (REST API over httpx).

Disabled when ``BLOB_READ_WRITE_TOKEN`` is not set; every call then reports
``success=False`` instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from card_studio.config import get_settings

logger = logging.getLogger(__name__)

_API_VERSION = "7"
DISABLED_MESSAGE = "Blob storage is disabled"


class BlobStorageError(Exception):
    """Blob API call failed."""


class BlobStorage:
    def __init__(
        self,
        token: Optional[str],
        api_url: str = "https://blob.vercel-storage.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"authorization": f"Bearer {self.token}", "x-api-version": _API_VERSION}
        if extra:
            headers.update(extra)
        return headers

    async def upload(self, pathname: str, content: bytes, content_type: str) -> Dict[str, Any]:
        """PUT an object. Returns ``{success, url, pathname}``.

        Raises:
            BlobStorageError: the API rejected the upload or was unreachable.
        """
        if not self.enabled:
            return {"success": False, "error": DISABLED_MESSAGE}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.put(
                    f"{self.api_url}/{pathname.lstrip('/')}",
                    content=content,
                    headers=self._headers({"x-content-type": content_type, "x-add-random-suffix": "0"}),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Blob upload %s failed: HTTP %s %s", pathname, exc.response.status_code, exc.response.text[:300])
            raise BlobStorageError(f"Blob upload failed: HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Blob upload %s failed: %s", pathname, exc)
            raise BlobStorageError(f"Blob upload failed: {exc}") from exc

        logger.info("Uploaded %s to blob storage (%d bytes)", pathname, len(content))
        return {"success": True, "url": data.get("url"), "pathname": data.get("pathname", pathname)}

    async def delete(self, urls: List[str]) -> Dict[str, Any]:
        if not self.enabled:
            return {"success": False, "error": DISABLED_MESSAGE}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_url}/delete", json={"urls": urls}, headers=self._headers()
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Blob delete failed: %s", exc)
            raise BlobStorageError(f"Blob delete failed: {exc}") from exc
        return {"success": True, "deleted": len(urls)}

    async def status(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"success": False, "enabled": False, "error": DISABLED_MESSAGE}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.api_url, params={"limit": 1}, headers=self._headers())
                response.raise_for_status()
        except httpx.HTTPError as exc:
            return {"success": False, "enabled": True, "error": str(exc)}
        return {"success": True, "enabled": True}


def get_blob_storage() -> BlobStorage:
    settings = get_settings()
    return BlobStorage(settings.BLOB_READ_WRITE_TOKEN, api_url=settings.BLOB_API_URL)
