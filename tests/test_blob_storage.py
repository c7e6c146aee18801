"""Tests for the Vercel Blob client."""

import httpx
import pytest

from card_studio.services.blob_storage import DISABLED_MESSAGE, BlobStorage, BlobStorageError


def _blob(handler) -> BlobStorage:
    return BlobStorage("vercel_blob_rw_token", api_url="https://blob.test", transport=httpx.MockTransport(handler))


class TestDisabled:
    @pytest.mark.asyncio
    async def test_every_call_reports_disabled(self):
        blob = BlobStorage(None)
        assert blob.enabled is False
        assert await blob.upload("cards/x.png", b"x", "image/png") == {"success": False, "error": DISABLED_MESSAGE}
        assert (await blob.delete(["https://blob.test/x"]))["success"] is False
        assert (await blob.status())["enabled"] is False


class TestUpload:
    @pytest.mark.asyncio
    async def test_put_with_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["type"] = request.headers["x-content-type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"url": "https://blob.test/cards/x.png", "pathname": "cards/x.png"})

        result = await _blob(handler).upload("cards/x.png", b"png-bytes", "image/png")

        assert result == {"success": True, "url": "https://blob.test/cards/x.png", "pathname": "cards/x.png"}
        assert seen == {
            "method": "PUT",
            "path": "/cards/x.png",
            "auth": "Bearer vercel_blob_rw_token",
            "type": "image/png",
            "body": b"png-bytes",
        }

    @pytest.mark.asyncio
    async def test_rejected_upload_raises(self):
        blob = _blob(lambda request: httpx.Response(403, text="forbidden"))
        with pytest.raises(BlobStorageError, match="HTTP 403"):
            await blob.upload("cards/x.png", b"x", "image/png")


class TestStatus:
    @pytest.mark.asyncio
    async def test_reachable(self):
        assert await _blob(lambda request: httpx.Response(200, json={"blobs": []})).status() == {
            "success": True,
            "enabled": True,
        }

    @pytest.mark.asyncio
    async def test_unreachable(self):
        status = await _blob(lambda request: httpx.Response(500)).status()
        assert status["success"] is False
        assert status["enabled"] is True
