"""API tests for card/video generation and file download routes."""

import asyncio
import io
import zipfile

import httpx
import pytest

from card_studio.api.deps import get_card_generator
from card_studio.config import get_settings
from card_studio.main import app
from card_studio.schemas.video import VideoRecord
from card_studio.services.blob_storage import BlobStorage
from card_studio.services.card_generator import CardGenerator
from card_studio.services.text_generation import TextGenerationService


def _save(store, record: VideoRecord) -> None:
    asyncio.run(store.save_video(record))


@pytest.fixture
def output_dir(test_root):
    path = test_root / "output"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TestDownloadVideo:
    """``/download-video`` path handling."""

    def test_missing_path(self, client):
        response = client.get("/api/download-video")
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_nonexistent_file_is_404(self, client, output_dir):
        response = client.get("/api/download-video", params={"path": str(output_dir / "nope.mp4")})
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "File not found"}

    def test_path_outside_allowed_dirs_is_403(self, client):
        assert client.get("/api/download-video", params={"path": "/etc/passwd"}).status_code == 403

    def test_traversal_is_403(self, client, output_dir):
        path = str(output_dir / ".." / ".." / "etc" / "passwd")
        assert client.get("/api/download-video", params={"path": path}).status_code == 403

    def test_existing_file(self, client, output_dir):
        video = output_dir / "clip.mp4"
        video.write_bytes(b"mp4-bytes")

        response = client.get("/api/download-video", params={"path": str(video)})

        assert response.status_code == 200
        assert response.content == b"mp4-bytes"
        assert 'attachment; filename="clip.mp4"' == response.headers["content-disposition"]

    def test_disabled_in_serverless_mode(self, client, output_dir, monkeypatch):
        monkeypatch.setattr(get_settings(), "VERCEL", True)
        response = client.get("/api/download-video", params={"path": str(output_dir / "clip.mp4")})
        assert response.status_code == 400


class TestRegisteredVideoDownload:
    def test_unknown_video_is_404(self, client):
        assert client.get("/api/videos/video_1_x/download").status_code == 404

    def test_output_dir_convention(self, client, output_dir):
        (output_dir / "video_abc.mp4").write_bytes(b"abc")
        response = client.get("/api/videos/abc/download")
        assert response.status_code == 200
        assert response.content == b"abc"

    def test_recorded_path_outside_media_dirs_is_403(self, client, cache_store, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_bytes(b"TOP-SECRET")
        record = VideoRecord(id="video_1_p", productId="p", videoPath=str(secret))
        _save(cache_store, record)

        response = client.get("/api/videos/video_1_p/download")

        assert response.status_code == 403
        assert b"TOP-SECRET" not in response.content

    def test_recorded_path_inside_output_dir(self, client, cache_store, output_dir):
        clip = output_dir / "registered.mp4"
        clip.write_bytes(b"registered")
        _save(cache_store, VideoRecord(id="video_2_p", productId="p", videoPath=str(clip)))

        response = client.get("/api/videos/video_2_p/download")

        assert response.status_code == 200
        assert response.content == b"registered"


class TestCards:
    def test_generate_card_from_payload(self, client):
        response = client.post(
            "/api/generate-product-card",
            json={
                "product": {"itemId": "9", "productName": "Garrafa Térmica", "price": 45, "priceDiscountRate": 10},
                "options": {"template": "bold"},
                "description": "Gelada o dia todo",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["productId"] == "9"
        assert data["template"] == "bold"
        assert data["descriptionSource"] == "custom"
        assert "Garrafa Térmica" in data["html"]
        assert "10% OFF" in data["html"]

    def test_generate_card_requires_product(self, client):
        assert client.post("/api/generate-product-card", json={}).status_code == 400

    def test_generate_card_unknown_product_id(self, client):
        assert client.post("/api/generate-product-card", json={"productId": "missing"}).status_code == 404

    def test_render_png(self, client, renderers):
        response = client.get("/api/render-card/png/fallback-1", params={"template": "modern"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content == renderers.PNG

    def test_render_jpg_alias(self, client, renderers):
        response = client.get("/api/render-card/jpg/fallback-1")
        assert response.headers["content-type"] == "image/jpeg"
        assert renderers.image_calls[0]["format"] == "jpeg"

    def test_render_html(self, client, renderers):
        response = client.get("/api/render-card/html/fallback-1", params={"colorScheme": "light"})
        assert response.status_code == 200
        assert "<!DOCTYPE html>" in response.text
        assert renderers.image_calls == []

    def test_render_unknown_format(self, client):
        assert client.get("/api/render-card/gif/fallback-1").status_code == 400

    def test_render_invalid_template(self, client):
        assert client.get("/api/render-card/png/fallback-1", params={"template": "neon"}).status_code == 400

    def test_render_unknown_product(self, client):
        assert client.get("/api/render-card/png/unknown").status_code == 404

    def test_card_package(self, client):
        response = client.get("/api/download-card-package/fallback-2")
        assert response.status_code == 200
        assert 'filename="product_fallback-2_package.zip"' in response.headers["content-disposition"]
        names = zipfile.ZipFile(io.BytesIO(response.content)).namelist()
        assert "product_fallback-2_info.txt" in names
        assert len(names) == 5

    def test_card_package_unknown_product(self, client):
        assert client.get("/api/download-card-package/unknown").status_code == 404


class TestVideoRoutes:
    def test_generate_video(self, client, renderers):
        response = client.post("/api/generate-product-video", json={"productId": "fallback-1", "duration": 6})

        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert response.content == renderers.MP4
        video_id = response.headers["x-video-id"]

        record = client.get(f"/api/videos/{video_id}").json()["video"]
        assert record["productId"] == "fallback-1"
        assert record["duration"] == 6
        assert record["videoPath"].endswith("product_fallback-1_portrait.mp4")

    def test_generate_video_requires_product_id(self, client):
        assert client.post("/api/generate-product-video", json={}).status_code == 400

    def test_generate_video_unknown_product(self, client):
        assert client.post("/api/generate-product-video", json={"productId": "missing"}).status_code == 404

    def test_registry_lifecycle(self, client):
        saved = client.post("/api/save-video", json={"productId": "fallback-3", "duration": 5}).json()["video"]
        assert saved["status"] == "pending"

        published = client.post("/api/publish-video", json={"videoId": saved["id"]}).json()["video"]
        assert published["status"] == "published"
        assert published["publishedAt"]

        assert [v["id"] for v in client.get("/api/videos").json()["videos"]] == [saved["id"]]
        assert client.post("/api/videos/delete", json={"videoId": saved["id"]}).status_code == 200
        assert client.get(f"/api/videos/{saved['id']}").status_code == 404

    def test_registry_errors(self, client):
        assert client.post("/api/save-video", json={}).status_code == 400
        assert client.post("/api/publish-video", json={}).status_code == 400
        assert client.post("/api/publish-video", json={"videoId": "missing"}).status_code == 404
        assert client.post("/api/videos/delete", json={"videoId": "missing"}).status_code == 404

    def test_save_video_rejects_path_outside_media_dirs(self, client, tmp_path):
        response = client.post("/api/save-video", json={"productId": "1", "videoPath": str(tmp_path / "secret.txt")})
        assert response.status_code == 400
        assert client.get("/api/videos").json()["count"] == 0

    def test_save_video_rejects_traversal(self, client, output_dir):
        path = str(output_dir / ".." / ".." / "victim.txt")
        assert client.post("/api/save-video", json={"productId": "1", "videoPath": path}).status_code == 400

    def test_save_video_inside_output_dir(self, client, output_dir):
        clip = output_dir / "saved.mp4"
        clip.write_bytes(b"saved")
        saved = client.post("/api/save-video", json={"productId": "1", "videoPath": str(clip)}).json()["video"]

        assert client.get(f"/api/videos/{saved['id']}/download").content == b"saved"
        assert client.post("/api/videos/delete", json={"videoId": saved["id"]}).status_code == 200
        assert not clip.exists()

    def test_delete_never_removes_files_outside_media_dirs(self, client, cache_store, tmp_path):
        victim = tmp_path / "victim.txt"
        victim.write_bytes(b"keep me")
        _save(cache_store, VideoRecord(id="video_3_p", productId="p", videoPath=str(victim)))

        assert client.post("/api/videos/delete", json={"videoId": "video_3_p"}).status_code == 200

        assert victim.exists()
        assert client.get("/api/videos/video_3_p").status_code == 404


class TestAnimatedCard:
    FAKE_GIF = b"GIF89a-fake"

    def _generator(self, cache_store, frames: list) -> CardGenerator:
        async def gif(images, seconds_per_image, width, height):
            frames.append({"images": images, "seconds": seconds_per_image, "size": (width, height)})
            return self.FAKE_GIF

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=f"img:{request.url.path}".encode())

        return CardGenerator(
            cache_store,
            TextGenerationService(None),
            blob=BlobStorage(None),
            gif_encoder=gif,
            http_transport=httpx.MockTransport(handler),
        )

    def test_gif_from_explicit_images(self, client, cache_store):
        frames = []
        app.dependency_overrides[get_card_generator] = lambda: self._generator(cache_store, frames)

        response = client.post(
            "/api/generate-animated-card",
            json={"productId": "fallback-1", "images": ["https://img.test/a.jpg", "https://img.test/b.jpg"]},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/gif"
        assert 'filename="product_fallback-1_animated.gif"' in response.headers["content-disposition"]
        assert response.content == self.FAKE_GIF
        assert frames[0]["images"] == [b"img:/a.jpg", b"img:/b.jpg"]
        assert frames[0]["size"] == (540, 540)

    def test_requires_product_id(self, client):
        assert client.post("/api/generate-animated-card", json={}).status_code == 400

    def test_requires_two_images(self, client):
        response = client.post(
            "/api/generate-animated-card",
            json={"productId": "fallback-1", "images": ["https://img.test/a.jpg"]},
        )
        assert response.status_code == 400

    def test_unknown_product(self, client):
        assert client.post("/api/generate-animated-card", json={"productId": "missing"}).status_code == 404
