"""Tests for the card/video orchestrator with fake renderers."""

import io
import zipfile

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from card_studio.schemas.card import CardOptions
from card_studio.services.blob_storage import BlobStorage
from card_studio.services.card_generator import (
    ArtifactGenerationError,
    CardGenerator,
    artifact_filename,
    build_info_text,
)
from card_studio.services.renderer import RenderError
from card_studio.services.text_generation import TextGenerationService


class TestResolveDescription:
    """custom -> stored -> generated."""

    @pytest.mark.asyncio
    async def test_custom_wins(self, card_generator, sample_product):
        text, source = await card_generator.resolve_description(sample_product, custom="  Meu texto  ")
        assert (text, source) == ("Meu texto", "custom")

    @pytest.mark.asyncio
    async def test_stored_description_reused(self, card_generator, cache_store, sample_product):
        await cache_store.save_description("123456", "Texto salvo")
        text, source = await card_generator.resolve_description(sample_product)
        assert (text, source) == ("Texto salvo", "storage")

    @pytest.mark.asyncio
    async def test_generated_description_is_saved(self, card_generator, cache_store, sample_product):
        text, source = await card_generator.resolve_description(sample_product)
        assert source == "fallback"
        assert await cache_store.get_description("123456") == text

    @pytest.mark.asyncio
    async def test_force_regenerate_skips_storage(self, card_generator, cache_store, sample_product):
        await cache_store.save_description("123456", "Texto salvo")
        text, source = await card_generator.resolve_description(sample_product, force_regenerate=True)
        assert source == "fallback"
        assert text != "Texto salvo"


class TestGenerateCard:
    @pytest.mark.asyncio
    async def test_png_card(self, card_generator, renderers, sample_product):
        artifact = await card_generator.generate_card(sample_product, CardOptions(template="modern"))

        assert artifact.content == renderers.PNG
        assert artifact.media_type == "image/png"
        assert artifact.filename == "product_123456_modern.png"
        call = renderers.image_calls[0]
        assert (call["width"], call["height"]) == (1080, 1920)
        assert "Fone de Ouvido Bluetooth Pro" in call["html"]

    @pytest.mark.asyncio
    async def test_html_card_skips_renderer(self, card_generator, renderers, sample_product):
        artifact = await card_generator.generate_card(sample_product, CardOptions(imageFormat="html"))
        assert artifact.content.startswith(b"<!DOCTYPE html>")
        assert renderers.image_calls == []

    @pytest.mark.asyncio
    async def test_render_error_becomes_artifact_error(self, cache_store, sample_product, tmp_path):
        generator = CardGenerator(
            cache_store,
            TextGenerationService(None),
            blob=BlobStorage(None),
            output_dir=tmp_path,
            image_renderer=AsyncMock(side_effect=RenderError("Chromium crashed")),
        )
        with pytest.raises(ArtifactGenerationError, match="Chromium crashed"):
            await generator.generate_card(sample_product)


class TestVideos:
    @pytest.mark.asyncio
    async def test_video_encodes_rendered_card(self, card_generator, renderers, sample_product):
        artifact = await card_generator.generate_video(sample_product, duration=7, style="square")

        assert artifact.content == renderers.MP4
        assert artifact.filename == "product_123456_square.mp4"
        call = renderers.video_calls[0]
        assert call["image"] == renderers.PNG
        assert (call["duration"], call["width"], call["height"]) == (7, 1080, 1080)

    @pytest.mark.asyncio
    async def test_slideshow_downloads_images(self, cache_store, renderers, sample_product, tmp_path):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("broken.jpg"):
                return httpx.Response(404)
            return httpx.Response(200, content=b"img:" + request.url.path.encode())

        generator = CardGenerator(
            cache_store,
            TextGenerationService(None),
            blob=BlobStorage(None),
            output_dir=tmp_path,
            slideshow_encoder=renderers.slideshow,
            http_transport=httpx.MockTransport(handler),
        )
        artifact = await generator.generate_slideshow(
            sample_product,
            image_urls=["https://img.test/a.jpg", "https://img.test/broken.jpg", "https://img.test/b.jpg"],
            seconds_per_image=1.5,
        )

        assert artifact.filename == "product_123456_slideshow.mp4"
        assert artifact.extra["images"] == 2
        assert artifact.extra["duration"] == 3.0
        assert renderers.slideshow_calls[0]["images"] == [b"img:/a.jpg", b"img:/b.jpg"]

    @pytest.mark.asyncio
    async def test_animated_card_uses_product_images(self, cache_store, sample_product, tmp_path):
        calls = []

        async def gif(images, seconds_per_image, width, height):
            calls.append((images, seconds_per_image, width, height))
            return b"GIF89a"

        sample_product.images = ["https://img.test/1.jpg", "https://img.test/2.jpg"]
        generator = CardGenerator(
            cache_store,
            TextGenerationService(None),
            blob=BlobStorage(None),
            output_dir=tmp_path,
            gif_encoder=gif,
            http_transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"frame")),
        )

        artifact = await generator.generate_animated_card(sample_product, seconds_per_image=0.5, style="portrait")

        assert artifact.media_type == "image/gif"
        assert artifact.filename == "product_123456_animated.gif"
        assert artifact.extra["images"] == 2
        assert calls == [([b"frame", b"frame"], 0.5, 540, 960)]

    @pytest.mark.asyncio
    async def test_animated_card_encoder_failure(self, cache_store, sample_product, tmp_path):
        async def gif(images, seconds_per_image, width, height):
            raise RenderError("FFmpeg failed with exit code 1")

        generator = CardGenerator(
            cache_store,
            TextGenerationService(None),
            blob=BlobStorage(None),
            output_dir=tmp_path,
            gif_encoder=gif,
            http_transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"frame")),
        )
        with pytest.raises(ArtifactGenerationError, match="GIF encoding failed"):
            await generator.generate_animated_card(sample_product)

    @pytest.mark.asyncio
    async def test_slideshow_without_images(self, card_generator, sample_product):
        sample_product.image_url = None
        sample_product.images = []
        with pytest.raises(ArtifactGenerationError, match="no images"):
            await card_generator.generate_slideshow(sample_product)


class TestCardPackage:
    @pytest.mark.asyncio
    async def test_zip_contents(self, card_generator, renderers, sample_product):
        artifact = await card_generator.build_card_package(sample_product)

        assert artifact.filename == "product_123456_package.zip"
        archive = zipfile.ZipFile(io.BytesIO(artifact.content))
        assert sorted(archive.namelist()) == [
            "product_123456_bold.jpg",
            "product_123456_bold.png",
            "product_123456_info.txt",
            "product_123456_modern.jpg",
            "product_123456_modern.png",
        ]
        assert archive.read("product_123456_modern.png") == renderers.PNG
        assert archive.read("product_123456_bold.jpg") == renderers.JPEG
        info = archive.read("product_123456_info.txt").decode("utf-8")
        assert "Product: Fone de Ouvido Bluetooth Pro" in info
        assert "Original price: R$ 100.00 (20% OFF)" in info
        assert "Link: https://shope.ee/abc123" in info


class TestPersistence:
    @pytest.mark.asyncio
    async def test_local_write(self, card_generator, renderers, sample_product, tmp_path):
        artifact = await card_generator.generate_card(sample_product)
        location = await card_generator.persist_artifact(artifact)

        assert location["storage"] == "local"
        assert (tmp_path / "output" / "cards" / "product_123456_default.png").read_bytes() == renderers.PNG

    @pytest.mark.asyncio
    async def test_blob_upload(self, cache_store, sample_product, renderers, tmp_path):
        blob = MagicMock()
        blob.enabled = True
        blob.upload = AsyncMock(return_value={"success": True, "url": "https://blob.test/cards/x.png"})
        generator = CardGenerator(
            cache_store, TextGenerationService(None), blob=blob, output_dir=tmp_path,
            image_renderer=renderers.image,
        )

        artifact = await generator.generate_card(sample_product)
        location = await generator.persist_artifact(artifact)

        assert location == {"storage": "blob", "url": "https://blob.test/cards/x.png", "filename": artifact.filename}
        blob.upload.assert_awaited_once_with("cards/product_123456_default.png", renderers.PNG, "image/png")


class TestHelpers:
    def test_artifact_filename_maps_jpeg_extension(self):
        assert artifact_filename("1", "modern", "jpeg") == "product_1_modern.jpg"

    def test_info_text_without_discount(self, sample_product):
        sample_product.price_discount_rate = 0
        text = build_info_text(sample_product, "Descrição")
        assert "Original price" not in text
        assert text.splitlines()[0] == "Product: Fone de Ouvido Bluetooth Pro"
