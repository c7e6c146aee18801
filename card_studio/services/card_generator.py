"""
Card/video generation orchestrator.

Flow for one artifact:
1. Resolve description text: custom -> cached -> Gemini -> fallback template
2. Render the Jinja2 card template with product fields
3. Hand the HTML to a rendering adapter (screenshot or FFmpeg)
4. Return bytes + metadata as ``GeneratedArtifact``

Any adapter failure surfaces as ``ArtifactGenerationError``; no partial
artifact is ever returned.
"""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from redis.exceptions import RedisError

from card_studio.config import get_settings
from card_studio.schemas.card import FORMAT_DIMENSIONS, CardOptions, TextGenerationOptions
from card_studio.schemas.product import Product
from card_studio.services.blob_storage import BlobStorage, BlobStorageError, get_blob_storage
from card_studio.services.cache_store import CacheStore
from card_studio.services.card_templates import TemplateRenderError, render_card_html
from card_studio.services.renderer import (
    RenderError,
    html_to_image,
    image_to_video,
    images_to_gif,
    images_to_slideshow,
)
from card_studio.services.text_generation import TextGenerationService

logger = logging.getLogger(__name__)

SOURCE_CUSTOM = "custom"
SOURCE_STORAGE = "storage"

MEDIA_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "html": "text/html; charset=utf-8",
    "mp4": "video/mp4",
    "gif": "image/gif",
    "zip": "application/zip",
    "txt": "text/plain; charset=utf-8",
}
_EXTENSIONS = {"png": "png", "jpeg": "jpg", "html": "html", "mp4": "mp4", "gif": "gif", "zip": "zip", "txt": "txt"}

# Templates bundled in a downloadable card package
PACKAGE_TEMPLATES = ("modern", "bold")
MAX_SLIDESHOW_IMAGES = 8
# Animated cards are rendered at half the card size
GIF_SCALE_DIVISOR = 2

ImageRenderer = Callable[..., Awaitable[bytes]]


class ArtifactGenerationError(Exception):
    """A rendering or encoding step failed; the message is user-facing."""


@dataclass
class GeneratedArtifact:
    content: bytes
    media_type: str
    filename: str
    format: str
    product_id: str
    template: Optional[str] = None
    color_scheme: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def metadata(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "format": self.format,
            "template": self.template,
            "colorScheme": self.color_scheme,
            "filename": self.filename,
            "mediaType": self.media_type,
            "size": len(self.content),
            **self.extra,
        }


def artifact_filename(product_id: str, suffix: str, fmt: str) -> str:
    return f"product_{product_id}_{suffix}.{_EXTENSIONS[fmt]}"


def build_info_text(product: Product, description: str) -> str:
    """Plain-text product sheet bundled with downloads."""
    lines = [
        f"Product: {product.product_name}",
        f"ID: {product.item_id}",
        f"Price: R$ {product.price:.2f}",
    ]
    if product.has_discount and product.original_price:
        lines.append(f"Original price: R$ {product.original_price:.2f} ({product.discount_percentage}% OFF)")
    lines += [
        f"Shop: {product.shop_name or 'Unknown'}",
        f"Sales: {product.sales}",
        f"Rating: {product.rating_star or 'N/A'}",
        "",
        "Description:",
        description,
        "",
        f"Link: {product.offer_link or 'N/A'}",
    ]
    return "\n".join(lines)


class CardGenerator:
    """Compose description + template + renderer into finished artifacts.

    Renderers are injectable so tests (and alternative backends) can swap
    out Playwright/FFmpeg.
    """

    def __init__(
        self,
        store: CacheStore,
        text_service: TextGenerationService,
        *,
        blob: Optional[BlobStorage] = None,
        output_dir: Optional[Path] = None,
        image_renderer: ImageRenderer = html_to_image,
        video_encoder: Callable[..., Awaitable[bytes]] = image_to_video,
        slideshow_encoder: Callable[..., Awaitable[bytes]] = images_to_slideshow,
        gif_encoder: Callable[..., Awaitable[bytes]] = images_to_gif,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.store = store
        self.text_service = text_service
        self.blob = blob if blob is not None else get_blob_storage()
        self.output_dir = Path(output_dir or settings.OUTPUT_DIR)
        self._image_renderer = image_renderer
        self._video_encoder = video_encoder
        self._slideshow_encoder = slideshow_encoder
        self._gif_encoder = gif_encoder
        self._http_transport = http_transport

    # ------------------------------------------------------------------
    # Description
    # ------------------------------------------------------------------

    async def resolve_description(
        self,
        product: Product,
        custom: Optional[str] = None,
        options: Optional[TextGenerationOptions] = None,
        force_regenerate: bool = False,
    ) -> Tuple[str, str]:
        """Return ``(text, source)``; source is custom/storage/gemini/fallback."""
        if custom and custom.strip():
            return custom.strip(), SOURCE_CUSTOM

        if not force_regenerate:
            cached = await self.store.get_description(product.item_id)
            if cached:
                return cached, SOURCE_STORAGE

        text, source = await self.text_service.generate_product_description(product, options)
        try:
            await self.store.save_description(product.item_id, text)
        except RedisError as exc:
            logger.warning("Could not cache description for %s: %s", product.item_id, exc)
        return text, source

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def render_html(self, product: Product, description: str, options: Optional[CardOptions] = None) -> str:
        try:
            return render_card_html(product, description, options)
        except TemplateRenderError as exc:
            raise ArtifactGenerationError(str(exc)) from exc

    async def _screenshot(self, html: str, width: int, height: int, image_format: str) -> bytes:
        try:
            return await self._image_renderer(html, width, height, image_format)
        except RenderError as exc:
            raise ArtifactGenerationError(f"Card rendering failed: {exc}") from exc

    async def generate_card(
        self,
        product: Product,
        options: Optional[CardOptions] = None,
        description: Optional[str] = None,
    ) -> GeneratedArtifact:
        options = options or CardOptions()
        text, source = await self.resolve_description(product, custom=description)
        html = self.render_html(product, text, options)

        if options.image_format == "html":
            content = html.encode("utf-8")
        else:
            width, height = options.dimensions
            content = await self._screenshot(html, width, height, options.image_format)

        logger.info(
            "Generated %s card for product %s (template=%s, %s)",
            options.image_format, product.item_id, options.template, options.format,
        )
        return GeneratedArtifact(
            content=content,
            media_type=MEDIA_TYPES[options.image_format],
            filename=artifact_filename(product.item_id, options.template, options.image_format),
            format=options.image_format,
            product_id=product.item_id,
            template=options.template,
            color_scheme=options.color_scheme,
            extra={"descriptionSource": source, "layout": options.format},
        )

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    async def generate_video(
        self,
        product: Product,
        duration: float = 5.0,
        style: str = "portrait",
        template: str = "default",
    ) -> GeneratedArtifact:
        """Render the card as PNG, then encode it as an MP4 with fades."""
        options = CardOptions(template=template, format=style, image_format="png")
        card = await self.generate_card(product, options)
        width, height = options.dimensions
        try:
            video = await self._video_encoder(card.content, duration, width, height)
        except RenderError as exc:
            raise ArtifactGenerationError(f"Video encoding failed: {exc}") from exc

        return GeneratedArtifact(
            content=video,
            media_type=MEDIA_TYPES["mp4"],
            filename=artifact_filename(product.item_id, style, "mp4"),
            format="mp4",
            product_id=product.item_id,
            template=template,
            color_scheme=options.color_scheme,
            extra={"duration": duration, "layout": style},
        )

    async def _download_images(self, urls: Sequence[str]) -> List[bytes]:
        images: List[bytes] = []
        async with httpx.AsyncClient(timeout=20.0, follow_redirects=True, transport=self._http_transport) as client:
            for url in urls:
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as exc:
                    logger.warning("Skipping image %s: %s", url, exc)
                    continue
                images.append(response.content)
        return images

    async def _product_images(self, product: Product, image_urls: Optional[Sequence[str]]) -> List[bytes]:
        urls = list(image_urls or product.images or ([product.image_url] if product.image_url else []))
        urls = urls[:MAX_SLIDESHOW_IMAGES]
        if not urls:
            raise ArtifactGenerationError(f"Product {product.item_id} has no images")

        images = await self._download_images(urls)
        if not images:
            raise ArtifactGenerationError("None of the product images could be downloaded")
        return images

    async def generate_slideshow(
        self,
        product: Product,
        image_urls: Optional[Sequence[str]] = None,
        seconds_per_image: float = 2.0,
        style: str = "portrait",
    ) -> GeneratedArtifact:
        """Multi-image MP4 from the product's media."""
        images = await self._product_images(product, image_urls)
        width, height = FORMAT_DIMENSIONS[style]
        try:
            video = await self._slideshow_encoder(images, seconds_per_image, width, height)
        except RenderError as exc:
            raise ArtifactGenerationError(f"Slideshow encoding failed: {exc}") from exc

        return GeneratedArtifact(
            content=video,
            media_type=MEDIA_TYPES["mp4"],
            filename=artifact_filename(product.item_id, "slideshow", "mp4"),
            format="mp4",
            product_id=product.item_id,
            extra={"images": len(images), "duration": len(images) * seconds_per_image, "layout": style},
        )

    async def generate_animated_card(
        self,
        product: Product,
        image_urls: Optional[Sequence[str]] = None,
        seconds_per_image: float = 1.0,
        style: str = "square",
    ) -> GeneratedArtifact:
        """Looping GIF cycling through the product's images."""
        images = await self._product_images(product, image_urls)
        width, height = (side // GIF_SCALE_DIVISOR for side in FORMAT_DIMENSIONS[style])
        try:
            gif = await self._gif_encoder(images, seconds_per_image, width, height)
        except RenderError as exc:
            raise ArtifactGenerationError(f"GIF encoding failed: {exc}") from exc

        logger.info("Generated animated card for product %s (%d frames)", product.item_id, len(images))
        return GeneratedArtifact(
            content=gif,
            media_type=MEDIA_TYPES["gif"],
            filename=artifact_filename(product.item_id, "animated", "gif"),
            format="gif",
            product_id=product.item_id,
            extra={"images": len(images), "layout": style},
        )

    # ------------------------------------------------------------------
    # Packages
    # ------------------------------------------------------------------

    async def build_card_package(self, product: Product) -> GeneratedArtifact:
        """ZIP with modern/bold cards as PNG and JPEG plus the info sheet."""
        text, _ = await self.resolve_description(product)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for template in PACKAGE_TEMPLATES:
                for image_format in ("png", "jpeg"):
                    options = CardOptions(template=template, image_format=image_format)
                    html = self.render_html(product, text, options)
                    width, height = options.dimensions
                    image = await self._screenshot(html, width, height, image_format)
                    archive.writestr(artifact_filename(product.item_id, template, image_format), image)
            archive.writestr(
                artifact_filename(product.item_id, "info", "txt"),
                build_info_text(product, text),
            )

        return GeneratedArtifact(
            content=buffer.getvalue(),
            media_type=MEDIA_TYPES["zip"],
            filename=artifact_filename(product.item_id, "package", "zip"),
            format="zip",
            product_id=product.item_id,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist_artifact(self, artifact: GeneratedArtifact, folder: str = "cards") -> Dict[str, Any]:
        """Upload to Blob when enabled, otherwise write under ``OUTPUT_DIR``."""
        if self.blob.enabled:
            try:
                result = await self.blob.upload(f"{folder}/{artifact.filename}", artifact.content, artifact.media_type)
            except BlobStorageError as exc:
                raise ArtifactGenerationError(str(exc)) from exc
            return {"storage": "blob", "url": result["url"], "filename": artifact.filename}

        target_dir = self.output_dir / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / artifact.filename
        path.write_bytes(artifact.content)
        logger.info("Saved %s (%d bytes)", path, len(artifact.content))
        return {"storage": "local", "path": str(path), "filename": artifact.filename}
