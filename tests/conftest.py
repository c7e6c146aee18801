"""Pytest configuration and shared fixtures."""
import os
import tempfile
from pathlib import Path

import pytest

# Set test environment before importing the app: no Redis, no upstream
# credentials, rate limiting off, file output under a throwaway directory.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="card_studio_tests_"))
for _name in (
    "REDIS_URL",
    "SHOPEE_APP_ID",
    "SHOPEE_APP_SECRET",
    "GEMINI_API_KEY",
    "BLOB_READ_WRITE_TOKEN",
    "CELERY_BROKER_URL",
    "SENTRY_DSN",
):
    os.environ.pop(_name, None)
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["VERCEL"] = "false"
os.environ["OUTPUT_DIR"] = str(_TEST_ROOT / "output")
os.environ["TEMP_DIR"] = str(_TEST_ROOT / "tmp")
os.environ["DATA_DIR"] = str(_TEST_ROOT / "database")

from fastapi.testclient import TestClient

from card_studio.api.deps import get_card_generator, get_connector, get_video_manager
from card_studio.main import app
from card_studio.schemas.product import Product
from card_studio.services.blob_storage import BlobStorage
from card_studio.services.cache_store import CacheStore, get_cache_store, reset_cache_store
from card_studio.services.card_generator import CardGenerator
from card_studio.services.schedule_store import ScheduleStore, get_schedule_store, reset_schedule_store
from card_studio.services.text_generation import TextGenerationService, reset_text_generation_service
from card_studio.services.video_manager import VideoManager

FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-card"
FAKE_JPEG = b"\xff\xd8\xfffake-card"
FAKE_MP4 = b"\x00\x00\x00\x18ftypmp42fake-video"


@pytest.fixture(scope="session")
def test_root() -> Path:
    return _TEST_ROOT


@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh process-wide services for every test."""
    reset_cache_store()
    reset_schedule_store()
    reset_text_generation_service()
    yield
    reset_cache_store()
    reset_schedule_store()
    reset_text_generation_service()
    app.dependency_overrides.clear()


@pytest.fixture
def cache_store() -> CacheStore:
    """In-memory store (sample data on empty reads)."""
    return CacheStore()


@pytest.fixture
def schedule_store(tmp_path) -> ScheduleStore:
    return ScheduleStore(file_path=tmp_path / "schedules.json")


@pytest.fixture
def sample_product() -> Product:
    return Product(
        itemId="123456",
        productName="Fone de Ouvido Bluetooth Pro",
        price=80.0,
        priceDiscountRate=20,
        sales=1500,
        ratingStar=4.7,
        imageUrl="https://cf.shopee.com.br/file/fone.jpg",
        shopName="Loja Teste",
        offerLink="https://shope.ee/abc123",
    )


class FakeRenderers:
    """Records renderer calls and returns canned bytes."""

    PNG = FAKE_PNG
    JPEG = FAKE_JPEG
    MP4 = FAKE_MP4

    def __init__(self):
        self.image_calls = []
        self.video_calls = []
        self.slideshow_calls = []

    async def image(self, html, width, height, image_format="png"):
        self.image_calls.append({"html": html, "width": width, "height": height, "format": image_format})
        return FAKE_JPEG if image_format == "jpeg" else FAKE_PNG

    async def video(self, image, duration, width, height):
        self.video_calls.append({"image": image, "duration": duration, "width": width, "height": height})
        return FAKE_MP4

    async def slideshow(self, images, seconds_per_image, width, height):
        self.slideshow_calls.append({"images": images, "seconds": seconds_per_image})
        return FAKE_MP4


@pytest.fixture
def renderers() -> FakeRenderers:
    return FakeRenderers()


@pytest.fixture
def card_generator(cache_store, renderers, tmp_path) -> CardGenerator:
    return CardGenerator(
        cache_store,
        TextGenerationService(None),
        blob=BlobStorage(None),
        output_dir=tmp_path / "output",
        image_renderer=renderers.image,
        video_encoder=renderers.video,
        slideshow_encoder=renderers.slideshow,
    )


@pytest.fixture
def video_manager(cache_store, test_root) -> VideoManager:
    return VideoManager(cache_store, temp_dir=test_root / "tmp", output_dir=test_root / "output")


@pytest.fixture
def client(cache_store, schedule_store, card_generator, video_manager) -> TestClient:
    """TestClient wired to in-memory services and fake renderers."""
    app.dependency_overrides[get_cache_store] = lambda: cache_store
    app.dependency_overrides[get_schedule_store] = lambda: schedule_store
    app.dependency_overrides[get_card_generator] = lambda: card_generator
    app.dependency_overrides[get_video_manager] = lambda: video_manager
    app.dependency_overrides[get_connector] = lambda: None
    return TestClient(app)
