"""
Main pytest configuration for image cache tests.

Fixtures for temporary SQLite stores, controllable clocks, generated
images and stubbed HTTP transports.
"""

import os
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from PIL import Image
from tenacity import wait_none

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from vision_image_cache.core.config import Settings
from vision_image_cache.core.database import DatabaseManager
from vision_image_cache.infrastructure.http import ImageFetcher
from vision_image_cache.infrastructure.repositories import SqlImageCacheRepository
from vision_image_cache.services.cache.cache_manager import ImageCacheManager

HARDWARE_FILES = [
    "camera-basler.png",
    "camera-keyence.png",
    "lens-computar.png",
    "light-ring.png",
    "controller-nvidia.png",
]


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_image(
    width: int = 40, height: int = 20, image_format: str = "PNG", color=(200, 30, 30)
) -> bytes:
    """Encode a solid-colour test image."""
    mode = "RGB" if image_format in ("JPEG", "GIF", "BMP") else "RGBA"
    image = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


Route = Union[Tuple[int, bytes, str], Exception]


class StubImageServer:
    """
    ``httpx.MockTransport`` handler serving canned responses by URL.

    Unknown URLs answer 404. Every request is recorded.
    """

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def add_image(self, url: str, content: bytes, content_type: str = "image/png") -> None:
        self.routes[url] = (200, content, content_type)

    def add_status(self, url: str, status_code: int) -> None:
        self.routes[url] = (status_code, b"", "text/plain")

    def add_error(self, url: str, error: Exception) -> None:
        self.routes[url] = error

    def calls_for(self, url: str) -> int:
        return sum(1 for request in self.requests if str(request.url) == url)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"not found")
        if isinstance(route, Exception):
            raise route
        status_code, content, content_type = route
        body = b"" if request.method == "HEAD" else content
        return httpx.Response(
            status_code, content=body, headers={"content-type": content_type}
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image(40, 20)


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return make_image


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'image_cache.db'}"


@pytest.fixture
def asset_dir(tmp_path):
    """Asset directory with a small bundled hardware catalog."""
    hardware_dir = tmp_path / "assets" / "hardware"
    hardware_dir.mkdir(parents=True)
    for index, name in enumerate(HARDWARE_FILES):
        (hardware_dir / name).write_bytes(make_image(8 + index, 8, "PNG"))
    (hardware_dir / "notes.txt").write_text("not an image")
    return tmp_path / "assets"


@pytest.fixture
def settings(database_url, asset_dir) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        CACHE_DATABASE_URL=database_url,
        BUNDLED_ASSET_DIR=asset_dir,
        DOCUMENT_ORIGIN="https://app.example.com",
        PRELOAD_BATCH_DELAY_SECONDS=0.0,
        FETCH_TIMEOUT_SECONDS=2.0,
    )


@pytest.fixture
def unavailable_store_settings(settings, tmp_path, monkeypatch) -> Settings:
    """Settings pointing at a SQLite file that cannot be opened."""
    monkeypatch.setattr(DatabaseManager._create_engine_with_retry.retry, "wait", wait_none())
    missing = tmp_path / "missing" / "dir" / "image_cache.db"
    return settings.model_copy(
        update={
            "CACHE_DATABASE_URL": f"sqlite+aiosqlite:///{missing}",
            "STORE_CIRCUIT_FAILURE_THRESHOLD": 1,
        }
    )


@pytest.fixture
def image_server() -> StubImageServer:
    return StubImageServer()


@pytest_asyncio.fixture
async def fetcher(image_server):
    client = image_server.client()
    yield ImageFetcher(client=client, timeout=2.0)
    await client.aclose()


@pytest_asyncio.fixture
async def repository(database_url, clock):
    repo = SqlImageCacheRepository(DatabaseManager(database_url), clock=clock)
    await repo.initialize()
    yield repo
    await repo.close()


@pytest_asyncio.fixture
async def cache_manager(repository, clock):
    return ImageCacheManager(repository, clock=clock)
