"""
Tests for the image resolution strategies.
"""

import threading

import pytest

from vision_image_cache.services.images.bundled_assets import BundledAssetResolver
from vision_image_cache.services.images import strategies as strategies_module
from vision_image_cache.services.images.payload import decode_data_uri, encode_data_uri
from vision_image_cache.services.images.strategies import (
    BundledAssetStrategy,
    DirectFetchStrategy,
    ObjectStorageFallbackStrategy,
    StrategyResult,
    to_absolute_url,
)

ORIGIN = "https://app.example.com"
STORAGE_URL = "https://abc.supabase.co/storage/v1/object/public/products/part.jpg"


@pytest.mark.parametrize(
    "url, expected",
    [
        ("/images/a.png", "https://app.example.com/images/a.png"),
        ("//cdn.example.com/a.png", "https://cdn.example.com/a.png"),
        ("images/a.png", "https://app.example.com/images/a.png"),
        ("http://other.example.com/a.png", "http://other.example.com/a.png"),
    ],
)
def test_to_absolute_url(url, expected):
    assert to_absolute_url(url, ORIGIN) == expected


def test_strategy_result():
    assert StrategyResult.success("data:x").ok
    assert not StrategyResult.failure("nope").ok
    assert not StrategyResult.success("").ok


class TestBundledAssetStrategy:
    @pytest.mark.asyncio
    async def test_reads_local_file(self, asset_dir):
        strategy = BundledAssetStrategy(BundledAssetResolver(asset_dir / "hardware"))

        result = await strategy.attempt("/hardware/light-ring.png")

        assert result.ok
        assert result.payload.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_miss(self, asset_dir):
        strategy = BundledAssetStrategy(BundledAssetResolver(asset_dir / "hardware"))

        result = await strategy.attempt("https://cdn.example.com/a.png")

        assert not result.ok
        assert result.error == "no bundled asset"

    @pytest.mark.asyncio
    async def test_corrupt_file(self, asset_dir):
        (asset_dir / "hardware" / "camera-broken.png").write_bytes(b"garbage")
        strategy = BundledAssetStrategy(BundledAssetResolver(asset_dir / "hardware"))

        result = await strategy.attempt("/hardware/camera-broken.png")

        assert not result.ok
        assert "unreadable" in result.error


class TestDirectFetchStrategy:
    @pytest.mark.asyncio
    async def test_fetches_absolutised_url(self, fetcher, image_server, png_bytes):
        image_server.add_image(f"{ORIGIN}/uploads/view.png", png_bytes)
        strategy = DirectFetchStrategy(fetcher, ORIGIN)

        result = await strategy.attempt("/uploads/view.png")

        assert result.ok
        assert decode_data_uri(result.payload) == ("image/png", png_bytes)

    @pytest.mark.asyncio
    async def test_http_error_is_failure(self, fetcher):
        result = await DirectFetchStrategy(fetcher, ORIGIN).attempt(
            "https://cdn.example.com/missing.png"
        )

        assert not result.ok
        assert "HTTP 404" in result.error

    @pytest.mark.asyncio
    async def test_non_image_body_is_failure(self, fetcher, image_server):
        image_server.add_image(
            "https://cdn.example.com/login", b"<html>login</html>", "text/html"
        )

        result = await DirectFetchStrategy(fetcher, ORIGIN).attempt(
            "https://cdn.example.com/login"
        )

        assert not result.ok


class TestObjectStorageFallbackStrategy:
    @pytest.fixture
    def strategy(self, fetcher):
        return ObjectStorageFallbackStrategy(fetcher, ORIGIN, "supabase.co/storage")

    def test_applies_only_to_storage_urls(self, strategy):
        assert strategy.applies_to(STORAGE_URL)
        assert not strategy.applies_to("https://cdn.example.com/a.png")

    @pytest.mark.asyncio
    async def test_reencodes_as_png(self, strategy, image_server, image_factory):
        image_server.add_image(STORAGE_URL, image_factory(12, 6, image_format="JPEG"), "image/jpeg")

        result = await strategy.attempt(STORAGE_URL)

        assert result.ok
        mime, content = decode_data_uri(result.payload)
        assert mime == "image/png"
        request = image_server.requests[-1]
        assert request.headers["cache-control"] == "no-cache"
        assert request.headers["user-agent"] == strategy.user_agent

    @pytest.mark.asyncio
    async def test_skips_other_urls_without_network(self, strategy, image_server):
        result = await strategy.attempt("https://cdn.example.com/a.png")

        assert not result.ok
        assert image_server.requests == []

    @pytest.mark.asyncio
    async def test_fetch_failure(self, strategy, image_server):
        image_server.add_status(STORAGE_URL, 403)

        result = await strategy.attempt(STORAGE_URL)

        assert not result.ok
        assert "HTTP 403" in result.error


@pytest.mark.asyncio
async def test_payload_encoding_runs_off_the_event_loop(
    monkeypatch, asset_dir, fetcher, image_server, png_bytes
):
    """Image decoding must not block the loop in any strategy."""
    loop_thread = threading.get_ident()
    encode_threads = []

    def recording_encode(*args, **kwargs):
        encode_threads.append(threading.get_ident())
        return encode_data_uri(*args, **kwargs)

    monkeypatch.setattr(strategies_module, "encode_data_uri", recording_encode)
    image_server.add_image(f"{ORIGIN}/uploads/view.png", png_bytes)
    image_server.add_image(STORAGE_URL, png_bytes)

    bundled = BundledAssetStrategy(BundledAssetResolver(asset_dir / "hardware"))
    direct = DirectFetchStrategy(fetcher, ORIGIN)
    storage = ObjectStorageFallbackStrategy(fetcher, ORIGIN, "supabase.co/storage")

    assert (await bundled.attempt("/hardware/light-ring.png")).ok
    assert (await direct.attempt("/uploads/view.png")).ok
    assert (await storage.attempt(STORAGE_URL)).ok

    assert len(encode_threads) == 3
    assert loop_thread not in encode_threads
