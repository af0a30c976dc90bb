"""
Unit tests for Image Cache Manager Service.

Tests the degradation rules on top of the durable repository: pipeline
reads and writes absorb store failures, maintenance operations surface them.
"""

import pytest
from unittest.mock import AsyncMock

from vision_image_cache.domain.cache.entities import ImageCacheEntry
from vision_image_cache.domain.cache.repository_interfaces import ImageCacheRepository
from vision_image_cache.domain.cache.value_objects import (
    CacheKey,
    CacheStats,
    ImageCategory,
    TTL,
)
from vision_image_cache.infrastructure.exceptions import (
    CacheStoreCircuitOpenException,
    CacheStoreUnavailableException,
)
from vision_image_cache.services.cache import ImageCacheManager

PAYLOAD = "data:image/png;base64,iVBORw0KGgo="
URL = "https://cdn.example.com/front.png"


class TestImageCacheManagerWithStore:
    """Round trips through the SQLite repository."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, cache_manager):
        stored = await cache_manager.put(
            ImageCategory.LAYOUT_FRONT_VIEW, "layout-1", URL, PAYLOAD
        )

        assert stored is True
        assert await cache_manager.get("layout_front_view", "layout-1") == PAYLOAD
        assert await cache_manager.get_by_key("layout_front_view:layout-1") == PAYLOAD
        assert await cache_manager.get_by_source_url(URL) == PAYLOAD
        assert await cache_manager.exists(ImageCategory.LAYOUT_FRONT_VIEW, "layout-1")

    @pytest.mark.asyncio
    async def test_entries_expire_with_default_ttl(self, repository, clock):
        manager = ImageCacheManager(repository, default_ttl=TTL(5 * 60), clock=clock)
        await manager.put("product", "p-1", URL, PAYLOAD)

        clock.advance(5 * 60 + 1)

        assert await manager.get("product", "p-1") is None
        assert await manager.get_by_source_url(URL) is None

    @pytest.mark.asyncio
    async def test_get_multiple_returns_hits_only(self, cache_manager):
        await cache_manager.put("hardware", "cam-1", URL, PAYLOAD)

        found = await cache_manager.get_multiple(
            [("hardware", "cam-1"), ("hardware", "cam-2")]
        )

        assert found == {"hardware:cam-1": PAYLOAD}
        assert await cache_manager.get_multiple([]) == {}

    @pytest.mark.asyncio
    async def test_related_id_with_spaces(self, cache_manager):
        """Related ids are opaque and may contain whitespace."""
        stored = await cache_manager.put("hardware", "Station A", URL, PAYLOAD)

        assert stored is True
        assert await cache_manager.get("hardware", "Station A") == PAYLOAD
        assert await cache_manager.get_by_key("hardware:Station A") == PAYLOAD
        assert await cache_manager.get_multiple([("hardware", "Station A")]) == {
            "hardware:Station A": PAYLOAD
        }
        assert await cache_manager.delete_by_key("hardware:Station A") is True
        assert await cache_manager.get("hardware", "Station A") is None

    @pytest.mark.asyncio
    async def test_malformed_slots_read_as_miss(self, cache_manager):
        assert await cache_manager.get("hardware", "   ") is None
        assert await cache_manager.get("thumbnail", "x") is None
        assert await cache_manager.get_by_key("") is None
        assert await cache_manager.exists("hardware", "") is False
        assert await cache_manager.delete_by_key("") is False
        assert await cache_manager.get_multiple([("thumbnail", "x")]) == {}

    @pytest.mark.asyncio
    async def test_maintenance_operations(self, cache_manager, clock):
        await cache_manager.put("layout_side_view", "L1", URL, PAYLOAD)
        await cache_manager.put("layout_top_view", "L1", URL, PAYLOAD)
        await cache_manager.put("product", "p-1", URL, PAYLOAD, ttl=TTL(10))

        stats = await cache_manager.stats()
        assert stats.total_count == 3
        assert stats.by_category[ImageCategory.PRODUCT].count == 1

        assert await cache_manager.delete_by_related_id("L1") == 2

        clock.advance(11)
        assert await cache_manager.sweep_expired() == 1
        assert await cache_manager.list_entries() == []

    @pytest.mark.asyncio
    async def test_delete_by_key_and_clear(self, cache_manager):
        await cache_manager.put("product", "p-1", URL, PAYLOAD)
        await cache_manager.put("product", "p-2", URL, PAYLOAD)

        assert await cache_manager.delete_by_key("product:p-1") is True
        assert await cache_manager.delete_by_key(CacheKey("product:p-1")) is False
        assert await cache_manager.clear_all() == 1

    @pytest.mark.asyncio
    async def test_health_check(self, cache_manager):
        health = await cache_manager.health_check()

        assert health["status"] == "healthy"
        assert health["default_ttl_seconds"] == 86400


class TestImageCacheManagerDegradation:
    """Test behaviour when the store fails."""

    @pytest.fixture
    def mock_repository(self):
        """Repository whose every call fails as unavailable."""
        repo = AsyncMock(spec=ImageCacheRepository)
        error = CacheStoreUnavailableException(operation="test")
        for name in (
            "save",
            "find_by_key",
            "find_by_source_url",
            "find_many",
            "delete",
            "delete_by_related_id",
            "delete_expired",
            "get_stats",
            "clear",
            "health_check",
        ):
            getattr(repo, name).side_effect = error
        return repo

    @pytest.fixture
    def manager(self, mock_repository, clock):
        return ImageCacheManager(mock_repository, clock=clock)

    @pytest.mark.asyncio
    async def test_reads_degrade_to_miss(self, manager):
        assert await manager.get("product", "p-1") is None
        assert await manager.get_by_source_url(URL) is None
        assert await manager.get_multiple([("product", "p-1")]) == {}
        assert await manager.exists("product", "p-1") is False
        assert await manager.delete_by_key("product:p-1") is False

    @pytest.mark.asyncio
    async def test_write_reports_false(self, manager, mock_repository):
        assert await manager.put("product", "p-1", URL, PAYLOAD) is False
        mock_repository.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open_circuit_degrades_reads(self, manager, mock_repository):
        mock_repository.find_by_key.side_effect = CacheStoreCircuitOpenException()
        assert await manager.get("product", "p-1") is None

    @pytest.mark.asyncio
    async def test_invalid_input_is_not_stored(self, manager, mock_repository):
        assert await manager.put("product", "p-1", URL, "") is False
        assert await manager.put("thumbnail", "p-1", URL, PAYLOAD) is False
        mock_repository.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_url_lookup_skips_store(self, manager, mock_repository):
        assert await manager.get_by_source_url("") is None
        mock_repository.find_by_source_url.assert_not_called()

    @pytest.mark.asyncio
    async def test_maintenance_propagates(self, manager):
        with pytest.raises(CacheStoreUnavailableException):
            await manager.sweep_expired()
        with pytest.raises(CacheStoreUnavailableException):
            await manager.stats()
        with pytest.raises(CacheStoreUnavailableException):
            await manager.clear_all()
        with pytest.raises(CacheStoreUnavailableException):
            await manager.delete_by_related_id("L1")

    @pytest.mark.asyncio
    async def test_health_check_reports_unhealthy(self, manager):
        health = await manager.health_check()

        assert health["status"] == "unhealthy"
        assert "error" in health

    @pytest.mark.asyncio
    async def test_saved_entity(self, mock_repository, clock):
        mock_repository.save.side_effect = None
        manager = ImageCacheManager(mock_repository, clock=clock)

        await manager.put(ImageCategory.ANNOTATION, "ann-3", URL, PAYLOAD, ttl=TTL.hours(2))

        saved = mock_repository.save.call_args[0][0]
        assert isinstance(saved, ImageCacheEntry)
        assert saved.key == CacheKey("annotation:ann-3")
        assert saved.created_at == clock()
        assert saved.remaining_ttl(clock()) == 7200

    @pytest.mark.asyncio
    async def test_stats_passthrough(self, mock_repository):
        mock_repository.get_stats.side_effect = None
        mock_repository.get_stats.return_value = CacheStats(total_count=0)
        manager = ImageCacheManager(mock_repository)

        stats = await manager.stats()

        assert stats.total_count == 0
