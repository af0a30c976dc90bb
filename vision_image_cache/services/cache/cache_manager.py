"""
Image Cache Manager Service

High-level cache management service over the durable image store.

Read and write operations used by the resolution pipeline never raise on
store failures: reads degrade to a miss and writes report ``False``.
Maintenance operations (sweep, stats, clear) propagate
``CacheStoreUnavailableException`` so operators see the outage.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from opentelemetry import trace

from ...constants import get_current_timestamp
from ...domain.cache.entities import ImageCacheEntry
from ...domain.cache.repository_interfaces import ImageCacheRepository
from ...domain.cache.value_objects import TTL, CacheKey, CacheStats, ImageCategory
from ...infrastructure.exceptions import ImageCacheException

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ImageCacheManager:
    """
    High-level durable image cache service.

    Provides put/get by entity slot, lookup by source URL and the
    maintenance surface (sweep, stats, clear).
    """

    def __init__(
        self,
        repository: ImageCacheRepository,
        default_ttl: Optional[TTL] = None,
        clock: Callable[[], datetime] = get_current_timestamp,
    ):
        self.repository = repository
        self.default_ttl = default_ttl or TTL.image_default()
        self.clock = clock

    async def initialize(self) -> None:
        """Initialize cache manager and underlying store."""
        try:
            await self.repository.initialize()
            logger.info("Image cache manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize image cache manager: {e}")
            raise

    async def health_check(self) -> Dict[str, Any]:
        """Perform durable store health check."""
        with tracer.start_as_current_span("image_cache_manager.health_check") as span:
            try:
                health_status = await self.repository.health_check()
                health_status["default_ttl_seconds"] = self.default_ttl.seconds
                return health_status

            except Exception as e:
                logger.error(f"Image cache health check failed: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return {
                    "status": "unhealthy",
                    "timestamp": self.clock().isoformat(),
                    "error": str(e),
                }

    # Pipeline operations

    async def put(
        self,
        category: Union[ImageCategory, str],
        related_id: str,
        source_url: str,
        payload: str,
        ttl: Optional[TTL] = None,
    ) -> bool:
        """
        Store an image payload for an entity's image slot.

        Args:
            category: Image category
            related_id: Owning business entity
            source_url: URL the payload was downloaded from
            payload: Encoded image (data URI)
            ttl: Time to live (24h when not provided)

        Returns:
            True if the payload was stored
        """
        with tracer.start_as_current_span("image_cache_manager.put") as span:
            span.set_attribute("category", str(getattr(category, "value", category)))
            span.set_attribute("payload_size", len(payload or ""))

            try:
                entry = ImageCacheEntry.create(
                    category=category,
                    related_id=related_id,
                    source_url=source_url,
                    payload=payload,
                    ttl=ttl or self.default_ttl,
                    now=self.clock(),
                )
                await self.repository.save(entry)

                logger.debug(
                    f"Cached image {entry.key}",
                    extra={"key": entry.key.value, "byte_size": entry.byte_size},
                )
                return True

            except (ImageCacheException, ValueError) as e:
                logger.warning(f"Failed to cache image for {related_id}: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return False

    async def get_by_key(self, key: Union[CacheKey, str]) -> Optional[str]:
        """Get a live payload by cache key, or None on miss."""
        with tracer.start_as_current_span("image_cache_manager.get_by_key") as span:
            try:
                if not isinstance(key, CacheKey):
                    key = CacheKey(key)
                span.set_attribute("key", key.value)
                entry = await self.repository.find_by_key(key)
            except ValueError as e:
                logger.debug(f"Invalid image cache key {key!r}, treating as miss: {e}")
                return None
            except ImageCacheException as e:
                logger.warning(f"Image cache read failed for {key}, treating as miss: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return None

            span.set_attribute("cache_hit", entry is not None)
            return entry.payload if entry else None

    async def get(
        self, category: Union[ImageCategory, str], related_id: str
    ) -> Optional[str]:
        """Get a live payload by entity image slot."""
        try:
            key = CacheKey.for_image(category, related_id)
        except ValueError as e:
            logger.debug(f"Invalid image slot {category}/{related_id!r}, treating as miss: {e}")
            return None
        return await self.get_by_key(key)

    async def get_by_source_url(self, url: str) -> Optional[str]:
        """Get the newest live payload downloaded from ``url``."""
        if not url or not url.strip():
            return None

        with tracer.start_as_current_span(
            "image_cache_manager.get_by_source_url"
        ) as span:
            try:
                entry = await self.repository.find_by_source_url(url)
            except ImageCacheException as e:
                logger.warning(f"Image cache lookup failed for {url}, treating as miss: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return None

            span.set_attribute("cache_hit", entry is not None)
            return entry.payload if entry else None

    async def get_multiple(
        self, items: Iterable[Tuple[Union[ImageCategory, str], str]]
    ) -> Dict[str, str]:
        """
        Batch lookup of (category, related_id) pairs.

        Returns:
            Mapping of cache key string to payload, hits only
        """
        keys = []
        for category, related_id in items:
            try:
                keys.append(CacheKey.for_image(category, related_id))
            except ValueError as e:
                logger.debug(f"Skipping invalid image slot {category}/{related_id!r}: {e}")
        if not keys:
            return {}

        with tracer.start_as_current_span("image_cache_manager.get_multiple") as span:
            span.set_attribute("requested", len(keys))

            try:
                found = await self.repository.find_many(keys)
            except ImageCacheException as e:
                logger.warning(f"Image cache batch lookup failed, treating as miss: {e}")
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                return {}

            span.set_attribute("hits", len(found))
            return {key.value: entry.payload for key, entry in found.items()}

    async def exists(self, category: Union[ImageCategory, str], related_id: str) -> bool:
        return await self.get(category, related_id) is not None

    async def delete_by_key(self, key: Union[CacheKey, str]) -> bool:
        """Delete an entry, returning whether one was removed."""
        try:
            if not isinstance(key, CacheKey):
                key = CacheKey(key)
            return await self.repository.delete(key)
        except ValueError as e:
            logger.debug(f"Invalid image cache key {key!r}, nothing deleted: {e}")
            return False
        except ImageCacheException as e:
            logger.warning(f"Failed to delete image cache entry {key}: {e}")
            return False

    # Maintenance operations

    async def delete_by_related_id(self, related_id: str) -> int:
        """
        Delete every entry tied to a business entity.

        Returns:
            Number of entries removed
        """
        with tracer.start_as_current_span(
            "image_cache_manager.delete_by_related_id"
        ) as span:
            span.set_attribute("related_id", str(related_id))
            count = await self.repository.delete_by_related_id(str(related_id))

            logger.info(
                f"Invalidated {count} image cache entries for {related_id}",
                extra={"related_id": str(related_id), "count": count},
            )
            return count

    async def sweep_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with tracer.start_as_current_span("image_cache_manager.sweep_expired") as span:
            count = await self.repository.delete_expired()
            span.set_attribute("removed", count)
            return count

    async def stats(self) -> CacheStats:
        with tracer.start_as_current_span("image_cache_manager.stats"):
            return await self.repository.get_stats()

    async def clear_all(self) -> int:
        """Wipe the durable cache."""
        with tracer.start_as_current_span("image_cache_manager.clear_all"):
            count = await self.repository.clear()
            logger.warning(f"Image cache cleared ({count} entries)")
            return count

    async def list_entries(self) -> List[ImageCacheEntry]:
        return await self.repository.list_entries()

    async def close(self) -> None:
        """Close cache manager and cleanup resources."""
        try:
            await self.repository.close()
            logger.info("Image cache manager closed successfully")

        except Exception as e:
            logger.error(f"Failed to close image cache manager: {e}")
