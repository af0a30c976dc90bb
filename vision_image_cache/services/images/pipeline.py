"""
Image Resolution Pipeline

Resolves one image URL to an inline payload:

1. inline ``data:`` URIs pass straight through
2. transient (per-run) cache
3. failed-URL memo for the run
4. durable cache lookup by source URL
5. strategy chain (bundled asset, direct fetch, object-storage fallback)
6. write-through to both cache layers on success

Unresolvable URLs yield the empty string; ``resolve`` never raises for
network, decode or store failures.
"""

import asyncio
import hashlib
import re
import time
from typing import Dict, Optional, Sequence, Union

import structlog
from opentelemetry import trace

from ...constants import UNRESOLVED_PAYLOAD
from ...domain.cache.value_objects import TTL, ImageCategory
from ..cache.cache_manager import ImageCacheManager
from .bundled_assets import is_relative_hardware_path
from .payload import is_inline_payload
from .strategies import ResolverStrategy
from .transient_cache import FailedUrlSet, TransientImageCache

logger = structlog.get_logger()
tracer = trace.get_tracer(__name__)

_HARDWARE_FILE = re.compile(r"(^|/)(camera|lens|light|controller)-[^/]*$")


def infer_category(url: str) -> ImageCategory:
    """Best-effort image category from the shape of its URL."""
    lowered = url.split("?", 1)[0].lower()

    if is_relative_hardware_path(lowered) or "/hardware/" in lowered:
        return ImageCategory.HARDWARE
    if _HARDWARE_FILE.search(lowered):
        return ImageCategory.HARDWARE
    if "schematic" in lowered:
        return ImageCategory.MODULE_SCHEMATIC
    if "annotation" in lowered or "snapshot" in lowered:
        return ImageCategory.ANNOTATION
    if "layout" in lowered or "view" in lowered:
        if "side" in lowered:
            return ImageCategory.LAYOUT_SIDE_VIEW
        if "top" in lowered:
            return ImageCategory.LAYOUT_TOP_VIEW
        if "front" in lowered:
            return ImageCategory.LAYOUT_FRONT_VIEW
    return ImageCategory.PRODUCT


def url_fingerprint(url: str) -> str:
    """Stable related-entity id for URLs resolved without an owner."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]


class ImageResolutionPipeline:
    """
    Layered URL to payload resolver.

    Concurrent calls for the same URL share one in-flight task, so each URL
    triggers at most one strategy run per process run.
    """

    def __init__(
        self,
        strategies: Sequence[ResolverStrategy],
        transient_cache: TransientImageCache,
        failed_urls: FailedUrlSet,
        cache_manager: Optional[ImageCacheManager] = None,
        ttl: Optional[TTL] = None,
    ):
        self.strategies = list(strategies)
        self.transient_cache = transient_cache
        self.failed_urls = failed_urls
        self.cache_manager = cache_manager
        self.ttl = ttl
        self._in_flight: Dict[str, "asyncio.Task[str]"] = {}

    def get_cached(self, url: str) -> str:
        """Transient-cache lookup without any I/O."""
        return self.transient_cache.get(url) or UNRESOLVED_PAYLOAD

    async def resolve(
        self,
        url: Optional[str],
        category: Optional[Union[ImageCategory, str]] = None,
        related_id: Optional[str] = None,
    ) -> str:
        """
        Resolve ``url`` to an inline payload.

        Args:
            url: Absolute, root-relative or inline image reference
            category: Durable cache category (inferred from the URL if omitted)
            related_id: Owning business entity (URL fingerprint if omitted)

        Returns:
            A ``data:`` URI, or ``""`` when every strategy failed
        """
        if not url or not url.strip():
            return UNRESOLVED_PAYLOAD

        if is_inline_payload(url):
            self.transient_cache.put(url, url)
            return url

        cached = self.transient_cache.get(url)
        if cached:
            return cached

        if url in self.failed_urls:
            logger.debug("Skipping known failed image URL", url=url)
            return UNRESOLVED_PAYLOAD

        task = self._in_flight.get(url)
        if task is None:
            task = asyncio.ensure_future(self._resolve_uncached(url, category, related_id))
            self._in_flight[url] = task
            task.add_done_callback(lambda _: self._in_flight.pop(url, None))

        return await asyncio.shield(task)

    async def _resolve_uncached(
        self,
        url: str,
        category: Optional[Union[ImageCategory, str]],
        related_id: Optional[str],
    ) -> str:
        with tracer.start_as_current_span("image_pipeline.resolve") as span:
            span.set_attribute("url", url)
            start_time = time.time()

            if self.cache_manager is not None:
                stored = await self.cache_manager.get_by_source_url(url)
                if stored:
                    span.set_attribute("source", "durable_cache")
                    self.transient_cache.put(url, stored)
                    logger.debug("Image served from durable cache", url=url)
                    return stored

            for strategy in self.strategies:
                try:
                    result = await strategy.attempt(url)
                except Exception as e:
                    logger.exception(
                        "Image strategy raised unexpectedly",
                        url=url,
                        strategy=strategy.name,
                        error=str(e),
                    )
                    continue

                if result.ok:
                    span.set_attribute("source", strategy.name)
                    self.transient_cache.put(url, result.payload)
                    await self._write_through(url, result.payload, category, related_id)
                    logger.debug(
                        "Image resolved",
                        url=url,
                        strategy=strategy.name,
                        byte_size=len(result.payload),
                        duration_ms=(time.time() - start_time) * 1000,
                    )
                    return result.payload

                logger.debug(
                    "Image strategy did not resolve URL",
                    url=url,
                    strategy=strategy.name,
                    reason=result.error,
                )

            self.failed_urls.add(url)
            span.set_status(trace.Status(trace.StatusCode.ERROR, "unresolved"))
            logger.warning(
                "Image could not be resolved by any strategy",
                url=url,
                strategies=[strategy.name for strategy in self.strategies],
            )
            return UNRESOLVED_PAYLOAD

    async def _write_through(
        self,
        url: str,
        payload: str,
        category: Optional[Union[ImageCategory, str]],
        related_id: Optional[str],
    ) -> None:
        if self.cache_manager is None:
            return

        stored = await self.cache_manager.put(
            category=category or infer_category(url),
            related_id=related_id or url_fingerprint(url),
            source_url=url,
            payload=payload,
            ttl=self.ttl,
        )
        if not stored:
            logger.warning("Image payload not persisted to durable cache", url=url)
