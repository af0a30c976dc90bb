"""
Image cache context.

Owns every per-process image component: the per-run transient cache and
failed-URL memo, the durable cache manager, the HTTP fetcher, and the
pipeline and preloader built on them.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

import structlog

from ...constants import get_current_timestamp
from ...core.config import Settings, get_settings
from ...core.database import DatabaseManager
from ...domain.cache.value_objects import TTL
from ...infrastructure.exceptions import ImageCacheException
from ...infrastructure.http import ImageFetcher
from ...infrastructure.repositories import SqlImageCacheRepository
from ...infrastructure.storage import CircuitBreakerConfig, StoreCircuitBreaker
from ..cache.cache_manager import ImageCacheManager
from .accessibility import AccessibilityChecker
from .bundled_assets import BundledAssetResolver
from .pipeline import ImageResolutionPipeline
from .preloader import BatchPreloader
from .strategies import (
    BundledAssetStrategy,
    DirectFetchStrategy,
    ObjectStorageFallbackStrategy,
    ResolverStrategy,
)
from .transient_cache import FailedUrlSet, TransientImageCache

logger = structlog.get_logger()


def build_cache_manager(
    settings: Settings,
    clock: Callable[[], datetime] = get_current_timestamp,
) -> ImageCacheManager:
    """Durable cache manager backed by the configured SQL database."""
    breaker = StoreCircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=settings.STORE_CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout=settings.STORE_CIRCUIT_RECOVERY_TIMEOUT,
        )
    )
    repository = SqlImageCacheRepository(
        DatabaseManager(settings.CACHE_DATABASE_URL),
        circuit_breaker=breaker,
        clock=clock,
    )
    return ImageCacheManager(
        repository, default_ttl=TTL(settings.CACHE_DEFAULT_TTL_SECONDS), clock=clock
    )


def build_default_strategies(
    settings: Settings,
    fetcher: ImageFetcher,
    asset_resolver: BundledAssetResolver,
) -> List[ResolverStrategy]:
    return [
        BundledAssetStrategy(asset_resolver),
        DirectFetchStrategy(fetcher, settings.DOCUMENT_ORIGIN),
        ObjectStorageFallbackStrategy(
            fetcher, settings.DOCUMENT_ORIGIN, settings.OBJECT_STORAGE_MARKER
        ),
    ]


class ImageCacheContext:
    """
    Composition root for image resolution.

    With ``use_durable_cache=False`` and no injected manager, images are
    resolved from bundled assets and network fetches alone.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache_manager: Optional[ImageCacheManager] = None,
        fetcher: Optional[ImageFetcher] = None,
        asset_resolver: Optional[BundledAssetResolver] = None,
        strategies: Optional[List[ResolverStrategy]] = None,
        use_durable_cache: bool = True,
    ):
        self.settings = settings or get_settings()
        self.transient_cache = TransientImageCache(self.settings.TRANSIENT_CACHE_CAPACITY)
        self.failed_urls = FailedUrlSet()
        self.fetcher = fetcher or ImageFetcher(
            timeout=self.settings.FETCH_TIMEOUT_SECONDS,
            retries=self.settings.FETCH_RETRIES,
            retry_delay=self.settings.FETCH_RETRY_DELAY_SECONDS,
        )
        self.asset_resolver = asset_resolver or BundledAssetResolver(
            self.settings.hardware_asset_dir
        )

        if cache_manager is None and use_durable_cache:
            cache_manager = build_cache_manager(self.settings)
        self.cache_manager = cache_manager

        self.pipeline = ImageResolutionPipeline(
            strategies=strategies
            or build_default_strategies(self.settings, self.fetcher, self.asset_resolver),
            transient_cache=self.transient_cache,
            failed_urls=self.failed_urls,
            cache_manager=self.cache_manager,
            ttl=TTL(self.settings.CACHE_DEFAULT_TTL_SECONDS),
        )
        self.preloader = BatchPreloader(
            self.pipeline,
            batch_size=self.settings.PRELOAD_BATCH_SIZE,
            delay=self.settings.PRELOAD_BATCH_DELAY_SECONDS,
        )
        self.accessibility = AccessibilityChecker(
            self.fetcher,
            self.settings.DOCUMENT_ORIGIN,
            timeout=self.settings.ACCESSIBILITY_TIMEOUT_SECONDS,
            concurrency=self.settings.ACCESSIBILITY_CONCURRENCY,
        )

    async def initialize(self) -> None:
        """
        Open the durable store.

        A store that cannot be opened leaves the context in degraded mode:
        durable reads miss and writes are dropped until the store recovers.
        """
        if self.cache_manager is not None:
            try:
                await self.cache_manager.initialize()
            except ImageCacheException as e:
                logger.warning(
                    "Durable image cache unavailable, resolving from network only",
                    error=e.message,
                    error_code=e.error_code,
                )
        logger.info(
            "Image cache context initialized",
            durable_cache=self.cache_manager is not None,
            transient_capacity=self.transient_cache.capacity,
        )

    def reset_run(self) -> Dict[str, int]:
        """Start a new generation run: forget transient payloads and failures."""
        cleared = {
            "cleared_payloads": len(self.transient_cache),
            "cleared_failures": len(self.failed_urls),
        }
        self.transient_cache.clear()
        self.failed_urls.clear()
        logger.info("Image cache run reset", **cleared)
        return cleared

    async def close(self) -> None:
        await self.fetcher.close()
        if self.cache_manager is not None:
            await self.cache_manager.close()
