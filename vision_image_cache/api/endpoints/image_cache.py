"""
Image cache maintenance API endpoints.

Operator surface for the durable image cache (stats, listing, sweep,
invalidation, wipe) plus per-run controls: resetting the transient layer,
preloading URLs and checking image accessibility.
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
import structlog

from ...domain.cache.value_objects import CacheStats, format_file_size
from ...infrastructure.exceptions import (
    CacheStoreHTTPException,
    CacheStoreUnavailableException,
)
from ...services.cache.cache_manager import ImageCacheManager
from ...services.images.accessibility import (
    AccessibilityReport,
    ImageCheckItem,
    format_accessibility_report,
)
from ...services.images.context import ImageCacheContext

logger = structlog.get_logger()
router = APIRouter(prefix="/image-cache", tags=["image-cache"])


# Pydantic schemas for API requests/responses
class ImageCacheStatsResponse(BaseModel):
    """Durable and transient cache statistics."""

    durable: CacheStats
    total_size_human: str
    transient: Dict[str, int]
    failed_urls: int


class ImageCacheEntryResponse(BaseModel):
    """Durable cache entry metadata (payload omitted)."""

    key: str
    source_url: str
    category: str
    related_id: str
    created_at: datetime
    expires_at: datetime
    byte_size: int
    size_human: str


class RemovedResponse(BaseModel):
    removed: int


class ResetRunResponse(BaseModel):
    cleared_payloads: int
    cleared_failures: int


class PreloadRequest(BaseModel):
    urls: List[str] = Field(..., description="Image URLs to resolve")
    batch_size: Optional[int] = Field(
        default=None, ge=1, le=200, description="URLs resolved concurrently per batch"
    )


class PreloadResponse(BaseModel):
    total: int
    batches: int
    succeeded: List[str]
    failed: List[str]
    elapsed_seconds: float


class AccessibilityRequest(BaseModel):
    items: List[ImageCheckItem]


class AccessibilityResponse(BaseModel):
    report: AccessibilityReport
    summary: str


def get_image_cache_context(request: Request) -> ImageCacheContext:
    """Image cache context created by the application lifespan."""
    return request.app.state.image_cache


def get_cache_manager(
    context: ImageCacheContext = Depends(get_image_cache_context),
) -> ImageCacheManager:
    if context.cache_manager is None:
        raise CacheStoreHTTPException(
            CacheStoreUnavailableException(message="Durable image cache is disabled")
        )
    return context.cache_manager


@router.get("/stats", response_model=ImageCacheStatsResponse)
async def get_stats(
    context: ImageCacheContext = Depends(get_image_cache_context),
    manager: ImageCacheManager = Depends(get_cache_manager),
) -> ImageCacheStatsResponse:
    """Entry counts and sizes per category."""
    try:
        stats = await manager.stats()
    except CacheStoreUnavailableException as e:
        logger.warning("Image cache stats unavailable", error=e.message)
        raise CacheStoreHTTPException(e) from e

    return ImageCacheStatsResponse(
        durable=stats,
        total_size_human=format_file_size(stats.total_size),
        transient=context.transient_cache.snapshot(),
        failed_urls=len(context.failed_urls),
    )


@router.get("/entries", response_model=List[ImageCacheEntryResponse])
async def list_entries(
    manager: ImageCacheManager = Depends(get_cache_manager),
) -> List[ImageCacheEntryResponse]:
    try:
        entries = await manager.list_entries()
    except CacheStoreUnavailableException as e:
        raise CacheStoreHTTPException(e) from e

    return [
        ImageCacheEntryResponse(
            key=entry.key.value,
            source_url=entry.source_url,
            category=entry.category.value,
            related_id=entry.related_id,
            created_at=entry.created_at,
            expires_at=entry.expires_at,
            byte_size=entry.byte_size,
            size_human=format_file_size(entry.byte_size),
        )
        for entry in entries
    ]


@router.post("/sweep", response_model=RemovedResponse)
async def sweep_expired(
    manager: ImageCacheManager = Depends(get_cache_manager),
) -> RemovedResponse:
    """Delete every expired entry."""
    try:
        removed = await manager.sweep_expired()
    except CacheStoreUnavailableException as e:
        raise CacheStoreHTTPException(e) from e

    logger.info("Expired image cache entries swept", removed=removed)
    return RemovedResponse(removed=removed)


@router.delete("/related/{related_id}", response_model=RemovedResponse)
async def delete_related(
    related_id: str,
    manager: ImageCacheManager = Depends(get_cache_manager),
) -> RemovedResponse:
    """Invalidate every cached image of a business entity."""
    try:
        removed = await manager.delete_by_related_id(related_id)
    except CacheStoreUnavailableException as e:
        raise CacheStoreHTTPException(e) from e

    return RemovedResponse(removed=removed)


@router.delete("", response_model=RemovedResponse)
async def clear_all(
    manager: ImageCacheManager = Depends(get_cache_manager),
) -> RemovedResponse:
    """Wipe the durable image cache."""
    try:
        removed = await manager.clear_all()
    except CacheStoreUnavailableException as e:
        raise CacheStoreHTTPException(e) from e

    return RemovedResponse(removed=removed)


@router.post("/reset-run", response_model=ResetRunResponse)
async def reset_run(
    context: ImageCacheContext = Depends(get_image_cache_context),
) -> ResetRunResponse:
    """Clear the transient cache and failed-URL memo before a new run."""
    return ResetRunResponse(**context.reset_run())


@router.post("/preload", response_model=PreloadResponse)
async def preload(
    body: PreloadRequest,
    context: ImageCacheContext = Depends(get_image_cache_context),
) -> PreloadResponse:
    """Warm both cache layers for a URL list."""
    _, report = await context.preloader.preload_with_report(
        body.urls, batch_size=body.batch_size
    )

    return PreloadResponse(
        total=report.total,
        batches=report.batches,
        succeeded=report.succeeded,
        failed=report.failed,
        elapsed_seconds=report.elapsed_seconds,
    )


@router.post("/accessibility", response_model=AccessibilityResponse)
async def check_accessibility(
    body: AccessibilityRequest,
    context: ImageCacheContext = Depends(get_image_cache_context),
) -> AccessibilityResponse:
    """Probe image URLs without downloading them."""
    report = await context.accessibility.check_multiple_images(body.items)
    return AccessibilityResponse(report=report, summary=format_accessibility_report(report))
