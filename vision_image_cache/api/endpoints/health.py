"""
Health check endpoints.

Liveness and readiness probes for the image cache service.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
import structlog

from ...constants import APP_NAME, APP_VERSION, get_current_timestamp
from ...core.config import get_settings
from ...services.images.context import ImageCacheContext
from .image_cache import get_image_cache_context

logger = structlog.get_logger()
router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns a simple health status for load balancers and monitoring systems.
    """
    return {
        "status": "healthy",
        "timestamp": get_current_timestamp().isoformat(),
        "service": APP_NAME,
        "version": APP_VERSION,
        "environment": get_settings().ENVIRONMENT,
    }


@router.get("/ready")
async def readiness_check(
    context: ImageCacheContext = Depends(get_image_cache_context),
) -> Dict[str, Any]:
    """
    Readiness check endpoint.

    The service can resolve images without the durable store, so an
    unhealthy store degrades readiness instead of failing it.
    """
    checks: Dict[str, Any] = {}

    if context.cache_manager is None:
        checks["durable_cache"] = {"status": "disabled"}
    else:
        checks["durable_cache"] = await context.cache_manager.health_check()

    checks["transient_cache"] = {"status": "healthy", **context.transient_cache.snapshot()}
    checks["bundled_assets"] = {
        "status": "healthy" if context.asset_resolver.hardware_dir.is_dir() else "missing",
        "directory": str(context.asset_resolver.hardware_dir),
    }

    degraded = any(
        check.get("status") not in ("healthy", "disabled") for check in checks.values()
    )
    if degraded:
        logger.warning("Image cache readiness degraded", checks=checks)

    return {
        "status": "degraded" if degraded else "ready",
        "timestamp": get_current_timestamp().isoformat(),
        "checks": checks,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """Indicates the application process is alive."""
    return {"status": "alive", "timestamp": get_current_timestamp().isoformat()}
