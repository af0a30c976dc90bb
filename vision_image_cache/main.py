"""
Vision Image Cache - FastAPI Application

Serves the image cache maintenance API. The application lifespan owns a
single ``ImageCacheContext`` stored on ``app.state.image_cache``.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import structlog

from .api.endpoints.health import router as health_router
from .api.endpoints.image_cache import router as image_cache_router
from .constants import APP_NAME, APP_VERSION
from .core.config import get_settings
from .core.logging import configure_logging
from .services.images.context import ImageCacheContext

logger = structlog.get_logger()


def create_app(context: Optional[ImageCacheContext] = None) -> FastAPI:
    """Build the application, optionally around a pre-built context."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
        logger.info(
            "Starting Vision Image Cache API",
            environment=settings.ENVIRONMENT,
            version=APP_VERSION,
        )

        image_cache = context or ImageCacheContext(settings)
        try:
            await image_cache.initialize()
        except Exception as e:
            logger.error("Image cache initialization failed", error=str(e))
            raise

        app.state.image_cache = image_cache
        try:
            yield
        finally:
            await image_cache.close()
            logger.info("Vision Image Cache API shutdown complete")

    app = FastAPI(
        title=APP_NAME,
        description="Image cache and preload engine for presentation generation",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(image_cache_router)
    return app


app = create_app()
