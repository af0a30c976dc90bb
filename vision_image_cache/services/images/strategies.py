"""
Image resolution strategies.

Each strategy turns a URL into an inline payload or reports why it could
not. Strategies never raise for expected failures (missing asset, HTTP
error, undecodable body); the pipeline tries them in order.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urljoin, urlsplit

import structlog

from ...constants import DEFAULT_FALLBACK_USER_AGENT
from ...infrastructure.exceptions import ImageDecodeException, ImageFetchException
from ...infrastructure.http import ImageFetcher
from .bundled_assets import BundledAssetResolver
from .payload import encode_data_uri, rasterize_to_png

logger = structlog.get_logger()


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one strategy attempt: a payload or an error description."""

    payload: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return bool(self.payload)

    @classmethod
    def success(cls, payload: str) -> "StrategyResult":
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: str) -> "StrategyResult":
        return cls(error=error)


def to_absolute_url(url: str, document_origin: str) -> str:
    """
    Make ``url`` absolute against the document origin.

    Root-relative paths are joined to the origin; protocol-relative
    ``//host/path`` URLs only borrow the origin's scheme.
    """
    if url.startswith("//"):
        scheme = urlsplit(document_origin).scheme or "https"
        return f"{scheme}:{url}"
    if url.startswith("/"):
        return f"{document_origin.rstrip('/')}{url}"
    if urlsplit(url).scheme:
        return url
    return urljoin(f"{document_origin.rstrip('/')}/", url)


class ResolverStrategy(ABC):
    """One way of producing a payload for a URL."""

    name: str = "strategy"

    @abstractmethod
    async def attempt(self, url: str) -> StrategyResult:
        """Try to resolve ``url``."""


class BundledAssetStrategy(ResolverStrategy):
    """Serve hardware photos from the local asset directory."""

    name = "bundled_asset"

    def __init__(self, resolver: BundledAssetResolver):
        self.resolver = resolver

    async def attempt(self, url: str) -> StrategyResult:
        path = self.resolver.resolve(url)
        if path is None:
            return StrategyResult.failure("no bundled asset")

        try:
            content = await asyncio.to_thread(path.read_bytes)
            payload = await asyncio.to_thread(
                encode_data_uri, content, "image/png", source=str(path)
            )
        except (OSError, ImageDecodeException) as e:
            logger.warning("Failed to load bundled asset", url=url, path=str(path), error=str(e))
            return StrategyResult.failure(f"bundled asset unreadable: {e}")

        return StrategyResult.success(payload)


class DirectFetchStrategy(ResolverStrategy):
    """Plain HTTP GET of the (absolutised) URL."""

    name = "direct_fetch"

    def __init__(self, fetcher: ImageFetcher, document_origin: str):
        self.fetcher = fetcher
        self.document_origin = document_origin

    async def attempt(self, url: str) -> StrategyResult:
        absolute_url = to_absolute_url(url, self.document_origin)
        if absolute_url != url:
            logger.debug("Converted relative image URL", url=url, absolute_url=absolute_url)

        try:
            fetched = await self.fetcher.fetch(absolute_url)
            payload = await asyncio.to_thread(
                encode_data_uri, fetched.content, fetched.content_type, source=absolute_url
            )
        except (ImageFetchException, ImageDecodeException) as e:
            logger.warning(
                "Direct image fetch failed",
                url=absolute_url,
                error_code=e.error_code,
                error=e.message,
            )
            return StrategyResult.failure(e.message)

        return StrategyResult.success(payload)


class ObjectStorageFallbackStrategy(ResolverStrategy):
    """
    Anonymous re-request for public object-storage URLs.

    The pixels are decoded and re-encoded as PNG, which also normalises
    formats the document builders cannot embed.
    """

    name = "object_storage_fallback"

    def __init__(
        self,
        fetcher: ImageFetcher,
        document_origin: str,
        storage_marker: str,
        user_agent: str = DEFAULT_FALLBACK_USER_AGENT,
    ):
        self.fetcher = fetcher
        self.document_origin = document_origin
        self.storage_marker = storage_marker
        self.user_agent = user_agent

    def applies_to(self, absolute_url: str) -> bool:
        return bool(self.storage_marker) and self.storage_marker in absolute_url

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Accept": "image/avif,image/webp,image/png,image/svg+xml,image/*;q=0.8",
            "User-Agent": self.user_agent,
            "Cache-Control": "no-cache",
        }

    async def attempt(self, url: str) -> StrategyResult:
        absolute_url = to_absolute_url(url, self.document_origin)
        if not self.applies_to(absolute_url):
            return StrategyResult.failure("not an object-storage URL")

        logger.info("Trying object-storage fallback", url=absolute_url)
        try:
            fetched = await self.fetcher.fetch(absolute_url, headers=self.headers)
            png = await asyncio.to_thread(
                rasterize_to_png, fetched.content, absolute_url
            )
            payload = await asyncio.to_thread(
                encode_data_uri, png, "image/png", source=absolute_url
            )
        except (ImageFetchException, ImageDecodeException) as e:
            logger.warning(
                "Object-storage fallback failed",
                url=absolute_url,
                error_code=e.error_code,
                error=e.message,
            )
            return StrategyResult.failure(e.message)

        return StrategyResult.success(payload)
