"""
HTTP Image Fetcher

Thin wrapper over ``httpx.AsyncClient`` that downloads image bytes with a
bounded timeout and optional exponential-backoff retries. Every failure is
surfaced as an ``ImageFetchException`` subclass.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...constants import DEFAULT_FETCH_TIMEOUT_SECONDS
from ..exceptions import ImageFetchException, ImageFetchTimeoutException

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedImage:
    """Raw response body of a successful image download."""

    url: str
    content: bytes
    content_type: str


class ImageFetcher:
    """
    Async image downloader.

    The underlying client is created lazily unless one is injected; an
    injected client is owned by the caller and never closed here.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        retries: int = 0,
        retry_delay: float = 0.5,
    ):
        if retries < 0:
            raise ValueError("retries cannot be negative")
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> FetchedImage:
        """
        Download ``url``, retrying with exponential backoff when configured.

        Raises:
            ImageFetchTimeoutException: when an attempt exceeds the timeout
            ImageFetchException: on non-2xx status, transport error or empty body
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, max=10),
            retry=retry_if_exception_type(ImageFetchException),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying image fetch for {url}",
                extra={
                    "url": url,
                    "attempt": retry_state.attempt_number,
                    "wait_time": retry_state.next_action.sleep,
                },
            ),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self._fetch_once(url, headers, timeout or self.timeout)

        raise ImageFetchException(url=url, reason="no fetch attempt made")

    async def _fetch_once(
        self, url: str, headers: Optional[Dict[str, str]], timeout: float
    ) -> FetchedImage:
        start_time = time.time()
        try:
            response = await self.client.get(url, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ImageFetchTimeoutException(url=url, timeout_seconds=timeout) from e
        except httpx.HTTPError as e:
            raise ImageFetchException(
                url=url, reason=f"transport error: {e}", original_error=e
            ) from e

        if not response.is_success:
            raise ImageFetchException(
                url=url,
                reason=f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            raise ImageFetchException(
                url=url, reason="empty response body", status_code=response.status_code
            )

        content_type = response.headers.get("content-type", "").split(";")[0].strip()

        logger.debug(
            f"Fetched image {url}",
            extra={
                "url": url,
                "byte_size": len(response.content),
                "content_type": content_type,
                "execution_time_ms": (time.time() - start_time) * 1000,
            },
        )
        return FetchedImage(url=url, content=response.content, content_type=content_type)

    async def head(self, url: str, timeout: Optional[float] = None) -> int:
        """Issue a HEAD request and return the status code."""
        timeout = timeout or self.timeout
        try:
            response = await self.client.head(url, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ImageFetchTimeoutException(url=url, timeout_seconds=timeout) from e
        except httpx.HTTPError as e:
            raise ImageFetchException(
                url=url, reason=f"transport error: {e}", original_error=e
            ) from e
        return response.status_code

    async def probe(self, url: str, timeout: Optional[float] = None) -> int:
        """Open a GET request without reading the body and return the status code."""
        timeout = timeout or self.timeout
        try:
            async with self.client.stream("GET", url, timeout=timeout) as response:
                return response.status_code
        except httpx.TimeoutException as e:
            raise ImageFetchTimeoutException(url=url, timeout_seconds=timeout) from e
        except httpx.HTTPError as e:
            raise ImageFetchException(
                url=url, reason=f"transport error: {e}", original_error=e
            ) from e

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
