"""
Image Cache Infrastructure Exceptions

Domain-specific exceptions for durable store and network operations.
The resolution pipeline converts these into cache misses or the empty
payload sentinel; they only surface to callers of the storage layer itself.
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class ImageCacheException(Exception):
    """Base exception for image cache errors.

    Carries a machine-readable error code and structured details.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CacheStoreUnavailableException(ImageCacheException):
    """Raised when the durable store cannot serve an operation."""

    def __init__(
        self,
        message: str = "Image cache store unavailable",
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=message, error_code="CACHE_STORE_UNAVAILABLE", details=details
        )
        if original_error:
            self.__cause__ = original_error


class CacheStoreCircuitOpenException(CacheStoreUnavailableException):
    """Raised when the store circuit breaker rejects a call."""

    def __init__(
        self, message: str = "Image cache store circuit is open - store unavailable"
    ):
        super().__init__(message=message)
        self.error_code = "CACHE_STORE_CIRCUIT_OPEN"
        self.details = {"service_status": "unavailable"}


class ImageFetchException(ImageCacheException):
    """Raised when an image cannot be fetched from its URL."""

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"url": url, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        if original_error:
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Failed to fetch image {url}: {reason}",
            error_code="IMAGE_FETCH_ERROR",
            details=details,
        )
        self.url = url
        self.status_code = status_code
        if original_error:
            self.__cause__ = original_error


class ImageFetchTimeoutException(ImageFetchException):
    """Raised when an image fetch exceeds its timeout."""

    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(url=url, reason=f"timed out after {timeout_seconds}s")
        self.error_code = "IMAGE_FETCH_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds
        self.timeout_seconds = timeout_seconds


class ImageDecodeException(ImageCacheException):
    """Raised when bytes or a payload cannot be decoded as an image."""

    def __init__(self, message: str, source: Optional[str] = None):
        details = {"source": source} if source else {}
        super().__init__(
            message=message, error_code="IMAGE_DECODE_ERROR", details=details
        )


# HTTP Exceptions for API layer
class CacheStoreHTTPException(HTTPException):
    """HTTP exception wrapper for image cache errors."""

    def __init__(self, cache_exception: ImageCacheException, status_code: int = 503):
        self.cache_exception = cache_exception
        super().__init__(
            status_code=status_code,
            detail={
                "error": cache_exception.error_code,
                "message": cache_exception.message,
                "details": cache_exception.details,
            },
        )
