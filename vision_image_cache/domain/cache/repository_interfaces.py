"""
Cache Repository Interfaces

Abstract repository interface following the DDD Repository pattern.
Defines the contract for durable image cache implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .entities import ImageCacheEntry
from .value_objects import CacheKey, CacheStats


class ImageCacheRepository(ABC):
    """
    Abstract repository for durable image cache operations.

    Reads apply lazy expiry: an entry read after ``expires_at`` is deleted
    and reported as a miss. Implementations raise
    ``CacheStoreUnavailableException`` when the backing store fails.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare storage (create tables, open connections)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release storage resources."""
        pass

    @abstractmethod
    async def save(self, entry: ImageCacheEntry) -> None:
        """Upsert entry by key."""
        pass

    @abstractmethod
    async def find_by_key(self, key: CacheKey) -> Optional[ImageCacheEntry]:
        """Find live entry by key."""
        pass

    @abstractmethod
    async def find_by_source_url(self, url: str) -> Optional[ImageCacheEntry]:
        """Find live entry by the URL it was downloaded from."""
        pass

    @abstractmethod
    async def find_many(self, keys: List[CacheKey]) -> Dict[CacheKey, ImageCacheEntry]:
        """Find live entries for several keys; misses are omitted."""
        pass

    @abstractmethod
    async def delete(self, key: CacheKey) -> bool:
        """Delete entry by key."""
        pass

    @abstractmethod
    async def delete_by_related_id(self, related_id: str) -> int:
        """Delete every entry owned by a business entity."""
        pass

    @abstractmethod
    async def delete_expired(self) -> int:
        """Delete every expired entry."""
        pass

    @abstractmethod
    async def get_stats(self) -> CacheStats:
        """Aggregate entry counts and sizes."""
        pass

    @abstractmethod
    async def list_entries(self) -> List[ImageCacheEntry]:
        """Return all stored entries, expired ones included."""
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Delete all entries."""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Report store connectivity."""
        pass
