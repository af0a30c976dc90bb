"""
Cache Domain Entities

Core domain entities for the durable image cache.
Encapsulates the invariants of a cached image entry.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from ...constants import get_current_timestamp
from .value_objects import CacheKey, TTL, ImageCategory


@dataclass
class ImageCacheEntry:
    """
    Durable image cache entry.

    Holds an encoded image payload (data URI) for one image slot of a
    business entity, together with the URL it was downloaded from.
    """

    key: CacheKey
    source_url: str
    payload: str
    category: ImageCategory
    related_id: str
    created_at: datetime
    expires_at: datetime
    byte_size: int = 0

    def __post_init__(self) -> None:
        """Validate entry invariants."""
        if not self.payload:
            raise ValueError("Payload cannot be empty")
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")
        if self.key != CacheKey.for_image(self.category, self.related_id):
            raise ValueError(
                f"Key {self.key} does not match {self.category.value}:{self.related_id}"
            )
        self.byte_size = len(self.payload)

    @classmethod
    def create(
        cls,
        category: Union[ImageCategory, str],
        related_id: str,
        source_url: str,
        payload: str,
        ttl: Optional[TTL] = None,
        now: Optional[datetime] = None,
    ) -> "ImageCacheEntry":
        """Create new cache entry expiring ``ttl`` after ``now``."""
        category = ImageCategory(category)
        created_at = now or get_current_timestamp()
        ttl = ttl or TTL.image_default()

        return cls(
            key=CacheKey.for_image(category, related_id),
            source_url=source_url,
            payload=payload,
            category=category,
            related_id=str(related_id),
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl.seconds),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if cache entry is expired."""
        return (now or get_current_timestamp()) > self.expires_at

    def remaining_ttl(self, now: Optional[datetime] = None) -> int:
        """Whole seconds left before expiry (0 when expired)."""
        delta = self.expires_at - (now or get_current_timestamp())
        return max(0, int(delta.total_seconds()))
