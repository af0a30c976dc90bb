"""
Cache Value Objects

Immutable value objects for the image cache domain.
Provides type safety and validation for cache keys, TTLs and statistics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union

from pydantic import BaseModel, Field, model_validator


class ImageCategory(str, Enum):
    """Kind of image stored in the durable cache."""

    LAYOUT_FRONT_VIEW = "layout_front_view"
    LAYOUT_SIDE_VIEW = "layout_side_view"
    LAYOUT_TOP_VIEW = "layout_top_view"
    MODULE_SCHEMATIC = "module_schematic"
    HARDWARE = "hardware"
    PRODUCT = "product"
    ANNOTATION = "annotation"


@dataclass(frozen=True)
class CacheKey:
    """
    Immutable cache key value object.

    Keys follow the ``{category}:{related_id}`` convention, one entry per
    image slot of a business entity.
    """

    value: str

    def __post_init__(self) -> None:
        """Validate cache key format."""
        if not self.value or not self.value.strip():
            raise ValueError("Cache key cannot be empty")

    @classmethod
    def for_image(
        cls, category: Union[ImageCategory, str], related_id: str
    ) -> "CacheKey":
        """Create the cache key of an entity's image slot."""
        category = ImageCategory(category)
        related = str(related_id)
        if not related.strip():
            raise ValueError("Related ID cannot be empty")
        return cls(f"{category.value}:{related}")

    @property
    def category(self) -> ImageCategory:
        """Category part of the key."""
        return ImageCategory(self.value.split(":", 1)[0])

    @property
    def related_id(self) -> str:
        """Related entity part of the key."""
        return self.value.split(":", 1)[1]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TTL:
    """
    Time To Live value object for cache expiration.

    Provides type-safe TTL configuration with validation.
    """

    seconds: int

    def __post_init__(self) -> None:
        """Validate TTL value."""
        if self.seconds <= 0:
            raise ValueError("TTL must be positive")
        if self.seconds > 86400 * 365:  # Max 1 year
            raise ValueError("TTL too large (max 1 year)")

    @classmethod
    def hours(cls, hours: int) -> "TTL":
        """Create TTL from hours."""
        return cls(hours * 3600)

    @classmethod
    def image_default(cls) -> "TTL":
        """Durable image cache TTL (24 hours)."""
        return cls.hours(24)

    def __str__(self) -> str:
        return f"{self.seconds}s"


class CategoryStats(BaseModel):
    """Entry count and payload size of one image category."""

    count: int = Field(default=0, ge=0)
    size: int = Field(default=0, ge=0)


class CacheStats(BaseModel):
    """Durable cache statistics for the cache management view."""

    total_count: int = Field(default=0, ge=0, description="Number of entries")
    total_size: int = Field(default=0, ge=0, description="Sum of payload sizes")
    by_category: Dict[ImageCategory, CategoryStats] = Field(default_factory=dict)

    @model_validator(mode="after")
    def fill_missing_categories(self) -> "CacheStats":
        for category in ImageCategory:
            self.by_category.setdefault(category, CategoryStats())
        return self

