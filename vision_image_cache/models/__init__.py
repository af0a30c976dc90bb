"""
Vision Image Cache Database Models

SQLAlchemy models for the durable image cache table.
Timestamps are stored as UTC epoch seconds so expiry comparisons behave the
same on SQLite and PostgreSQL.
"""

from sqlalchemy import String, Text, Integer, Float, CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Canonical Base class for all database models."""

    pass


class ImageCacheRecord(Base):
    """Cached image payload keyed by ``category:related_id``."""

    __tablename__ = "image_cache_entries"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    source_url: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    related_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    created_at: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    byte_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_image_cache_ttl"),
        CheckConstraint("byte_size >= 0", name="ck_image_cache_size"),
        Index("ix_image_cache_entries_source_url", "source_url"),
    )
