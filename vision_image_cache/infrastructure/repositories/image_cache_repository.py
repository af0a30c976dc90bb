"""
SQL Image Cache Repository Implementation

Infrastructure implementation of the image cache repository using SQLAlchemy.
Every operation runs in its own transaction behind the store circuit breaker;
database errors surface as ``CacheStoreUnavailableException``.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from ...constants import get_current_timestamp
from ...core.database import DatabaseManager
from ...domain.cache.entities import ImageCacheEntry
from ...domain.cache.repository_interfaces import ImageCacheRepository
from ...domain.cache.value_objects import CacheKey, CacheStats, ImageCategory
from ...models import ImageCacheRecord
from ..exceptions import CacheStoreUnavailableException
from ..storage.circuit_breaker import StoreCircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def _to_epoch(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def _from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class SqlImageCacheRepository(ImageCacheRepository):
    """SQLAlchemy implementation of the durable image cache."""

    def __init__(
        self,
        database: DatabaseManager,
        circuit_breaker: Optional[StoreCircuitBreaker] = None,
        clock: Clock = get_current_timestamp,
    ):
        self.database = database
        self.circuit_breaker = circuit_breaker or StoreCircuitBreaker()
        self.clock = clock

    async def initialize(self) -> None:
        """Create schema and connections."""
        try:
            await self.database.initialize()
        except (SQLAlchemyError, OSError) as e:
            logger.exception("Failed to initialize image cache store")
            raise CacheStoreUnavailableException(
                message=f"Failed to initialize image cache store: {e}",
                operation="initialize",
                original_error=e,
            ) from e

    async def close(self) -> None:
        await self.database.close()

    async def _run(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run a store operation with error translation and breaker protection."""

        async def guarded() -> T:
            start_time = time.time()
            try:
                return await func()
            except SQLAlchemyError as e:
                logger.warning(
                    f"Image cache store operation {operation} failed: {e}",
                    extra={
                        "operation": operation,
                        "execution_time_ms": (time.time() - start_time) * 1000,
                    },
                )
                raise CacheStoreUnavailableException(
                    message=f"Image cache store operation '{operation}' failed",
                    operation=operation,
                    original_error=e,
                ) from e

        guarded.__name__ = operation
        return await self.circuit_breaker.call(guarded)

    async def save(self, entry: ImageCacheEntry) -> None:
        """Upsert entry by key."""

        async def _save() -> None:
            async with self.database.session() as session:
                await session.merge(self._to_record(entry))

            logger.debug(
                f"Saved image cache entry: {entry.key}",
                extra={"category": entry.category.value, "byte_size": entry.byte_size},
            )

        await self._run("save", _save)

    async def find_by_key(self, key: CacheKey) -> Optional[ImageCacheEntry]:
        """Find live entry by key, deleting it when expired."""

        async def _find() -> Optional[ImageCacheEntry]:
            async with self.database.session() as session:
                record = await session.get(ImageCacheRecord, key.value)
                if record is None:
                    return None

                if self._is_expired(record):
                    await session.delete(record)
                    logger.debug(f"Expired image cache entry removed: {key}")
                    return None

                return self._to_entity(record)

        return await self._run("find_by_key", _find)

    async def find_by_source_url(self, url: str) -> Optional[ImageCacheEntry]:
        """Find newest live entry downloaded from ``url``."""
        if not url or not url.strip():
            return None

        async def _find() -> Optional[ImageCacheEntry]:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ImageCacheRecord)
                    .where(ImageCacheRecord.source_url == url)
                    .order_by(ImageCacheRecord.created_at.desc())
                )
                live: Optional[ImageCacheRecord] = None
                for record in result.scalars():
                    if self._is_expired(record):
                        await session.delete(record)
                    elif live is None:
                        live = record

                return self._to_entity(live) if live is not None else None

        return await self._run("find_by_source_url", _find)

    async def find_many(self, keys: List[CacheKey]) -> Dict[CacheKey, ImageCacheEntry]:
        """Find live entries for several keys; misses are omitted."""
        if not keys:
            return {}

        async def _find() -> Dict[CacheKey, ImageCacheEntry]:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ImageCacheRecord).where(
                        ImageCacheRecord.key.in_([key.value for key in keys])
                    )
                )
                found: Dict[CacheKey, ImageCacheEntry] = {}
                for record in result.scalars():
                    if self._is_expired(record):
                        await session.delete(record)
                        continue
                    found[CacheKey(record.key)] = self._to_entity(record)
                return found

        return await self._run("find_many", _find)

    async def delete(self, key: CacheKey) -> bool:
        """Delete entry by key."""

        async def _delete() -> bool:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(ImageCacheRecord).where(ImageCacheRecord.key == key.value)
                )
                return result.rowcount > 0

        return await self._run("delete", _delete)

    async def delete_by_related_id(self, related_id: str) -> int:
        """Delete every entry owned by a business entity."""

        async def _delete() -> int:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(ImageCacheRecord).where(
                        ImageCacheRecord.related_id == str(related_id)
                    )
                )
                count = result.rowcount or 0

            logger.info(
                f"Deleted {count} image cache entries for related id {related_id}",
                extra={"related_id": str(related_id), "count": count},
            )
            return count

        return await self._run("delete_by_related_id", _delete)

    async def delete_expired(self) -> int:
        """Delete every entry whose expiry is not in the future."""

        async def _delete() -> int:
            now = _to_epoch(self.clock())
            async with self.database.session() as session:
                result = await session.execute(
                    delete(ImageCacheRecord).where(ImageCacheRecord.expires_at <= now)
                )
                count = result.rowcount or 0

            logger.info(f"Swept {count} expired image cache entries")
            return count

        return await self._run("delete_expired", _delete)

    async def get_stats(self) -> CacheStats:
        """Aggregate entry counts and sizes per category."""

        async def _stats() -> CacheStats:
            async with self.database.session() as session:
                result = await session.execute(
                    select(
                        ImageCacheRecord.category,
                        func.count(ImageCacheRecord.key),
                        func.coalesce(func.sum(ImageCacheRecord.byte_size), 0),
                    ).group_by(ImageCacheRecord.category)
                )
                stats = CacheStats()
                for category, count, size in result.all():
                    bucket = stats.by_category[ImageCategory(category)]
                    bucket.count = int(count)
                    bucket.size = int(size)
                    stats.total_count += int(count)
                    stats.total_size += int(size)
                return stats

        return await self._run("get_stats", _stats)

    async def list_entries(self) -> List[ImageCacheEntry]:
        """Return all stored entries ordered by creation time."""

        async def _list() -> List[ImageCacheEntry]:
            async with self.database.session() as session:
                result = await session.execute(
                    select(ImageCacheRecord).order_by(ImageCacheRecord.created_at)
                )
                return [self._to_entity(record) for record in result.scalars()]

        return await self._run("list_entries", _list)

    async def clear(self) -> int:
        """Delete all entries."""

        async def _clear() -> int:
            async with self.database.session() as session:
                result = await session.execute(delete(ImageCacheRecord))
                count = result.rowcount or 0

            logger.info(f"Cleared image cache store ({count} entries)")
            return count

        return await self._run("clear", _clear)

    def _is_expired(self, record: ImageCacheRecord) -> bool:
        return _to_epoch(self.clock()) > record.expires_at

    @staticmethod
    def _to_record(entry: ImageCacheEntry) -> ImageCacheRecord:
        return ImageCacheRecord(
            key=entry.key.value,
            source_url=entry.source_url,
            payload=entry.payload,
            category=entry.category.value,
            related_id=entry.related_id,
            created_at=_to_epoch(entry.created_at),
            expires_at=_to_epoch(entry.expires_at),
            byte_size=entry.byte_size,
        )

    @staticmethod
    def _to_entity(record: ImageCacheRecord) -> ImageCacheEntry:
        return ImageCacheEntry(
            key=CacheKey(record.key),
            source_url=record.source_url,
            payload=record.payload,
            category=ImageCategory(record.category),
            related_id=record.related_id,
            created_at=_from_epoch(record.created_at),
            expires_at=_from_epoch(record.expires_at),
            byte_size=record.byte_size,
        )

    async def health_check(self) -> Dict[str, Any]:
        """Database probe plus circuit breaker state."""
        status = await self.database.health_check()
        status["circuit_breaker"] = self.circuit_breaker.get_status()
        return status
