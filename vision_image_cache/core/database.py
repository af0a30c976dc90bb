"""
Vision Image Cache Database Configuration

Connection management for the durable image cache:
- Async engine creation with retry and exponential backoff
- Session factory with transaction scoping
- Schema creation on startup
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
import structlog

from .config import get_settings
from ..models import Base

logger = structlog.get_logger()


class DatabaseManager:
    """
    Database connection manager for the durable image cache.

    Features:
    - Engine creation with retry logic
    - Session scoping with commit/rollback
    - SQLite friendly defaults (WAL journal, in-memory static pool)
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        settings = get_settings()
        self.database_url = database_url or settings.CACHE_DATABASE_URL
        self.echo = settings.DEBUG if echo is None else echo
        if echo is None and settings.SQL_ECHO is not None:
            self.echo = settings.SQL_ECHO
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OperationalError, ConnectionError)),
        before_sleep=lambda retry_state: logger.warning(
            "Database connection retry",
            attempt=retry_state.attempt_number,
            wait_time=retry_state.next_action.sleep,
        ),
        reraise=True,
    )
    async def _create_engine_with_retry(self) -> AsyncEngine:
        """Create database engine and verify connectivity."""
        start_time = time.time()
        engine_kwargs: Dict[str, Any] = {"echo": self.echo, "future": True}

        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": 30}
            if ":memory:" in self.database_url:
                # One shared connection, otherwise every session sees an empty DB
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=3600)

        engine = create_async_engine(self.database_url, **engine_kwargs)

        if self.is_sqlite:

            @event.listens_for(engine.sync_engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA busy_timeout=5000")
                cursor.close()

        async with engine.connect() as connection:
            await connection.execute(text("SELECT 1"))

        logger.info(
            "Database engine created successfully",
            duration_seconds=time.time() - start_time,
            sqlite=self.is_sqlite,
        )
        return engine

    async def initialize(self) -> None:
        """Create engine, session factory and schema."""
        if self.engine is not None:
            return

        try:
            self.engine = await self._create_engine_with_retry()
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)

            logger.info("Image cache database initialized")

        except Exception as e:
            logger.error("Failed to initialize image cache database", error=str(e))
            # next session() retries from scratch
            if self.engine is not None:
                await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            raise

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session wrapped in a transaction."""
        if self.session_factory is None:
            await self.initialize()

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Probe database connectivity."""
        start_time = time.time()
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return {
                "status": "healthy",
                "response_time_ms": (time.time() - start_time) * 1000,
            }
        except Exception as e:
            logger.warning("Image cache database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

    async def close(self) -> None:
        """Dispose engine and its pooled connections."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Image cache database connections closed")
