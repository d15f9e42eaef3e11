"""
Async engine and session lifecycle for the assistant's PostgreSQL store.

Every repository call opens its own short session through
`Database.session()`, so independent reads can be gathered concurrently
without sharing a connection. A session commits when its block exits
cleanly and rolls back on any exception.
"""

import asyncio
import logging
import time
from typing import AsyncGenerator, Optional, Dict, Any
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import NullPool

from config import settings
from .exceptions import DatabaseError
from .models import Base

logger = logging.getLogger(__name__)

APPLICATION_NAME = "e-manager-ai"


def _async_url(database_url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            return "postgresql+asyncpg://" + database_url[len(prefix):]
    return database_url


def _engine_options() -> Dict[str, Any]:
    """Pool settings; tests get a NullPool so each loop owns its connections."""
    if settings.environment == "test":
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


class Database:
    """Owns the engine and hands out sessions."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return bool(settings.database_url)

    async def initialize(self) -> bool:
        """Create the engine and any missing tables. Returns False when unavailable."""
        if self._initialized:
            return True

        if not self.is_configured:
            logger.warning("DATABASE_URL not configured")
            return False

        async with self._init_lock:
            # Another caller may have finished while this one waited
            if self._initialized:
                return True
            return await self._create_engine()

    async def _create_engine(self) -> bool:
        """Build the engine and session factory, then create missing tables."""
        options = _engine_options()
        logger.info(f"Creating database engine ({'NullPool' if 'poolclass' in options else 'pooled'})")

        try:
            self.engine = create_async_engine(
                _async_url(settings.database_url),
                echo=settings.database_echo,
                connect_args={"server_settings": {"application_name": APPLICATION_NAME}},
                **options,
            )
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True
            logger.info("Database initialized")
            return True

        except Exception as e:
            logger.error(f"Database initialization failed: {e}", exc_info=True)
            if self.engine is not None:
                await self.engine.dispose()
                self.engine = None
            self.session_factory = None
            return False

    async def close(self):
        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.session_factory = None
        self._initialized = False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Open a session scoped to one repository call.

        Raises:
            DatabaseError: the database is not configured or could not start
        """
        if not self._initialized and not await self.initialize():
            raise DatabaseError("Database is not available")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> dict:
        """Run SELECT 1 and report latency."""
        if not self.is_configured:
            return {"status": "not_configured"}
        started = time.perf_counter()
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


# Singleton instance
_database: Optional[Database] = None


def get_database() -> Database:
    """Get the database singleton."""
    global _database
    if _database is None:
        _database = Database()
    return _database


async def init_database() -> bool:
    return await get_database().initialize()


async def close_database():
    """Dispose the engine and drop the singleton."""
    global _database
    if _database:
        await _database.close()
        _database = None
