"""
PostgreSQL database connection and session management.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager, nullcontext
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from packages.docshub.config.postgres import PostgresConfig, postgres_config

logger = logging.getLogger(__name__)


class PostgresConnectionManager:
    """Manages PostgreSQL database connections with retry logic."""

    def __init__(self, config: PostgresConfig | None = None):
        self.config = config or postgres_config
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self) -> None:
        """Initialize the database engine and session factory."""
        if self._engine:
            return

        for attempt in range(self.config.DB_RETRY_LIMIT):
            try:
                logger.info(f"Attempting to connect to PostgreSQL (attempt {attempt + 1}/{self.config.DB_RETRY_LIMIT})")
                pool_kwargs = self.config.get_pool_kwargs()
                self._engine = create_async_engine(
                    self.config.async_database_url,
                    echo=self.config.DB_ECHO,
                    connect_args=self.config.get_connect_args(),
                    **pool_kwargs,
                )

                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))

                logger.info("Successfully connected to PostgreSQL")
                break
            except (OperationalError, DBAPIError, OSError) as e:
                logger.warning(f"Database connection attempt {attempt + 1} failed: {e}")
                if self._engine is not None:
                    await self._engine.dispose()
                    self._engine = None
                if attempt < self.config.DB_RETRY_LIMIT - 1:
                    await asyncio.sleep(self.config.DB_RETRY_INTERVAL * (2**attempt))
                else:
                    raise

        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def close(self) -> None:
        """Close the database engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session that commits on success and rolls back on error."""
        if not self._sessionmaker:
            await self.initialize()

        if self._sessionmaker is None:
            raise RuntimeError("Database sessionmaker not initialized")
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()


# Global connection manager instance
pg_connection_manager = PostgresConnectionManager()


def savepoint(session: AsyncSession | None) -> AbstractAsyncContextManager[Any]:
    """Nested transaction around one best-effort item.

    A failure inside rolls back only that item's writes. Without a session
    (services running against in-memory stores) this is a no-op.
    """
    if session is None:
        return nullcontext()
    return session.begin_nested()
