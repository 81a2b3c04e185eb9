"""Database connection management with asyncpg and connection pooling."""

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


@frozen
class PoolConfig:
    """Immutable pool configuration."""

    min_connections: int = field()
    max_connections: int = field()
    connection_timeout: float = field(default=10.0)
    command_timeout: float = field(default=30.0)
    read_timeout: float = field(default=5.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolConfig":
        return cls(
            min_connections=settings.database_pool_min,
            max_connections=settings.database_pool_max,
            connection_timeout=settings.database_pool_timeout,
            command_timeout=settings.database_command_timeout,
            read_timeout=settings.database_read_timeout,
        )


class Database:
    """Thin asyncpg pool wrapper used by the stores.

    Reads run with the configured read timeout so a slow query surfaces as
    an error instead of holding a request open indefinitely.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._config = PoolConfig.from_settings(self._settings)
        self._pool: asyncpg.Pool | None = None

    @beartype
    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            self._settings.database_url,
            min_size=self._config.min_connections,
            max_size=self._config.max_connections,
            command_timeout=self._config.command_timeout,
        )
        logger.info(
            "Database pool ready (min=%d, max=%d)",
            self._config.min_connections,
            self._config.max_connections,
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
        self._pool = None

    @contextlib.asynccontextmanager
    async def acquire(
        self, *, timeout: float | None = None
    ) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection."""
        if self._pool is None:
            raise RuntimeError("Database not connected")

        async with self._pool.acquire(
            timeout=timeout or self._config.connection_timeout
        ) as conn:
            yield conn

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a read query and fetch all results."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args, timeout=self._config.read_timeout)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Execute a read query and fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(
                query, *args, timeout=self._config.read_timeout
            )

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a read query and fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(
                query, *args, timeout=self._config.read_timeout
            )

    async def write_returning(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Run a single-statement write and return the affected row, if any.

        A single ``UPDATE ... RETURNING`` is atomic at the row level, which is
        what the compare-and-update paths in the stores depend on.
        """
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def write_returning_many(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Run a single-statement write and return every affected row."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @beartype
    async def health_check(self) -> bool:
        """Return True when the pool answers a trivial query."""
        if self._pool is None:
            return False
        try:
            return await self.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError, TimeoutError) as exc:
            logger.warning("Database health check failed: %s", exc)
            return False


_database: Database | None = None


@beartype
def get_database() -> Database:
    """Get global database instance."""
    global _database
    if _database is None:
        _database = Database()
    return _database
