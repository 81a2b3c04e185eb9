"""Shared Redis connection used by the event channel and the live push relay."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import redis.asyncio as redis
from attrs import field, frozen
from beartype import beartype
from redis.exceptions import RedisError

from .config import get_settings

__all__ = [
    "RedisConnection",
    "RedisConfig",
    "RedisType",
    "get_redis_connection",
]

if TYPE_CHECKING:
    from redis.asyncio import Redis as RedisType
else:
    RedisType = redis.Redis

logger = logging.getLogger(__name__)


@frozen
class RedisConfig:
    """Immutable Redis configuration."""

    url: str = field()
    max_connections: int = field(default=20)
    decode_responses: bool = field(default=True)


class RedisConnection:
    """Owns a ``redis.asyncio.Redis`` client for the process lifetime.

    A pre-built client (for example ``fakeredis``) can be injected, in which
    case :py:meth:`connect` is a no-op.
    """

    def __init__(self, redis_client: RedisType | None = None) -> None:
        self._redis: RedisType | None = redis_client
        settings = get_settings()
        self._config = RedisConfig(url=settings.redis_url)

    @beartype
    async def connect(self) -> None:
        """Create the Redis connection pool."""
        if self._redis is not None:
            return

        self._redis = redis.from_url(
            self._config.url,
            max_connections=self._config.max_connections,
            decode_responses=self._config.decode_responses,
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None

    @property
    def client(self) -> RedisType:
        if self._redis is None:
            raise RuntimeError("Redis not connected")
        return self._redis

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    @beartype
    async def health_check(self) -> bool:
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError) as exc:
            logger.warning("Redis health check failed: %s", exc)
            return False


_connection: RedisConnection | None = None


@beartype
def get_redis_connection() -> RedisConnection:
    """Get global Redis connection holder."""
    global _connection
    if _connection is None:
        _connection = RedisConnection()
    return _connection
