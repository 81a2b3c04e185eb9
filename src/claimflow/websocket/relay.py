"""Cross-instance live push over Redis pub/sub.

With several API instances (or a separate notification worker), the process
that consumed an event is rarely the one holding the user's socket. The relay
publishes each push to a shared channel; every instance listens and hands the
message to its own :class:`ConnectionManager`, which drops it when the user
is not connected there.
"""

import asyncio
import json
import logging
from typing import Any

from beartype import beartype
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..core.config import Settings, get_settings
from .manager import ConnectionManager, WebSocketMessage

logger = logging.getLogger(__name__)

_MAX_RECONNECT_DELAY = 30.0


class RedisLivePushRelay:
    def __init__(
        self,
        redis_client: Any,
        manager: ConnectionManager | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._redis = redis_client
        self._manager = manager
        self._settings = settings or get_settings()
        self._pending: set[asyncio.Task[None]] = set()
        self._listener: asyncio.Task[None] | None = None
        self._reconnects = 0

    @property
    def channel(self) -> str:
        return self._settings.live_push_channel

    @beartype
    def publish(self, user_id: str, message: WebSocketMessage) -> int:
        """Schedule a relay publish and return without waiting."""
        envelope = json.dumps(
            {"recipient_id": user_id, "message": message.model_dump(mode="json")}
        )
        task = asyncio.create_task(self._publish(user_id, envelope))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return 1

    async def _publish(self, user_id: str, envelope: str) -> None:
        try:
            await self._redis.publish(self.channel, envelope)
        except (RedisError, OSError) as exc:
            logger.warning("Live push relay publish for %s failed: %s", user_id, exc)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @beartype
    def dispatch(self, raw: str | bytes) -> int:
        """Forward one relayed envelope to the local connection manager."""
        if self._manager is None:
            return 0
        try:
            envelope = json.loads(raw)
            message = WebSocketMessage.model_validate(envelope["message"])
            recipient_id = str(envelope["recipient_id"])
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("Dropping malformed relay envelope: %s", exc)
            return 0
        return self._manager.publish(recipient_id, message)

    async def listen(self) -> None:
        """Dispatch relayed pushes until cancelled, resubscribing after errors."""
        while True:
            try:
                await self._listen_once()
                reason = "subscription ended"
            except (RedisError, OSError) as exc:
                reason = str(exc)
            self._reconnects += 1
            delay = min(
                self._settings.live_push_reconnect_seconds * 2 ** (self._reconnects - 1),
                _MAX_RECONNECT_DELAY,
            )
            logger.error(
                "Live push relay lost %s (%s); resubscribing in %.1fs",
                self.channel,
                reason,
                delay,
            )
            await asyncio.sleep(delay)

    async def _listen_once(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            self._reconnects = 0
            logger.info("Live push relay listening on %s", self.channel)
            async for item in pubsub.listen():
                if item.get("type") == "message":
                    self.dispatch(item["data"])
        finally:
            try:
                await pubsub.aclose()
            except (RedisError, OSError) as exc:
                logger.debug("Closing relay subscription failed: %s", exc)

    def start(self) -> None:
        if self._listener is None and self._manager is not None:
            self._listener = asyncio.create_task(self.listen())

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        await self.drain()
