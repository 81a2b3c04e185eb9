"""Standalone notification worker.

Runs the status-change consumer without the HTTP API. The worker holds no
WebSocket connections, so live pushes always go through the Redis relay to
whichever API instance the user is connected to.
"""

import asyncio
import logging
import signal
from typing import Any

from .core.config import Settings, get_settings
from .core.database import Database, get_database
from .core.logging_utils import configure_logging
from .core.redis_client import get_redis_connection
from .events.consumer import ClaimEventConsumer
from .services.notification_pipeline import NotificationPipeline
from .services.notification_store import NotificationStore
from .websocket.relay import RedisLivePushRelay

logger = logging.getLogger(__name__)


def build_consumer(
    redis_client: Any,
    db: Database,
    push: Any,
    settings: Settings | None = None,
) -> ClaimEventConsumer:
    """Wire store, pipeline and consumer together."""
    settings = settings or get_settings()
    pipeline = NotificationPipeline(NotificationStore(db), push=push, settings=settings)
    return ClaimEventConsumer(redis_client, pipeline.handle, settings=settings)


async def run_worker() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level_value)

    db = get_database()
    redis_connection = get_redis_connection()
    await db.connect()
    await redis_connection.connect()

    relay = RedisLivePushRelay(redis_connection.client, manager=None, settings=settings)
    consumer = build_consumer(redis_connection.client, db, relay, settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await consumer.start()
        logger.info("Notification worker started")
        await stop.wait()
    finally:
        logger.info("Notification worker stopping")
        await consumer.stop()
        await relay.stop()
        await db.disconnect()
        await redis_connection.disconnect()


def main() -> None:
    """Entry point for ``claimflow-worker``."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
