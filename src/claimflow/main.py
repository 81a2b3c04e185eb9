"""ClaimFlow - Main Application Module."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api.response_patterns import request_validation_handler
from .api.v1 import router as v1_router
from .core.config import get_settings
from .core.database import get_database
from .core.logging_utils import configure_logging
from .core.redis_client import get_redis_connection
from .websocket.endpoint import router as websocket_router
from .websocket.manager import get_connection_manager
from .websocket.relay import RedisLivePushRelay
from .worker import build_consumer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()
    configure_logging(level=settings.log_level_value)
    logger.info("Starting %s in %s mode", settings.app_name, settings.api_env)

    db = get_database()
    await db.connect()
    redis_connection = get_redis_connection()
    await redis_connection.connect()

    manager = get_connection_manager()
    relay: RedisLivePushRelay | None = None
    push = manager
    if settings.live_push_backend == "redis":
        relay = RedisLivePushRelay(redis_connection.client, manager, settings)
        relay.start()
        push = relay

    consumer = None
    if settings.notification_consumer_enabled:
        consumer = build_consumer(redis_connection.client, db, push, settings)
        await consumer.start()
    app.state.consumer = consumer

    yield

    logger.info("Shutting down %s", settings.app_name)
    if consumer is not None:
        await consumer.stop()
    if relay is not None:
        await relay.stop()
    await manager.close_all()
    await db.disconnect()
    await redis_connection.disconnect()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Insurance claim lifecycle and status-change notifications",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(v1_router)
    app.include_router(websocket_router)
    return app


app = create_app()


def main() -> None:
    """Entry point for ``claimflow-api``."""
    settings = get_settings()
    uvicorn.run(
        "claimflow.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
