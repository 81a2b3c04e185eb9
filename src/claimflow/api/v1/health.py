"""Health check endpoint reporting database and Redis reachability."""

import logging
from datetime import datetime, timezone

from beartype import beartype
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.config import get_settings
from ...core.database import get_database
from ...core.redis_client import get_redis_connection
from ...websocket.manager import get_connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Overall health with per-component status."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    status: str = Field(..., pattern=r"^(healthy|degraded)$")
    environment: str
    components: dict[str, bool] = Field(default_factory=dict)
    live_connections: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@router.get("/health")
@beartype
async def health_check(response: Response) -> HealthResponse:
    components = {
        "database": await get_database().health_check(),
        "redis": await get_redis_connection().health_check(),
    }
    healthy = all(components.values())
    if not healthy:
        logger.warning("Health check degraded: %s", components)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        environment=get_settings().api_env,
        components=components,
        live_connections=get_connection_manager().connection_count(),
    )
