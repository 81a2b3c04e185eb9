# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies for caller identity and service construction.

Endpoints never build services themselves; tests swap any of these through
``app.dependency_overrides``.
"""

from beartype import beartype
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.database import get_database
from ..core.redis_client import get_redis_connection
from ..core.security import (
    IdentityVerifier,
    caller_from_gateway_headers,
    get_identity_verifier,
)
from ..events.publisher import EventPublisher
from ..schemas.auth import CallerContext
from ..services.claim_service import ClaimService
from ..services.claim_store import ClaimStore
from ..services.notification_service import NotificationService
from ..services.notification_store import NotificationStore
from ..services.policy_directory import PolicyDirectory
from ..websocket.manager import ConnectionManager, get_connection_manager

# Security scheme; missing credentials are reported by get_caller.
security = HTTPBearer(auto_error=False)


def get_identity_verifier_dep() -> IdentityVerifier:
    return get_identity_verifier()


def get_connection_manager_dep() -> ConnectionManager:
    return get_connection_manager()


async def get_caller(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(security),
    verifier: IdentityVerifier = Depends(get_identity_verifier_dep),
) -> CallerContext:
    """Resolve the caller from gateway headers or the bearer token.

    Raises:
        HTTPException: 401 when neither identifies the caller.
    """
    result = caller_from_gateway_headers(request.headers)
    if result is None:
        token = credentials.credentials if credentials else None
        result = await verifier.verify(token)
    if result.is_err():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.err_value.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return result.ok_value


async def require_admin(caller: CallerContext = Depends(get_caller)) -> CallerContext:
    if not caller.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return caller


@beartype
def get_event_publisher() -> EventPublisher:
    return EventPublisher(get_redis_connection().client)


@beartype
def get_claim_service() -> ClaimService:
    return ClaimService(
        ClaimStore(get_database()),
        publisher=get_event_publisher(),
        policies=PolicyDirectory(),
    )


@beartype
def get_notification_service() -> NotificationService:
    return NotificationService(NotificationStore(get_database()))
