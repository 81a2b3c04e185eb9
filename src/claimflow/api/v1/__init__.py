"""API v1 router aggregation.

This module combines all v1 API routers into a single router
that can be mounted on the main FastAPI application.
"""

from fastapi import APIRouter

from .admin_claims import router as admin_claims_router
from .claims import router as claims_router
from .health import router as health_router
from .notifications import router as notifications_router

router = APIRouter(prefix="/api/v1")

router.include_router(health_router, tags=["health"])
router.include_router(claims_router, prefix="/claims", tags=["claims"])
router.include_router(admin_claims_router, prefix="/admin/claims", tags=["admin"])
router.include_router(
    notifications_router, prefix="/notifications", tags=["notifications"]
)

__all__ = ["router"]
