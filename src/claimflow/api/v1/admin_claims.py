# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Admin claim workflow endpoints: review, decide, settle, report."""

from beartype import beartype
from fastapi import APIRouter, Depends, Response

from ...models.claim import (
    Claim,
    ClaimApproval,
    ClaimRejection,
    ClaimStatistics,
    ClaimStatus,
)
from ...schemas.auth import CallerContext
from ...services.claim_service import ClaimService
from ..dependencies import get_claim_service, require_admin
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()


@router.get("")
@beartype
async def list_all_claims(
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    return handle_result(await service.list_all(admin), response)


@router.get("/statistics")
@beartype
async def claim_statistics(
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> ClaimStatistics | ErrorResponse:
    """Counts per status; ``total_claims`` is their sum."""
    return handle_result(await service.get_statistics(admin), response)


@router.get("/by-status/{claim_status}")
@beartype
async def list_claims_by_status(
    claim_status: ClaimStatus,
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    return handle_result(await service.list_by_status(admin, claim_status), response)


@router.patch("/{claim_number}/under-review")
@beartype
async def move_claim_to_review(
    claim_number: str,
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    return handle_result(await service.move_to_under_review(admin, claim_number), response)


@router.patch("/{claim_number}/approve")
@beartype
async def approve_claim(
    claim_number: str,
    approval: ClaimApproval,
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    return handle_result(await service.approve(admin, claim_number, approval), response)


@router.patch("/{claim_number}/reject")
@beartype
async def reject_claim(
    claim_number: str,
    rejection: ClaimRejection,
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    return handle_result(await service.reject(admin, claim_number, rejection), response)


@router.patch("/{claim_number}/settle")
@beartype
async def settle_claim(
    claim_number: str,
    response: Response,
    admin: CallerContext = Depends(require_admin),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    return handle_result(await service.settle(admin, claim_number), response)
