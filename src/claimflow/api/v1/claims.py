"""Claim endpoints for policyholders.

Every route acts on behalf of the authenticated caller: listings are
restricted to the caller's own claims and only the owner may cancel.
"""

from beartype import beartype
from fastapi import APIRouter, Depends, Response, status

from ...models.claim import Claim, ClaimCreate, ClaimStatus, PolicyType
from ...schemas.auth import CallerContext
from ...services.claim_service import ClaimService
from ..dependencies import get_caller, get_claim_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def submit_claim(
    claim_data: ClaimCreate,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    """Submit a new claim owned by the caller."""
    result = await service.submit(caller, claim_data)
    return handle_result(result, response, status.HTTP_201_CREATED)


@router.get("/my-claims")
@beartype
async def list_my_claims(
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    return handle_result(await service.list_mine(caller), response)


@router.get("/by-status/{claim_status}")
@beartype
async def list_my_claims_by_status(
    claim_status: ClaimStatus,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    return handle_result(await service.list_mine_by_status(caller, claim_status), response)


@router.get("/by-policy-type/{policy_type}")
@beartype
async def list_my_claims_by_policy_type(
    policy_type: PolicyType,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    return handle_result(
        await service.list_mine_by_policy_type(caller, policy_type), response
    )


@router.get("/by-policy/{policy_number}")
@beartype
async def list_my_claims_by_policy(
    policy_number: str,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> list[Claim] | ErrorResponse:
    """The caller's claims filed against one policy."""
    return handle_result(await service.list_mine_by_policy(caller, policy_number), response)


@router.get("/{claim_number}")
@beartype
async def get_claim(
    claim_number: str,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    return handle_result(await service.get_by_number(caller, claim_number), response)


@router.patch("/{claim_number}/cancel")
@beartype
async def cancel_claim(
    claim_number: str,
    response: Response,
    caller: CallerContext = Depends(get_caller),
    service: ClaimService = Depends(get_claim_service),
) -> Claim | ErrorResponse:
    """Cancel one of the caller's claims while it is still undecided."""
    return handle_result(await service.cancel(caller, claim_number), response)
