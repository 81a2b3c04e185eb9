# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Claim lifecycle engine.

Owns every claim state change. Each operation checks the caller's role or
ownership, checks the claim's current state against the operation's required
source state(s), applies the change atomically in the store, and, for
notification-worthy targets, publishes a status-change event after the
change is durable.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from beartype import beartype

from ..core.errors import (
    ErrorKind,
    ServiceError,
    conflict,
    forbidden,
    invalid_transition,
    not_found,
)
from ..core.result_types import Err, Ok, Result
from ..models.claim import (
    NOTIFICATION_WORTHY_STATUSES,
    Claim,
    ClaimApproval,
    ClaimCreate,
    ClaimRejection,
    ClaimStatistics,
    ClaimStatus,
    PolicyType,
    sources_for,
)
from ..models.events import ClaimStatusChangedEvent
from ..schemas.auth import CallerContext

logger = logging.getLogger(__name__)

_MAX_NUMBER_ATTEMPTS = 3


@beartype
def generate_claim_number(now_ms: int | None = None) -> str:
    """``CLM-<last 8 digits of epoch millis>-<8 random upper-case hex>``."""
    millis = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    return f"CLM-{millis % 100_000_000:08d}-{uuid.uuid4().hex[:8].upper()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClaimService:
    """Service for the claim lifecycle.

    ``store`` is a :class:`~claimflow.services.claim_store.ClaimStore`,
    ``publisher`` an :class:`~claimflow.events.publisher.EventPublisher` and
    ``policies`` a :class:`~claimflow.services.policy_directory.PolicyDirectory`.
    Publisher and policy directory are optional.
    """

    def __init__(self, store: Any, publisher: Any = None, policies: Any = None) -> None:
        self._store = store
        self._publisher = publisher
        self._policies = policies

    # ------------------------------------------------------------------
    # Submission and owner operations
    # ------------------------------------------------------------------

    @beartype
    async def submit(
        self, ctx: CallerContext, request: ClaimCreate
    ) -> Result[Claim, ServiceError]:
        """File a new claim owned by the caller."""
        if self._policies is not None:
            exists = await self._policies.policy_exists(
                request.policy_number, request.policy_type
            )
            if exists.is_err():
                return exists
            if not exists.ok_value:
                return Err(
                    not_found(f"Policy not found with number: {request.policy_number}")
                )

        for attempt in range(1, _MAX_NUMBER_ATTEMPTS + 1):
            now = _utcnow()
            claim = Claim(
                id=uuid.uuid4(),
                claim_number=generate_claim_number(),
                policy_number=request.policy_number,
                policy_type=request.policy_type,
                claim_type=request.claim_type,
                owner_id=ctx.subject_id,
                owner_email=ctx.email,
                incident_date=request.incident_date,
                claimed_amount=request.claimed_amount,
                description=request.description,
                incident_location=request.incident_location,
                severity=request.severity,
                documents_path=request.documents_path,
                status=ClaimStatus.SUBMITTED,
                submitted_at=now,
                created_at=now,
                updated_at=now,
            )
            result = await self._store.insert(claim)
            if result.is_ok():
                logger.info(
                    "Claim %s submitted by %s against policy %s",
                    claim.claim_number,
                    ctx.subject_id,
                    request.policy_number,
                )
                return result
            if result.err_value.kind != ErrorKind.CONFLICT:
                return result
            logger.warning(
                "Claim number collision on attempt %d: %s", attempt, result.err_value
            )
        return Err(conflict("Could not allocate a unique claim number, retry later"))

    @beartype
    async def get_by_number(
        self, ctx: CallerContext, claim_number: str
    ) -> Result[Claim, ServiceError]:
        """Read one claim. Non-admins may only read their own."""
        claim = await self._store.get(claim_number)
        if claim is None:
            return Err(not_found(f"Claim not found with number: {claim_number}"))
        if not ctx.is_admin and claim.owner_id != ctx.subject_id:
            return Err(forbidden(f"Claim {claim_number} does not belong to the caller"))
        return Ok(claim)

    @beartype
    async def list_mine(self, ctx: CallerContext) -> Result[list[Claim], ServiceError]:
        return Ok(await self._store.list_claims(owner_id=ctx.subject_id))

    @beartype
    async def list_mine_by_status(
        self, ctx: CallerContext, status: ClaimStatus
    ) -> Result[list[Claim], ServiceError]:
        return Ok(await self._store.list_claims(owner_id=ctx.subject_id, status=status))

    @beartype
    async def list_mine_by_policy_type(
        self, ctx: CallerContext, policy_type: PolicyType
    ) -> Result[list[Claim], ServiceError]:
        return Ok(
            await self._store.list_claims(
                owner_id=ctx.subject_id, policy_type=policy_type
            )
        )

    @beartype
    async def list_mine_by_policy(
        self, ctx: CallerContext, policy_number: str
    ) -> Result[list[Claim], ServiceError]:
        """The caller's claims against one policy, filtered in the query."""
        return Ok(
            await self._store.list_claims(
                owner_id=ctx.subject_id, policy_number=policy_number
            )
        )

    @beartype
    async def cancel(
        self, ctx: CallerContext, claim_number: str
    ) -> Result[Claim, ServiceError]:
        """Withdraw a claim. Only its owner may, and only before a decision."""
        claim = await self._store.get(claim_number)
        if claim is None:
            return Err(not_found(f"Claim not found with number: {claim_number}"))
        if claim.owner_id != ctx.subject_id:
            return Err(forbidden(f"Only the owner can cancel claim {claim_number}"))
        return await self._transition(
            ctx,
            claim,
            target=ClaimStatus.CANCELLED,
            action="cancelled",
        )

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    @beartype
    async def list_all(self, ctx: CallerContext) -> Result[list[Claim], ServiceError]:
        if not ctx.is_admin:
            return Err(forbidden("Listing all claims requires the admin role"))
        return Ok(await self._store.list_claims())

    @beartype
    async def list_by_status(
        self, ctx: CallerContext, status: ClaimStatus
    ) -> Result[list[Claim], ServiceError]:
        if not ctx.is_admin:
            return Err(forbidden("Listing claims by status requires the admin role"))
        return Ok(await self._store.list_claims(status=status))

    @beartype
    async def move_to_under_review(
        self, ctx: CallerContext, claim_number: str
    ) -> Result[Claim, ServiceError]:
        return await self._admin_transition(
            ctx,
            claim_number,
            target=ClaimStatus.UNDER_REVIEW,
            action="moved to review",
            changes={"reviewed_by": ctx.subject_id},
        )

    @beartype
    async def approve(
        self, ctx: CallerContext, claim_number: str, approval: ClaimApproval
    ) -> Result[Claim, ServiceError]:
        return await self._admin_transition(
            ctx,
            claim_number,
            target=ClaimStatus.APPROVED,
            action="approved",
            changes={
                "approved_amount": approval.approved_amount,
                "approved_date": _utcnow().date(),
                "admin_notes": approval.admin_notes,
                "reviewed_by": ctx.subject_id,
            },
        )

    @beartype
    async def reject(
        self, ctx: CallerContext, claim_number: str, rejection: ClaimRejection
    ) -> Result[Claim, ServiceError]:
        return await self._admin_transition(
            ctx,
            claim_number,
            target=ClaimStatus.REJECTED,
            action="rejected",
            changes={
                "rejection_reason": rejection.rejection_reason,
                "rejected_date": _utcnow().date(),
                "admin_notes": rejection.admin_notes,
                "reviewed_by": ctx.subject_id,
            },
        )

    @beartype
    async def settle(
        self, ctx: CallerContext, claim_number: str
    ) -> Result[Claim, ServiceError]:
        return await self._admin_transition(
            ctx,
            claim_number,
            target=ClaimStatus.SETTLED,
            action="settled",
            changes={"settled_date": _utcnow().date()},
        )

    @beartype
    async def get_statistics(
        self, ctx: CallerContext
    ) -> Result[ClaimStatistics, ServiceError]:
        if not ctx.is_admin:
            return Err(forbidden("Claim statistics require the admin role"))
        return Ok(ClaimStatistics.from_counts(await self._store.count_by_status()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _admin_transition(
        self,
        ctx: CallerContext,
        claim_number: str,
        *,
        target: ClaimStatus,
        action: str,
        changes: dict[str, Any],
    ) -> Result[Claim, ServiceError]:
        if not ctx.is_admin:
            return Err(forbidden(f"Claims can only be {action} by an admin"))
        claim = await self._store.get(claim_number)
        if claim is None:
            return Err(not_found(f"Claim not found with number: {claim_number}"))
        return await self._transition(
            ctx, claim, target=target, action=action, changes=changes
        )

    async def _transition(
        self,
        ctx: CallerContext,
        claim: Claim,
        *,
        target: ClaimStatus,
        action: str,
        changes: dict[str, Any] | None = None,
    ) -> Result[Claim, ServiceError]:
        required = sources_for(target)
        if claim.status not in required:
            return Err(
                invalid_transition(claim.claim_number, action, required, claim.status)
            )

        updated = await self._store.transition(
            claim.claim_number,
            from_statuses=required,
            to_status=target,
            changes=changes,
        )
        if updated is None:
            # Another writer moved the claim between our read and the update.
            latest = await self._store.get(claim.claim_number)
            if latest is None:
                return Err(
                    not_found(f"Claim not found with number: {claim.claim_number}")
                )
            logger.warning(
                "Claim %s changed concurrently to %s; %s rejected",
                claim.claim_number,
                latest.status.value,
                target.value,
            )
            return Err(
                invalid_transition(claim.claim_number, action, required, latest.status)
            )

        logger.info(
            "Claim %s: %s -> %s by %s",
            claim.claim_number,
            claim.status.value,
            target.value,
            ctx.subject_id,
        )
        if target in NOTIFICATION_WORTHY_STATUSES:
            await self._emit(updated, claim.status, ctx.subject_id)
        return Ok(updated)

    async def _emit(
        self, claim: Claim, old_status: ClaimStatus, changed_by: str
    ) -> None:
        if self._publisher is None:
            logger.debug("No event publisher configured; %s not announced", claim.claim_number)
            return
        event = ClaimStatusChangedEvent.for_transition(claim, old_status, changed_by)
        # Failures are logged by the publisher; the committed change stands.
        await self._publisher.publish(event)
