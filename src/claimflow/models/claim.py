# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Claim domain models with strict validation.

Covers the lifecycle enums, the transition graph, the request models for
submission and admin decisions, the stored claim itself, and the statistics
projection.
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final
from uuid import UUID

from beartype import beartype
from pydantic import Field, field_validator, model_validator

from .base import BaseModelConfig, TimestampedModel

if TYPE_CHECKING:
    from pydantic import ValidationInfo

CLAIM_NUMBER_PATTERN: Final = r"^CLM-\d{8}-[0-9A-F]{8}$"


class PolicyType(str, Enum):
    """Kinds of policy a claim can be filed against."""

    LIFE = "LIFE"
    CAR = "CAR"
    HOUSE = "HOUSE"


class ClaimType(str, Enum):
    """Enumeration of claim types across all policy types."""

    # Life
    DEATH_CLAIM = "DEATH_CLAIM"
    CRITICAL_ILLNESS_CLAIM = "CRITICAL_ILLNESS_CLAIM"
    DISABILITY_CLAIM = "DISABILITY_CLAIM"

    # Car
    ACCIDENT_CLAIM = "ACCIDENT_CLAIM"
    THEFT_CLAIM = "THEFT_CLAIM"
    VANDALISM_CLAIM = "VANDALISM_CLAIM"
    NATURAL_DISASTER_CAR_CLAIM = "NATURAL_DISASTER_CAR_CLAIM"

    # House
    FIRE_DAMAGE_CLAIM = "FIRE_DAMAGE_CLAIM"
    WATER_DAMAGE_CLAIM = "WATER_DAMAGE_CLAIM"
    THEFT_HOME_CLAIM = "THEFT_HOME_CLAIM"
    NATURAL_DISASTER_HOME_CLAIM = "NATURAL_DISASTER_HOME_CLAIM"
    LIABILITY_CLAIM = "LIABILITY_CLAIM"

    OTHER = "OTHER"


CLAIM_TYPES_BY_POLICY: Final[Mapping[PolicyType, frozenset[ClaimType]]] = (
    MappingProxyType(
        {
            PolicyType.LIFE: frozenset(
                {
                    ClaimType.DEATH_CLAIM,
                    ClaimType.CRITICAL_ILLNESS_CLAIM,
                    ClaimType.DISABILITY_CLAIM,
                    ClaimType.OTHER,
                }
            ),
            PolicyType.CAR: frozenset(
                {
                    ClaimType.ACCIDENT_CLAIM,
                    ClaimType.THEFT_CLAIM,
                    ClaimType.VANDALISM_CLAIM,
                    ClaimType.NATURAL_DISASTER_CAR_CLAIM,
                    ClaimType.OTHER,
                }
            ),
            PolicyType.HOUSE: frozenset(
                {
                    ClaimType.FIRE_DAMAGE_CLAIM,
                    ClaimType.WATER_DAMAGE_CLAIM,
                    ClaimType.THEFT_HOME_CLAIM,
                    ClaimType.NATURAL_DISASTER_HOME_CLAIM,
                    ClaimType.LIABILITY_CLAIM,
                    ClaimType.OTHER,
                }
            ),
        }
    )
)


class ClaimStatus(str, Enum):
    """Enumeration of claim lifecycle states."""

    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


class Severity(str, Enum):
    """Severity reported by the claimant."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# Every edge of the lifecycle graph. Anything not listed here is forbidden.
ALLOWED_TRANSITIONS: Final[Mapping[ClaimStatus, frozenset[ClaimStatus]]] = (
    MappingProxyType(
        {
            ClaimStatus.SUBMITTED: frozenset(
                {ClaimStatus.UNDER_REVIEW, ClaimStatus.CANCELLED}
            ),
            ClaimStatus.UNDER_REVIEW: frozenset(
                {ClaimStatus.APPROVED, ClaimStatus.REJECTED, ClaimStatus.CANCELLED}
            ),
            ClaimStatus.APPROVED: frozenset({ClaimStatus.SETTLED}),
            ClaimStatus.REJECTED: frozenset(),
            ClaimStatus.SETTLED: frozenset(),
            ClaimStatus.CANCELLED: frozenset(),
        }
    )
)

TERMINAL_STATUSES: Final = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Transitions into these states produce a status-change event.
NOTIFICATION_WORTHY_STATUSES: Final = frozenset(
    {
        ClaimStatus.UNDER_REVIEW,
        ClaimStatus.APPROVED,
        ClaimStatus.REJECTED,
        ClaimStatus.SETTLED,
    }
)


@beartype
def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    """Check whether ``current -> target`` is an edge of the lifecycle graph."""
    return target in ALLOWED_TRANSITIONS[current]


@beartype
def sources_for(target: ClaimStatus) -> tuple[ClaimStatus, ...]:
    """Return the states from which ``target`` may be entered, in declaration order."""
    return tuple(
        status for status in ClaimStatus if target in ALLOWED_TRANSITIONS[status]
    )


@beartype
class ClaimCreate(BaseModelConfig):
    """Claim submission payload."""

    policy_number: str = Field(
        ..., min_length=1, max_length=50, description="Policy the claim is filed against"
    )
    policy_type: PolicyType = Field(..., description="Type of the referenced policy")
    claim_type: ClaimType = Field(..., description="Type of claim being filed")
    incident_date: date = Field(..., description="Date the incident occurred")
    claimed_amount: Decimal = Field(
        ...,
        gt=Decimal("0"),
        max_digits=12,
        decimal_places=2,
        description="Amount being claimed",
    )
    description: str = Field(
        ..., min_length=20, max_length=2000, description="Incident description"
    )
    incident_location: str | None = Field(
        default=None, max_length=500, description="Where the incident happened"
    )
    severity: Severity = Field(
        default=Severity.MEDIUM, description="Claimant-reported severity"
    )
    documents_path: str | None = Field(
        default=None, max_length=500, description="Location of supporting documents"
    )

    @field_validator("incident_date")
    @classmethod
    def validate_incident_date(cls, v: date) -> date:
        """Ensure incident date is not in the future."""
        if v > date.today():
            raise ValueError("Incident date cannot be in the future")
        return v

    @field_validator("claim_type")
    @classmethod
    def validate_claim_type_for_policy(
        cls, v: ClaimType, info: "ValidationInfo"
    ) -> ClaimType:
        """Claim type must belong to the policy type's set."""
        policy_type = info.data.get("policy_type")
        if policy_type is not None and v not in CLAIM_TYPES_BY_POLICY[policy_type]:
            raise ValueError(
                f"Claim type {v.value} is not valid for {policy_type.value} policies"
            )
        return v


@beartype
class ClaimApproval(BaseModelConfig):
    """Admin approval payload."""

    approved_amount: Decimal = Field(
        ...,
        gt=Decimal("0"),
        max_digits=12,
        decimal_places=2,
        description="Amount approved for settlement",
    )
    admin_notes: str | None = Field(
        default=None, max_length=1000, description="Internal notes"
    )


@beartype
class ClaimRejection(BaseModelConfig):
    """Admin rejection payload."""

    rejection_reason: str = Field(
        ...,
        min_length=10,
        max_length=1000,
        description="Reason shown to the claimant",
    )
    admin_notes: str | None = Field(
        default=None, max_length=1000, description="Internal notes"
    )


@beartype
class Claim(TimestampedModel):
    """Stored claim."""

    id: UUID = Field(..., description="Internal identifier")
    claim_number: str = Field(
        ..., pattern=CLAIM_NUMBER_PATTERN, description="Business key shown to users"
    )
    policy_number: str = Field(..., min_length=1, max_length=50)
    policy_type: PolicyType
    claim_type: ClaimType
    owner_id: str = Field(..., min_length=1, description="Submitting user")
    owner_email: str | None = Field(default=None)
    incident_date: date
    claimed_amount: Decimal = Field(..., gt=Decimal("0"))
    description: str
    incident_location: str | None = None
    severity: Severity = Severity.MEDIUM
    documents_path: str | None = None

    status: ClaimStatus
    submitted_at: datetime
    approved_amount: Decimal | None = Field(default=None, gt=Decimal("0"))
    approved_date: date | None = None
    rejected_date: date | None = None
    rejection_reason: str | None = None
    settled_date: date | None = None
    admin_notes: str | None = None
    reviewed_by: str | None = None

    @model_validator(mode="after")
    def validate_status_fields(self) -> "Claim":
        """Decision fields must agree with the current status."""
        has_amount = self.approved_amount is not None
        if has_amount != (self.status in (ClaimStatus.APPROVED, ClaimStatus.SETTLED)):
            raise ValueError(
                f"approved_amount must be set exactly when status is APPROVED or "
                f"SETTLED (status={self.status.value})"
            )
        has_reason = self.rejection_reason is not None
        if has_reason != (self.status == ClaimStatus.REJECTED):
            raise ValueError(
                f"rejection_reason must be set exactly when status is REJECTED "
                f"(status={self.status.value})"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@beartype
class ClaimStatistics(BaseModelConfig):
    """Claim counts per status."""

    total_claims: int = Field(..., ge=0)
    submitted_claims: int = Field(default=0, ge=0)
    under_review_claims: int = Field(default=0, ge=0)
    approved_claims: int = Field(default=0, ge=0)
    rejected_claims: int = Field(default=0, ge=0)
    settled_claims: int = Field(default=0, ge=0)
    cancelled_claims: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_total(self) -> "ClaimStatistics":
        per_status = (
            self.submitted_claims
            + self.under_review_claims
            + self.approved_claims
            + self.rejected_claims
            + self.settled_claims
            + self.cancelled_claims
        )
        if per_status != self.total_claims:
            raise ValueError(
                f"total_claims ({self.total_claims}) must equal the sum of "
                f"per-status counts ({per_status})"
            )
        return self

    @classmethod
    def from_counts(cls, counts: Mapping[ClaimStatus, int]) -> "ClaimStatistics":
        """Build statistics from one grouped count, so the total always matches."""
        by_status = {status: int(counts.get(status, 0)) for status in ClaimStatus}
        return cls(
            total_claims=sum(by_status.values()),
            submitted_claims=by_status[ClaimStatus.SUBMITTED],
            under_review_claims=by_status[ClaimStatus.UNDER_REVIEW],
            approved_claims=by_status[ClaimStatus.APPROVED],
            rejected_claims=by_status[ClaimStatus.REJECTED],
            settled_claims=by_status[ClaimStatus.SETTLED],
            cancelled_claims=by_status[ClaimStatus.CANCELLED],
        )
