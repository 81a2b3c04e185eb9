"""Status-change event carried on the event channel.

The JSON layout uses camelCase keys (``claimNumber``, ``userId``, ...) so
producers and consumers written against the original wire contract keep
working. Statuses travel as plain strings, letting a consumer handle a status
it has never heard of.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field

from .claim import Claim, ClaimStatus


class ClaimStatusChangedEvent(BaseModel):
    """A committed claim status transition."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    event_id: UUID = Field(default_factory=uuid4, alias="eventId")
    # Lengths match the claims and notifications columns.
    claim_number: str = Field(..., min_length=1, max_length=32, alias="claimNumber")
    old_status: str | None = Field(default=None, max_length=16, alias="oldStatus")
    new_status: str = Field(..., min_length=1, max_length=16, alias="newStatus")
    owner_id: str = Field(..., min_length=1, max_length=255, alias="userId")
    owner_email: str | None = Field(default=None, alias="userEmail")
    changed_by: str | None = Field(default=None, alias="changedBy")
    reason: str | None = Field(default=None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    @beartype
    def for_transition(
        cls,
        claim: Claim,
        old_status: ClaimStatus,
        changed_by: str | None = None,
    ) -> "ClaimStatusChangedEvent":
        """Build the event for ``claim`` having just left ``old_status``."""
        return cls(
            claim_number=claim.claim_number,
            old_status=old_status.value,
            new_status=claim.status.value,
            owner_id=claim.owner_id,
            owner_email=claim.owner_email,
            changed_by=changed_by,
            reason=(
                claim.rejection_reason
                if claim.status == ClaimStatus.REJECTED
                else None
            ),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ClaimStatusChangedEvent":
        return cls.model_validate_json(raw)
