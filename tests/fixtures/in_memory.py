"""In-memory stand-ins for the stores, publisher, policy directory and push channel.

They follow the same contracts as the PostgreSQL stores: claim transitions
only apply while the claim is in an expected source state, notification
inserts collapse on ``dedup_key``, and mark-read only flips UNREAD rows.
"""

from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from claimflow.core.errors import ServiceError, conflict, delivery_failure
from claimflow.core.result_types import Err, Ok, Result
from claimflow.models.claim import (
    Claim,
    ClaimCreate,
    ClaimStatus,
    ClaimType,
    PolicyType,
)
from claimflow.models.events import ClaimStatusChangedEvent
from claimflow.models.notification import (
    Notification,
    NotificationDraft,
    NotificationStatus,
)
from claimflow.websocket.manager import WebSocketMessage


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_claim_request(**overrides: Any) -> ClaimCreate:
    """A valid car accident claim; override any field."""
    data: dict[str, Any] = {
        "policy_number": "POL-CAR-0001",
        "policy_type": PolicyType.CAR,
        "claim_type": ClaimType.ACCIDENT_CLAIM,
        "incident_date": date.today() - timedelta(days=3),
        "claimed_amount": Decimal("5000.00"),
        "description": "Rear-ended at a traffic light on the way to work.",
        "incident_location": "Main St & 5th Ave",
    }
    data.update(overrides)
    return ClaimCreate(**data)


class InMemoryClaimStore:
    def __init__(self) -> None:
        self.claims: dict[str, Claim] = {}
        # Runs just before a transition is applied; lets tests simulate a
        # concurrent writer winning the race.
        self.before_transition: Callable[[str], None] | None = None

    async def insert(self, claim: Claim) -> Result[Claim, ServiceError]:
        if claim.claim_number in self.claims:
            return Err(conflict(f"Claim number {claim.claim_number} already exists"))
        self.claims[claim.claim_number] = claim
        return Ok(claim)

    async def get(self, claim_number: str) -> Claim | None:
        return self.claims.get(claim_number)

    async def list_claims(
        self,
        *,
        owner_id: str | None = None,
        status: ClaimStatus | None = None,
        policy_type: PolicyType | None = None,
        policy_number: str | None = None,
    ) -> list[Claim]:
        matches = [
            claim
            for claim in self.claims.values()
            if (owner_id is None or claim.owner_id == owner_id)
            and (status is None or claim.status == status)
            and (policy_type is None or claim.policy_type == policy_type)
            and (policy_number is None or claim.policy_number == policy_number)
        ]
        return sorted(
            matches, key=lambda c: (c.submitted_at, c.claim_number), reverse=True
        )

    async def transition(
        self,
        claim_number: str,
        *,
        from_statuses: Iterable[ClaimStatus],
        to_status: ClaimStatus,
        changes: Mapping[str, Any] | None = None,
    ) -> Claim | None:
        if self.before_transition is not None:
            self.before_transition(claim_number)
        claim = self.claims.get(claim_number)
        if claim is None or claim.status not in set(from_statuses):
            return None
        updated = Claim.model_validate(
            {
                **claim.model_dump(),
                **dict(changes or {}),
                "status": to_status,
                "updated_at": utcnow(),
            }
        )
        self.claims[claim_number] = updated
        return updated

    async def count_by_status(self) -> dict[ClaimStatus, int]:
        return dict(Counter(claim.status for claim in self.claims.values()))

    def force_status(self, claim_number: str, status: ClaimStatus, **fields: Any) -> None:
        """Put a claim straight into ``status`` (test setup only)."""
        claim = self.claims[claim_number]
        self.claims[claim_number] = Claim.model_validate(
            {**claim.model_dump(), **fields, "status": status}
        )


class InMemoryNotificationStore:
    def __init__(self) -> None:
        self.rows: dict[int, Notification] = {}
        self._by_dedup: dict[str, int] = {}
        self._next_id = 1
        self._clock = utcnow()

    def _tick(self) -> datetime:
        # Strictly increasing timestamps keep newest-first ordering deterministic.
        self._clock += timedelta(milliseconds=1)
        return self._clock

    async def create(self, draft: NotificationDraft) -> tuple[Notification, bool]:
        if draft.dedup_key is not None and draft.dedup_key in self._by_dedup:
            return self.rows[self._by_dedup[draft.dedup_key]], False
        notification = Notification(
            id=self._next_id,
            recipient_id=draft.recipient_id,
            claim_number=draft.claim_number,
            message=draft.message,
            type=draft.type,
            status=NotificationStatus.UNREAD,
            created_at=self._tick(),
        )
        self.rows[notification.id] = notification
        if draft.dedup_key is not None:
            self._by_dedup[draft.dedup_key] = notification.id
        self._next_id += 1
        return notification, True

    async def get(self, notification_id: int) -> Notification | None:
        return self.rows.get(notification_id)

    async def list_for_recipient(
        self, recipient_id: str, *, unread_only: bool = False
    ) -> list[Notification]:
        matches = [
            n
            for n in self.rows.values()
            if n.recipient_id == recipient_id
            and (not unread_only or n.status == NotificationStatus.UNREAD)
        ]
        return sorted(matches, key=lambda n: (n.created_at, n.id), reverse=True)

    async def count_unread(self, recipient_id: str) -> int:
        return len(await self.list_for_recipient(recipient_id, unread_only=True))

    async def mark_read(
        self, notification_id: int, recipient_id: str
    ) -> Notification | None:
        current = self.rows.get(notification_id)
        if (
            current is None
            or current.recipient_id != recipient_id
            or current.status != NotificationStatus.UNREAD
        ):
            return None
        updated = current.model_copy(
            update={"status": NotificationStatus.READ, "read_at": self._tick()}
        )
        self.rows[notification_id] = updated
        return updated

    async def mark_all_read(self, recipient_id: str) -> int:
        unread = await self.list_for_recipient(recipient_id, unread_only=True)
        for notification in unread:
            await self.mark_read(notification.id, recipient_id)
        return len(unread)


class RecordingPublisher:
    def __init__(self, fail: bool = False) -> None:
        self.events: list[ClaimStatusChangedEvent] = []
        self.fail = fail

    async def publish(self, event: ClaimStatusChangedEvent) -> Result[str, ServiceError]:
        if self.fail:
            return Err(delivery_failure(f"channel down for {event.claim_number}"))
        self.events.append(event)
        return Ok(f"{len(self.events)}-0")


class StaticPolicyDirectory:
    def __init__(self, known: Iterable[str] = ("POL-CAR-0001",)) -> None:
        self.known = set(known)

    async def policy_exists(
        self, policy_number: str, policy_type: PolicyType
    ) -> Result[bool, ServiceError]:
        return Ok(policy_number in self.known)


class RecordingPush:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, WebSocketMessage]] = []
        self.fail = fail

    def publish(self, user_id: str, message: WebSocketMessage) -> int:
        if self.fail:
            raise RuntimeError("no running event loop")
        self.sent.append((user_id, message))
        return 1
