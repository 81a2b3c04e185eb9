"""Unit tests for the PostgreSQL stores against a mocked database."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import asyncpg
import pytest

from claimflow.core.errors import ErrorKind
from claimflow.models.claim import Claim, ClaimStatus, ClaimType, PolicyType
from claimflow.models.notification import NotificationDraft, NotificationType
from claimflow.services.claim_store import CLAIM_COLUMNS, ClaimStore
from claimflow.services.notification_store import NotificationStore

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_db() -> MagicMock:
    """Mock database with async query methods."""
    db = MagicMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=0)
    db.write_returning = AsyncMock(return_value=None)
    db.write_returning_many = AsyncMock(return_value=[])
    return db


def _claim_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {column: None for column in CLAIM_COLUMNS}
    row.update(
        id=uuid4(),
        claim_number="CLM-12345678-ABCDEF01",
        policy_number="POL-CAR-0001",
        policy_type="CAR",
        claim_type="ACCIDENT_CLAIM",
        owner_id="user-1",
        incident_date=date(2025, 6, 30),
        claimed_amount=Decimal("1500.00"),
        description="Scraped the side mirror against a pillar.",
        severity="LOW",
        status="SUBMITTED",
        submitted_at=NOW,
        created_at=NOW,
        updated_at=NOW,
    )
    row.update(overrides)
    return row


def _notification_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": 7,
        "recipient_id": "user-1",
        "claim_number": "CLM-12345678-ABCDEF01",
        "message": "Your claim is now under review by our team.",
        "type": "CLAIM_UNDER_REVIEW",
        "status": "UNREAD",
        "created_at": NOW,
        "read_at": None,
    }
    row.update(overrides)
    return row


@pytest.mark.unit
@pytest.mark.asyncio
class TestClaimStore:
    async def test_insert_writes_every_column(self, mock_db: MagicMock) -> None:
        row = _claim_row()
        mock_db.write_returning.return_value = row
        claim = Claim(**row)

        result = await ClaimStore(mock_db).insert(claim)

        assert result.unwrap() == claim
        query, *values = mock_db.write_returning.call_args.args
        assert query.startswith("INSERT INTO claims (")
        assert len(values) == len(CLAIM_COLUMNS)
        assert values[CLAIM_COLUMNS.index("status")] == "SUBMITTED"

    async def test_insert_duplicate_number_is_conflict(self, mock_db: MagicMock) -> None:
        mock_db.write_returning.side_effect = asyncpg.UniqueViolationError("duplicate")

        result = await ClaimStore(mock_db).insert(Claim(**_claim_row()))

        assert result.unwrap_err().kind == ErrorKind.CONFLICT

    async def test_get_missing(self, mock_db: MagicMock) -> None:
        assert await ClaimStore(mock_db).get("CLM-00000000-00000000") is None

    async def test_list_builds_filters_in_order(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [_claim_row()]

        claims = await ClaimStore(mock_db).list_claims(
            owner_id="user-1", policy_type=PolicyType.CAR
        )

        assert claims[0].claim_type == ClaimType.ACCIDENT_CLAIM
        query, *params = mock_db.fetch.call_args.args
        assert "WHERE owner_id = $1 AND policy_type = $2" in query
        assert query.endswith("ORDER BY submitted_at DESC, claim_number DESC")
        assert params == ["user-1", "CAR"]

    async def test_transition_is_conditional_update(self, mock_db: MagicMock) -> None:
        mock_db.write_returning.return_value = _claim_row(
            status="APPROVED", approved_amount=Decimal("900.00")
        )

        claim = await ClaimStore(mock_db).transition(
            "CLM-12345678-ABCDEF01",
            from_statuses=(ClaimStatus.UNDER_REVIEW,),
            to_status=ClaimStatus.APPROVED,
            changes={"approved_amount": Decimal("900.00")},
        )

        assert claim is not None and claim.status == ClaimStatus.APPROVED
        query, *params = mock_db.write_returning.call_args.args
        assert "WHERE claim_number = $1 AND status = ANY($2::text[])" in query
        assert "approved_amount = $4" in query
        assert params == [
            "CLM-12345678-ABCDEF01",
            ["UNDER_REVIEW"],
            "APPROVED",
            Decimal("900.00"),
        ]

    async def test_transition_that_matches_nothing(self, mock_db: MagicMock) -> None:
        result = await ClaimStore(mock_db).transition(
            "CLM-12345678-ABCDEF01",
            from_statuses=(ClaimStatus.SUBMITTED,),
            to_status=ClaimStatus.UNDER_REVIEW,
        )
        assert result is None

    async def test_transition_rejects_unknown_columns(self, mock_db: MagicMock) -> None:
        with pytest.raises(ValueError, match="owner_id"):
            await ClaimStore(mock_db).transition(
                "CLM-12345678-ABCDEF01",
                from_statuses=(ClaimStatus.SUBMITTED,),
                to_status=ClaimStatus.CANCELLED,
                changes={"owner_id": "someone-else"},
            )
        mock_db.write_returning.assert_not_awaited()

    async def test_count_by_status(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [
            {"status": "SUBMITTED", "count": 4},
            {"status": "SETTLED", "count": 1},
        ]
        counts = await ClaimStore(mock_db).count_by_status()
        assert counts == {ClaimStatus.SUBMITTED: 4, ClaimStatus.SETTLED: 1}


@pytest.mark.unit
@pytest.mark.asyncio
class TestNotificationStore:
    def _draft(self) -> NotificationDraft:
        return NotificationDraft(
            recipient_id="user-1",
            claim_number="CLM-12345678-ABCDEF01",
            message="Your claim is now under review by our team.",
            type=NotificationType.CLAIM_UNDER_REVIEW,
            dedup_key="CLM-12345678-ABCDEF01:UNDER_REVIEW",
        )

    async def test_create_inserts(self, mock_db: MagicMock) -> None:
        mock_db.write_returning.return_value = _notification_row()

        notification, created = await NotificationStore(mock_db).create(self._draft())

        assert created
        assert notification.id == 7
        query = mock_db.write_returning.call_args.args[0]
        assert "ON CONFLICT (dedup_key) DO NOTHING" in query

    async def test_create_duplicate_returns_existing(self, mock_db: MagicMock) -> None:
        mock_db.fetchrow.return_value = _notification_row()

        notification, created = await NotificationStore(mock_db).create(self._draft())

        assert not created
        assert notification.id == 7
        assert mock_db.fetchrow.call_args.args[1] == "CLM-12345678-ABCDEF01:UNDER_REVIEW"

    async def test_mark_read_only_matches_unread_rows(self, mock_db: MagicMock) -> None:
        result = await NotificationStore(mock_db).mark_read(7, "user-2")

        assert result is None
        query, *params = mock_db.write_returning.call_args.args
        assert "AND status = 'UNREAD'" in query
        assert params == [7, "user-2"]

    async def test_mark_all_read_counts_rows(self, mock_db: MagicMock) -> None:
        mock_db.write_returning_many.return_value = [{"id": 1}, {"id": 2}]
        assert await NotificationStore(mock_db).mark_all_read("user-1") == 2

    async def test_unread_listing_and_count(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [_notification_row()]
        mock_db.fetchval.return_value = 1
        store = NotificationStore(mock_db)

        unread = await store.list_for_recipient("user-1", unread_only=True)

        assert [n.id for n in unread] == [7]
        assert "status = 'UNREAD'" in mock_db.fetch.call_args.args[0]
        assert await store.count_unread("user-1") == 1
