# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL persistence for notifications."""

from collections.abc import Mapping
from typing import Any, Final

from beartype import beartype

from ..core.database import Database
from ..models.notification import Notification, NotificationDraft, NotificationStatus

NOTIFICATION_COLUMNS: Final = (
    "id",
    "recipient_id",
    "claim_number",
    "message",
    "type",
    "status",
    "created_at",
    "read_at",
)

_COLUMNS_SQL: Final = ", ".join(NOTIFICATION_COLUMNS)
_SELECT: Final = f"SELECT {_COLUMNS_SQL} FROM notifications"


def _row_to_notification(row: Mapping[str, Any]) -> Notification:
    return Notification(**{column: row[column] for column in NOTIFICATION_COLUMNS})


class NotificationStore:
    """Notification rows, always addressed through their recipient."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @beartype
    async def create(self, draft: NotificationDraft) -> tuple[Notification, bool]:
        """Insert an UNREAD notification.

        Returns ``(notification, created)``. When ``draft.dedup_key`` matches an
        existing row nothing is inserted and the existing row is returned with
        ``created=False``.
        """
        row = await self._db.write_returning(
            "INSERT INTO notifications "
            "(recipient_id, claim_number, message, type, status, dedup_key, created_at) "
            "VALUES ($1, $2, $3, $4, 'UNREAD', $5, NOW()) "
            "ON CONFLICT (dedup_key) DO NOTHING "
            f"RETURNING {_COLUMNS_SQL}",
            draft.recipient_id,
            draft.claim_number,
            draft.message,
            draft.type.value,
            draft.dedup_key,
        )
        if row is not None:
            return _row_to_notification(row), True

        existing = await self._db.fetchrow(
            f"{_SELECT} WHERE dedup_key = $1", draft.dedup_key
        )
        if existing is None:
            raise RuntimeError(
                f"Notification insert for {draft.dedup_key} neither inserted nor found"
            )
        return _row_to_notification(existing), False

    @beartype
    async def get(self, notification_id: int) -> Notification | None:
        row = await self._db.fetchrow(f"{_SELECT} WHERE id = $1", notification_id)
        return _row_to_notification(row) if row else None

    @beartype
    async def list_for_recipient(
        self, recipient_id: str, *, unread_only: bool = False
    ) -> list[Notification]:
        """Newest first."""
        query = f"{_SELECT} WHERE recipient_id = $1"
        if unread_only:
            query += " AND status = 'UNREAD'"
        query += " ORDER BY created_at DESC, id DESC"
        rows = await self._db.fetch(query, recipient_id)
        return [_row_to_notification(row) for row in rows]

    @beartype
    async def count_unread(self, recipient_id: str) -> int:
        count = await self._db.fetchval(
            "SELECT COUNT(*) FROM notifications "
            "WHERE recipient_id = $1 AND status = 'UNREAD'",
            recipient_id,
        )
        return int(count or 0)

    @beartype
    async def mark_read(
        self, notification_id: int, recipient_id: str
    ) -> Notification | None:
        """Flip one UNREAD notification to READ.

        Returns ``None`` when no UNREAD row for this recipient matched, either
        because it is already READ or because it does not belong to them.
        """
        row = await self._db.write_returning(
            f"UPDATE notifications SET status = '{NotificationStatus.READ.value}', "
            "read_at = NOW() "
            "WHERE id = $1 AND recipient_id = $2 AND status = 'UNREAD' "
            f"RETURNING {_COLUMNS_SQL}",
            notification_id,
            recipient_id,
        )
        return _row_to_notification(row) if row else None

    @beartype
    async def mark_all_read(self, recipient_id: str) -> int:
        """Mark every UNREAD notification of the recipient READ in one statement."""
        rows = await self._db.write_returning_many(
            "UPDATE notifications SET status = 'READ', read_at = NOW() "
            "WHERE recipient_id = $1 AND status = 'UNREAD' RETURNING id",
            recipient_id,
        )
        return len(rows)
