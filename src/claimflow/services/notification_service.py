"""Owner-scoped notification queries and read-state changes."""

import logging
from typing import Any

from beartype import beartype

from ..core.errors import ServiceError, forbidden, not_found
from ..core.result_types import Err, Ok, Result
from ..models.notification import MarkAllReadResult, Notification, UnreadCount
from ..schemas.auth import CallerContext

logger = logging.getLogger(__name__)


class NotificationService:
    """Every operation acts only on the caller's own notifications."""

    def __init__(self, store: Any) -> None:
        self._store = store

    @beartype
    async def list_for_user(
        self, ctx: CallerContext
    ) -> Result[list[Notification], ServiceError]:
        return Ok(await self._store.list_for_recipient(ctx.subject_id))

    @beartype
    async def list_unread(
        self, ctx: CallerContext
    ) -> Result[list[Notification], ServiceError]:
        return Ok(
            await self._store.list_for_recipient(ctx.subject_id, unread_only=True)
        )

    @beartype
    async def unread_count(self, ctx: CallerContext) -> Result[UnreadCount, ServiceError]:
        return Ok(UnreadCount(unread_count=await self._store.count_unread(ctx.subject_id)))

    @beartype
    async def mark_read(
        self, ctx: CallerContext, notification_id: int
    ) -> Result[Notification, ServiceError]:
        """Mark one notification READ.

        Marking an already-read notification succeeds and leaves ``read_at``
        untouched.
        """
        updated = await self._store.mark_read(notification_id, ctx.subject_id)
        if updated is not None:
            return Ok(updated)

        current = await self._store.get(notification_id)
        if current is None:
            return Err(not_found(f"Notification not found with id: {notification_id}"))
        if current.recipient_id != ctx.subject_id:
            return Err(
                forbidden(f"Notification {notification_id} does not belong to the caller")
            )
        return Ok(current)

    @beartype
    async def mark_all_read(
        self, ctx: CallerContext
    ) -> Result[MarkAllReadResult, ServiceError]:
        updated = await self._store.mark_all_read(ctx.subject_id)
        logger.info("Marked %d notifications read for %s", updated, ctx.subject_id)
        return Ok(MarkAllReadResult(updated=updated))
