# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Turns consumed status-change events into stored notifications and live pushes.

For each event: render the message, map the status to a notification type,
persist one UNREAD notification for the claim owner, then hand the stored
notification to the live push channel without waiting for delivery.
"""

import logging
from typing import Any, Final

from beartype import beartype

from ..core.config import Settings, get_settings
from ..core.errors import ServiceError
from ..core.result_types import Ok, Result
from ..models.events import ClaimStatusChangedEvent
from ..models.notification import Notification, NotificationDraft, NotificationType
from ..websocket.manager import MessageType, WebSocketMessage

logger = logging.getLogger(__name__)

REJECTION_REASON_FALLBACK: Final = "Please contact support for details."

_TYPE_BY_STATUS: Final = {
    "APPROVED": NotificationType.CLAIM_APPROVED,
    "REJECTED": NotificationType.CLAIM_REJECTED,
    "UNDER_REVIEW": NotificationType.CLAIM_UNDER_REVIEW,
    "SETTLED": NotificationType.CLAIM_SETTLED,
}


@beartype
def render_message(claim_number: str, new_status: str, reason: str | None = None) -> str:
    """User-facing text for a status change."""
    if new_status == "APPROVED":
        return (
            f"Good news! Your claim {claim_number} has been approved "
            "and is ready for settlement."
        )
    if new_status == "REJECTED":
        return (
            f"Your claim {claim_number} has been rejected. "
            f"Reason: {reason or REJECTION_REASON_FALLBACK}"
        )
    if new_status == "UNDER_REVIEW":
        return f"Your claim {claim_number} is now under review by our team."
    if new_status == "SETTLED":
        return (
            f"Your claim {claim_number} has been settled. "
            "Payment processing initiated."
        )
    return f"Status update for your claim {claim_number}: {new_status}"


@beartype
def notification_type_for(new_status: str) -> NotificationType:
    return _TYPE_BY_STATUS.get(new_status, NotificationType.SYSTEM_NOTIFICATION)


@beartype
def push_message_for(notification: Notification) -> WebSocketMessage:
    return WebSocketMessage(
        type=MessageType.NOTIFICATION,
        data=notification.model_dump(mode="json"),
    )


class NotificationPipeline:
    """Consumes one event at a time.

    ``store`` is a :class:`~claimflow.services.notification_store.NotificationStore`
    and ``push`` anything with ``publish(recipient_id, message)``: the local
    connection manager or the Redis relay.
    """

    def __init__(
        self, store: Any, push: Any = None, settings: Settings | None = None
    ) -> None:
        self._store = store
        self._push = push
        self._settings = settings or get_settings()

    @beartype
    async def handle(
        self, event: ClaimStatusChangedEvent
    ) -> Result[Notification, ServiceError]:
        """Persist and push the notification for ``event``.

        Store failures propagate so the consumer leaves the event unacknowledged
        and retries it.
        """
        draft = NotificationDraft(
            recipient_id=event.owner_id,
            claim_number=event.claim_number,
            message=render_message(event.claim_number, event.new_status, event.reason),
            type=notification_type_for(event.new_status),
            dedup_key=(
                f"{event.claim_number}:{event.new_status}"
                if self._settings.notification_dedup_enabled
                else None
            ),
        )
        notification, created = await self._store.create(draft)
        if not created:
            logger.info(
                "Duplicate %s event for claim %s; notification %d already exists",
                event.new_status,
                event.claim_number,
                notification.id,
            )
            return Ok(notification)

        logger.info(
            "Notification %d (%s) stored for %s on claim %s",
            notification.id,
            notification.type.value,
            notification.recipient_id,
            event.claim_number,
        )
        self._push_nowait(notification)
        return Ok(notification)

    def _push_nowait(self, notification: Notification) -> None:
        if self._push is None:
            return
        try:
            self._push.publish(notification.recipient_id, push_message_for(notification))
        except Exception:
            # The notification is already durable; live delivery is best effort.
            logger.exception(
                "Live push scheduling failed for notification %d", notification.id
            )
