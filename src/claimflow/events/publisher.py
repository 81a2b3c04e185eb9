# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Producer side of the status-change event channel."""

import asyncio
import logging
from typing import Any

from beartype import beartype
from redis.exceptions import RedisError

from ..core.config import Settings, get_settings
from ..core.errors import ServiceError, delivery_failure
from ..core.result_types import Err, Ok, Result
from ..models.events import ClaimStatusChangedEvent
from .channel import EVENT_FIELD, KEY_FIELD, stream_for

logger = logging.getLogger(__name__)


class EventPublisher:
    """Appends status-change events to the claim's partition stream.

    Publishing happens after the claim update committed. A failure is logged
    and reported as ``DELIVERY_FAILURE``; it never undoes the transition.
    """

    def __init__(self, redis_client: Any, settings: Settings | None = None) -> None:
        self._redis = redis_client
        self._settings = settings or get_settings()

    @beartype
    async def publish(self, event: ClaimStatusChangedEvent) -> Result[str, ServiceError]:
        stream = stream_for(event.claim_number, self._settings)
        fields = {KEY_FIELD: event.claim_number, EVENT_FIELD: event.to_json()}
        try:
            entry_id = await asyncio.wait_for(
                self._redis.xadd(
                    stream,
                    fields,
                    maxlen=self._settings.event_stream_maxlen,
                    approximate=True,
                ),
                timeout=self._settings.event_publish_timeout_seconds,
            )
        except (RedisError, OSError, TimeoutError) as exc:
            logger.error(
                "Failed to publish %s event for claim %s: %s",
                event.new_status,
                event.claim_number,
                exc,
            )
            return Err(
                delivery_failure(
                    f"Status-change event for {event.claim_number} was not published"
                )
            )

        entry_id = entry_id.decode() if isinstance(entry_id, bytes) else str(entry_id)
        logger.info(
            "Published %s -> %s for claim %s to %s (%s)",
            event.old_status,
            event.new_status,
            event.claim_number,
            stream,
            entry_id,
        )
        return Ok(entry_id)
