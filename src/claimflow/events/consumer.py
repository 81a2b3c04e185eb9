# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Consumer side of the status-change event channel.

One reader task per partition stream, all in the same consumer group. An
entry is acknowledged only after its handler succeeded, so a crash or a
failing store leaves it pending and it is delivered again (at-least-once).
Within a partition entries are handled in order: after a failure the reader
backs off exponentially and resumes from its oldest pending entry. An entry
that keeps failing is dead-lettered after ``event_max_retries`` deliveries so
it cannot hold up later events for other claims on the same partition.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from beartype import beartype
from pydantic import ValidationError
from redis.exceptions import RedisError, ResponseError

from ..core.config import Settings, get_settings
from ..core.errors import ErrorKind, ServiceError
from ..core.result_types import Result
from ..models.events import ClaimStatusChangedEvent
from .channel import EVENT_FIELD, all_streams, dead_letter_stream

logger = logging.getLogger(__name__)

EventHandler = Callable[
    [ClaimStatusChangedEvent], Awaitable[Result[Any, ServiceError]]
]

# Handler errors of these kinds will fail again on retry.
_PERMANENT_KINDS = frozenset({ErrorKind.VALIDATION, ErrorKind.NOT_FOUND})


@beartype
def retry_delay(failures: int, settings: Settings) -> float:
    """Exponential pause after ``failures`` consecutive failed polls."""
    delay = settings.event_retry_backoff_seconds * 2 ** max(failures - 1, 0)
    return min(delay, settings.event_retry_backoff_max_seconds)


class ClaimEventConsumer:
    def __init__(
        self,
        redis_client: Any,
        handler: EventHandler,
        settings: Settings | None = None,
        consumer_name: str | None = None,
    ) -> None:
        self._redis = redis_client
        self._handler = handler
        self._settings = settings or get_settings()
        self._group = self._settings.event_consumer_group
        self._consumer = consumer_name or self._settings.event_consumer_name
        self._streams = all_streams(self._settings)
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()
        # Failed deliveries per (stream, entry id); process-local.
        self._failures: dict[tuple[str, str], int] = {}

    @property
    def streams(self) -> list[str]:
        return list(self._streams)

    @beartype
    async def ensure_groups(self) -> None:
        """Create the consumer group on every partition stream if missing."""
        for stream in self._streams:
            try:
                await self._redis.xgroup_create(stream, self._group, id="0", mkstream=True)
            except ResponseError as exc:
                if "BUSYGROUP" not in str(exc):
                    raise

    async def start(self) -> None:
        await self.ensure_groups()
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run_partition(stream), name=f"consume:{stream}")
            for stream in self._streams
        ]
        logger.info(
            "Consuming %d partitions as %s/%s",
            len(self._streams),
            self._group,
            self._consumer,
        )

    async def stop(self) -> None:
        self._stopping.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _run_partition(self, stream: str) -> None:
        failures = 0
        while not self._stopping.is_set():
            try:
                healthy = await self.poll_partition(
                    stream, block_ms=self._settings.event_block_ms
                )
            except (RedisError, OSError) as exc:
                logger.error("Reading %s failed: %s", stream, exc)
                healthy = False
            if healthy:
                failures = 0
                continue
            failures += 1
            await asyncio.sleep(retry_delay(failures, self._settings))

    @beartype
    async def poll_partition(self, stream: str, block_ms: int | None = None) -> bool:
        """Handle this consumer's pending entries, then any new ones.

        Returns False when an entry failed and was left pending.
        """
        pending_ok, pending_seen = await self._read_and_handle(stream, "0", None)
        if not pending_ok:
            return False
        if pending_seen:
            # Work through the backlog before taking new entries.
            return True
        new_ok, _ = await self._read_and_handle(stream, ">", block_ms)
        return new_ok

    async def _read_and_handle(
        self, stream: str, start_id: str, block_ms: int | None
    ) -> tuple[bool, int]:
        response = await self._redis.xreadgroup(
            self._group,
            self._consumer,
            {stream: start_id},
            count=self._settings.event_batch_size,
            block=block_ms,
        )
        entries: list[tuple[Any, Any]] = []
        for _stream, stream_entries in response or []:
            entries.extend(stream_entries)

        seen = 0
        for entry_id, fields in entries:
            seen += 1
            if not await self._handle_entry(stream, entry_id, fields):
                return False, seen
        return True, seen

    async def _handle_entry(self, stream: str, entry_id: Any, fields: Any) -> bool:
        if not fields:
            # Trimmed from the stream while pending; nothing left to deliver.
            await self._redis.xack(stream, self._group, entry_id)
            return True

        raw = fields.get(EVENT_FIELD)
        try:
            event = ClaimStatusChangedEvent.from_json(raw)
        except (ValidationError, ValueError, TypeError) as exc:
            await self._dead_letter(stream, entry_id, raw, f"undecodable event: {exc}")
            return True

        try:
            result = await self._handler(event)
        except Exception as exc:
            logger.exception(
                "Handling %s for claim %s failed (entry %s)",
                event.new_status,
                event.claim_number,
                entry_id,
            )
            return await self._retry_or_dead_letter(stream, entry_id, raw, repr(exc))

        if result.is_err():
            error = result.err_value
            if error.kind in _PERMANENT_KINDS:
                self._failures.pop((stream, str(entry_id)), None)
                await self._dead_letter(stream, entry_id, raw, error.message)
                return True
            logger.error(
                "Handling %s for claim %s returned %s (entry %s)",
                event.new_status,
                event.claim_number,
                error.message,
                entry_id,
            )
            return await self._retry_or_dead_letter(stream, entry_id, raw, error.message)

        self._failures.pop((stream, str(entry_id)), None)
        await self._redis.xack(stream, self._group, entry_id)
        logger.debug("Acknowledged %s on %s", entry_id, stream)
        return True

    async def _retry_or_dead_letter(
        self, stream: str, entry_id: Any, raw: Any, reason: str
    ) -> bool:
        """Leave the entry pending, or dead-letter it once retries run out.

        Returns True when the reader may move on to the next entry.
        """
        key = (stream, str(entry_id))
        attempts = self._failures.get(key, 0) + 1
        if attempts >= self._settings.event_max_retries:
            self._failures.pop(key, None)
            await self._dead_letter(
                stream, entry_id, raw, f"gave up after {attempts} attempts: {reason}"
            )
            return True
        self._failures[key] = attempts
        logger.warning(
            "Entry %s on %s stays pending (attempt %d of %d)",
            entry_id,
            stream,
            attempts,
            self._settings.event_max_retries,
        )
        return False

    async def _dead_letter(
        self, stream: str, entry_id: Any, raw: Any, reason: str
    ) -> None:
        logger.error("Dead-lettering %s from %s: %s", entry_id, stream, reason)
        await self._redis.xadd(
            dead_letter_stream(self._settings),
            {
                "stream": stream,
                "entryId": str(entry_id),
                "payload": raw if isinstance(raw, str) else str(raw),
                "error": reason,
            },
        )
        await self._redis.xack(stream, self._group, entry_id)
