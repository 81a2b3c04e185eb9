# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""WebSocket connection registry and per-user live push."""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from beartype import beartype
from fastapi import WebSocket
from pydantic import BaseModel, ConfigDict, Field

from ..core.errors import ServiceError, conflict, delivery_failure
from ..core.result_types import Err, Ok, Result

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Enumeration of supported message types."""

    CONNECTION = "connection"
    PING = "ping"
    PONG = "pong"
    NOTIFICATION = "notification"
    ERROR = "error"


class WebSocketMessage(BaseModel):
    """Envelope for everything sent over a notification socket."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
    )

    type: MessageType = Field(..., description="Message type from enum")
    data: dict[str, Any] = Field(default_factory=dict, description="Message payload")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Message timestamp",
    )


class ConnectionManager:
    """Tracks which sockets belong to which user and pushes to them.

    A user may hold several connections (tabs, devices); a push goes to all of
    them. Pushing to a user with no connection does nothing.
    """

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._connection_users: dict[str, str] = {}
        self._user_connections: dict[str, set[str]] = {}
        self._pending: set[asyncio.Task[None]] = set()

    @beartype
    async def connect(
        self,
        websocket: WebSocket,
        user_id: str,
        connection_id: str | None = None,
    ) -> Result[str, ServiceError]:
        """Accept an already-authenticated socket and register it for ``user_id``."""
        connection_id = connection_id or uuid4().hex
        if connection_id in self._connections:
            return Err(conflict(f"Connection ID {connection_id} already exists"))

        await websocket.accept()
        welcome = WebSocketMessage(
            type=MessageType.CONNECTION,
            data={"status": "connected", "connection_id": connection_id},
        )
        try:
            await websocket.send_json(welcome.model_dump(mode="json"))
        except Exception as exc:
            logger.warning("WebSocket for %s dropped during welcome: %s", user_id, exc)
            return Err(delivery_failure(f"Welcome frame for {connection_id} failed: {exc}"))

        self._connections[connection_id] = websocket
        self._connection_users[connection_id] = user_id
        self._user_connections.setdefault(user_id, set()).add(connection_id)
        logger.info(
            "WebSocket %s connected for %s (%d open for user)",
            connection_id,
            user_id,
            len(self._user_connections[user_id]),
        )
        return Ok(connection_id)

    @beartype
    async def disconnect(self, connection_id: str, reason: str = "closed") -> None:
        """Forget a connection. Safe to call more than once."""
        websocket = self._connections.pop(connection_id, None)
        user_id = self._connection_users.pop(connection_id, None)
        if user_id is not None:
            sockets = self._user_connections.get(user_id)
            if sockets is not None:
                sockets.discard(connection_id)
                if not sockets:
                    del self._user_connections[user_id]
        if websocket is not None:
            logger.info("WebSocket %s disconnected: %s", connection_id, reason)

    @beartype
    def connection_count(self, user_id: str | None = None) -> int:
        if user_id is None:
            return len(self._connections)
        return len(self._user_connections.get(user_id, ()))

    @beartype
    def publish(self, user_id: str, message: WebSocketMessage) -> int:
        """Schedule delivery of ``message`` to every connection of ``user_id``.

        Returns immediately with the number of deliveries scheduled. Failed
        sends are logged and drop the connection; they never reach the caller.
        """
        connection_ids = list(self._user_connections.get(user_id, ()))
        if not connection_ids:
            logger.debug("No live connection for %s; push skipped", user_id)
            return 0

        payload = message.model_dump(mode="json")
        for connection_id in connection_ids:
            task = asyncio.create_task(self._deliver(connection_id, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(connection_ids)

    async def _deliver(self, connection_id: str, payload: dict[str, Any]) -> None:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(payload)
        except Exception as exc:
            logger.warning("Push to connection %s failed: %s", connection_id, exc)
            await self.disconnect(connection_id, f"send failed: {exc}")

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @beartype
    async def handle_message(self, connection_id: str, raw: Any) -> None:
        """Answer a client frame: ``ping`` gets ``pong``, anything else an error."""
        websocket = self._connections.get(connection_id)
        if websocket is None:
            return
        message_type = raw.get("type") if isinstance(raw, dict) else None
        if message_type == MessageType.PING.value:
            reply = WebSocketMessage(type=MessageType.PONG)
        else:
            reply = WebSocketMessage(
                type=MessageType.ERROR,
                data={"error": f"Unsupported message type: {message_type}"},
            )
        await websocket.send_json(reply.model_dump(mode="json"))

    async def close_all(self, code: int = 1001) -> None:
        """Close every socket on shutdown."""
        await self.drain()
        for connection_id, websocket in list(self._connections.items()):
            try:
                await websocket.close(code=code)
            except RuntimeError:
                # Already closed by the client.
                pass
            await self.disconnect(connection_id, "server shutdown")


_manager: ConnectionManager | None = None


@beartype
def get_connection_manager() -> ConnectionManager:
    """Get the process-wide connection manager."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager
