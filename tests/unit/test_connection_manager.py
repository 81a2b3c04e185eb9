"""Unit tests for the WebSocket connection manager."""

import pytest

from claimflow.core.errors import ErrorKind
from claimflow.websocket.manager import (
    ConnectionManager,
    MessageType,
    WebSocketMessage,
)
from tests.fixtures.websockets import create_mock_websocket


def _notification(text: str = "hello") -> WebSocketMessage:
    return WebSocketMessage(type=MessageType.NOTIFICATION, data={"message": text})


@pytest.mark.unit
@pytest.mark.asyncio
class TestConnectionManager:
    async def test_connect_accepts_and_welcomes(self) -> None:
        manager = ConnectionManager()
        websocket = create_mock_websocket()

        result = await manager.connect(websocket, "user-1", "conn-1")

        assert result.unwrap() == "conn-1"
        assert websocket.accepted
        welcome = websocket.messages_sent[0]
        assert welcome["type"] == "connection"
        assert welcome["data"] == {"status": "connected", "connection_id": "conn-1"}
        assert manager.connection_count() == 1
        assert manager.connection_count("user-1") == 1

    async def test_duplicate_connection_id_rejected(self) -> None:
        manager = ConnectionManager()
        await manager.connect(create_mock_websocket(), "user-1", "conn-1")

        second = create_mock_websocket()
        result = await manager.connect(second, "user-2", "conn-1")

        assert result.unwrap_err().kind == ErrorKind.CONFLICT
        assert not second.accepted

    async def test_failed_welcome_leaves_nothing_registered(self) -> None:
        manager = ConnectionManager()
        websocket = create_mock_websocket()
        websocket.is_connected = False  # peer gone before the welcome frame

        result = await manager.connect(websocket, "user-1", "conn-1")

        assert result.unwrap_err().kind == ErrorKind.DELIVERY_FAILURE
        assert manager.connection_count() == 0
        assert manager.connection_count("user-1") == 0
        assert manager.publish("user-1", _notification()) == 0

    async def test_publish_reaches_every_connection_of_user(self) -> None:
        manager = ConnectionManager()
        tab_a, tab_b, other = (create_mock_websocket() for _ in range(3))
        await manager.connect(tab_a, "user-1")
        await manager.connect(tab_b, "user-1")
        await manager.connect(other, "user-2")

        scheduled = manager.publish("user-1", _notification())
        await manager.drain()

        assert scheduled == 2
        for websocket in (tab_a, tab_b):
            assert websocket.messages_sent[-1]["type"] == "notification"
            assert websocket.messages_sent[-1]["data"] == {"message": "hello"}
        assert len(other.messages_sent) == 1

    async def test_publish_without_connection_is_noop(self) -> None:
        manager = ConnectionManager()
        assert manager.publish("nobody", _notification()) == 0

    async def test_failed_send_drops_only_that_connection(self) -> None:
        manager = ConnectionManager()
        healthy = create_mock_websocket()
        broken = create_mock_websocket()
        await manager.connect(healthy, "user-1", "healthy")
        await manager.connect(broken, "user-1", "broken")
        broken.is_connected = False

        manager.publish("user-1", _notification())
        await manager.drain()

        assert manager.connection_count("user-1") == 1
        assert healthy.messages_sent[-1]["type"] == "notification"

    async def test_disconnect_is_idempotent(self) -> None:
        manager = ConnectionManager()
        await manager.connect(create_mock_websocket(), "user-1", "conn-1")

        await manager.disconnect("conn-1")
        await manager.disconnect("conn-1")

        assert manager.connection_count() == 0
        assert manager.connection_count("user-1") == 0

    async def test_ping_gets_pong(self) -> None:
        manager = ConnectionManager()
        websocket = create_mock_websocket()
        await manager.connect(websocket, "user-1", "conn-1")

        await manager.handle_message("conn-1", {"type": "ping"})
        await manager.handle_message("conn-1", {"type": "subscribe"})
        await manager.handle_message("conn-1", None)

        replies = [m["type"] for m in websocket.messages_sent[1:]]
        assert replies == ["pong", "error", "error"]

    async def test_close_all(self) -> None:
        manager = ConnectionManager()
        sockets = [create_mock_websocket() for _ in range(2)]
        for i, websocket in enumerate(sockets):
            await manager.connect(websocket, f"user-{i}")

        await manager.close_all()

        assert manager.connection_count() == 0
        assert all(websocket.close_code == 1001 for websocket in sockets)
