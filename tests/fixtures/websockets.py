"""WebSocket doubles for connection manager tests."""

from typing import Any
from unittest.mock import MagicMock

from fastapi import WebSocket
from starlette.websockets import WebSocketState


def create_mock_websocket() -> MagicMock:
    """Create a mocked WebSocket that passes beartype validation.

    Sent frames are recorded in ``messages_sent``; after ``close`` every send
    raises, like a socket whose peer went away.
    """
    mock = MagicMock(spec=WebSocket)
    mock.is_connected = True
    mock.accepted = False
    mock.messages_sent = []
    mock.close_code = None
    mock.state = WebSocketState.CONNECTING

    async def mock_accept() -> None:
        mock.accepted = True
        mock.state = WebSocketState.CONNECTED

    async def mock_send_json(data: Any) -> None:
        if not mock.is_connected:
            raise RuntimeError("Connection closed")
        mock.messages_sent.append(data)

    async def mock_close(code: int = 1000, reason: str = "") -> None:
        mock.is_connected = False
        mock.close_code = code
        mock.state = WebSocketState.DISCONNECTED

    mock.accept = mock_accept
    mock.send_json = mock_send_json
    mock.close = mock_close
    return mock
