# ClaimFlow - Claims Lifecycle & Notification Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Notification WebSocket endpoint.

Clients connect to ``/ws/notifications`` with a bearer token, either as the
``token`` query parameter or in the ``Authorization`` header. Sockets without
a valid token are closed with policy-violation before they are accepted, so
an unauthenticated client is never registered.
"""

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from ..api.dependencies import get_connection_manager_dep, get_identity_verifier_dep
from ..core.errors import ErrorKind
from ..core.security import IdentityVerifier, caller_from_gateway_headers
from .manager import ConnectionManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _bearer_from_header(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


@router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier_dep),
    manager: ConnectionManager = Depends(get_connection_manager_dep),
) -> None:
    """Push the caller's notifications as they are created."""
    caller = caller_from_gateway_headers(websocket.headers)
    if caller is None:
        caller = await verifier.verify(token or _bearer_from_header(websocket))
    if caller.is_err():
        logger.info("Refused notification socket: %s", caller.err_value)
        await websocket.close(
            code=status.WS_1008_POLICY_VIOLATION, reason=str(caller.err_value)
        )
        return

    user_id = caller.ok_value.subject_id
    registered = await manager.connect(websocket, user_id)
    if registered.is_err():
        # A failed welcome means the peer is already gone.
        if registered.err_value.kind != ErrorKind.DELIVERY_FAILURE:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    connection_id = registered.ok_value

    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except ValueError:
                frame = None
            await manager.handle_message(connection_id, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(connection_id, "client disconnected")
