"""WebSocket endpoint — admin dashboards subscribe to order updates here.

Each dashboard connects to /ws/admin?token=JWT. The handler:
1. Authenticates via the token query param (admin role; optional in development)
2. Assigns the connection an id and waits for `admin-connect`
3. Registers the connection, answers with `connection-status`
4. Answers `ping` with `pong` until the client goes away
5. Unregisters on disconnect

Order updates are not sent from here; the publisher writes to the
registered channel directly.
"""

import uuid

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from foodiii.config import settings
from foodiii.events.types import (
    ADMIN_CLIENT_TYPE,
    ADMIN_CONNECT,
    CONNECTION_STATUS,
    PING,
    PONG,
)
from foodiii.realtime.protocol import MalformedMessageError, decode, encode, iso_now
from foodiii.realtime.registry import ConnectionRegistry, WebSocketChannel

logger = structlog.get_logger()
router = APIRouter()


async def _authenticate(websocket: WebSocket) -> bool:
    """Check the ?token= param. Closes the socket and returns False on failure."""
    token = websocket.query_params.get("token")

    if not token:
        if settings.environment == "development":
            return True
        await websocket.close(code=4001, reason="Authentication required")
        return False

    from foodiii.auth.dependencies import identity_from_token
    from foodiii.auth.jwt import TokenError

    try:
        identity = identity_from_token(token)
    except TokenError:
        await websocket.close(code=4001, reason="Invalid or expired token")
        return False

    if not identity.is_admin:
        await websocket.close(code=4003, reason="Admin access required")
        return False
    return True


@router.websocket("/ws/admin")
async def admin_websocket(websocket: WebSocket):
    if not await _authenticate(websocket):
        return

    await websocket.accept()

    registry: ConnectionRegistry = websocket.app.state.registry
    connection_id = uuid.uuid4().hex
    channel = WebSocketChannel(websocket)
    log = logger.bind(connection_id=connection_id)
    log.info("foodiii.realtime.socket_opened")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message_type, data = decode(raw)
            except MalformedMessageError as e:
                log.warning("foodiii.realtime.malformed_frame", error=str(e))
                continue

            if message_type == ADMIN_CONNECT:
                client_type = data.get("clientType")
                if client_type != ADMIN_CLIENT_TYPE:
                    log.warning(
                        "foodiii.realtime.unexpected_client_type",
                        client_type=client_type,
                    )
                registry.register(connection_id, channel)
                log.info(
                    "foodiii.realtime.admin_identified",
                    client_id=data.get("clientId"),
                )
                await websocket.send_text(encode(CONNECTION_STATUS, {
                    "status": "connected",
                    "message": "Connected to order updates",
                    "clientId": connection_id,
                    "serverTime": iso_now(),
                    "clientsCount": len(registry),
                }))
            elif message_type == PING:
                await websocket.send_text(encode(PONG, {
                    **data,
                    "serverTime": iso_now(),
                }))
            else:
                log.info("foodiii.realtime.ignored_frame", type=message_type)
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(connection_id)
        log.info("foodiii.realtime.socket_closed")
        if websocket.application_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                pass
