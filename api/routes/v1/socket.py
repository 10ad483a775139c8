"""
api/routes/v1/socket.py -- Authenticated WebSocket endpoint.

Routes:
  WS /api/v1/ws?token=<bearer token>

socket_session() runs during the handshake, before accept(). A handshake with
no token, an unknown user or an invalid token is closed with 1008 and never
reaches the handler body. Store outages close with 1011 (see the
ResolutionError handler in api/main.py).

Message protocol (JSON in text or binary frames):
  server -> client  {"type": "welcome", "data": <user>}       once, after accept
  client -> server  any JSON value
  server -> client  {"type": "echo", "from": <user id>, "payload": <value>}
  server -> client  {"type": "error", "message": "invalid JSON"} for frames that are not JSON
"""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from api.models import UserResponse
from auth.dependencies import socket_session
from auth.models import User

logger = logging.getLogger("usergate.api.socket")

router = APIRouter()


@router.websocket("/ws")
async def socket_endpoint(websocket: WebSocket, user: User = Depends(socket_session)) -> None:
    await websocket.accept()
    logger.info("Socket opened for user %s", user.id)
    await websocket.send_json({"type": "welcome", "data": UserResponse.from_user(user).model_dump(by_alias=True)})
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            # Binary frames carry encoded JSON; json.loads decodes bytes itself.
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            try:
                payload = json.loads(raw)
            except ValueError:
                await websocket.send_json({"type": "error", "message": "invalid JSON"})
                continue
            await websocket.send_json({"type": "echo", "from": user.id, "payload": payload})
    except WebSocketDisconnect:
        logger.info("Socket closed for user %s", user.id)
