"""Websocket endpoint binding live connections to users.

Client protocol (JSON text frames):
  -> {"type": "register", "userId": 42}
  <- {"event": "registered", "data": {"userId": 42, "connectionId": "..."}}
  <- {"event": "notification", "data": {"type": ..., "message": ..., "timestamp": ...}}
  <- {"event": "error", "data": {"message": ...}}
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})


def _parse_user_id(value) -> Optional[int]:
    """Accept an int or a string of digits; bools and floats are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket):
    transport = websocket.app.state.transport
    registry = websocket.app.state.registry

    connection_id = await transport.accept(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid JSON format")
                continue
            if not isinstance(message, dict):
                await _send_error(websocket, "Message must be a JSON object")
                continue

            if message.get("type") == "register":
                user_id = _parse_user_id(message.get("userId"))
                if user_id is None:
                    await _send_error(websocket, "register requires an integer userId")
                    continue
                registry.bind(user_id, connection_id)
                await websocket.send_json({
                    "event": "registered",
                    "data": {"userId": user_id, "connectionId": connection_id},
                })
            else:
                await _send_error(websocket, f"Unknown message type: {message.get('type')}")
    except WebSocketDisconnect:
        pass
    finally:
        registry.unbind(connection_id)
        transport.discard(connection_id)
