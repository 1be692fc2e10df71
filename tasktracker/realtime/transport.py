"""Websocket transport: owns the open sockets and pushes events to them.

Sync endpoints run in a worker thread, so pushes are scheduled onto the
event loop that owns the socket instead of being awaited.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Optional, Set, Tuple
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def _log_send_failure(connection_id: str):
    def callback(future):
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Push to connection %s failed: %s", connection_id, exc)
    return callback


class WebSocketTransport:
    def __init__(self):
        self._lock = threading.Lock()
        self._sockets: Dict[str, Tuple[WebSocket, asyncio.AbstractEventLoop]] = {}
        # create_task only holds a weak reference
        self._pending: Set[asyncio.Task] = set()

    async def accept(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid4().hex
        with self._lock:
            self._sockets[connection_id] = (websocket, asyncio.get_running_loop())
        logger.info("Client connected: %s", connection_id)
        return connection_id

    def discard(self, connection_id: str) -> None:
        with self._lock:
            self._sockets.pop(connection_id, None)
        logger.info("Client disconnected: %s", connection_id)

    def is_open(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._sockets

    def __len__(self) -> int:
        with self._lock:
            return len(self._sockets)

    def send(self, connection_id: str, event: str, data: Dict[str, Any]) -> bool:
        with self._lock:
            entry = self._sockets.get(connection_id)
        if entry is None:
            return False
        websocket, loop = entry
        return self._schedule(connection_id, websocket, loop, {"event": event, "data": data})

    def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        with self._lock:
            targets = list(self._sockets.items())
        message = {"event": event, "data": data}
        sent = 0
        for connection_id, (websocket, loop) in targets:
            if self._schedule(connection_id, websocket, loop, message):
                sent += 1
        return sent

    def _schedule(self, connection_id: str, websocket: WebSocket, loop: asyncio.AbstractEventLoop, message: dict) -> bool:
        if loop.is_closed():
            return False
        try:
            running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            task = loop.create_task(websocket.send_json(message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            task.add_done_callback(_log_send_failure(connection_id))
        else:
            future = asyncio.run_coroutine_threadsafe(websocket.send_json(message), loop)
            future.add_done_callback(_log_send_failure(connection_id))
        return True
