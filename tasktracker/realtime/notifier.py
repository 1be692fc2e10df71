"""Best-effort delivery of notifications to connected users.

Delivery never blocks and never raises into the caller: a user without a
bound connection simply misses the notification.
"""

import logging
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, Optional

from tasktracker.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


class NotificationRouter:
    def __init__(self, registry: ConnectionRegistry, transport=None):
        self.registry = registry
        self.transport = transport

    def attach(self, transport) -> None:
        self.transport = transport

    def _stamp(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        message = dict(payload)
        message["timestamp"] = datetime.now(UTC).isoformat()
        return message

    def notify(self, user_id: int, payload: Dict[str, Any]) -> bool:
        connection_id = self.registry.resolve(user_id)
        if connection_id is None or self.transport is None:
            logger.debug("No live connection for user %s, dropping %s", user_id, payload.get("type"))
            return False
        try:
            delivered = self.transport.send(connection_id, NOTIFICATION_EVENT, self._stamp(payload))
        except Exception:
            logger.exception("Failed to push %s to user %s", payload.get("type"), user_id)
            return False
        if delivered:
            logger.info("Notification sent to user %s: %s", user_id, payload.get("type"))
        return bool(delivered)

    def notify_many(self, user_ids: Iterable[int], payload: Dict[str, Any]) -> int:
        sent = 0
        for user_id in user_ids:
            if self.notify(user_id, payload):
                sent += 1
        return sent

    def broadcast(self, payload: Dict[str, Any]) -> Optional[int]:
        if self.transport is None:
            logger.warning("Transport not attached, broadcast of %s skipped", payload.get("type"))
            return None
        try:
            count = self.transport.broadcast(NOTIFICATION_EVENT, self._stamp(payload))
        except Exception:
            logger.exception("Broadcast of %s failed", payload.get("type"))
            return None
        logger.info("Notification broadcasted: %s", payload.get("type"))
        return count
