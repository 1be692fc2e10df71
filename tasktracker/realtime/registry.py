"""In-memory mapping of user ids to their live websocket connection."""

import logging
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """At most one connection per user and one user per connection.

    Bindings live only in process memory; clients re-register after a
    reconnect or a server restart.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._bindings: Dict[int, str] = {}

    def bind(self, user_id: int, connection_id: str) -> None:
        with self._lock:
            stale = [uid for uid, cid in self._bindings.items() if cid == connection_id and uid != user_id]
            for uid in stale:
                del self._bindings[uid]
            self._bindings[user_id] = connection_id
        logger.info("User %s registered with connection %s", user_id, connection_id)

    def unbind(self, connection_id: str) -> Optional[int]:
        """Drop the binding that points at ``connection_id``; no-op when there is none."""
        with self._lock:
            for user_id, cid in self._bindings.items():
                if cid == connection_id:
                    del self._bindings[user_id]
                    break
            else:
                return None
        logger.info("User %s unbound from connection %s", user_id, connection_id)
        return user_id

    def resolve(self, user_id: int) -> Optional[str]:
        with self._lock:
            return self._bindings.get(user_id)

    def connections(self) -> List[str]:
        with self._lock:
            return list(self._bindings.values())

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)
