"""WebSocket connections per API-key owner.

Several browser tabs (or CLI watchers) may follow the same owner's jobs;
the JobRegistry pushes job events through ``send_to_owner``.
"""

import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


MAX_CONNECTIONS_PER_OWNER = 5


class ConnectionManager:

    def __init__(self):
        self._connections: dict[str, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, owner_id: str, ws: WebSocket) -> bool:
        """Accept and register a socket.

        Returns False and closes the socket when the owner already has
        MAX_CONNECTIONS_PER_OWNER connections.
        """
        async with self._lock:
            existing = self._connections.get(owner_id, set())
            if len(existing) >= MAX_CONNECTIONS_PER_OWNER:
                logger.warning(
                    "WebSocket connection rejected: owner has %d connections (max %d)",
                    len(existing), MAX_CONNECTIONS_PER_OWNER,
                )
                await ws.close(code=4008, reason="Too many connections")
                return False

        await ws.accept()
        async with self._lock:
            self._connections.setdefault(owner_id, set()).add(ws)
            count = len(self._connections[owner_id])
        logger.info("WebSocket connected: connections=%d", count)
        return True

    async def disconnect(self, owner_id: str, ws: WebSocket):
        remaining = 0
        async with self._lock:
            conns = self._connections.get(owner_id)
            if conns:
                conns.discard(ws)
                remaining = len(conns)
                if not conns:
                    del self._connections[owner_id]
        logger.info("WebSocket disconnected: remaining=%d", remaining)

    async def send_to_owner(self, owner_id: str, message: dict):
        """Send a JSON message to every socket of one owner; drop sockets that fail."""
        dead = []
        for ws in self._connections.get(owner_id, set()).copy():
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("WebSocket send failed, dropping connection")
                dead.append(ws)
        for ws in dead:
            await self.disconnect(owner_id, ws)

    async def broadcast(self, message: dict):
        for owner_id in list(self._connections):
            await self.send_to_owner(owner_id, message)

    def get_connected_owner_ids(self) -> list[str]:
        return list(self._connections.keys())

    def get_connection_count(self, owner_id: str | None = None) -> int:
        if owner_id is not None:
            return len(self._connections.get(owner_id, ()))
        return sum(len(conns) for conns in self._connections.values())
