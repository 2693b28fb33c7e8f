"""
WebSocket Manager - Handles real-time connections and broadcasts.

Clients subscribe to one editing session and receive workflow_updated
events (with the fresh validation result) whenever that session's graph
changes.
"""
import asyncio
import json
import logging
from typing import Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Close code sent to clients of a session that has ended
SESSION_CLOSED_CODE = 4410


class WebSocketManager:
    """
    Manages WebSocket connections per session and broadcasts to them.

    Failed sends (disconnected clients) drop the connection.
    """

    def __init__(self):
        self._connections: dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(session_id, set()).add(websocket)
        logger.info("WebSocket connected to session %s. Total connections: %d",
                    session_id, self.connection_count)

    async def disconnect(self, session_id: str, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            connections = self._connections.get(session_id)
            if connections is not None:
                connections.discard(websocket)
                if not connections:
                    del self._connections[session_id]
        logger.info("WebSocket disconnected from session %s. Total connections: %d",
                    session_id, self.connection_count)

    async def broadcast(self, session_id: str, message: dict):
        """Broadcast a message to every client of a session."""
        if not self._connections.get(session_id):
            return

        # Serialize once for all clients
        message_text = json.dumps(message)

        failed: Set[WebSocket] = set()
        async with self._lock:
            connections = self._connections.get(session_id, set())
            for websocket in connections:
                try:
                    await websocket.send_text(message_text)
                except Exception:
                    logger.warning("Dropping WebSocket that failed to receive an update", exc_info=True)
                    failed.add(websocket)

            connections -= failed

    async def notify_workflow_updated(self, session_id: str, validation: Optional[dict] = None):
        """
        Notify a session's clients that its workflow has changed.

        Clients fetch the full graph via GET /api/sessions/{session_id}.
        """
        await self.broadcast(session_id, {
            "type": "workflow_updated",
            "session_id": session_id,
            "validation": validation
        })

    async def notify_session_closed(self, session_id: str):
        """Notify a session's clients that the session has ended, then close their sockets."""
        await self.broadcast(session_id, {
            "type": "session_closed",
            "session_id": session_id
        })
        await self.close_session(session_id)

    async def close_session(self, session_id: str):
        """Close and unregister every connection of a session."""
        async with self._lock:
            connections = self._connections.pop(session_id, set())

        for websocket in connections:
            try:
                await websocket.close(code=SESSION_CLOSED_CODE)
            except Exception:
                logger.warning("Failed to close WebSocket for session %s", session_id, exc_info=True)

        if connections:
            logger.info("Closed %d WebSocket(s) of session %s. Total connections: %d",
                        len(connections), session_id, self.connection_count)

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return sum(len(c) for c in self._connections.values())
