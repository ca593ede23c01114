"""
WebSocket Manager - Handles real-time connections and broadcasts.

This module manages WebSocket connections and forwards the editor's
change notifications (model and selection) to every connected client.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Manages WebSocket connections and broadcasts.

    All connected clients receive model_changed / selection_changed
    messages when the session state changes, enabling real-time sync.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Failed sends (disconnected clients) are dropped from the pool.
        """
        if not self._connections:
            return

        # Serialize once for all clients
        message_text = json.dumps(message)

        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception:
                    logger.debug("Dropping unreachable WebSocket client", exc_info=True)
                    failed.add(websocket)

            self._connections -= failed

    async def notify_model_changed(self, change: dict):
        """
        Notify all clients that the model changed.

        `change` carries reason, changed ids and the new version; clients
        needing full state fetch it via GET /api/diagram.
        """
        await self.broadcast({"type": "model_changed", **change})

    async def notify_selection_changed(self, change: dict):
        """Notify all clients that the selection changed."""
        await self.broadcast({"type": "selection_changed", **change})

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)
