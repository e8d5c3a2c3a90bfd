"""In-memory WebSocket broadcast helpers for change notifications."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket

from .change_feed import ChangeEvent

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks active WebSocket connections and broadcasts JSON payloads."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)

    async def broadcast(self, message: dict[str, Any]) -> None:
        payload = json.dumps(message, default=str)
        async with self._lock:
            targets = list(self._connections)
        for connection in targets:
            try:
                await connection.send_text(payload)
            except Exception:
                logger.debug("Dropping WebSocket that failed to receive a change event")
                await self.disconnect(connection)

    async def forward(self, event: ChangeEvent) -> None:
        """Change-feed listener that relays ``event`` to every connection."""

        await self.broadcast(event.as_message())


change_updates_manager = WebSocketManager()


__all__ = ["WebSocketManager", "change_updates_manager"]
