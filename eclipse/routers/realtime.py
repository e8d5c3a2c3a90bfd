"""WebSocket endpoint that relays record-store change notifications."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.realtime import change_updates_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/changes")
async def change_updates(websocket: WebSocket) -> None:
    """Keep a connection open and push a message for every table change."""

    await change_updates_manager.connect(websocket)
    logger.info("Change socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Change socket receive failed")
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                payload = {}

            message_type = str(payload.get("type") or "").lower()
            if message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            elif message_type == "hello":
                await websocket.send_text(json.dumps({"type": "ready"}))
    finally:
        await change_updates_manager.disconnect(websocket)
        logger.info("Change socket disconnected from %s", websocket.client)


__all__ = ["router"]
