"""WebSocket channel for client sessions."""

from __future__ import annotations

import json
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket

from radarlink.api.app import get_ws_bridge
from radarlink.exceptions import ErrorCode
from radarlink.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["session"])


class WebSocketSession:
    """Adapts a FastAPI WebSocket to the broadcaster's session interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self.id = uuid.uuid4().hex[:12]
        self._websocket = websocket

    async def send(self, message: dict[str, Any]) -> None:
        await self._websocket.send_json(message)


def _frame_text(frame: dict[str, Any]) -> str | None:
    """Text payload of a receive frame; binary frames are decoded as UTF-8."""
    text = frame.get("text")
    if text is not None:
        return text
    data = frame.get("bytes")
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


@router.websocket("/ws")
async def session_channel(websocket: WebSocket) -> None:
    """Real-time channel: ``action`` in; ``status``, ``telemetry``, ``error`` out."""
    bridge = get_ws_bridge(websocket)
    await websocket.accept()

    session = WebSocketSession(websocket)
    broadcaster = bridge.broadcaster
    broadcaster.join(session)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            text = _frame_text(frame)
            if text is None:
                broadcaster.send_error(session, "Frame is not UTF-8 text", ErrorCode.INVALID_INPUT)
                continue
            try:
                message = json.loads(text)
            except ValueError:
                broadcaster.send_error(session, "Invalid JSON", ErrorCode.INVALID_INPUT)
                continue
            await broadcaster.handle_message(session, message)
    finally:
        await broadcaster.leave(session)
