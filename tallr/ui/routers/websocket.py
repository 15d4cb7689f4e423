"""WebSocket push channel for the desktop UI.

Endpoints:
    - WS /v1/ws?token=... - Receives tasks-updated, show-notification and
      tray-updated events

On connect the client immediately gets the current snapshot and tray
model. Clients may send ``{"type": "ping"}`` and receive ``{"type": "pong"}``.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from tallr.auth.dependencies import websocket_authorized
from tallr.ui.websocket_broadcasts import broadcast_tasks_updated, broadcast_tray_update

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


class _SingleConnection:
    """Adapter so the broadcast helpers can target one socket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def broadcast(self, message: dict):
        await self.websocket.send_json(message)


@router.websocket("/v1/ws")
async def websocket_endpoint(websocket: WebSocket):
    if not websocket_authorized(websocket):
        logger.warning("Unauthorized WebSocket connection attempt")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connection_manager
    await manager.connect(websocket)

    snapshot = websocket.app.state.store.snapshot()
    single = _SingleConnection(websocket)
    await broadcast_tasks_updated(single, snapshot)
    await broadcast_tray_update(single, snapshot)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "error": "Invalid JSON"})
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "error": "Unknown message type"})
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        await manager.disconnect(websocket)
