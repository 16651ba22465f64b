"""Live dispatch feed. Clients receive every dispatch event as JSON."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.ws_manager import DISPATCH_CHANNEL, ws_manager

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws/dispatch")
async def dispatch_feed(websocket: WebSocket):
    await ws_manager.connect(DISPATCH_CHANNEL, websocket)
    try:
        while True:
            # Only keepalives are expected from the client.
            if (await websocket.receive_text()).strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        ws_manager.disconnect(DISPATCH_CHANNEL, websocket)
