"""Pushes dispatch events to connected dashboard sockets."""

from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import WebSocket

from app.services.event_bus import DispatchEvent

logger = logging.getLogger(__name__)

DISPATCH_CHANNEL = "dispatch"


class ConnectionManager:
    def __init__(self):
        self._channels: dict[str, set[WebSocket]] = defaultdict(set)

    def listeners(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    async def connect(self, channel: str, websocket: WebSocket):
        await websocket.accept()
        self._channels[channel].add(websocket)

    def disconnect(self, channel: str, websocket: WebSocket):
        self._channels[channel].discard(websocket)

    async def broadcast(self, channel: str, message: dict):
        """Send ``message`` as JSON to every socket on ``channel``; drop sockets that fail."""
        for ws in list(self._channels.get(channel, ())):
            try:
                await ws.send_json(message)
            except Exception:
                logger.info("Dropping websocket on %s after failed send", channel)
                self.disconnect(channel, ws)

    async def on_dispatch_event(self, event: DispatchEvent):
        if self.listeners(DISPATCH_CHANNEL):
            await self.broadcast(DISPATCH_CHANNEL, event.to_message())


ws_manager = ConnectionManager()
