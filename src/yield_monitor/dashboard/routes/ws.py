"""WebSocket hub for real-time yield broadcasts to connected clients."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from yield_monitor.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


class YieldHub:
    """Tracks WebSocket connections and fans JSON messages out to all of them."""

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.connections.append(ws)
        log.info("yield_ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self.connections:
            self.connections.remove(ws)
        log.info("yield_ws_disconnected", total=len(self.connections))

    async def broadcast(self, text: str) -> None:
        """Send text to every client, dropping connections that fail."""
        for ws in self.connections.copy():
            try:
                await ws.send_text(text)
            except Exception:
                if ws in self.connections:
                    self.connections.remove(ws)
                log.warning("yield_ws_broadcast_error", remaining=len(self.connections))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for yield_update, yield_alert, and recommendation messages."""
    hub: YieldHub = websocket.app.state.hub
    await hub.connect(websocket)
    try:
        while True:
            # Consume messages to keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)
