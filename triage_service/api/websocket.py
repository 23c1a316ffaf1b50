"""
WebSocket handler for real-time queue updates to the frontend.
"""

import logging
import asyncio
import json
from typing import List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from triage_service.core.event_bus import EventBus
from triage_service.core.triage_service import get_triage_service
from triage_service.models.events import EventType, QueueEvent, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """
    Manages WebSocket connections and broadcasts queue events.
    """

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self._lock = asyncio.Lock()
        self._event_bus: Optional[EventBus] = None

    def attach(self, event_bus: EventBus) -> None:
        """Start forwarding events from the bus to connected clients."""
        self.detach()
        event_bus.subscribe_all(self._on_queue_event, priority=10)
        self._event_bus = event_bus
        logger.info("WebSocket manager subscribed to events")

    def detach(self) -> None:
        if self._event_bus is not None:
            self._event_bus.unsubscribe_all(self._on_queue_event)
            self._event_bus = None

    @property
    def subscribed_to_events(self) -> bool:
        return self._event_bus is not None

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.append(websocket)

        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        async with self._lock:
            if websocket in self.active_connections:
                self.active_connections.remove(websocket)

        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: dict) -> None:
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_json = json.dumps(message, default=str)

        disconnected = []
        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message_json)
                except Exception as e:
                    logger.warning(f"Failed to send to client: {e}")
                    disconnected.append(connection)

        for conn in disconnected:
            await self.disconnect(conn)

    async def send_to_client(self, websocket: WebSocket, message: dict) -> None:
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            logger.warning(f"Failed to send to client: {e}")
            await self.disconnect(websocket)

    async def _on_queue_event(self, event: QueueEvent) -> None:
        """Forward a queue event to every client."""
        message_type = "alert" if event.event_type == EventType.HIGH_RISK_ALERT else "queue_update"
        message = {
            "type": message_type,
            "event_type": event.event_type.value,
            "timestamp": event.timestamp.isoformat(),
            "data": event.to_dict()
        }
        await self.broadcast(message)

    @property
    def connection_count(self) -> int:
        """Get number of active connections."""
        return len(self.active_connections)


# Global connection manager
manager = ConnectionManager()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Main WebSocket endpoint for real-time updates.

    Clients receive:
    - The current queue and stats on connect
    - Queue events (queued, called, cleared, priorities updated, feedback)
    - High-risk alerts

    Clients can send:
    - ping, for keepalive
    - request_state, to get the queue again
    """
    await manager.connect(websocket)

    try:
        await _send_initial_state(websocket)
    except Exception as e:
        logger.error(f"Failed to send initial state: {e}")

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await manager.send_to_client(websocket, {
                    "type": "error",
                    "message": "Invalid JSON"
                })
                continue
            await _handle_client_message(websocket, message)

    except WebSocketDisconnect:
        await manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await manager.disconnect(websocket)


async def _send_initial_state(websocket: WebSocket) -> None:
    """Send the current queue to a newly connected client."""
    service = get_triage_service()

    initial_state = {
        "type": "initial_state",
        "timestamp": utc_now().isoformat(),
        "data": {
            "queue": [entry.to_summary() for entry in service.get_queue()],
            "stats": service.queue.get_queue_stats()
        }
    }

    await manager.send_to_client(websocket, initial_state)


async def _handle_client_message(websocket: WebSocket, message: dict) -> None:
    """Handle incoming messages from clients."""
    msg_type = message.get("type", "") if isinstance(message, dict) else ""

    if msg_type == "ping":
        await manager.send_to_client(websocket, {
            "type": "pong",
            "timestamp": utc_now().isoformat()
        })

    elif msg_type == "request_state":
        await _send_initial_state(websocket)

    else:
        await manager.send_to_client(websocket, {
            "type": "error",
            "message": f"Unknown message type: {msg_type}"
        })


@router.get("/ws/status")
async def websocket_status():
    """Get WebSocket connection status."""
    return {
        "active_connections": manager.connection_count,
        "subscribed_to_events": manager.subscribed_to_events
    }
