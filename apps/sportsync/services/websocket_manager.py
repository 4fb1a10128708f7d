"""
WebSocket connection manager for real-time fan-out.

Tracks at most one live connection per authenticated user and pushes
``{"type": ..., "data": ...}`` frames to connected clients. Delivery is
best-effort and at-most-once: closed or failing connections are skipped and
dropped, never retried.
"""

import asyncio
import enum
import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    """Event catalogue pushed to connected clients."""

    NEW_MATCH = "NEW_MATCH"
    MATCH_UPDATED = "MATCH_UPDATED"
    MATCH_DELETED = "MATCH_DELETED"
    NEW_POST = "NEW_POST"
    CONFIRMATION_UPDATED = "CONFIRMATION_UPDATED"
    NOTIFICATION = "NOTIFICATION"


def encode_event(event_type: EventType, data: Any) -> str:
    """Serialize an event frame. Pydantic models and datetimes are supported."""
    return json.dumps({"type": EventType(event_type).value, "data": jsonable_encoder(data)})


class WebSocketManager:
    """Manages WebSocket connections for real-time events."""

    def __init__(self):
        """Initialize the WebSocket manager."""
        # Mapping user_id -> the single tracked connection. Only mutated under _lock.
        self._connections: Dict[int, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: int, websocket: WebSocket):
        """
        Track a connection for a user, replacing any previously tracked handle.

        Args:
            user_id: ID of the authenticated user
            websocket: Accepted WebSocket connection
        """
        async with self._lock:
            replaced = self._connections.get(user_id)
            self._connections[user_id] = websocket
            total = len(self._connections)
        if replaced is not None and replaced is not websocket:
            logger.info(f"WebSocket for user {user_id} replaced by a new connection")
        logger.info(f"WebSocket connected for user {user_id} (total connections: {total})")

    async def disconnect(self, user_id: int, websocket: WebSocket):
        """
        Forget a user's connection.

        Only removes the entry if it still points at ``websocket``, so a late
        teardown of a replaced connection cannot evict its successor.
        """
        async with self._lock:
            if self._connections.get(user_id) is websocket:
                del self._connections[user_id]
        logger.info(f"WebSocket disconnected for user {user_id}")

    async def _snapshot(self) -> List[Tuple[int, WebSocket]]:
        async with self._lock:
            return list(self._connections.items())

    async def _prune(self, dead: List[Tuple[int, WebSocket]]):
        if not dead:
            return
        async with self._lock:
            for user_id, websocket in dead:
                if self._connections.get(user_id) is websocket:
                    del self._connections[user_id]

    @staticmethod
    def _is_open(websocket: WebSocket) -> bool:
        return getattr(websocket, "client_state", None) == WebSocketState.CONNECTED

    async def _deliver(self, targets: List[Tuple[int, WebSocket]], payload: str) -> int:
        # Sends happen outside the lock so a slow client never blocks connect/disconnect
        delivered = 0
        dead = []
        for user_id, websocket in targets:
            if not self._is_open(websocket):
                dead.append((user_id, websocket))
                continue
            try:
                await websocket.send_text(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Error sending WebSocket message to user {user_id}: {e}")
                dead.append((user_id, websocket))
        await self._prune(dead)
        return delivered

    async def broadcast(self, event_type: EventType, data: Any) -> int:
        """
        Push an event to every tracked open connection.

        The frame is serialized once. Returns the number of connections the
        frame was delivered to.
        """
        payload = encode_event(event_type, data)
        delivered = await self._deliver(await self._snapshot(), payload)
        logger.debug(f"Broadcast {EventType(event_type).value} to {delivered} connection(s)")
        return delivered

    async def send_to_user(self, user_id: int, event_type: EventType, data: Any) -> bool:
        """
        Push an event to a single user's connection.

        Returns:
            True if the frame was delivered, False otherwise
        """
        async with self._lock:
            websocket = self._connections.get(user_id)
        if websocket is None:
            return False
        payload = encode_event(event_type, data)
        return await self._deliver([(user_id, websocket)], payload) == 1

    async def get_connection_count(self, user_id: Optional[int] = None) -> int:
        """Number of tracked connections, overall or for one user."""
        async with self._lock:
            if user_id is None:
                return len(self._connections)
            return 1 if user_id in self._connections else 0

    async def is_connected(self, user_id: int) -> bool:
        async with self._lock:
            return user_id in self._connections


# Global WebSocket manager instance
_websocket_manager: Optional[WebSocketManager] = None


def get_websocket_manager() -> WebSocketManager:
    """
    Get the global WebSocket manager instance.

    Returns:
        WebSocketManager instance
    """
    global _websocket_manager
    if _websocket_manager is None:
        _websocket_manager = WebSocketManager()
    return _websocket_manager


async def publish(event_type: EventType, data: Any) -> int:
    """
    Broadcast a state-change event on the global manager.

    Fan-out is a side effect: failures are logged and never propagate to the
    operation that produced the event.
    """
    try:
        return await get_websocket_manager().broadcast(event_type, data)
    except Exception as e:
        logger.warning(f"Failed to broadcast {EventType(event_type).value}: {e}")
        return 0
