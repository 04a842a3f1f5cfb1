"""WebSocket connection manager for the chat relay.

This module owns the set of live WebSocket connections and delivers named
events to them. It knows nothing about users or history; the session
router decides what to send and to whom, and this class does the sending.

Key features:
    - Server-assigned connection ids (never client-provided)
    - Unicast, broadcast, and broadcast-except-one delivery
    - Concurrent message broadcasting with asyncio.gather()
    - Automatic dead connection cleanup

Wire format:
    Every outbound frame is a JSON object {"type": <event>, "data": <payload>}.

Thread Safety:
    This implementation is designed for async/await usage with a single event loop.
    It is NOT thread-safe for concurrent access from multiple threads.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent message delivery
    - Failed connections are automatically removed during broadcast
    - Uvicorn handles ping/pong at the protocol level (see ServerSettings)
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class EventEmitter(Protocol):
    """Delivery interface the session router fans events out through."""

    async def send(self, connection_id: str, event: str, data: Any) -> None: ...

    async def broadcast(self, event: str, data: Any) -> None: ...

    async def broadcast_except(self, connection_id: str, event: str, data: Any) -> None: ...


def make_frame(event: str, data: Any) -> dict:
    """Build the JSON frame for an outbound event."""
    return {"type": event, "data": data}


class ConnectionManager:
    """Manages the live WebSocket connections of one server process.

    Note:
        One instance is created at startup and shared by every WebSocket
        handler through ``app.state``.
    """

    def __init__(self) -> None:
        """Initialize empty connection manager."""
        # connection_id -> active WebSocket
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket connection and assign it a connection id.

        Args:
            websocket: The WebSocket connection to accept.

        Returns:
            Backend-generated unique connection id.
        """
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        logger.info(
            f"[Manager] Connection {connection_id} accepted "
            f"({len(self.active_connections)} open)"
        )
        return connection_id

    def disconnect(self, connection_id: str) -> Optional[WebSocket]:
        """Forget a connection. Unknown ids are ignored.

        Returns:
            The removed WebSocket, or None if it was already gone.
        """
        return self.active_connections.pop(connection_id, None)

    def connection_count(self) -> int:
        """Get the number of open connections."""
        return len(self.active_connections)

    async def send(self, connection_id: str, event: str, data: Any) -> None:
        """Send one event to a single connection.

        A failed send drops the connection like a failed broadcast does.
        """
        connection = self.active_connections.get(connection_id)
        if connection is None:
            return
        if not await self._safe_send(connection, make_frame(event, data)):
            self._cleanup_connections([connection_id])

    async def broadcast(self, event: str, data: Any) -> None:
        """Broadcast an event to all connections concurrently.

        Args:
            event: Outbound event name.
            data: JSON-serializable payload.
        """
        await self._deliver(list(self.active_connections.items()), make_frame(event, data))

    async def broadcast_except(self, connection_id: str, event: str, data: Any) -> None:
        """Broadcast an event to all connections except one concurrently.

        Used for join notices and typing indicators, which the originating
        connection shouldn't see.

        Args:
            connection_id: Connection to exclude from the broadcast.
            event: Outbound event name.
            data: JSON-serializable payload.
        """
        targets = [
            (cid, conn) for cid, conn in self.active_connections.items()
            if cid != connection_id
        ]
        await self._deliver(targets, make_frame(event, data))

    async def _deliver(self, targets: List[tuple], frame: dict) -> None:
        if not targets:
            return

        results = await asyncio.gather(
            *[self._safe_send(conn, frame) for _, conn in targets],
            return_exceptions=True
        )

        # Remove failed connections
        failed = [
            cid for (cid, _), success in zip(targets, results)
            if success is not True
        ]
        self._cleanup_connections(failed)

    async def _safe_send(self, connection: WebSocket, message: dict) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Args:
            connection: The WebSocket to send to.
            message: JSON-serializable message to send.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await connection.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection: {e}")
            return False

    def _cleanup_connections(self, failed_connections: List[str]) -> None:
        for connection_id in failed_connections:
            if self.active_connections.pop(connection_id, None) is not None:
                logger.debug(f"Removed dead connection {connection_id}")
