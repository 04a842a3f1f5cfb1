"""Chat router providing the WebSocket and history endpoints.

This module provides:
    - WebSocket /ws/chat: Real-time chat messaging
    - GET /chat/history: Current retained history (read-only)

The WebSocket protocol supports:
    - Named-user join with a server-assigned display color
    - Message history delivery on join
    - Live presence list and join/leave notices
    - Real-time message broadcasting
    - Typing indicators

Protocol Message Types (client -> server):
    - user:join     data: username (string)
    - chat:message  data: text (string)
    - user:typing   data: isTyping (boolean)

Every frame, in either direction, is a JSON object {"type": ..., "data": ...}.
"""
import asyncio
import logging
from typing import Set

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from .manager import ConnectionManager
from .session import SessionEventRouter

logger = logging.getLogger(__name__)

router = APIRouter()

# Leave announcements still running after their handler was cancelled
_pending_leaves: Set["asyncio.Future[None]"] = set()


@router.get("/chat/history")
async def get_history(request: Request) -> JSONResponse:
    """Return the history a newly joining user would receive.

    Returns:
        JSON with the backend name and the messages array, oldest first.
    """
    session: SessionEventRouter = request.app.state.session
    messages = session.history()
    return JSONResponse({
        "backend": session.store.name,
        "messages": [msg.model_dump(mode="json") for msg in messages],
    })


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time chat.

    This endpoint handles the complete chat lifecycle for a single client.

    Protocol Flow:
        1. Client connects -> Server assigns a connection id (not sent)
        2. Client sends: {type: "user:join", data: "alice"}
           -> Client receives: user:color, chat:history
           -> Everyone receives: user:list
           -> Everyone else receives: chat:system "alice joined the vault."
        3. Client sends: {type: "chat:message", data: "hi"}
           -> Everyone receives: chat:message {username, text, color, timestamp}
        4. Client sends: {type: "user:typing", data: true}
           -> Everyone else receives: user:typing {username, isTyping}
        5. On disconnect -> Remaining clients receive: user:list, chat:system

    Args:
        websocket: The WebSocket connection.
    """
    manager: ConnectionManager = websocket.app.state.connections
    session: SessionEventRouter = websocket.app.state.session

    connection_id = await manager.connect(websocket)

    try:
        # Main message loop
        while True:
            try:
                data = await websocket.receive_json()
            except (ValueError, KeyError):
                logger.debug(f"[WS] Dropping non-JSON frame from {connection_id}")
                continue

            if not isinstance(data, dict):
                logger.debug(f"[WS] Dropping malformed frame from {connection_id}")
                continue

            logger.debug("[WS] %s received: type=%s", connection_id, data.get("type", "?"))
            await session.dispatch(connection_id, data.get("type"), data.get("data"))

    except WebSocketDisconnect:
        logger.info(f"[WS] Connection {connection_id} closed by client")

    finally:
        # Stop delivering to this socket before the leave notices go out
        manager.disconnect(connection_id)
        # The server may cancel this handler once the client has gone; the
        # leave fan-out runs in its own task so it still completes.
        leave = asyncio.ensure_future(session.disconnect(connection_id))
        _pending_leaves.add(leave)
        leave.add_done_callback(_pending_leaves.discard)
        await asyncio.shield(leave)
        logger.info(f"[WS] {manager.connection_count()} connections remain")
