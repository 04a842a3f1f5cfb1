"""Shared access-code gate.

The chat core never checks credentials itself; clients are expected to pass
POST /api/validate before opening the WebSocket.
"""

from .router import router

__all__ = ["router"]
