"""Real-time chat: presence, colors, history storage and event fan-out."""

from .colors import USER_COLORS, ColorAllocator
from .manager import ConnectionManager, EventEmitter
from .presence import PresenceRegistry
from .schemas import ChatMessage, Participant
from .session import SessionEventRouter
from .store import (
    DuckDBMessageStore,
    InMemoryMessageStore,
    MessageStore,
    StoreUnavailableError,
    create_message_store,
)

__all__ = [
    "USER_COLORS",
    "ColorAllocator",
    "ConnectionManager",
    "EventEmitter",
    "PresenceRegistry",
    "ChatMessage",
    "Participant",
    "SessionEventRouter",
    "DuckDBMessageStore",
    "InMemoryMessageStore",
    "MessageStore",
    "StoreUnavailableError",
    "create_message_store",
]
