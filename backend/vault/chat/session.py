"""Session event router: the chat relay's state machine.

Each connection moves through three implicit states:

    Unjoined --user:join--> Joined --disconnect--> Disconnected

Only ``user:join`` and ``disconnect`` do anything for an Unjoined
connection; messages and typing events from it are dropped. No handler
raises to the transport: guard failures are silent no-ops and persistence
failures are logged by the store and otherwise ignored.

Fan-out per event:
    join        user:color, chat:history  -> joiner only
                user:list                 -> everyone, joiner included
                chat:system               -> everyone except the joiner
    message     chat:message              -> everyone, sender included
    typing      user:typing               -> everyone except the sender
    disconnect  user:list, chat:system    -> remaining connections

Concurrency:
    Handlers run one at a time under a single asyncio.Lock. A handler that
    suspends on a send or on store I/O keeps the lock, so presence and the
    color counter are never observed half-updated by another handler.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from vault.config import ChatSettings

from .colors import ColorAllocator
from .manager import EventEmitter
from .presence import PresenceRegistry
from .schemas import (
    EVENT_COLOR,
    EVENT_HISTORY,
    EVENT_JOIN,
    EVENT_MESSAGE,
    EVENT_SYSTEM,
    EVENT_TYPING,
    EVENT_USER_LIST,
    ChatMessage,
    Participant,
    TypingState,
)
from .store import MessageStore

logger = logging.getLogger(__name__)


class SessionEventRouter:
    """Handles join/message/typing/disconnect for every connection.

    One instance is built at startup and owns the process-wide presence
    registry, color allocator and message store.

    Args:
        emitter: Delivers outbound events (normally the ConnectionManager).
        store: History backend selected at startup.
        settings: Message and username limits.
        colors: Color allocator; a fresh one is created if omitted.
        presence: Presence registry; a fresh one is created if omitted.
    """

    def __init__(
        self,
        emitter: EventEmitter,
        store: MessageStore,
        settings: Optional[ChatSettings] = None,
        colors: Optional[ColorAllocator] = None,
        presence: Optional[PresenceRegistry] = None,
    ) -> None:
        self._emitter = emitter
        self._store = store
        self._settings = settings or ChatSettings()
        self._colors = colors or ColorAllocator()
        self._presence = presence or PresenceRegistry()
        self._lock = asyncio.Lock()
        self._last_timestamp: Optional[datetime] = None

        self._handlers: Dict[str, Callable[[str, Any], Awaitable[None]]] = {
            EVENT_JOIN: self.join,
            EVENT_MESSAGE: self.message,
            EVENT_TYPING: self.typing,
        }

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def presence(self) -> PresenceRegistry:
        return self._presence

    @property
    def colors(self) -> ColorAllocator:
        return self._colors

    def history(self) -> List[ChatMessage]:
        """Current retained history, oldest first."""
        return self._load_history()

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, connection_id: str, event: Any, data: Any) -> bool:
        """Route one inbound event to its handler.

        Returns:
            False if the event name is unknown (the frame is dropped).
        """
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.debug(f"[Session] Unknown event {event!r} from {connection_id}")
            return False
        await handler(connection_id, data)
        return True

    # =========================================================================
    # Handlers
    # =========================================================================

    async def join(self, connection_id: str, username: Any) -> None:
        """Register a connection under a display name and replay history."""
        async with self._lock:
            if connection_id in self._presence:
                logger.debug(f"[Session] Ignoring repeat join from {connection_id}")
                return
            if not isinstance(username, str):
                logger.debug(f"[Session] Ignoring join with non-text username from {connection_id}")
                return
            username = username.strip()[: self._settings.max_username_length]
            if not username:
                logger.debug(f"[Session] Ignoring join with empty username from {connection_id}")
                return

            participant = Participant(username=username, color=self._colors.next())
            self._presence.put(connection_id, participant)
            logger.info(f"[Session] {username} joined ({connection_id}) color={participant.color}")

            await self._emitter.send(connection_id, EVENT_COLOR, participant.color)
            history = self._load_history()
            await self._emitter.send(
                connection_id,
                EVENT_HISTORY,
                [msg.model_dump(mode="json") for msg in history],
            )

            await self._emitter.broadcast(EVENT_USER_LIST, self._user_list())
            await self._emitter.broadcast_except(
                connection_id, EVENT_SYSTEM, f"{username} joined the vault."
            )

    async def message(self, connection_id: str, text: Any) -> None:
        """Store a chat message and fan it out to everyone."""
        async with self._lock:
            participant = self._presence.get(connection_id)
            if participant is None:
                logger.debug(f"[Session] Dropping message from unjoined {connection_id}")
                return
            if not text or not isinstance(text, str):
                logger.debug(f"[Session] Dropping non-text message from {connection_id}")
                return

            # Whitespace-only text trims to "" and is still delivered
            message = ChatMessage(
                username=participant.username,
                text=text.strip()[: self._settings.max_message_length],
                color=participant.color,
                timestamp=self._next_timestamp(),
            )
            self._persist(message)
            await self._emitter.broadcast(EVENT_MESSAGE, message.model_dump(mode="json"))

    async def typing(self, connection_id: str, is_typing: Any) -> None:
        """Tell everyone else whether this participant is typing."""
        async with self._lock:
            participant = self._presence.get(connection_id)
            if participant is None:
                return
            state = TypingState(username=participant.username, isTyping=bool(is_typing))
            await self._emitter.broadcast_except(
                connection_id, EVENT_TYPING, state.model_dump()
            )

    async def disconnect(self, connection_id: str) -> None:
        """Drop a connection from presence and announce the departure.

        Safe to call more than once, and for connections that never joined;
        both cases are silent.
        """
        async with self._lock:
            participant = self._presence.remove(connection_id)
            if participant is None:
                return
            logger.info(f"[Session] {participant.username} disconnected ({connection_id})")
            await self._emitter.broadcast(EVENT_USER_LIST, self._user_list())
            await self._emitter.broadcast(
                EVENT_SYSTEM, f"{participant.username} left the vault."
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _user_list(self) -> List[dict]:
        return [p.model_dump() for p in self._presence.snapshot()]

    def _next_timestamp(self) -> datetime:
        # Clamp so timestamps never go backwards if the wall clock does
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return now

    def _persist(self, message: ChatMessage) -> None:
        try:
            saved = self._store.append(message)
        except Exception as e:
            logger.error(f"[Session] Store {self._store.name} raised on append: {e}")
            return
        if not saved:
            logger.warning(
                f"[Session] Message from {message.username} was broadcast but not persisted"
            )

    def _load_history(self) -> List[ChatMessage]:
        try:
            return self._store.load_recent()
        except Exception as e:
            logger.error(f"[Session] Store {self._store.name} raised on load: {e}")
            return []
