"""Message history storage.

Two interchangeable backends implement the same MessageStore interface:

    - DuckDBMessageStore: durable history in an embedded DuckDB file.
      loadRecent returns up to the 200 newest messages, oldest first.
    - InMemoryMessageStore: bounded FIFO buffer of the 50 most recently
      appended messages, used when no database is configured or the
      database cannot be opened at startup.

The backend is chosen once by create_message_store() and never switched
while the process is running. Persistence failures are logged and
absorbed; callers keep broadcasting regardless of what the store reports.

Database Schema:
    chat_messages table:
        - id: Auto-incrementing primary key (insertion order tiebreaker)
        - username: Sender display name
        - text: Message body
        - color: Sender color at send time
        - timestamp: Server receipt time (naive UTC)
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import timezone
from typing import Deque, List, Optional

import duckdb

from vault.config import ChatSettings, StorageSettings

from .schemas import ChatMessage

logger = logging.getLogger(__name__)

# Default capacities (overridable through ChatSettings)
MEMORY_HISTORY_SIZE = 50
DURABLE_HISTORY_SIZE = 200


class StoreUnavailableError(Exception):
    """Raised when the durable store cannot be opened or initialised."""


class MessageStore(ABC):
    """Append-only chat history with bounded retrieval."""

    #: Short backend name used in logs and the history endpoint
    name: str = "abstract"

    @abstractmethod
    def append(self, message: ChatMessage) -> bool:
        """Persist one message.

        Returns:
            True on success, False if the write failed. Never raises.
        """

    @abstractmethod
    def load_recent(self) -> List[ChatMessage]:
        """Return the retained history, oldest first.

        The returned list is owned by the caller. A read failure yields an
        empty list rather than an exception.
        """

    def close(self) -> None:
        """Release any resources held by the store."""


class InMemoryMessageStore(MessageStore):
    """Keeps the most recent messages in process memory.

    Oldest messages are evicted first once ``max_size`` is exceeded.
    """

    name = "memory"

    def __init__(self, max_size: int = MEMORY_HISTORY_SIZE) -> None:
        self._max_size = max_size
        self._messages: Deque[ChatMessage] = deque(maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._max_size

    def append(self, message: ChatMessage) -> bool:
        self._messages.append(message)
        return True

    def load_recent(self) -> List[ChatMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)


class DuckDBMessageStore(MessageStore):
    """Durable history backed by an embedded DuckDB database.

    Thread Safety:
        The DuckDB connection is NOT thread-safe. The session router only
        calls into the store while holding its event lock, so every call
        here runs one at a time.
    """

    name = "duckdb"

    def __init__(self, db_path: str, history_limit: int = DURABLE_HISTORY_SIZE) -> None:
        """Open the database and create the schema if needed.

        Args:
            db_path: Path to the DuckDB file, or ":memory:".
            history_limit: Maximum number of messages load_recent returns.

        Raises:
            StoreUnavailableError: If the database cannot be opened or the
                schema cannot be created.
        """
        self._db_path = db_path
        self._history_limit = history_limit
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        try:
            self._initialize_db()
        except duckdb.Error as e:
            self.close()
            raise StoreUnavailableError(
                f"Could not open message database at {db_path}: {e}"
            ) from e

    @property
    def db_path(self) -> str:
        return self._db_path

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create the sequence and table. Safe to call repeatedly."""
        conn = self._get_connection()
        conn.execute("""
            CREATE SEQUENCE IF NOT EXISTS chat_messages_seq START 1;
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                id INTEGER DEFAULT nextval('chat_messages_seq') PRIMARY KEY,
                username VARCHAR NOT NULL,
                text VARCHAR NOT NULL,
                color VARCHAR NOT NULL DEFAULT '#ffffff',
                timestamp TIMESTAMP NOT NULL
            )
        """)

    def append(self, message: ChatMessage) -> bool:
        # DuckDB TIMESTAMP is naive; store UTC wall time
        timestamp = message.timestamp.astimezone(timezone.utc).replace(tzinfo=None)
        try:
            self._get_connection().execute(
                """
                INSERT INTO chat_messages (username, text, color, timestamp)
                VALUES (?, ?, ?, ?)
                """,
                [message.username, message.text, message.color, timestamp],
            )
        except duckdb.Error as e:
            logger.error(
                f"[Store] Failed to save message from {message.username!r} "
                f"to {self._db_path}: {e}"
            )
            return False
        return True

    def load_recent(self) -> List[ChatMessage]:
        try:
            rows = self._get_connection().execute(
                """
                SELECT username, text, color, timestamp
                FROM chat_messages
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                [self._history_limit],
            ).fetchall()
        except duckdb.Error as e:
            logger.error(f"[Store] Failed to load history from {self._db_path}: {e}")
            return []

        # Newest-first query, returned oldest-first
        return [
            ChatMessage(
                username=row[0],
                text=row[1],
                color=row[2],
                timestamp=row[3].replace(tzinfo=timezone.utc),
            )
            for row in reversed(rows)
        ]

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


def create_message_store(
    storage: StorageSettings,
    chat: Optional[ChatSettings] = None,
) -> MessageStore:
    """Pick the history backend for this process.

    The durable store is attempted exactly once. Without a configured
    database path, or when opening it fails, the bounded in-memory store is
    returned and used until the process exits.
    """
    chat = chat or ChatSettings()

    if not storage.database_path:
        logger.info(
            f"[Store] No database configured; using in-memory store "
            f"(last {chat.memory_history_size} messages)"
        )
        return InMemoryMessageStore(chat.memory_history_size)

    try:
        store = DuckDBMessageStore(storage.database_path, chat.durable_history_size)
    except StoreUnavailableError as e:
        logger.error(f"[Store] {e}; falling back to in-memory store")
        return InMemoryMessageStore(chat.memory_history_size)

    logger.info(f"[Store] Connected to DuckDB at {storage.database_path}; messages will persist")
    return store
