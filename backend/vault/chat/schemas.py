"""Data models and wire event names for the chat relay."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Event names
# =============================================================================

# Inbound (client -> server)
EVENT_JOIN = "user:join"
EVENT_MESSAGE = "chat:message"
EVENT_TYPING = "user:typing"

# Outbound (server -> client)
EVENT_COLOR = "user:color"
EVENT_HISTORY = "chat:history"
EVENT_USER_LIST = "user:list"
EVENT_SYSTEM = "chat:system"
# chat:message and user:typing are reused for the outbound fan-out


# =============================================================================
# Data Models
# =============================================================================


class Participant(BaseModel):
    """A joined connection as seen by other peers.

    Attributes:
        username: Caller-supplied display name.
        color: Hex color assigned at join time, stable for the connection.
    """
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Display name shown in the UI")
    color: str = Field(..., description="Assigned hex display color")


class ChatMessage(BaseModel):
    """A persisted chat message.

    The color is copied from the sender at send time and never looked up
    again, so history keeps the color the sender had when they wrote it.

    Attributes:
        username: Sender's display name.
        text: Trimmed, length-capped message body.
        color: Sender's color at send time.
        timestamp: Server-assigned receipt time (UTC).
    """
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., description="Display name of the sender")
    text: str = Field(..., description="Message content")
    color: str = Field(default="#ffffff", description="Sender color at send time")
    timestamp: datetime = Field(..., description="Server receipt time (UTC)")


class TypingState(BaseModel):
    """Outbound typing indicator payload."""
    username: str
    isTyping: bool
