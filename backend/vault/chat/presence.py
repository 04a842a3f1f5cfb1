"""Presence tracking: which connections have joined, and as whom.

The registry is the source of truth for "who is online". It is keyed by the
server-assigned connection id; the transport guarantees those are unique.
"""
from typing import Dict, List, Optional

from .schemas import Participant


class PresenceRegistry:
    """Maps live connection ids to joined participants."""

    def __init__(self) -> None:
        # connection_id -> Participant
        self._participants: Dict[str, Participant] = {}

    def put(self, connection_id: str, participant: Participant) -> None:
        self._participants[connection_id] = participant

    def get(self, connection_id: str) -> Optional[Participant]:
        return self._participants.get(connection_id)

    def remove(self, connection_id: str) -> Optional[Participant]:
        """Remove a connection and return its participant.

        Returns None when the connection was never joined or was already
        removed; a second disconnect for the same connection lands here.
        """
        return self._participants.pop(connection_id, None)

    def snapshot(self) -> List[Participant]:
        """Return the participants present right now, as a new list."""
        return list(self._participants.values())

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
