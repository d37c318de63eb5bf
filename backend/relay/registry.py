"""
Session registry: who is connected right now.

Owned by RelayHub and mutated only from its (serialized) event handlers,
so no locking is needed. Everything else reads it through snapshot().
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol
from uuid import uuid4

from spec import (
    DISPLAY_NAME_ID_CHARS,
    DISPLAY_NAME_PREFIX,
    SESSION_ID_HEX_CHARS,
    SESSION_ID_PREFIX,
)


class HasSessionId(Protocol):
    """Anything registrable: only the identity is needed."""
    session_id: str


@dataclass
class Participant:
    """One connected device's identity and talk-state record."""
    participant_id: str
    display_name: str
    is_talking: bool = False


def default_display_name(session_id: str) -> str:
    """'Device ab12' from 'sess_ab12...'."""
    suffix = session_id.removeprefix(SESSION_ID_PREFIX)
    return f"{DISPLAY_NAME_PREFIX} {suffix[:DISPLAY_NAME_ID_CHARS]}"


class SessionRegistry:
    """Insertion-ordered mapping of session id -> Participant."""

    def __init__(self) -> None:
        self._participants: dict[str, Participant] = {}

    def new_session_id(self) -> str:
        """Fresh id, guaranteed not to collide with any live participant."""
        while True:
            session_id = f"{SESSION_ID_PREFIX}{uuid4().hex[:SESSION_ID_HEX_CHARS]}"
            if session_id not in self._participants:
                return session_id

    def add(self, session: HasSessionId) -> Participant:
        """
        Register a session and return its Participant.

        Raises:
            ValueError if the id is already registered (ids are never
            reused while the other session is alive).
        """
        if session.session_id in self._participants:
            raise ValueError(f"session already registered: {session.session_id}")

        participant = Participant(
            participant_id=session.session_id,
            display_name=default_display_name(session.session_id),
        )
        self._participants[session.session_id] = participant
        return participant

    def remove(self, session_id: str) -> None:
        """Forget a session. No-op if unknown."""
        self._participants.pop(session_id, None)

    def set_talking(self, session_id: str, is_talking: bool) -> None:
        """Update the talk flag. No-op if unknown (disconnect/status race)."""
        participant = self._participants.get(session_id)
        if participant is not None:
            participant.is_talking = is_talking

    def get(self, session_id: str) -> Participant | None:
        participant = self._participants.get(session_id)
        return replace(participant) if participant is not None else None

    def snapshot(self) -> tuple[Participant, ...]:
        """Copies of the current participants, in insertion order."""
        return tuple(replace(p) for p in self._participants.values())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
