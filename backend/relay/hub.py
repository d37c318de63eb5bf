"""
Relay hub (server core).

Responsibilities:
- Own the SessionRegistry (single writer)
- Drive each session through CONNECTING -> ACTIVE -> CLOSED
- Fan out ptt-stream frames and ptt-status toggles to every OTHER active session
- Broadcast the full roster to everyone after each membership change

Concurrency:
- Every handler is synchronous and runs to completion on the event loop,
  so events are applied one at a time in arrival order. Fan-out only
  enqueues onto per-session outbound queues; nothing here awaits I/O.

NOT responsible for:
- Socket reads/writes (server.routes, session.transport)
- Validating audio payloads (relayed verbatim, by policy)
- Tracking talk state (status is relayed, the registry flag is left alone)
"""

from __future__ import annotations

from typing import Any, Iterator, Protocol

from observability.logger import log_event
from protocol.messages import (
    ProtocolError,
    decode_envelope,
    session_message,
    talk_status_message,
    user_list_message,
)
from relay.registry import Participant, SessionRegistry
from session.connection_status import SessionState
from spec import CLIENT_JSON_EVENTS, EVENT_PTT_STATUS


class RelaySession(Protocol):
    """What the hub needs from a Transport Session."""
    session_id: str
    state: SessionState

    def send_control(self, payload: dict[str, Any]) -> None: ...

    def send_audio(self, payload: bytes) -> None: ...


class RelayHub:
    """
    One hub per process.

    Sessions are kept in connection order alongside the registry so that
    fan-out iterates in the same order the roster is reported.
    """

    def __init__(self, registry: SessionRegistry | None = None) -> None:
        self._registry = registry if registry is not None else SessionRegistry()
        self._sessions: dict[str, RelaySession] = {}

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def new_session_id(self) -> str:
        return self._registry.new_session_id()

    def snapshot(self) -> tuple[Participant, ...]:
        return self._registry.snapshot()

    def active_session_ids(self) -> tuple[str, ...]:
        return tuple(
            sid for sid, s in self._sessions.items()
            if s.state is SessionState.ACTIVE
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_connect(self, session: RelaySession) -> Participant:
        """
        Register a new session and activate it.

        The new session is told its own identity first, then everyone
        (the new session included) gets the roster.
        """
        participant = self._registry.add(session)
        self._sessions[session.session_id] = session
        session.state = SessionState.ACTIVE

        log_event({
            "event_type": "SESSION_CONNECTED",
            "session_id": session.session_id,
            "display_name": participant.display_name,
            "participants": len(self._registry),
        })

        session.send_control(session_message(participant))
        self._broadcast_roster()
        return participant

    def on_disconnect(self, session: RelaySession, reason: str | None = None) -> None:
        """
        Close a session and send the remaining participants the roster.

        Idempotent: a second call for the same session does nothing.
        """
        if session.state is SessionState.CLOSED:
            return

        session.state = SessionState.CLOSED
        self._sessions.pop(session.session_id, None)
        participant = self._registry.get(session.session_id)
        self._registry.remove(session.session_id)

        log_event({
            "event_type": "SESSION_DISCONNECTED",
            "session_id": session.session_id,
            "display_name": participant.display_name if participant else None,
            "reason": reason,
            "participants": len(self._registry),
        })

        self._broadcast_roster()

    # ------------------------------------------------------------------
    # Inbound traffic
    # ------------------------------------------------------------------

    def on_text(self, session: RelaySession, text: str) -> None:
        """Route a JSON text frame. Undecodable frames are logged and dropped."""
        if not self._is_active(session, "text"):
            return

        try:
            envelope = decode_envelope(text, allowed=CLIENT_JSON_EVENTS)
        except ProtocolError as e:
            log_event({
                "event_type": "PROTOCOL_ERROR",
                "session_id": session.session_id,
                "error_type": type(e).__name__,
                "error": str(e),
                "payload_preview": text[:100],
            })
            return

        if envelope.event == EVENT_PTT_STATUS:
            self.on_status(session, envelope.data)

    def on_stream(self, session: RelaySession, payload: bytes) -> None:
        """Forward an audio frame verbatim to every other active session."""
        if not self._is_active(session, "ptt-stream"):
            return

        for target in self._others(session):
            target.send_audio(payload)

    def on_status(self, session: RelaySession, data: Any) -> None:
        """
        Forward a talk toggle, stamped with the sender's id.

        The registry's is_talking flag is intentionally not touched: a late
        joiner learns who is talking only at the next toggle.
        """
        if not self._is_active(session, "ptt-status"):
            return

        message = talk_status_message(data, sender_id=session.session_id)

        log_event({
            "event_type": "TALK_STATUS_RELAYED",
            "session_id": session.session_id,
            "is_talking": message["data"]["isTalking"],
        })

        for target in self._others(session):
            target.send_control(message)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_active(self, session: RelaySession, what: str) -> bool:
        if session.state is SessionState.ACTIVE:
            return True
        log_event({
            "event_type": "MESSAGE_FROM_INACTIVE_SESSION",
            "session_id": session.session_id,
            "session_state": session.state.value,
            "message": what,
        })
        return False

    def _others(self, sender: RelaySession) -> Iterator[RelaySession]:
        for sid, target in tuple(self._sessions.items()):
            if sid != sender.session_id and target.state is SessionState.ACTIVE:
                yield target

    def _broadcast_roster(self) -> None:
        message = user_list_message(self._registry.snapshot())
        for target in tuple(self._sessions.values()):
            if target.state is SessionState.ACTIVE:
                target.send_control(message)
