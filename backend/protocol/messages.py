# backend/protocol/messages.py
"""
Message helpers for the /ws relay channel.

Text frames carry JSON envelopes:

    {"event": "<name>", "data": <payload>}

    user-list   server -> client   [{"id": ..., "name": ...}, ...]
    ptt-status  client -> server   {"isTalking": bool}
    ptt-status  server -> client   {"id": ..., "isTalking": bool}
    session     server -> client   {"id": ..., "name": ...}  (own identity, on join)

Binary frames are ptt-stream payloads (little-endian float32 samples),
relayed verbatim and never parsed on the server.

Usage example:

    envelope = decode_envelope(text, allowed=CLIENT_JSON_EVENTS)
    if envelope.event == EVENT_PTT_STATUS:
        outbound = talk_status_message(envelope.data, sender_id=session.session_id)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, TYPE_CHECKING

from spec import EVENT_PTT_STATUS, EVENT_SESSION, EVENT_USER_LIST

if TYPE_CHECKING:
    from relay.registry import Participant


# -------------------------
# Exceptions
# -------------------------

class ProtocolError(Exception):
    """Base class for relay protocol errors."""


class MalformedMessage(ProtocolError):
    """
    Raised when a text frame is not a JSON object with a string "event".

    The message is unsafe to route and must be dropped.
    """


class UnknownEvent(ProtocolError):
    """
    Raised when a well-formed envelope names an event the receiver
    does not handle.
    """


# -------------------------
# Envelope
# -------------------------

@dataclass(frozen=True)
class Envelope:
    """
    Decoded JSON text frame.
    """
    event: str
    data: Any = None


def encode_envelope(event: str, data: Any) -> dict[str, Any]:
    """Build the JSON-ready envelope dict for a text frame."""
    return {"event": event, "data": data}


def decode_envelope(text: str, *, allowed: Iterable[str]) -> Envelope:
    """
    Parse a text frame.

    Raises:
        MalformedMessage for invalid JSON or a missing/non-string event
        UnknownEvent if the event name is not in `allowed`
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedMessage(f"invalid JSON: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("event"), str):
        raise MalformedMessage("envelope must be an object with a string 'event'")

    event = raw["event"]
    if event not in tuple(allowed):
        raise UnknownEvent(f"unhandled event: {event}")

    return Envelope(event=event, data=raw.get("data"))


# -------------------------
# Payload builders
# -------------------------

def user_list_message(participants: Iterable[Participant]) -> dict[str, Any]:
    """Roster snapshot, in registry insertion order."""
    return encode_envelope(
        EVENT_USER_LIST,
        [{"id": p.participant_id, "name": p.display_name} for p in participants],
    )


def talk_status_message(data: Any, *, sender_id: str) -> dict[str, Any]:
    """
    Relayed ptt-status.

    The sender's id always wins over whatever id the payload carried.
    A payload that is not an object counts as {"isTalking": false}.
    """
    is_talking = bool(data.get("isTalking")) if isinstance(data, dict) else False
    return encode_envelope(
        EVENT_PTT_STATUS,
        {"id": sender_id, "isTalking": is_talking},
    )


def session_message(participant: Participant) -> dict[str, Any]:
    """The joining session's own identity."""
    return encode_envelope(
        EVENT_SESSION,
        {"id": participant.participant_id, "name": participant.display_name},
    )
