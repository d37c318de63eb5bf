"""
Lifecycle enums for relay connections.

SessionState is the server-side state of one Transport Session and is
owned by the RelayHub. ConnectionStatus is the client's view of its own
link to the relay.
"""
from enum import Enum


class SessionState(Enum):
    """
    Server-side Transport Session lifecycle.

    CONNECTING -> ACTIVE -> CLOSED. CLOSED is terminal.
    Only ACTIVE sessions send or receive relayed traffic.
    """
    CONNECTING = "CONNECTING"  # Socket accepted, not yet registered
    ACTIVE = "ACTIVE"          # Registered, included in fan-out
    CLOSED = "CLOSED"          # Removed from registry, never reopened


class ConnectionStatus(Enum):
    """
    Client-side link status.
    """
    DOWN = "DOWN"              # Not connected (never connected, or dropped)
    CONNECTING = "CONNECTING"  # Attempting connection (with retry backoff)
    UP = "UP"                  # Active WebSocket connection
    ERROR = "ERROR"            # Last attempt failed; see error_message
