"""
Transport Session: one WebSocket connection to one participant.

Responsibilities:
- Hold the connection identity (session_id) and lifecycle state
- Buffer outbound traffic in an OutboundQueue (never blocks the caller)
- Drain the queue to the socket from a dedicated sender task

NOT responsible for:
- Deciding who receives what (RelayHub)
- Reading from the socket (server.routes receive loop)
- State transitions (RelayHub writes `state`)
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from audio.queues import MessageKind, OutboundQueue
from observability.logger import log_event
from session.connection_status import SessionState
from spec import AUDIO_OUT_QUEUE_MAX_FRAMES


class TransportSession:
    """
    One session == one socket == one participant.

    send_control / send_audio are synchronous and only enqueue, so the
    RelayHub can fan out from inside a single event handler without
    awaiting any I/O. A slow receiver only grows (and, for audio, trims)
    its own queue.
    """

    def __init__(
        self,
        websocket: WebSocket,
        *,
        session_id: str,
        max_audio_frames: int = AUDIO_OUT_QUEUE_MAX_FRAMES,
    ) -> None:
        self.session_id = session_id
        self.state = SessionState.CONNECTING
        self.created_at = time.time()

        self.outbound = OutboundQueue(max_audio_frames=max_audio_frames)

        self._ws = websocket
        self._ready = asyncio.Event()
        self._closed = False
        self._send_failed = False

    # ------------------------------------------------------------------
    # Enqueue (called by RelayHub)
    # ------------------------------------------------------------------

    @property
    def writable(self) -> bool:
        """False once closed or once a socket write has failed."""
        return not (self._closed or self._send_failed)

    def send_control(self, payload: dict[str, Any]) -> None:
        """Queue a JSON control message; silently skipped if unwritable."""
        if not self.writable:
            return
        self.outbound.enqueue_control(payload)
        self._ready.set()

    def send_audio(self, payload: bytes) -> None:
        """Queue a binary ptt-stream frame; oldest frame dropped on overflow."""
        if not self.writable:
            return
        if not self.outbound.enqueue_audio(payload):
            log_event({
                "event_type": "AUDIO_FRAME_DROPPED",
                **self.log_context(),
                "queue": self.outbound.snapshot(),
            })
        self._ready.set()

    # ------------------------------------------------------------------
    # Sender task
    # ------------------------------------------------------------------

    async def run_sender(self) -> None:
        """
        Drain the outbound queue to the socket until close().

        A failed write marks the session unwritable and ends the task;
        the receive loop observes the disconnect and reports it to the hub.
        """
        while not self._closed:
            await self._ready.wait()
            self._ready.clear()

            while True:
                msg = self.outbound.dequeue()
                if msg is None:
                    break

                try:
                    if msg.kind is MessageKind.CONTROL:
                        await self._ws.send_text(json.dumps(msg.payload))
                    else:
                        await self._ws.send_bytes(msg.payload)
                except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                    log_event({
                        "event_type": "SESSION_SEND_FAILED",
                        **self.log_context(),
                        "exception": type(exc).__name__,
                        "message": str(exc),
                    })
                    self._send_failed = True
                    self.outbound.clear()
                    return

    def close(self) -> None:
        """Stop the sender task and discard anything still queued."""
        self._closed = True
        self.outbound.clear()
        self._ready.set()

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "session_state": self.state.value,
            "connected_for_s": round(time.time() - self.created_at, 3),
        }
