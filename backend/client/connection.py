"""
Relay client: the device side of the /ws channel.

Responsibilities:
- Connect to the relay, reconnecting a bounded number of times
- Track connection status and the last user-visible error
- Route inbound user-list / ptt-status / session into the ClientRoster and
  inbound ptt-stream frames into the PlaybackScheduler
- Queue outbound frames and status toggles (drop-oldest for audio)
- Start/stop talking through an attached CapturePipeline

NOT responsible for:
- Audio device handling (client.devices, client.capture, client.playback)
- Rendering (client.cli)
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, TYPE_CHECKING

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import WebSocketException

from audio.queues import MessageKind, OutboundQueue
from client.devices import CaptureError
from client.reconnect import (
    get_retry_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)
from client.roster import ClientRoster
from observability.logger import log_event
from protocol.messages import ProtocolError, decode_envelope, encode_envelope
from session.connection_status import ConnectionStatus
from spec import (
    AUDIO_OUT_QUEUE_MAX_FRAMES,
    EVENT_PTT_STATUS,
    EVENT_SESSION,
    EVENT_USER_LIST,
    RECONNECT_MAX_ATTEMPTS,
)

if TYPE_CHECKING:
    from client.capture import CapturePipeline
    from client.playback import PlaybackScheduler


SERVER_EVENTS = (EVENT_USER_LIST, EVENT_PTT_STATUS, EVENT_SESSION)


class RelayClient:
    """
    One client == one relay connection (re-established on failure).

    connect / sleep are injectable so tests can drive the reconnect loop
    without a network.
    """

    def __init__(
        self,
        url: str,
        *,
        playback: PlaybackScheduler,
        roster: ClientRoster | None = None,
        reconnect_attempts: int = RECONNECT_MAX_ATTEMPTS,
        connect: Callable[[str], Any] = ws_connect,
        sleep: Callable[[float], Any] = asyncio.sleep,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._url = url
        self._playback = playback
        self.roster = roster if roster is not None else ClientRoster()
        self._reconnect_attempts = reconnect_attempts
        self._connect = connect
        self._sleep = sleep
        self._on_change = on_change

        self.status = ConnectionStatus.DOWN
        self.error_message = ""

        self._capture: CapturePipeline | None = None
        self._outbound = OutboundQueue(max_audio_frames=AUDIO_OUT_QUEUE_MAX_FRAMES)
        self._ready = asyncio.Event()
        self._closing = False

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach_capture(self, capture: CapturePipeline) -> None:
        """
        Attach the capture pipeline.

        The pipeline is built with send_stream / send_status as its
        emitters, so it is attached after construction.
        """
        self._capture = capture

    # ------------------------------------------------------------------
    # Talking
    # ------------------------------------------------------------------

    @property
    def is_talking(self) -> bool:
        return self._capture is not None and self._capture.is_talking

    def start_talking(self) -> bool:
        """
        Start a talk burst.

        Returns False (and sets error_message) if the microphone could not
        be acquired. No automatic retry.
        """
        if self._capture is None:
            raise RuntimeError("start_talking() called before attach_capture()")

        try:
            self._capture.start()
        except CaptureError as e:
            self.error_message = f"Could not access microphone: {e}"
            log_event({
                "event_type": "CAPTURE_START_FAILED",
                "error_type": type(e).__name__,
                "error": str(e),
            })
            self._notify()
            return False

        self._notify()
        return True

    def stop_talking(self) -> None:
        if self._capture is not None:
            self._capture.stop()
        self._notify()

    # ------------------------------------------------------------------
    # Outbound (called by CapturePipeline on the event loop)
    # ------------------------------------------------------------------

    def send_stream(self, payload: bytes) -> None:
        """Queue one capture frame. Dropped while not connected."""
        if self.status is not ConnectionStatus.UP:
            return
        self._outbound.enqueue_audio(payload)
        self._ready.set()

    def send_status(self, is_talking: bool) -> None:
        """Queue a ptt-status toggle. Dropped while not connected."""
        if self.status is not ConnectionStatus.UP:
            return
        self._outbound.enqueue_control(
            encode_envelope(EVENT_PTT_STATUS, {"isTalking": is_talking})
        )
        self._ready.set()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_message(self, message: str | bytes) -> None:
        """Route one inbound WebSocket message."""
        if isinstance(message, bytes):
            self._playback.on_frame(message)
            return

        try:
            envelope = decode_envelope(message, allowed=SERVER_EVENTS)
        except ProtocolError as e:
            log_event({
                "event_type": "PROTOCOL_ERROR",
                "error_type": type(e).__name__,
                "error": str(e),
                "payload_preview": message[:100],
            })
            return

        if envelope.event == EVENT_USER_LIST:
            self.roster.update_members(envelope.data)
            log_event({
                "event_type": "ROSTER_UPDATED",
                "participants": len(self.roster),
            })
        elif envelope.event == EVENT_SESSION:
            own_id = envelope.data.get("id") if isinstance(envelope.data, dict) else None
            if isinstance(own_id, str):
                self.roster.self_id = own_id
                log_event({"event_type": "SESSION_IDENTIFIED", "session_id": own_id})
        elif isinstance(envelope.data, dict):
            self.roster.set_talking(
                envelope.data.get("id"), envelope.data.get("isTalking")
            )

        self._notify()

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """
        Connect and pump messages until close() or reconnects run out.

        Returns normally in both cases; status and error_message tell
        which.
        """
        attempt = reset_attempt()

        while not self._closing:
            self._set_status(ConnectionStatus.CONNECTING)
            try:
                async with self._connect(self._url) as ws:
                    self._set_status(ConnectionStatus.UP)
                    self.error_message = ""
                    attempt = reset_attempt()
                    log_event({"event_type": "RELAY_CONNECTED", "url": self._url})

                    await self._pump(ws)

                self._set_status(ConnectionStatus.DOWN)
                log_event({"event_type": "RELAY_DISCONNECTED", "url": self._url})

            except (OSError, WebSocketException) as e:
                self.error_message = str(e) or type(e).__name__
                self._set_status(ConnectionStatus.ERROR)
                log_event({
                    "event_type": "RELAY_CONNECTION_ERROR",
                    "url": self._url,
                    "exception": type(e).__name__,
                    "message": str(e),
                    "attempt": attempt.attempt,
                })

            self._on_link_lost()

            if self._closing:
                break

            if not should_retry(attempt=attempt, max_attempts=self._reconnect_attempts):
                log_event({
                    "event_type": "RECONNECT_GAVE_UP",
                    "url": self._url,
                    "attempts": attempt.attempt,
                })
                return

            delay_ms = get_retry_delay_ms(attempt=attempt)
            attempt = next_attempt(attempt)
            await self._sleep(delay_ms / 1000)

        self._set_status(ConnectionStatus.DOWN)

    def close(self) -> None:
        """Ask run() to finish after the current connection ends."""
        self._closing = True
        self._ready.set()

    async def _pump(self, ws: Any) -> None:
        sender = asyncio.create_task(self._send_loop(ws))
        try:
            async for message in ws:
                self.handle_message(message)
                if self._closing:
                    break
        finally:
            sender.cancel()
            (result,) = await asyncio.gather(sender, return_exceptions=True)
            if isinstance(result, Exception):
                log_event({
                    "event_type": "RELAY_SEND_FAILED",
                    "url": self._url,
                    "exception": type(result).__name__,
                    "message": str(result),
                })

    async def _send_loop(self, ws: Any) -> None:
        while not self._closing:
            await self._ready.wait()
            self._ready.clear()

            while True:
                msg = self._outbound.dequeue()
                if msg is None:
                    break
                if msg.kind is MessageKind.CONTROL:
                    await ws.send(json.dumps(msg.payload))
                else:
                    await ws.send(msg.payload)

    def _on_link_lost(self) -> None:
        # Nothing queued survives a reconnect, and a talk burst cannot
        # continue on a new connection.
        self._outbound.clear()
        self.roster.self_id = None
        if self.is_talking:
            self.stop_talking()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is not self.status:
            self.status = status
            self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
