# backend/audio/queues.py
"""
Per-connection outbound message queue with audio backpressure.

Requirements:
- Enqueue never blocks (fan-out is fire-and-forget)
- Relative order of all queued messages is preserved
- Audio frames are bounded; on overflow the OLDEST audio frame is dropped
  (stale audio is worse than lost audio)
- Control messages (roster, talk status) are never dropped
- Deterministic, synchronous behavior
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Optional

from spec import AUDIO_FRAME_DURATION_S


class MessageKind(str, Enum):
    """
    Delivery class of an outbound message.
    """
    CONTROL = "control"  # JSON text frame, reliable
    AUDIO = "audio"      # binary ptt-stream frame, drop-oldest


@dataclass(frozen=True)
class OutboundMessage:
    """
    One message waiting to be written to a socket.

    payload:
        dict for CONTROL (serialized by the sender task),
        bytes for AUDIO (written verbatim).
    """
    kind: MessageKind
    payload: Any


@dataclass
class DropCounters:
    """
    Drop counters for observability.
    """
    audio_overflow: int = 0


class OutboundQueue:
    """
    FIFO of OutboundMessage with a cap on queued audio frames.

    Drop rule:
    - enqueue_audio when max_audio_frames are already queued:
      remove the oldest queued AUDIO message, then append the new one.
    """

    def __init__(self, *, max_audio_frames: int) -> None:
        if max_audio_frames <= 0:
            raise ValueError("max_audio_frames must be > 0")

        self._max_audio_frames: int = max_audio_frames
        self._messages: Deque[OutboundMessage] = deque()
        self._audio_count: int = 0
        self.drops: DropCounters = DropCounters()

    # -------------------------
    # Core queue operations
    # -------------------------

    def enqueue_control(self, payload: dict[str, Any]) -> None:
        """Queue a JSON control message. Never dropped."""
        self._messages.append(OutboundMessage(MessageKind.CONTROL, payload))

    def enqueue_audio(self, payload: bytes) -> bool:
        """
        Queue a binary audio frame.

        Returns:
            True if no frame had to be dropped
            False if the oldest queued frame was dropped to make room
        """
        dropped = False
        if self._audio_count >= self._max_audio_frames:
            self._drop_oldest_audio()
            dropped = True

        self._messages.append(OutboundMessage(MessageKind.AUDIO, payload))
        self._audio_count += 1
        return not dropped

    def dequeue(self) -> Optional[OutboundMessage]:
        """
        Dequeue the oldest message.

        Returns None if queue is empty.
        """
        if not self._messages:
            return None
        msg = self._messages.popleft()
        if msg.kind is MessageKind.AUDIO:
            self._audio_count -= 1
        return msg

    def clear(self) -> None:
        """
        Drop everything without counting drops.

        Used when the connection closes.
        """
        self._messages.clear()
        self._audio_count = 0

    def _drop_oldest_audio(self) -> None:
        for i, msg in enumerate(self._messages):
            if msg.kind is MessageKind.AUDIO:
                del self._messages[i]
                self._audio_count -= 1
                self.drops.audio_overflow += 1
                return

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return len(self._messages)

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        return not self._messages

    def audio_frames(self) -> int:
        """Number of queued audio frames."""
        return self._audio_count

    def audio_depth_seconds(self) -> float:
        """
        Queued audio in seconds, assuming full-size capture frames.
        """
        return self._audio_count * AUDIO_FRAME_DURATION_S

    def snapshot(self) -> dict[str, float | int]:
        """
        Lightweight snapshot for logging.
        """
        return {
            "messages": len(self._messages),
            "audio_frames": self._audio_count,
            "audio_depth_s": self.audio_depth_seconds(),
            "dropped_audio_overflow": self.drops.audio_overflow,
        }
