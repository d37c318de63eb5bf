"""
Capture pipeline: microphone -> fixed-size ptt-stream frames.

Lifecycle:
- start(): open and start the input device, then emit ptt-status
  {isTalking: true}; peers hear nothing about a burst that never began
  and the status always precedes the first frame
- feed(): called on the event loop for every device block; slices into
  AUDIO_SAMPLES_PER_FRAME frames, updates the level meter, emits frames
- stop(): stop AND close the device (both, even if one fails), drop the
  partial frame, emit ptt-status {isTalking: false}

Failure to acquire the device raises CaptureUnavailable and leaves
nothing open and is_talking False.

The capture path never writes to the output device, so a talker never
hears themself.
"""

from __future__ import annotations

from typing import Any, Callable

import numpy as np

from audio.frame_generator import FrameAccumulator
from audio.pcm import calculate_volume, float32_to_bytes
from client.devices import (
    CaptureConstraints,
    CaptureError,
    InputHandle,
    OpenInput,
    open_input_stream,
)
from observability.logger import log_event


def _call_now(fn: Callable[..., Any], *args: Any) -> None:
    fn(*args)


class CapturePipeline:
    """One microphone, one talk burst at a time."""

    def __init__(
        self,
        *,
        emit_stream: Callable[[bytes], None],
        emit_status: Callable[[bool], None],
        open_input: OpenInput = open_input_stream,
        constraints: CaptureConstraints | None = None,
        dispatch: Callable[..., Any] = _call_now,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        """
        dispatch:
            How device blocks reach feed(). Pass loop.call_soon_threadsafe
            when blocks arrive on the PortAudio thread.
        on_change:
            Called when the level meter moves (UI refresh hook).
        """
        self._emit_stream = emit_stream
        self._emit_status = emit_status
        self._open_input = open_input
        self._constraints = constraints or CaptureConstraints()
        self._dispatch = dispatch
        self._on_change = on_change

        self._handle: InputHandle | None = None
        self._accumulator = FrameAccumulator(self._constraints.blocksize)

        self.is_talking = False
        self.volume = 0
        self.frames_sent = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Begin a talk burst.

        Raises:
            CaptureError (usually CaptureUnavailable) if the device cannot
            be opened or started. Nothing is left open in that case.
        """
        if self.is_talking:
            return

        self._accumulator.reset()
        self.frames_sent = 0
        self._handle = self._open_input(self._constraints, self._on_device_block)

        try:
            self._handle.start()
        except CaptureError:
            self._teardown()
            raise

        # Blocks that arrive before this point are ignored by feed(), so
        # peers always see the status before the first frame.
        self.is_talking = True
        self._emit_status(True)

        log_event({"event_type": "CAPTURE_STARTED"})

    def stop(self) -> None:
        """End the talk burst and release the device."""
        was_talking = self.is_talking

        self.is_talking = False
        self._teardown()
        self._accumulator.reset()
        self.volume = 0

        if was_talking:
            self._emit_status(False)
            log_event({
                "event_type": "CAPTURE_STOPPED",
                "frames_sent": self.frames_sent,
            })

    def feed(self, block: np.ndarray) -> None:
        """Consume one device block (event loop side)."""
        if not self.is_talking:
            return

        previous = self.volume
        for frame in self._accumulator.push(block):
            self.volume = calculate_volume(frame)
            self._emit_stream(float32_to_bytes(frame))
            self.frames_sent += 1

        if self.volume != previous and self._on_change is not None:
            self._on_change()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_device_block(self, block: np.ndarray) -> None:
        self._dispatch(self.feed, block)

    def _teardown(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is None:
            return

        try:
            handle.stop()
        except CaptureError as exc:
            log_event({"event_type": "CAPTURE_TEARDOWN_ERROR", "step": "stop", "error": str(exc)})
        finally:
            try:
                handle.close()
            except CaptureError as exc:
                log_event({"event_type": "CAPTURE_TEARDOWN_ERROR", "step": "close", "error": str(exc)})
