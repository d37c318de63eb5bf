"""
Audio device access for the terminal client.

Two halves:
- ScheduledOutput: a pure-numpy output timeline. Buffers are scheduled at
  absolute times in the device clock and summed into whatever block the
  device asks for. The device clock is "samples rendered so far".
- open_input_stream / open_output_stream: thin PortAudio wrappers
  (sounddevice) that connect the timeline and the capture pipeline to
  real hardware.

sounddevice is imported inside the openers so that the rest of the client
(and its tests) never needs PortAudio to be installed.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import numpy as np

from observability.logger import log_event
from spec import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLES_PER_FRAME,
    PLAYBACK_DEVICE_BLOCK_SAMPLES,
)


# -------------------------
# Exceptions
# -------------------------

class AudioDeviceError(Exception):
    """Base class for audio device failures."""


class CaptureError(AudioDeviceError):
    """Capture could not be started or stopped cleanly."""


class CaptureUnavailable(CaptureError):
    """
    No usable input device (permission denied, unplugged, unsupported format).

    Reported to the user; capture is not retried automatically.
    """


class PlaybackUnavailable(AudioDeviceError):
    """No usable output device."""


# -------------------------
# Capture
# -------------------------

@dataclass(frozen=True)
class CaptureConstraints:
    """
    Requested input configuration.

    The three DSP flags are requests to the capture device. PortAudio has no
    way to ask for them, so on this backend they are logged, not enforced.
    """
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain: bool = True
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS
    blocksize: int = AUDIO_SAMPLES_PER_FRAME


class InputHandle(Protocol):
    """An opened, not yet started, input stream."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


OpenInput = Callable[[CaptureConstraints, Callable[[np.ndarray], None]], InputHandle]


class _SoundDeviceInput:
    """Maps PortAudio errors onto CaptureError."""

    def __init__(self, stream: Any, port_audio_error: type[Exception]) -> None:
        self._stream = stream
        self._error = port_audio_error

    def start(self) -> None:
        try:
            self._stream.start()
        except self._error as exc:
            raise CaptureUnavailable(str(exc)) from exc

    def stop(self) -> None:
        try:
            self._stream.stop()
        except self._error as exc:
            raise CaptureError(str(exc)) from exc

    def close(self) -> None:
        try:
            self._stream.close()
        except self._error as exc:
            raise CaptureError(str(exc)) from exc


def open_input_stream(
    constraints: CaptureConstraints,
    on_block: Callable[[np.ndarray], None],
    *,
    device: int | str | None = None,
) -> InputHandle:
    """
    Open (but do not start) a mono float32 input stream.

    on_block runs on the PortAudio thread with a copied 1-D block.

    Raises:
        CaptureUnavailable if PortAudio cannot open the device.
    """
    import sounddevice as sd  # pylint: disable=import-outside-toplevel

    def _callback(indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            log_event({"event_type": "CAPTURE_DEVICE_STATUS", "status": str(status)})
        on_block(indata[:, 0].copy())

    try:
        stream = sd.InputStream(
            samplerate=constraints.sample_rate_hz,
            channels=constraints.channels,
            dtype="float32",
            blocksize=constraints.blocksize,
            device=device,
            callback=_callback,
        )
    except (sd.PortAudioError, ValueError) as exc:
        raise CaptureUnavailable(str(exc)) from exc

    log_event({
        "event_type": "CAPTURE_DEVICE_OPENED",
        "device": device,
        "sample_rate_hz": constraints.sample_rate_hz,
        "blocksize": constraints.blocksize,
        "dsp_requested": {
            "echo_cancellation": constraints.echo_cancellation,
            "noise_suppression": constraints.noise_suppression,
            "auto_gain": constraints.auto_gain,
        },
        "dsp_enforced": False,
    })
    return _SoundDeviceInput(stream, sd.PortAudioError)


# -------------------------
# Playback
# -------------------------

class ScheduledOutput:
    """
    Output timeline with absolute-time scheduling.

    schedule() is called from the event loop, render() from the audio
    thread, hence the lock. Overlapping buffers (two talkers at once) are
    summed; there is no gain control.
    """

    def __init__(self, sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ) -> None:
        self._rate = sample_rate_hz
        self._lock = threading.Lock()
        self._position = 0
        self._pending: list[tuple[int, np.ndarray]] = []

    @property
    def current_time(self) -> float:
        """Device clock in seconds."""
        with self._lock:
            return self._position / self._rate

    def schedule(self, samples: np.ndarray, start_s: float) -> None:
        """
        Play `samples` starting at device time `start_s`.

        A start time the clock has already passed plays the whole buffer
        from the next rendered sample.
        """
        if samples.size == 0:
            return
        start = int(round(start_s * self._rate))
        with self._lock:
            start = max(start, self._position)
            self._pending.append((start, np.asarray(samples, dtype=np.float32)))

    def render(self, frames: int) -> np.ndarray:
        """Mix the next `frames` samples and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._position
            block_end = block_start + frames
            keep: list[tuple[int, np.ndarray]] = []

            for start, samples in self._pending:
                end = start + samples.shape[0]
                if start >= block_end:
                    keep.append((start, samples))
                    continue

                lo = max(start, block_start)
                hi = min(end, block_end)
                out[lo - block_start : hi - block_start] += samples[lo - start : hi - start]
                if end > block_end:
                    keep.append((start, samples))

            self._pending = keep
            self._position = block_end
        return out

    def pending_buffers(self) -> int:
        with self._lock:
            return len(self._pending)


def open_output_stream(
    output: ScheduledOutput,
    *,
    device: int | str | None = None,
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
) -> Any:
    """
    Start a PortAudio output stream that renders from `output`.

    Returns the started sounddevice.OutputStream (caller closes it).

    Raises:
        PlaybackUnavailable if PortAudio cannot open or start the device.
    """
    import sounddevice as sd  # pylint: disable=import-outside-toplevel

    def _callback(outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        outdata[:, 0] = output.render(frames)

    try:
        stream = sd.OutputStream(
            samplerate=sample_rate_hz,
            channels=AUDIO_CHANNELS,
            dtype="float32",
            blocksize=PLAYBACK_DEVICE_BLOCK_SAMPLES,
            device=device,
            callback=_callback,
        )
        stream.start()
    except (sd.PortAudioError, ValueError) as exc:
        raise PlaybackUnavailable(str(exc)) from exc

    return stream
