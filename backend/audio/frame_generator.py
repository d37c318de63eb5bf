"""
Fixed-size frame slicing for the capture path.

Purpose:
- Turn arbitrarily sized device blocks into exact spec.AUDIO_SAMPLES_PER_FRAME
  frames before they are sent as ptt-stream payloads.

Invariants:
- float32 mono, 16 kHz
- Every emitted frame has exactly frame_samples samples
- Sample order is preserved across block boundaries

Design:
- split_samples_into_frames is pure (no state, no IO).
- FrameAccumulator carries the incomplete tail between device callbacks;
  reset() discards it when capture stops (no padding, no flush).
"""

from __future__ import annotations

import numpy as np

from spec import AUDIO_SAMPLES_PER_FRAME


def split_samples_into_frames(
    samples: np.ndarray,
    *,
    frame_samples: int = AUDIO_SAMPLES_PER_FRAME,
) -> list[np.ndarray]:
    """
    Split a sample buffer into whole frames.

    Returns:
        List of float32 arrays, each exactly frame_samples long.
        Drops any incomplete trailing frame.

    Raises:
        ValueError if frame_samples is not positive.
    """
    if frame_samples <= 0:
        raise ValueError("frame_samples must be > 0")

    whole_frames = samples.shape[0] // frame_samples
    if whole_frames <= 0:
        return []

    end = whole_frames * frame_samples
    return [
        np.array(samples[offset : offset + frame_samples], dtype=np.float32)
        for offset in range(0, end, frame_samples)
    ]


class FrameAccumulator:
    """
    Re-chunk a live sample stream into exact frames without loss.

    Device callbacks usually deliver blocksize == frame_samples, but
    host APIs are free to deliver other sizes.
    """

    def __init__(self, frame_samples: int = AUDIO_SAMPLES_PER_FRAME) -> None:
        if frame_samples <= 0:
            raise ValueError("frame_samples must be > 0")
        self._frame_samples = frame_samples
        self._buffer = np.zeros(0, dtype=np.float32)

    def push(self, block: np.ndarray) -> list[np.ndarray]:
        """Add a mono block and return every complete frame now available."""
        mono = np.asarray(block, dtype=np.float32).reshape(-1)
        self._buffer = np.concatenate((self._buffer, mono))

        frames = split_samples_into_frames(
            self._buffer, frame_samples=self._frame_samples
        )
        consumed = len(frames) * self._frame_samples
        self._buffer = self._buffer[consumed:]
        return frames

    def pending_samples(self) -> int:
        """Samples held back waiting for a complete frame."""
        return int(self._buffer.shape[0])

    def reset(self) -> None:
        """Discard the incomplete tail."""
        self._buffer = np.zeros(0, dtype=np.float32)
