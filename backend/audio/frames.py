"""
Audio frame primitives.

Pure data containers only.
No queues, no timing logic, no IO.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from spec import AUDIO_SAMPLE_RATE_HZ


@dataclass(frozen=True)
class AudioFrame:
    """
    One capture buffer's worth of mono linear PCM.

    samples:
        float32 samples in [-1.0, 1.0]. Length is normally
        spec.AUDIO_SAMPLES_PER_FRAME but received frames are never
        validated, so any length (including 0) is possible.

    sample_rate_hz:
        Fixed at 16 kHz on the wire; kept on the frame so durations
        are computed in one place.
    """
    samples: np.ndarray
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_s(self) -> float:
        """Playback duration: sample_count / sample_rate."""
        return len(self) / self.sample_rate_hz
