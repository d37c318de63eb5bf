"""PCM conversion and metering utilities."""
import math

import numpy as np

from spec import AUDIO_SAMPLE_DTYPE, AUDIO_SAMPLE_WIDTH_BYTES, VOLUME_MAX, VOLUME_SCALE


def float32_to_bytes(samples: np.ndarray) -> bytes:
    """Serialize mono samples as little-endian float32 (the ptt-stream payload)."""
    return np.ascontiguousarray(samples, dtype=AUDIO_SAMPLE_DTYPE).tobytes()


def bytes_to_float32(payload: bytes | None) -> np.ndarray:
    """
    Decode a ptt-stream payload into float32 samples.

    Frames are relayed without validation, so anything may arrive here:
    None or b"" yields an empty array, a truncated trailing sample is dropped.
    """
    if not payload:
        return np.zeros(0, dtype=np.float32)

    usable = len(payload) - (len(payload) % AUDIO_SAMPLE_WIDTH_BYTES)
    return np.frombuffer(payload[:usable], dtype=AUDIO_SAMPLE_DTYPE).astype(np.float32)


def calculate_volume(samples: np.ndarray) -> int:
    """
    Coarse 0..100 level for UI feedback.

    mean(|x|) * VOLUME_SCALE, rounded half-up, clamped to VOLUME_MAX.
    Empty input is silence (0).
    """
    if samples.size == 0:
        return 0
    level = float(np.mean(np.abs(samples))) * VOLUME_SCALE
    if not math.isfinite(level):
        return VOLUME_MAX if level > 0 else 0
    return min(VOLUME_MAX, int(math.floor(level + 0.5)))
