"""
SPEC-AS-CONSTANTS
-----------------
Single source of truth for all behavioral constants in the relay.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (float32 mono @ 16kHz, 4096-sample frames)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 4  # float32, little-endian
AUDIO_SAMPLE_DTYPE: Final[str] = "<f4"

AUDIO_SAMPLES_PER_FRAME: Final[int] = 4096
AUDIO_BYTES_PER_FRAME: Final[int] = AUDIO_SAMPLES_PER_FRAME * AUDIO_SAMPLE_WIDTH_BYTES
AUDIO_FRAME_DURATION_S: Final[float] = AUDIO_SAMPLES_PER_FRAME / AUDIO_SAMPLE_RATE_HZ

# =============================================================================
# Volume meter
# =============================================================================

# Mean absolute amplitude is multiplied by this before clamping to 0..100.
VOLUME_SCALE: Final[float] = 5000.0
VOLUME_MAX: Final[int] = 100

# =============================================================================
# Playback scheduling
# =============================================================================

# Safety buffer re-established after an underrun.
PLAYBACK_LOOKAHEAD_S: Final[float] = 0.05

# "Playing" indicator check fires this long after a frame's duration.
PLAYBACK_IDLE_CHECK_GRACE_S: Final[float] = 0.1

# Indicator turns off once the device clock is within this of the cursor.
PLAYBACK_IDLE_TAIL_S: Final[float] = 0.1

# Output device callback block size (samples).
PLAYBACK_DEVICE_BLOCK_SAMPLES: Final[int] = 512

# =============================================================================
# Wire protocol (event names over the /ws channel)
# =============================================================================

EVENT_USER_LIST: Final[str] = "user-list"
EVENT_PTT_STREAM: Final[str] = "ptt-stream"
EVENT_PTT_STATUS: Final[str] = "ptt-status"

# Sent once to a newly joined session so it can find itself in user-list.
EVENT_SESSION: Final[str] = "session"

CLIENT_JSON_EVENTS: Final[Tuple[str, ...]] = (EVENT_PTT_STATUS,)

WS_PATH: Final[str] = "/ws"

# =============================================================================
# Participants
# =============================================================================

SESSION_ID_PREFIX: Final[str] = "sess_"
SESSION_ID_HEX_CHARS: Final[int] = 12
DISPLAY_NAME_PREFIX: Final[str] = "Device"
DISPLAY_NAME_ID_CHARS: Final[int] = 4

# =============================================================================
# Backpressure (per-session outbound queue)
# =============================================================================

# Audio frames beyond this are dropped oldest-first (~2s of audio).
AUDIO_OUT_QUEUE_MAX_FRAMES: Final[int] = 8

# =============================================================================
# Client reconnect
# =============================================================================

RECONNECT_MAX_ATTEMPTS: Final[int] = 5

# Backoff before reconnect attempt N (clamped to last slot).
RECONNECT_DELAYS_MS: Final[Tuple[int, ...]] = (1000, 2000, 4000, 5000)
