"""
Playback scheduler: incoming ptt-stream frames -> gap-free output.

Algorithm (one cursor, device clock):

    now = output.current_time
    if scheduled_end < now:              # underrun: nothing queued in time
        scheduled_end = now + LOOKAHEAD  # re-buffer a small, bounded amount
    start = scheduled_end
    scheduled_end += len(frame) / rate

Frames therefore play back to back while they keep arriving in time,
and after a gap the added delay is bounded by the lookahead instead of
accumulating. Frames from different talkers share the cursor and the
device sums anything that overlaps.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

import numpy as np

from audio.frames import AudioFrame
from audio.pcm import bytes_to_float32, calculate_volume
from observability.logger import log_event
from spec import (
    AUDIO_SAMPLE_RATE_HZ,
    PLAYBACK_IDLE_CHECK_GRACE_S,
    PLAYBACK_IDLE_TAIL_S,
    PLAYBACK_LOOKAHEAD_S,
)


class OutputTimeline(Protocol):
    """The part of ScheduledOutput the scheduler uses."""

    @property
    def current_time(self) -> float: ...

    def schedule(self, samples: np.ndarray, start_s: float) -> None: ...


@dataclass(frozen=True)
class ScheduledPlayback:
    """Where one frame landed on the output timeline."""
    start_s: float
    end_s: float
    underrun: bool
    volume: int


class PlaybackScheduler:
    """
    call_later:
        Timer hook with loop.call_later's signature; used to switch the
        "playing" indicator off once the scheduled audio has drained.
    on_change:
        Called whenever is_playing or volume changes (UI refresh hook).
    """

    def __init__(
        self,
        output: OutputTimeline,
        *,
        call_later: Callable[[float, Callable[[], None]], Any],
        sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
        lookahead_s: float = PLAYBACK_LOOKAHEAD_S,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._output = output
        self._call_later = call_later
        self._rate = sample_rate_hz
        self._lookahead_s = lookahead_s
        self._on_change = on_change

        self.scheduled_end_s = 0.0
        self.is_playing = False
        self.volume = 0
        self.underruns = 0

    def on_frame(self, payload: bytes | None) -> ScheduledPlayback | None:
        """
        Schedule one received frame.

        Returns None for an empty payload: nothing is scheduled and the
        cursor does not move.
        """
        frame = AudioFrame(bytes_to_float32(payload), self._rate)
        self.volume = calculate_volume(frame.samples)

        if len(frame) == 0:
            log_event({"event_type": "PLAYBACK_EMPTY_FRAME"})
            self._notify()
            return None

        now = self._output.current_time
        underrun = self.scheduled_end_s < now
        if underrun:
            self.scheduled_end_s = now + self._lookahead_s
            self.underruns += 1

        start_s = self.scheduled_end_s
        self._output.schedule(frame.samples, start_s)
        self.scheduled_end_s += frame.duration_s

        self.is_playing = True
        self._notify()
        self._call_later(frame.duration_s + PLAYBACK_IDLE_CHECK_GRACE_S, self._check_idle)

        return ScheduledPlayback(
            start_s=start_s,
            end_s=self.scheduled_end_s,
            underrun=underrun,
            volume=self.volume,
        )

    def _check_idle(self) -> None:
        # A later frame may have pushed the cursor out; only its timer may clear.
        if self._output.current_time >= self.scheduled_end_s - PLAYBACK_IDLE_TAIL_S:
            self.is_playing = False
            self.volume = 0
            self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
