# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Callable

import numpy as np
import pytest

from audio.pcm import float32_to_bytes
from client.devices import ScheduledOutput
from client.playback import PlaybackScheduler
from spec import AUDIO_FRAME_DURATION_S, AUDIO_SAMPLES_PER_FRAME, PLAYBACK_LOOKAHEAD_S


class FakeOutput:
    def __init__(self) -> None:
        self.current_time = 0.0
        self.scheduled: list[tuple[float, int]] = []

    def schedule(self, samples: np.ndarray, start_s: float) -> None:
        self.scheduled.append((start_s, samples.shape[0]))


class FakeTimers:
    def __init__(self) -> None:
        self.pending: list[tuple[float, Callable[[], None]]] = []

    def call_later(self, delay: float, cb: Callable[[], None]) -> None:
        self.pending.append((delay, cb))

    def fire_all(self) -> None:
        pending, self.pending = self.pending, []
        for _, cb in pending:
            cb()


def frame(value: float = 0.1, n: int = AUDIO_SAMPLES_PER_FRAME) -> bytes:
    return float32_to_bytes(np.full(n, value, dtype=np.float32))


@pytest.fixture
def out() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def sched(out: FakeOutput, timers: FakeTimers) -> PlaybackScheduler:
    return PlaybackScheduler(out, call_later=timers.call_later)


# ---------------------------------------------------------------------
# Cursor arithmetic
# ---------------------------------------------------------------------

def test_first_late_frame_gets_lookahead(out, sched):
    out.current_time = 1.0

    placed = sched.on_frame(frame())

    assert placed.underrun is True
    assert placed.start_s == pytest.approx(1.0 + PLAYBACK_LOOKAHEAD_S)
    assert placed.end_s == pytest.approx(placed.start_s + AUDIO_FRAME_DURATION_S)


def test_frames_arriving_in_time_play_back_to_back(out, sched):
    out.current_time = 1.0
    prev = sched.on_frame(frame())

    for i in range(1, 20):
        # Arrivals jitter but always before the cursor runs out
        out.current_time = prev.end_s - 0.2 + (i % 3) * 0.05
        placed = sched.on_frame(frame())

        assert placed.underrun is False
        assert placed.start_s >= prev.end_s - 1e-9
        assert placed.start_s == pytest.approx(prev.end_s)
        prev = placed

    assert sched.underruns == 1


def test_underrun_resets_to_lookahead_not_stale_cursor(out, sched):
    out.current_time = 1.0
    first = sched.on_frame(frame())

    out.current_time = 5.0
    placed = sched.on_frame(frame())

    assert placed.underrun is True
    assert placed.start_s == pytest.approx(5.0 + PLAYBACK_LOOKAHEAD_S)
    assert placed.start_s - out.current_time <= PLAYBACK_LOOKAHEAD_S + 1e-9
    assert placed.start_s > first.end_s


def test_burst_arrival_queues_without_overlap(out, sched):
    out.current_time = 2.0
    placements = [sched.on_frame(frame()) for _ in range(5)]

    for a, b in zip(placements, placements[1:]):
        assert b.start_s == pytest.approx(a.end_s)
    assert [s for s, _ in out.scheduled] == pytest.approx([p.start_s for p in placements])


def test_frame_duration_follows_sample_count(out, sched):
    out.current_time = 0.5
    placed = sched.on_frame(frame(n=1600))

    assert placed.end_s - placed.start_s == pytest.approx(0.1)


# ---------------------------------------------------------------------
# Degenerate frames
# ---------------------------------------------------------------------

def test_empty_frame_is_silent_and_leaves_cursor(out, sched, timers):
    out.current_time = 1.0
    sched.on_frame(frame())
    cursor = sched.scheduled_end_s

    assert sched.on_frame(b"") is None
    assert sched.on_frame(None) is None

    assert sched.scheduled_end_s == cursor
    assert sched.volume == 0
    assert len(out.scheduled) == 1
    assert len(timers.pending) == 1


def test_odd_length_payload_is_truncated(out, sched):
    out.current_time = 1.0
    placed = sched.on_frame(frame(n=16) + b"\x00")

    assert out.scheduled[-1][1] == 16
    assert placed.end_s - placed.start_s == pytest.approx(16 / 16_000)


# ---------------------------------------------------------------------
# Indicators
# ---------------------------------------------------------------------

def test_volume_and_playing_flag(out, sched, timers):
    out.current_time = 1.0
    placed = sched.on_frame(frame(value=1.0))

    assert sched.is_playing is True
    assert sched.volume == 100
    assert placed.volume == 100
    assert timers.pending[0][0] == pytest.approx(AUDIO_FRAME_DURATION_S + 0.1)


def test_playing_flag_clears_after_burst_drains(out, sched, timers):
    out.current_time = 1.0
    placed = sched.on_frame(frame())

    out.current_time = placed.end_s
    timers.fire_all()

    assert sched.is_playing is False
    assert sched.volume == 0


def test_earlier_timer_does_not_clear_while_more_audio_is_queued(out, sched, timers):
    out.current_time = 1.0
    first = sched.on_frame(frame())
    sched.on_frame(frame())

    out.current_time = first.end_s + 0.1
    timers.pending[0][1]()

    assert sched.is_playing is True


def test_on_change_hook_fires(out, timers):
    calls: list[int] = []
    sched = PlaybackScheduler(out, call_later=timers.call_later, on_change=lambda: calls.append(1))

    sched.on_frame(frame())

    assert calls


# ---------------------------------------------------------------------
# With the real output timeline
# ---------------------------------------------------------------------

def test_scheduled_frames_render_without_gaps():
    output = ScheduledOutput()
    timers = FakeTimers()
    sched = PlaybackScheduler(output, call_later=timers.call_later)

    sched.on_frame(frame(value=0.5, n=800))
    sched.on_frame(frame(value=0.25, n=800))

    # Clock is at 0, so the first frame starts immediately
    rendered = output.render(1600)

    np.testing.assert_allclose(rendered[:800], 0.5)
    np.testing.assert_allclose(rendered[800:], 0.25)
    assert output.pending_buffers() == 0


class RacingOutput(ScheduledOutput):
    """Audio thread renders a block between the clock read and schedule()."""

    @property
    def current_time(self) -> float:
        now = super().current_time
        self.render(512)
        return now


def test_frame_scheduled_just_behind_the_clock_is_played_whole():
    output = RacingOutput()
    sched = PlaybackScheduler(output, call_later=FakeTimers().call_later)

    sched.on_frame(frame(value=0.5, n=AUDIO_SAMPLES_PER_FRAME))

    rendered = output.render(AUDIO_SAMPLES_PER_FRAME + 512)
    assert np.count_nonzero(rendered) == AUDIO_SAMPLES_PER_FRAME
    np.testing.assert_allclose(rendered[:AUDIO_SAMPLES_PER_FRAME], 0.5)
