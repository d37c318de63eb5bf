# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from audio.queues import MessageKind, OutboundQueue
from spec import AUDIO_FRAME_DURATION_S


def audio(n: int) -> bytes:
    return bytes([n]) * 8


def drain(q: OutboundQueue) -> list:
    out = []
    while True:
        msg = q.dequeue()
        if msg is None:
            return out
        out.append(msg)


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------

def test_fifo_across_kinds():
    q = OutboundQueue(max_audio_frames=4)

    q.enqueue_control({"n": 1})
    q.enqueue_audio(audio(2))
    q.enqueue_control({"n": 3})

    msgs = drain(q)

    assert [m.kind for m in msgs] == [
        MessageKind.CONTROL,
        MessageKind.AUDIO,
        MessageKind.CONTROL,
    ]
    assert msgs[1].payload == audio(2)


# ---------------------------------------------------------------------
# Overflow behavior
# ---------------------------------------------------------------------

def test_overflow_drops_oldest_audio():
    q = OutboundQueue(max_audio_frames=2)

    assert q.enqueue_audio(audio(1)) is True
    assert q.enqueue_audio(audio(2)) is True

    # Third frame evicts the first
    assert q.enqueue_audio(audio(3)) is False

    assert q.drops.audio_overflow == 1
    assert q.audio_frames() == 2
    assert [m.payload for m in drain(q)] == [audio(2), audio(3)]


def test_control_messages_are_never_dropped():
    q = OutboundQueue(max_audio_frames=1)

    q.enqueue_control({"n": 1})
    q.enqueue_audio(audio(1))
    q.enqueue_control({"n": 2})
    q.enqueue_audio(audio(2))

    msgs = drain(q)

    assert [m.payload for m in msgs] == [{"n": 1}, {"n": 2}, audio(2)]


def test_depth_and_snapshot():
    q = OutboundQueue(max_audio_frames=8)
    q.enqueue_audio(audio(1))
    q.enqueue_audio(audio(2))
    q.enqueue_control({})

    assert q.audio_depth_seconds() == 2 * AUDIO_FRAME_DURATION_S
    snap = q.snapshot()
    assert snap["messages"] == 3
    assert snap["audio_frames"] == 2
    assert snap["dropped_audio_overflow"] == 0


def test_clear_resets_counts_without_drops():
    q = OutboundQueue(max_audio_frames=2)
    q.enqueue_audio(audio(1))
    q.enqueue_control({})

    q.clear()

    assert q.is_empty()
    assert q.audio_frames() == 0
    assert q.drops.audio_overflow == 0


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        OutboundQueue(max_audio_frames=0)
