# tests/unit/test_frame_generator.py

import numpy as np
import pytest

from audio.frame_generator import FrameAccumulator, split_samples_into_frames
from spec import AUDIO_SAMPLES_PER_FRAME


def test_correct_samples_per_frame():
    # 3 full frames
    samples = np.zeros(AUDIO_SAMPLES_PER_FRAME * 3, dtype=np.float32)

    frames = split_samples_into_frames(samples)

    assert len(frames) == 3
    for frame in frames:
        assert frame.shape == (AUDIO_SAMPLES_PER_FRAME,)
        assert frame.dtype == np.float32


def test_drops_incomplete_trailing_frame():
    samples = np.zeros(AUDIO_SAMPLES_PER_FRAME * 2 + 10, dtype=np.float32)

    frames = split_samples_into_frames(samples)

    assert len(frames) == 2


def test_empty_input_returns_no_frames():
    assert split_samples_into_frames(np.zeros(0, dtype=np.float32)) == []


def test_rejects_non_positive_frame_size():
    with pytest.raises(ValueError):
        split_samples_into_frames(np.zeros(4, dtype=np.float32), frame_samples=0)


# ---------------------------------------------------------------------
# Accumulator (device blocks -> exact frames)
# ---------------------------------------------------------------------

def test_accumulator_carries_tail_across_blocks():
    acc = FrameAccumulator(frame_samples=4)

    assert acc.push(np.array([1, 2, 3], dtype=np.float32)) == []
    assert acc.pending_samples() == 3

    frames = acc.push(np.array([4, 5, 6, 7, 8, 9], dtype=np.float32))

    assert len(frames) == 2
    np.testing.assert_array_equal(frames[0], [1, 2, 3, 4])
    np.testing.assert_array_equal(frames[1], [5, 6, 7, 8])
    assert acc.pending_samples() == 1


def test_accumulator_flattens_column_blocks():
    acc = FrameAccumulator(frame_samples=2)

    frames = acc.push(np.array([[0.5], [0.25]], dtype=np.float32))

    assert len(frames) == 1
    np.testing.assert_array_equal(frames[0], [0.5, 0.25])


def test_accumulator_reset_discards_tail():
    acc = FrameAccumulator(frame_samples=4)
    acc.push(np.ones(3, dtype=np.float32))

    acc.reset()

    assert acc.pending_samples() == 0
    frames = acc.push(np.zeros(4, dtype=np.float32))
    np.testing.assert_array_equal(frames[0], np.zeros(4))
