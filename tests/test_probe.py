from __future__ import annotations

import numpy as np
import pytest

from src.framescan.probe import FrameProber, ProbeConfig, ProbeError


def _frame(value: int, height: int = 36, width: int = 64) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


def test_first_frame_scores_zero() -> None:
    sample = FrameProber().probe(0, _frame(10))

    assert sample.frame_number == 0
    assert sample.difference_value == 0.0
    assert sample.mean_color == (10, 10, 10)


def test_difference_to_previous_frame() -> None:
    prober = FrameProber(ProbeConfig(probe_width=16, probe_height=9))

    samples = prober.probe_many([(0, _frame(10)), (1, _frame(40)), (2, _frame(40))])

    assert [sample.difference_value for sample in samples] == [0.0, 30.0, 0.0]
    assert samples[1].mean_color == (40, 40, 40)


def test_reset_forgets_previous_frame() -> None:
    prober = FrameProber()
    prober.probe(0, _frame(0))
    prober.reset()

    assert prober.probe(5, _frame(200)).difference_value == 0.0


def test_mean_color_per_channel() -> None:
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    frame[:, :, 0] = 30
    frame[:, :, 2] = 90

    assert FrameProber().probe(0, frame).mean_color == (30, 0, 90)


def test_grayscale_frame_rejected() -> None:
    with pytest.raises(ProbeError):
        FrameProber().probe(0, np.zeros((10, 10), dtype=np.uint8))
