"""Densify sparse frame scan data so that index == frame number."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from .types import FrameSample

_ZERO_COLOR = (0, 0, 0)


def repair_frame_samples(
    samples: List[FrameSample],
    frame_count: int,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Fill holes in ``samples`` in place and return how many frames were synthesised.

    Afterwards ``len(samples) == frame_count`` and ``samples[i].frame_number == i``.
    A missing frame duplicates the sample right before it; a missing first frame
    gets a zero difference and a black mean color. Running it on dense data is a
    no-op.
    """
    if frame_count < 0:
        raise ValueError("frame_count must be non-negative")
    log = logger or logging.getLogger(__name__)

    repaired = 0
    i = 0
    while i < frame_count:
        if i < len(samples) and samples[i].frame_number == i:
            i += 1
            continue
        if i == 0:
            filler = FrameSample(frame_number=0, difference_value=0.0, mean_color=_ZERO_COLOR)
        else:
            filler = replace(samples[i - 1], frame_number=i)
        log.debug("Repaired frame scan data at %s", i)
        samples.insert(i, filler)
        repaired += 1
        # the same index is checked again against the shifted tail

    if len(samples) > frame_count:
        del samples[frame_count:]

    if repaired:
        log.info("Repaired %s of %s frames", repaired, frame_count)
    return repaired


__all__ = ["repair_frame_samples"]
