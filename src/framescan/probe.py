"""Per-frame probing of already decoded frames."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .types import FrameSample


class ProbeError(RuntimeError):
    """Raised when a frame cannot be probed."""


@dataclass
class ProbeConfig:
    probe_width: int = 160
    probe_height: int = 90


class FrameProber:
    """Computes difference values and mean colors for consecutive frames.

    The difference value is the mean absolute per-pixel difference to the
    previously probed frame, measured on a downscaled copy; the first frame
    scores 0.
    """

    def __init__(self, config: ProbeConfig | None = None) -> None:
        self._config = config or ProbeConfig()
        self._previous: Optional[np.ndarray] = None

    def reset(self) -> None:
        self._previous = None

    def probe(self, frame_number: int, frame: np.ndarray) -> FrameSample:
        if frame is None or frame.ndim != 3 or frame.shape[2] != 3:
            raise ProbeError(f"Expected RGB frame with 3 channels at frame {frame_number}")

        small = cv2.resize(
            frame,
            (max(1, self._config.probe_width), max(1, self._config.probe_height)),
            interpolation=cv2.INTER_AREA,
        )
        mean = cv2.mean(small)
        mean_color: Tuple[int, int, int] = (int(round(mean[0])), int(round(mean[1])), int(round(mean[2])))

        if self._previous is None:
            difference = 0.0
        else:
            delta = cv2.absdiff(small, self._previous)
            difference = float(np.mean(delta))
        self._previous = small

        return FrameSample(frame_number=int(frame_number), difference_value=round(difference, 4), mean_color=mean_color)

    def probe_many(self, frames: Iterable[Tuple[int, np.ndarray]]) -> List[FrameSample]:
        return [self.probe(frame_number, frame) for frame_number, frame in frames]


__all__ = ["FrameProber", "ProbeConfig", "ProbeError"]
