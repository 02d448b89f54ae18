"""Scene segmentation from difference values or user-placed markers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from .types import Color, FrameSample, Marker, Scene

NEUTRAL_COLOR: Color = (128, 128, 128)
MARKER_COLOR: Color = (40, 40, 40)


@dataclass
class SceneConfig:
    """Thresholds controlling difference based cuts."""

    threshold: float = 20.0
    min_scene_length: int = 10


class SceneSegmenter:
    """Builds an ordered, gapless partition of a frame range into scenes."""

    def __init__(self, config: SceneConfig | None = None, logger: logging.Logger | None = None) -> None:
        self._config = config or SceneConfig()
        self._logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    def from_samples(self, samples: Sequence[FrameSample], file_id: Optional[str] = None) -> List[Scene]:
        """Segment dense samples, as returned by the gap repair pass."""
        differences = [float(sample.difference_value or 0.0) for sample in samples]
        colors = [sample.mean_color for sample in samples]
        return self.from_differences(differences, colors, file_id=file_id)

    def from_differences(
        self,
        differences: Sequence[float],
        mean_colors: Sequence[Optional[Color]],
        file_id: Optional[str] = None,
    ) -> List[Scene]:
        threshold = float(self._config.threshold)
        min_length = max(1, int(self._config.min_scene_length))
        frame_count = len(differences)
        if frame_count == 0:
            return []

        spans: List[Tuple[int, int, Color]] = []
        last_cut = 0
        prev_diff: Optional[float] = None

        for index, value in enumerate(differences):
            if value >= threshold:
                if index - last_cut >= min_length:
                    spans.append(self._span(last_cut, index, mean_colors))
                    last_cut = index
                elif prev_diff is not None and value > prev_diff:
                    # a more distinct cut inside the minimum length replaces the weaker one
                    start = spans.pop()[0] if spans else 0
                    spans.append(self._span(start, index, mean_colors))
                    last_cut = index
            prev_diff = value

        spans.append((last_cut, frame_count - last_cut, NEUTRAL_COLOR))
        self._logger.debug("Detected %s scenes in %s frames", len(spans), frame_count)
        return [
            Scene(scene_id=str(uuid4()), file_id=file_id, start=start, length=length, color=color)
            for start, length, color in spans
        ]

    def _span(self, start: int, stop: int, mean_colors: Sequence[Optional[Color]]) -> Tuple[int, int, Color]:
        length = stop - start
        middle = start + length // 2
        color = mean_colors[middle] if middle < len(mean_colors) else None
        return start, length, tuple(color) if color is not None else NEUTRAL_COLOR  # type: ignore[return-value]


def segment_by_difference(
    samples: Sequence[FrameSample],
    threshold: float,
    min_scene_length: int,
    file_id: Optional[str] = None,
) -> List[Scene]:
    segmenter = SceneSegmenter(SceneConfig(threshold=threshold, min_scene_length=min_scene_length))
    return segmenter.from_samples(samples, file_id=file_id)


def segment_by_markers(
    markers: Sequence[Marker],
    frame_count: int,
    file_id: Optional[str] = None,
) -> List[Scene]:
    """Split ``[0, frame_count)`` at the midpoints between visible markers.

    The boundary between two neighbouring markers ``a`` and ``b`` is
    ``(a + b) // 2 + 1``, so the shared midpoint frame belongs to the earlier
    scene.
    """
    if frame_count < 0:
        raise ValueError("frame_count must be non-negative")
    if frame_count == 0:
        return []

    visible = sorted((marker for marker in markers if not marker.hidden), key=lambda marker: marker.frame_number)
    anchors: List[Marker] = []
    seen: set[int] = set()
    for marker in visible:
        frame = min(max(int(marker.frame_number), 0), frame_count - 1)
        if frame in seen:
            continue
        seen.add(frame)
        anchors.append(Marker(thumb_id=marker.thumb_id, frame_number=frame, hidden=False))
    if not anchors:
        return []

    scenes: List[Scene] = []
    start = 0
    for index, marker in enumerate(anchors):
        if index < len(anchors) - 1:
            stop = (marker.frame_number + anchors[index + 1].frame_number) // 2 + 1
        else:
            stop = frame_count
        scenes.append(
            Scene(
                scene_id=marker.thumb_id,
                file_id=file_id,
                start=start,
                length=stop - start,
                color=MARKER_COLOR,
            )
        )
        start = stop
    return scenes


def scene_for_frame(scenes: Sequence[Scene], frame_number: int) -> Optional[Scene]:
    """Return the scene holding ``frame_number``, clamping it into the covered range."""
    if not scenes:
        return None
    for scene in scenes:
        if scene.contains(frame_number):
            return scene
    lowest = min(scene.start for scene in scenes)
    highest = max(scene.end for scene in scenes) - 1
    clamped = min(highest, max(lowest, frame_number))
    for scene in scenes:
        if scene.contains(clamped):
            return scene
    return None


def adjacent_scenes_at_cut(scenes: Sequence[Scene], frame_number: int) -> Optional[Tuple[int, int]]:
    """Indices of the two scenes meeting at a cut placed on ``frame_number``."""
    for index, scene in enumerate(scenes):
        if scene.start == frame_number:
            return (index - 1, index) if index > 0 else None
    return None


def validate_partition(scenes: Sequence[Scene], frame_count: int) -> bool:
    if frame_count == 0:
        return not scenes
    if not scenes or scenes[0].start != 0:
        return False
    for current, following in zip(scenes, scenes[1:]):
        if current.length <= 0 or current.end != following.start:
            return False
    return scenes[-1].length > 0 and scenes[-1].end == frame_count


__all__ = [
    "MARKER_COLOR",
    "NEUTRAL_COLOR",
    "SceneConfig",
    "SceneSegmenter",
    "adjacent_scenes_at_cut",
    "scene_for_frame",
    "segment_by_difference",
    "segment_by_markers",
    "validate_partition",
]
