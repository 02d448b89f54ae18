"""In-memory frame scan transforms."""

from .faces import (
    FaceClusterer,
    FaceClustererConfig,
    count_occurrences,
    flatten,
    frames_of_group,
    insert_occurrence,
    strip_descriptors,
)
from .probe import FrameProber, ProbeConfig, ProbeError
from .repair import repair_frame_samples
from .scenes import (
    SceneConfig,
    SceneSegmenter,
    adjacent_scenes_at_cut,
    scene_for_frame,
    segment_by_difference,
    segment_by_markers,
    validate_partition,
)
from .sorter import SortMethod, SortOptions, reorder_frames, sort_detections
from .types import DetectionRecord, FaceDetection, FrameSample, Marker, Scene

__all__ = [
    "FaceClusterer",
    "FaceClustererConfig",
    "count_occurrences",
    "flatten",
    "frames_of_group",
    "insert_occurrence",
    "strip_descriptors",
    "FrameProber",
    "ProbeConfig",
    "ProbeError",
    "repair_frame_samples",
    "SceneConfig",
    "SceneSegmenter",
    "adjacent_scenes_at_cut",
    "scene_for_frame",
    "segment_by_difference",
    "segment_by_markers",
    "validate_partition",
    "SortMethod",
    "SortOptions",
    "reorder_frames",
    "sort_detections",
    "DetectionRecord",
    "FaceDetection",
    "FrameSample",
    "Marker",
    "Scene",
]
