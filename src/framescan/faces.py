"""Greedy face grouping and occurrence counting."""
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

import numpy as np

from .types import DetectionRecord, FaceDetection


@dataclass
class FaceClustererConfig:
    uniqueness_threshold: float = 0.6


def round_distance(value: float, decimals: int = 2) -> float:
    factor = 10 ** decimals
    return math.floor(float(value) * factor + 0.5) / factor


def flatten(records: Sequence[DetectionRecord]) -> List[FaceDetection]:
    """Faces of all records in order, each stamped with its record's frame number."""
    faces: List[FaceDetection] = []
    for record in records:
        if record.face_count == 0:
            continue
        for face in record.faces:
            faces.append(replace(face, frame_number=record.frame_number))
    return faces


def count_occurrences(records: Sequence[DetectionRecord]) -> Dict[Optional[int], int]:
    return dict(Counter(face.face_group_number for face in flatten(records)))


def insert_occurrence(records: Sequence[DetectionRecord]) -> None:
    """Write the size of each face's group onto every member, origin included."""
    counts = count_occurrences(records)
    for record in records:
        if record.face_count == 0:
            continue
        for face in record.faces:
            face.occurrence = counts[face.face_group_number]


def frames_of_group(records: Sequence[DetectionRecord], face_group_number: int) -> List[int]:
    return [face.frame_number for face in flatten(records) if face.face_group_number == face_group_number]


def strip_descriptors(records: Sequence[DetectionRecord]) -> Sequence[DetectionRecord]:
    """Drop descriptors in place, e.g. before handing records to a view."""
    for record in records:
        for face in record.faces:
            face.descriptor = []
    return records


class FaceClusterer:
    """Assigns group numbers by first-match comparison against group origins.

    Faces are visited in record order. Each one is compared with the origin
    descriptor of every known group in ascending group order and joins the first
    group closer than the threshold, even when a later group is closer. A face
    matching no group starts a new one and becomes its origin.
    """

    def __init__(self, config: FaceClustererConfig | None = None, logger: logging.Logger | None = None) -> None:
        self._config = config or FaceClustererConfig()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def threshold(self) -> float:
        return float(self._config.uniqueness_threshold)

    def assign_groups(self, records: Sequence[DetectionRecord], threshold: Optional[float] = None) -> int:
        """Mutate faces with ``face_group_number`` and ``dist_to_origin``; return the group count."""
        limit = self.threshold if threshold is None else float(threshold)
        if limit <= 0:
            raise ValueError("threshold must be positive")

        origins: List[np.ndarray] = []
        dims: Optional[int] = None
        for record in records:
            if record.face_count == 0:
                continue
            for face in record.faces:
                descriptor = _descriptor_array(face, record.frame_number, dims)
                dims = descriptor.size
                match = self._first_match(descriptor, origins, limit)
                if match is None:
                    origins.append(descriptor)
                    face.face_group_number = len(origins) - 1
                    face.dist_to_origin = 0.0
                else:
                    group, distance = match
                    face.face_group_number = group
                    face.dist_to_origin = round_distance(distance)

        self._logger.debug("Grouped faces into %s groups (threshold=%s)", len(origins), limit)
        return len(origins)

    def insert_occurrence(self, records: Sequence[DetectionRecord]) -> None:
        insert_occurrence(records)

    def find_face_occurrences(
        self,
        records: Sequence[DetectionRecord],
        frame_number: int,
        threshold: Optional[float] = None,
    ) -> List[DetectionRecord]:
        """Frames showing a face similar to the first face of ``frame_number``.

        Within a frame, faces that do not match are only kept once a matching
        face has been seen in that frame. Returned faces carry no descriptor.
        """
        limit = self.threshold if threshold is None else float(threshold)
        source = next((record for record in records if record.frame_number == frame_number), None)
        if source is None or source.face_count == 0 or not source.faces:
            return []
        reference = _descriptor_array(source.faces[0], source.frame_number, None)

        found_frames: List[DetectionRecord] = []
        for record in records:
            if record.face_count == 0:
                continue
            found_faces: List[FaceDetection] = []
            for face in record.faces:
                distance = _distance(_descriptor_array(face, record.frame_number, reference.size), reference)
                if distance < limit:
                    found_faces.append(replace(face, descriptor=[], dist_to_origin=distance))
                elif found_faces:
                    found_faces.append(replace(face, descriptor=[]))
            if found_faces:
                found_frames.append(replace(record, faces=found_faces))
        return found_frames

    # ------------------------------------------------------------------
    def _first_match(
        self,
        descriptor: np.ndarray,
        origins: List[np.ndarray],
        limit: float,
    ) -> Optional[tuple[int, float]]:
        if not origins:
            return None
        distances = np.linalg.norm(np.stack(origins) - descriptor, axis=1)
        below = np.flatnonzero(distances < limit)
        if below.size == 0:
            return None
        group = int(below[0])
        return group, float(distances[group])


def _descriptor_array(face: FaceDetection, frame_number: int, dims: Optional[int]) -> np.ndarray:
    descriptor = np.asarray(face.descriptor, dtype=np.float64)
    if descriptor.ndim != 1 or descriptor.size == 0:
        raise ValueError(f"Face {face.face_id} at frame {frame_number} has no descriptor")
    if dims is not None and descriptor.size != dims:
        raise ValueError(
            f"Face {face.face_id} at frame {frame_number} has a descriptor of length {descriptor.size}, expected {dims}"
        )
    return descriptor


def _distance(vec_a: np.ndarray, vec_b: np.ndarray) -> float:
    return float(np.linalg.norm(vec_a - vec_b))


def assign_groups(records: Sequence[DetectionRecord], threshold: float) -> int:
    return FaceClusterer().assign_groups(records, threshold)


__all__ = [
    "FaceClusterer",
    "FaceClustererConfig",
    "assign_groups",
    "count_occurrences",
    "flatten",
    "frames_of_group",
    "insert_occurrence",
    "round_distance",
    "strip_descriptors",
]
