"""Sorted and filtered views over face detection records."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .faces import flatten
from .types import DetectionRecord, FaceDetection

SortedView = List[Union[DetectionRecord, FaceDetection]]


class SortMethod(str, Enum):
    """Available sort and filter policies."""

    FRAMENUMBER = "framenumber"
    FACESIZE = "facesize"
    FACECOUNT = "facecount"
    FACECONFIDENCE = "faceconfidence"
    FACEOCCURRENCE = "faceoccurrence"
    DISTTOORIGIN = "disttoorigin"
    UNIQUE = "unique"


# methods that read face_group_number, dist_to_origin or occurrence
GROUP_METHODS = frozenset({SortMethod.FACEOCCURRENCE, SortMethod.DISTTOORIGIN, SortMethod.UNIQUE})


@dataclass
class SortOptions:
    """``face_group_of_origin`` is a face group number, not a face id."""

    face_group_of_origin: Optional[int] = None


def _with_faces(records: Sequence[DetectionRecord]) -> List[DetectionRecord]:
    return [record for record in records if record.face_count != 0]


def _flatten_with_occurrences(records: Sequence[DetectionRecord]) -> List[FaceDetection]:
    faces = flatten(records)
    counts = Counter(face.face_group_number for face in faces)
    for face in faces:
        face.occurrence = counts[face.face_group_number]
    return faces


def _first_per_frame(faces: Iterable[FaceDetection]) -> List[FaceDetection]:
    seen: set[int] = set()
    kept: List[FaceDetection] = []
    for face in faces:
        if face.frame_number in seen:
            continue
        seen.add(face.frame_number)
        kept.append(face)
    return kept


def _occurrence_key(face: FaceDetection) -> Tuple[int, float, float]:
    return (face.occurrence or 0, face.size, face.score)


def _ordered(items, key: Callable, descending: bool, reverse: bool) -> list:
    # sorted() is stable in both directions, ties keep input order
    return sorted(items, key=key, reverse=descending != reverse)


def sort_detections(
    records: Sequence[DetectionRecord],
    method: SortMethod | str = SortMethod.FACESIZE,
    reverse: bool = False,
    options: SortOptions | None = None,
) -> SortedView:
    """Return a sorted/filtered view of ``records``.

    Frame number, face size and face count return records; every other method
    returns flattened faces. Methods that depend on face groups expect
    :class:`~src.framescan.faces.FaceClusterer` to have run already.
    """
    method = SortMethod(method)
    options = options or SortOptions()

    if method is SortMethod.FRAMENUMBER:
        return _ordered(records, lambda record: record.frame_number, descending=False, reverse=reverse)

    filtered = _with_faces(records)

    if method is SortMethod.FACESIZE:
        return _ordered(filtered, lambda record: record.largest_size, descending=True, reverse=reverse)

    if method is SortMethod.FACECOUNT:
        return _ordered(filtered, lambda record: record.face_count, descending=True, reverse=reverse)

    if method is SortMethod.FACECONFIDENCE:
        faces = _ordered(flatten(filtered), lambda face: face.score, descending=True, reverse=reverse)
        return _first_per_frame(faces)

    if method is SortMethod.FACEOCCURRENCE:
        faces = _ordered(_flatten_with_occurrences(filtered), _occurrence_key, descending=True, reverse=reverse)
        return _first_per_frame(faces)

    if method is SortMethod.DISTTOORIGIN:
        origin = options.face_group_of_origin
        if origin is None or not filtered:
            return []
        faces = [face for face in _flatten_with_occurrences(filtered) if face.face_group_number == origin]
        faces = _ordered(
            faces,
            lambda face: face.dist_to_origin if face.dist_to_origin is not None else float("inf"),
            descending=False,
            reverse=reverse,
        )
        return _first_per_frame(faces)

    if method is SortMethod.UNIQUE:
        faces = _ordered(_flatten_with_occurrences(filtered), _occurrence_key, descending=True, reverse=reverse)
        return [face for face in faces if face.dist_to_origin == 0]

    raise ValueError(f"Unsupported sort method '{method}'")  # pragma: no cover


def reorder_frames(frame_numbers: Sequence[int], view: Sequence[Union[DetectionRecord, FaceDetection]]) -> List[int]:
    """Order thumb frame numbers by their position in a sorted view.

    Frames absent from the view come first, in their original order.
    """
    positions = {}
    for index, item in enumerate(view):
        positions.setdefault(item.frame_number, index)
    return sorted(frame_numbers, key=lambda frame: positions.get(frame, -1))


__all__ = ["GROUP_METHODS", "SortMethod", "SortOptions", "SortedView", "reorder_frames", "sort_detections"]
