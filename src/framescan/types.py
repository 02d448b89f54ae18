"""Typed primitives for frame scan data."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

Color = Tuple[int, int, int]


def _color_from(raw: object) -> Optional[Color]:
    if raw is None:
        return None
    values = list(raw)  # type: ignore[arg-type]
    if len(values) != 3:
        raise ValueError(f"Expected a color triple, got {raw!r}")
    return (int(round(float(values[0]))), int(round(float(values[1]))), int(round(float(values[2]))))


def _descriptor_from(raw: object) -> List[float]:
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        # descriptors serialised as typed arrays arrive as {"0": .., "1": ..}
        items = sorted(raw.items(), key=lambda item: int(item[0]))
        return [float(value) for _key, value in items]
    return [float(value) for value in raw]  # type: ignore[union-attr]


@dataclass
class FrameSample:
    """Difference value and mean color probed for a single frame."""

    frame_number: int
    difference_value: Optional[float] = None
    mean_color: Optional[Color] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "frameNumber": self.frame_number,
            "differenceValue": self.difference_value,
            "meanColor": list(self.mean_color) if self.mean_color is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FrameSample":
        difference = data.get("differenceValue")
        return cls(
            frame_number=int(data["frameNumber"]),
            difference_value=float(difference) if difference is not None else None,
            mean_color=_color_from(data.get("meanColor")),
        )


@dataclass
class FaceDetection:
    """A detected face with its descriptor and grouping results."""

    frame_number: int
    face_id: Optional[int] = None
    descriptor: List[float] = field(default_factory=list)
    box: Dict[str, float] = field(default_factory=dict)
    score: float = 0.0
    size: float = 0.0
    face_group_number: Optional[int] = None
    dist_to_origin: Optional[float] = None
    occurrence: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "frameNumber": self.frame_number,
            "faceId": self.face_id,
            "faceDescriptor": list(self.descriptor),
            "box": dict(self.box),
            "score": self.score,
            "size": self.size,
        }
        if self.face_group_number is not None:
            payload["faceGroupNumber"] = self.face_group_number
        if self.dist_to_origin is not None:
            payload["distToOrigin"] = self.dist_to_origin
        if self.occurrence is not None:
            payload["occurrence"] = self.occurrence
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], frame_number: Optional[int] = None) -> "FaceDetection":
        number = data.get("frameNumber", frame_number)
        group = data.get("faceGroupNumber")
        distance = data.get("distToOrigin")
        occurrence = data.get("occurrence")
        face_id = data.get("faceId")
        return cls(
            frame_number=int(number) if number is not None else -1,
            face_id=int(face_id) if face_id is not None else None,
            descriptor=_descriptor_from(data.get("faceDescriptor")),
            box={str(key): float(value) for key, value in (data.get("box") or {}).items()},
            score=float(data.get("score", 0.0) or 0.0),
            size=float(data.get("size", 0.0) or 0.0),
            face_group_number=int(group) if group is not None else None,
            dist_to_origin=float(distance) if distance is not None else None,
            occurrence=int(occurrence) if occurrence is not None else None,
        )


@dataclass
class DetectionRecord:
    """Face detection results for one scanned frame."""

    frame_number: int
    face_count: int = 0
    faces: List[FaceDetection] = field(default_factory=list)
    largest_size: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "frameNumber": self.frame_number,
            "faceCount": self.face_count,
            "largestSize": self.largest_size,
        }
        if self.face_count != 0:
            payload["facesArray"] = [face.to_dict() for face in self.faces]
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectionRecord":
        frame_number = int(data["frameNumber"])
        faces_raw = data.get("facesArray") or []
        faces = [FaceDetection.from_dict(face, frame_number) for face in faces_raw]
        face_count = int(data.get("faceCount", len(faces)) or 0)
        return cls(
            frame_number=frame_number,
            face_count=face_count,
            faces=faces if face_count != 0 else [],
            largest_size=float(data.get("largestSize", 0.0) or 0.0),
        )


@dataclass
class Scene:
    """A contiguous run of frames treated as one visual unit."""

    scene_id: str
    file_id: Optional[str]
    start: int
    length: int
    color: Color = (128, 128, 128)

    @property
    def end(self) -> int:
        return self.start + self.length

    def contains(self, frame_number: int) -> bool:
        return self.start <= frame_number < self.end

    def to_dict(self) -> Dict[str, object]:
        return {
            "sceneId": self.scene_id,
            "fileId": self.file_id,
            "start": self.start,
            "length": self.length,
            "colorArray": list(self.color),
        }


@dataclass
class Marker:
    """User-placed thumbnail used as a scene anchor."""

    thumb_id: str
    frame_number: int
    hidden: bool = False


def records_from_dicts(items: Sequence[Mapping[str, Any]]) -> List[DetectionRecord]:
    return [DetectionRecord.from_dict(item) for item in items]
