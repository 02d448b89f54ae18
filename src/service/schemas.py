"""Pydantic models for the frame scan service."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from src.framescan.sorter import SortMethod


class FrameSampleModel(BaseModel):
    frameNumber: int = Field(..., ge=0, description="Zero based frame index")
    differenceValue: Optional[float] = Field(None, description="Pixel difference to the previous frame")
    meanColor: Optional[List[float]] = Field(None, min_length=3, max_length=3, description="Mean RGB color")


class FrameBatch(BaseModel):
    frames: List[FrameSampleModel] = Field(default_factory=list)


class ProbeFrameModel(BaseModel):
    frameNumber: int = Field(..., ge=0)
    image: str = Field(..., min_length=1, description="Base64 encoded PNG or JPEG frame")


class ProbeBatch(BaseModel):
    frames: List[ProbeFrameModel] = Field(default_factory=list)


class FaceModel(BaseModel):
    frameNumber: Optional[int] = None
    faceId: Optional[int] = None
    faceDescriptor: List[float] = Field(default_factory=list, description="Fixed length face embedding")
    box: Dict[str, float] = Field(default_factory=dict)
    score: float = 0.0
    size: float = 0.0
    faceGroupNumber: Optional[int] = None
    distToOrigin: Optional[float] = None
    occurrence: Optional[int] = None


class DetectionRecordModel(BaseModel):
    frameNumber: int = Field(..., ge=0)
    faceCount: int = Field(0, ge=0)
    facesArray: Optional[List[FaceModel]] = None
    largestSize: float = 0.0


class FaceBatch(BaseModel):
    detections: List[DetectionRecordModel] = Field(default_factory=list)


class UpsertResponse(BaseModel):
    file_id: str
    upserted: int


class CountResponse(BaseModel):
    file_id: str
    scanned: int


class DeleteResponse(BaseModel):
    deleted: List[str] = Field(default_factory=list)


class SceneModel(BaseModel):
    sceneId: str
    fileId: Optional[str] = None
    start: int
    length: int
    colorArray: List[int]


class SceneRequest(BaseModel):
    threshold: Optional[float] = Field(None, gt=0.0, description="Difference value that marks a cut")
    min_scene_length: Optional[int] = Field(None, ge=1, description="Minimum frames between two cuts")
    frame_count: Optional[int] = Field(None, ge=0, description="Repair scan data up to this frame count")


class MarkerModel(BaseModel):
    thumbId: str
    frameNumber: int = Field(..., ge=0)
    hidden: bool = False


class MarkerSceneRequest(BaseModel):
    markers: List[MarkerModel] = Field(default_factory=list)
    frame_count: int = Field(..., ge=0)


class SceneResponse(BaseModel):
    file_id: str
    frame_count: int
    repaired: int = 0
    scenes: List[SceneModel] = Field(default_factory=list)


class SortRequest(BaseModel):
    method: SortMethod = SortMethod.FACESIZE
    reverse: bool = False
    threshold: Optional[float] = Field(None, gt=0.0, description="Face uniqueness threshold")
    face_group_of_origin: Optional[int] = Field(None, ge=0, description="Reference face group for distance sorting")
    frame_numbers: Optional[List[int]] = Field(None, description="Restrict to these frames")


class SortResponse(BaseModel):
    file_id: str
    method: SortMethod
    groups: Optional[int] = Field(None, description="Face group count, only for group based methods")
    frame_numbers: List[int] = Field(default_factory=list)
    items: List[Dict[str, Any]] = Field(default_factory=list)


class StateUpdate(BaseModel):
    state: str
    timeStamp: Optional[str] = None


class StateModel(BaseModel):
    stateId: str
    timeStamp: Optional[str] = None
    state: str
