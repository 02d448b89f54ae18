"""FastAPI service exposing the frame scan cache and its derived views."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query

from src.framescan import (
    DetectionRecord,
    FaceClusterer,
    FaceClustererConfig,
    FaceDetection,
    FrameSample,
    ProbeError,
    Marker,
    SceneConfig,
    SceneSegmenter,
    SortOptions,
    insert_occurrence,
    repair_frame_samples,
    segment_by_markers,
    sort_detections,
)
from src.framescan.sorter import GROUP_METHODS
from src.framescan.types import Scene

from . import __version__
from .config import (
    DB_PATH,
    FACE_UNIQUENESS_THRESHOLD,
    LOG_LEVEL,
    MIN_SCENE_LENGTH,
    SCENE_THRESHOLD,
    ensure_dirs,
)
from .ingest import FrameIngestor, decode_base64_frame
from .scan_store import PayloadDecodeError, ScanStore
from .schemas import (
    CountResponse,
    DeleteResponse,
    DetectionRecordModel,
    FaceBatch,
    FrameBatch,
    FrameSampleModel,
    MarkerSceneRequest,
    ProbeBatch,
    SceneModel,
    SceneRequest,
    SceneResponse,
    SortRequest,
    SortResponse,
    StateModel,
    StateUpdate,
    UpsertResponse,
)
from .state_store import StateStore

ensure_dirs()

logger = logging.getLogger("framescan.service")
logger.setLevel(LOG_LEVEL)

store = ScanStore(DB_PATH, logger)
state_store = StateStore(DB_PATH)
ingestor = FrameIngestor(store, logger=logger)

app = FastAPI(title="Frame Scan Service", version=__version__)


def _decode_failure(error: PayloadDecodeError) -> HTTPException:
    logger.warning("Row decode failure in %s: frames %s", error.table_name, error.frame_numbers)
    return HTTPException(
        status_code=422,
        detail={"message": "Malformed stored payload", "frame_numbers": error.frame_numbers},
    )


def _sample_from_model(model: FrameSampleModel) -> FrameSample:
    return FrameSample.from_dict(
        {"frameNumber": model.frameNumber, "differenceValue": model.differenceValue, "meanColor": model.meanColor}
    )


def _record_from_model(model: DetectionRecordModel) -> DetectionRecord:
    faces: List[Dict[str, object]] = []
    for face in model.facesArray or []:
        faces.append(
            {
                "frameNumber": face.frameNumber,
                "faceId": face.faceId,
                "faceDescriptor": face.faceDescriptor,
                "box": face.box,
                "score": face.score,
                "size": face.size,
                "faceGroupNumber": face.faceGroupNumber,
                "distToOrigin": face.distToOrigin,
                "occurrence": face.occurrence,
            }
        )
    return DetectionRecord.from_dict(
        {
            "frameNumber": model.frameNumber,
            "faceCount": model.faceCount,
            "facesArray": faces,
            "largestSize": model.largestSize,
        }
    )


def _scene_model(scene: Scene) -> SceneModel:
    return SceneModel(**scene.to_dict())


def _view_item(item: DetectionRecord | FaceDetection) -> Dict[str, object]:
    payload = item.to_dict()
    payload.pop("faceDescriptor", None)
    for face in payload.get("facesArray", []) or []:  # type: ignore[union-attr]
        face.pop("faceDescriptor", None)
    return payload


def _parse_frames(frames: Optional[str]) -> Optional[List[int]]:
    if frames is None:
        return None
    try:
        return [int(value) for value in frames.split(",") if value.strip()]
    except ValueError as error:
        raise HTTPException(status_code=400, detail=f"Invalid frame list: {frames}") from error


def _load_frames(file_id: str) -> List[FrameSample]:
    try:
        return store.get_frames(file_id)
    except PayloadDecodeError as error:
        raise _decode_failure(error) from error


def _load_records(file_id: str, frame_numbers: Optional[Sequence[int]] = None) -> List[DetectionRecord]:
    try:
        return store.get_faces(file_id, frame_numbers)
    except PayloadDecodeError as error:
        raise _decode_failure(error) from error


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__, "schema_version": store.schema_version}


@app.put("/files/{file_id}/frames", response_model=UpsertResponse)
def upsert_frames(file_id: str, payload: FrameBatch) -> UpsertResponse:
    samples = [_sample_from_model(frame) for frame in payload.frames]
    upserted = store.upsert_frames(file_id, samples)
    return UpsertResponse(file_id=file_id, upserted=upserted)


@app.post("/files/{file_id}/frames/probe", response_model=UpsertResponse)
def probe_frames(file_id: str, payload: ProbeBatch) -> UpsertResponse:
    try:
        frames = [(item.frameNumber, decode_base64_frame(item.image)) for item in payload.frames]
        samples = ingestor.ingest(file_id, frames)
    except ProbeError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error
    return UpsertResponse(file_id=file_id, upserted=len(samples))


@app.get("/files/{file_id}/frames", response_model=List[FrameSampleModel])
def get_frames(file_id: str, frame_count: Optional[int] = Query(None, ge=0)):
    samples = _load_frames(file_id)
    if frame_count is not None:
        repair_frame_samples(samples, frame_count, logger)
    return [sample.to_dict() for sample in samples]


@app.get("/files/{file_id}/frames/count", response_model=CountResponse)
def get_scanned_count(file_id: str) -> CountResponse:
    return CountResponse(file_id=file_id, scanned=store.get_scanned_count(file_id))


@app.put("/files/{file_id}/faces", response_model=UpsertResponse)
def upsert_faces(file_id: str, payload: FaceBatch) -> UpsertResponse:
    records = [_record_from_model(record) for record in payload.detections]
    upserted = store.upsert_faces(file_id, records)
    return UpsertResponse(file_id=file_id, upserted=upserted)


@app.get("/files/{file_id}/faces")
def get_faces(file_id: str, frames: Optional[str] = Query(None, description="Comma separated frame numbers")):
    records = _load_records(file_id, _parse_frames(frames))
    return [record.to_dict() for record in records]


@app.delete("/files/{file_id}", response_model=DeleteResponse)
def delete_file(file_id: str) -> DeleteResponse:
    ingestor.forget(file_id)
    return DeleteResponse(deleted=store.delete_table(file_id))


@app.delete("/files", response_model=DeleteResponse)
def delete_all_files() -> DeleteResponse:
    ingestor.forget()
    return DeleteResponse(deleted=store.delete_table())


@app.post("/files/{file_id}/scenes", response_model=SceneResponse)
def detect_scenes(file_id: str, payload: SceneRequest) -> SceneResponse:
    samples = _load_frames(file_id)
    frame_count = payload.frame_count
    if frame_count is None:
        frame_count = samples[-1].frame_number + 1 if samples else 0
    repaired = repair_frame_samples(samples, frame_count, logger)
    config = SceneConfig(
        threshold=payload.threshold if payload.threshold is not None else SCENE_THRESHOLD,
        min_scene_length=payload.min_scene_length if payload.min_scene_length is not None else MIN_SCENE_LENGTH,
    )
    scenes = SceneSegmenter(config, logger).from_samples(samples, file_id=file_id)
    logger.info("Built %s scenes for %s (threshold=%s)", len(scenes), file_id, config.threshold)
    return SceneResponse(
        file_id=file_id,
        frame_count=frame_count,
        repaired=repaired,
        scenes=[_scene_model(scene) for scene in scenes],
    )


@app.post("/files/{file_id}/scenes/markers", response_model=SceneResponse)
def scenes_from_markers(file_id: str, payload: MarkerSceneRequest) -> SceneResponse:
    markers = [Marker(thumb_id=item.thumbId, frame_number=item.frameNumber, hidden=item.hidden) for item in payload.markers]
    scenes = segment_by_markers(markers, payload.frame_count, file_id=file_id)
    return SceneResponse(
        file_id=file_id,
        frame_count=payload.frame_count,
        scenes=[_scene_model(scene) for scene in scenes],
    )


@app.post("/files/{file_id}/faces/sorted", response_model=SortResponse)
def sorted_faces(file_id: str, payload: SortRequest) -> SortResponse:
    records = _load_records(file_id, payload.frame_numbers)
    groups = None
    if payload.method in GROUP_METHODS:
        threshold = payload.threshold if payload.threshold is not None else FACE_UNIQUENESS_THRESHOLD
        clusterer = FaceClusterer(FaceClustererConfig(uniqueness_threshold=threshold), logger)
        try:
            groups = clusterer.assign_groups(records)
        except ValueError as error:
            logger.warning("Cannot group faces of %s: %s", file_id, error)
            raise HTTPException(status_code=422, detail=str(error)) from error
        insert_occurrence(records)
    view = sort_detections(
        records,
        payload.method,
        reverse=payload.reverse,
        options=SortOptions(face_group_of_origin=payload.face_group_of_origin),
    )
    return SortResponse(
        file_id=file_id,
        method=payload.method,
        groups=groups,
        frame_numbers=[item.frame_number for item in view],
        items=[_view_item(item) for item in view],
    )


@app.put("/state/{state_id}", response_model=StateModel)
def save_state(state_id: str, payload: StateUpdate) -> StateModel:
    item = state_store.save_state(state_id, payload.state, payload.timeStamp)
    return StateModel(**item)


@app.get("/state/{state_id}", response_model=StateModel)
def get_state(state_id: str) -> StateModel:
    item = state_store.get_state(state_id)
    if not item:
        raise HTTPException(status_code=404, detail="State not found")
    return StateModel(**item)
