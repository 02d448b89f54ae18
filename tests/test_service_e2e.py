from __future__ import annotations

import base64
import importlib
import sqlite3

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def service_app(tmp_path, monkeypatch):
    monkeypatch.setenv("FRAMESCAN_BASE_DIR", str(tmp_path))
    monkeypatch.setenv("FRAMESCAN_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("FRAMESCAN_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("FRAMESCAN_DB_PATH", str(tmp_path / "data" / "framescan.db"))

    config_module = importlib.import_module("src.service.config")
    importlib.reload(config_module)
    app_module = importlib.import_module("src.service.app")
    importlib.reload(app_module)
    return app_module


@pytest.fixture()
def client(service_app) -> TestClient:
    return TestClient(service_app.app)


def _frames_payload(skip: int | None = None) -> dict:
    differences = [0, 0, 9, 0, 0, 9, 0]
    return {
        "frames": [
            {"frameNumber": index, "differenceValue": value, "meanColor": [index, index, index]}
            for index, value in enumerate(differences)
            if index != skip
        ]
    }


def _detection(frame: int, descriptor: list[float], size: float) -> dict:
    return {
        "frameNumber": frame,
        "faceCount": 1,
        "largestSize": size,
        "facesArray": [{"faceId": 0, "faceDescriptor": descriptor, "score": 0.9, "size": size}],
    }


def test_health(client, service_app) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["schema_version"] == 2
    assert service_app.store.db_path.parent.name == "data"


def test_frames_round_trip_and_repair(client) -> None:
    response = client.put("/files/clip-1/frames", json=_frames_payload(skip=4))
    assert response.status_code == 200
    assert response.json() == {"file_id": "clip-1", "upserted": 6}

    assert client.get("/files/clip-1/frames/count").json()["scanned"] == 6
    assert len(client.get("/files/clip-1/frames").json()) == 6

    repaired = client.get("/files/clip-1/frames", params={"frame_count": 7}).json()
    assert [item["frameNumber"] for item in repaired] == list(range(7))
    assert repaired[4]["meanColor"] == [3, 3, 3]


def test_scene_detection(client) -> None:
    client.put("/files/clip-1/frames", json=_frames_payload(skip=4))

    response = client.post(
        "/files/clip-1/scenes",
        json={"threshold": 5, "min_scene_length": 3, "frame_count": 7},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["repaired"] == 1
    assert [(scene["start"], scene["length"]) for scene in body["scenes"]] == [(0, 2), (2, 3), (5, 2)]
    assert body["scenes"][1]["colorArray"] == [3, 3, 3]
    assert body["scenes"][-1]["colorArray"] == [128, 128, 128]


def test_scene_detection_rejects_bad_threshold(client) -> None:
    assert client.post("/files/clip-1/scenes", json={"threshold": 0}).status_code == 422


def test_scenes_from_markers(client) -> None:
    response = client.post(
        "/files/clip-1/scenes/markers",
        json={
            "frame_count": 100,
            "markers": [
                {"thumbId": "b", "frameNumber": 10},
                {"thumbId": "a", "frameNumber": 0},
                {"thumbId": "c", "frameNumber": 40, "hidden": True},
            ],
        },
    )

    scenes = response.json()["scenes"]
    assert [(scene["sceneId"], scene["start"], scene["length"]) for scene in scenes] == [("a", 0, 6), ("b", 6, 94)]


def test_faces_and_sorted_views(client) -> None:
    detections = [
        _detection(0, [0.1, 0.2], 10.0),
        _detection(1, [0.1, 0.5], 20.0),
        _detection(2, [5.0, 5.0], 5.0),
        {"frameNumber": 3, "faceCount": 0, "largestSize": 0},
    ]
    assert client.put("/files/clip-1/faces", json={"detections": detections}).json()["upserted"] == 4

    subset = client.get("/files/clip-1/faces", params={"frames": "2,0"}).json()
    assert [item["frameNumber"] for item in subset] == [0, 2]
    assert client.get("/files/clip-1/faces", params={"frames": "x"}).status_code == 400

    by_size = client.post("/files/clip-1/faces/sorted", json={"method": "facesize"}).json()
    assert by_size["frame_numbers"] == [1, 0, 2]
    assert by_size["groups"] is None
    assert all("faceDescriptor" not in face for item in by_size["items"] for face in item["facesArray"])

    unique = client.post("/files/clip-1/faces/sorted", json={"method": "unique"}).json()
    assert unique["method"] == "unique"
    assert unique["frame_numbers"] == [0, 2]
    assert [item["faceGroupNumber"] for item in unique["items"]] == [0, 1]
    assert all("faceDescriptor" not in item for item in unique["items"])

    nearest = client.post(
        "/files/clip-1/faces/sorted",
        json={"method": "disttoorigin", "face_group_of_origin": 0},
    ).json()
    assert nearest["frame_numbers"] == [0, 1]


def test_malformed_row_maps_to_422(client, service_app) -> None:
    client.put("/files/clip-1/frames", json=_frames_payload())
    with sqlite3.connect(service_app.store.db_path) as conn:
        conn.execute('UPDATE "frameScan_clip_1" SET meanColor = ? WHERE frameNumber = 2', ("[1, 2",))
    conn.close()

    response = client.get("/files/clip-1/frames")

    assert response.status_code == 422
    assert response.json()["detail"]["frame_numbers"] == [2]


def test_delete_files(client) -> None:
    client.put("/files/clip-1/frames", json=_frames_payload())
    client.put("/files/clip-2/frames", json=_frames_payload())

    assert client.delete("/files/clip-1").json() == {"deleted": ["frameScan_clip_1"]}
    assert client.get("/files/clip-1/frames").json() == []
    assert client.delete("/files").json() == {"deleted": ["frameScan_clip_2"]}
    assert client.get("/files/clip-2/frames/count").json()["scanned"] == 0


def test_state_endpoints(client) -> None:
    assert client.get("/state/main").status_code == 404

    saved = client.put("/state/main", json={"state": "{}", "timeStamp": "2024-05-01T10:00:00Z"}).json()
    assert saved == {"stateId": "main", "timeStamp": "2024-05-01T10:00:00Z", "state": "{}"}
    assert client.get("/state/main").json() == saved


def test_face_without_descriptor(client) -> None:
    detections = [
        _detection(0, [0.1, 0.2], 10.0),
        {"frameNumber": 1, "faceCount": 1, "largestSize": 4.0, "facesArray": [{"faceId": 0, "size": 4.0}]},
    ]
    client.put("/files/clip-1/faces", json={"detections": detections})

    by_size = client.post("/files/clip-1/faces/sorted", json={"method": "facesize"})
    assert by_size.status_code == 200
    assert by_size.json()["frame_numbers"] == [0, 1]

    unique = client.post("/files/clip-1/faces/sorted", json={"method": "unique"})
    assert unique.status_code == 422
    assert "frame 1" in unique.json()["detail"]


def _encoded_frame(value: int) -> str:
    ok, buffer = cv2.imencode(".png", np.full((9, 16, 3), value, dtype=np.uint8))
    assert ok
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def test_probe_frames(client) -> None:
    payload = {
        "frames": [
            {"frameNumber": 0, "image": _encoded_frame(10)},
            {"frameNumber": 1, "image": _encoded_frame(30)},
        ]
    }

    response = client.post("/files/clip-1/frames/probe", json=payload)

    assert response.json() == {"file_id": "clip-1", "upserted": 2}
    frames = client.get("/files/clip-1/frames").json()
    assert [item["differenceValue"] for item in frames] == [0.0, 20.0]
    assert frames[1]["meanColor"] == [30, 30, 30]

    bad = client.post("/files/clip-1/frames/probe", json={"frames": [{"frameNumber": 2, "image": "@@@"}]})
    assert bad.status_code == 400
    assert client.get("/files/clip-1/frames/count").json()["scanned"] == 2
