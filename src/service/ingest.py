"""Probe encoded frame images and store the resulting samples."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import cv2
import numpy as np

from src.framescan.probe import FrameProber, ProbeConfig, ProbeError
from src.framescan.types import FrameSample

from .scan_store import ScanStore


def decode_frame(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG bytes into an RGB array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    frame_bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if frame_bgr is None:
        raise ProbeError("Unable to decode frame image")
    return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)


def decode_base64_frame(encoded: str) -> np.ndarray:
    if "," in encoded and encoded.startswith("data:"):
        encoded = encoded.split(",", 1)[1]
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as error:
        raise ProbeError(f"Invalid base64 frame image: {error}") from error
    return decode_frame(data)


class FrameIngestor:
    """Keeps one prober per file so consecutive batches continue the difference chain.

    A batch starting at frame 0, or at a frame other than the one following the
    last probed frame, starts a new chain and its first frame scores 0.
    """

    def __init__(
        self,
        store: ScanStore,
        config: ProbeConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._config = config or ProbeConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._probers: Dict[str, Tuple[FrameProber, Optional[int]]] = {}

    def ingest(self, file_id: str, frames: Iterable[Tuple[int, np.ndarray]]) -> List[FrameSample]:
        ordered = sorted(frames, key=lambda item: item[0])
        if not ordered:
            return []
        prober, last_frame = self._probers.get(file_id, (None, None))
        if prober is None:
            prober = FrameProber(self._config)
        if last_frame is None or ordered[0][0] != last_frame + 1:
            prober.reset()

        samples: List[FrameSample] = []
        previous: Optional[int] = None
        for frame_number, frame in ordered:
            if previous is not None and frame_number != previous + 1:
                self._logger.info("Gap after frame %s of %s, restarting difference chain", previous, file_id)
                prober.reset()
            samples.append(prober.probe(frame_number, frame))
            previous = frame_number

        self._probers[file_id] = (prober, previous)
        self._store.upsert_frames(file_id, samples)
        self._logger.debug("Probed %s frames of %s", len(samples), file_id)
        return samples

    def forget(self, file_id: Optional[str] = None) -> None:
        if file_id is None:
            self._probers.clear()
        else:
            self._probers.pop(file_id, None)


__all__ = ["FrameIngestor", "decode_base64_frame", "decode_frame"]
