"""Runtime configuration for the frame scan service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

_BASE_DIR = Path(os.environ.get("FRAMESCAN_BASE_DIR", ".")).resolve()

DATA_DIR = Path(os.environ.get("FRAMESCAN_DATA_DIR", _BASE_DIR / "data")).resolve()
LOG_DIR = Path(os.environ.get("FRAMESCAN_LOG_DIR", _BASE_DIR / "logs")).resolve()
DB_PATH = Path(os.environ.get("FRAMESCAN_DB_PATH", DATA_DIR / "framescan.db")).resolve()

SQLITE_TIMEOUT_SEC = float(os.environ.get("FRAMESCAN_SQLITE_TIMEOUT_SEC", "30"))
SCENE_THRESHOLD = float(os.environ.get("FRAMESCAN_SCENE_THRESHOLD", "20.0"))
MIN_SCENE_LENGTH = int(os.environ.get("FRAMESCAN_MIN_SCENE_LENGTH", "10"))
FACE_UNIQUENESS_THRESHOLD = float(os.environ.get("FRAMESCAN_FACE_UNIQUENESS_THRESHOLD", "0.6"))
LOG_LEVEL = os.environ.get("FRAMESCAN_LOG_LEVEL", "INFO").upper()


def ensure_dirs() -> Tuple[Path, Path]:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return DATA_DIR, LOG_DIR


__all__ = [
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SQLITE_TIMEOUT_SEC",
    "SCENE_THRESHOLD",
    "MIN_SCENE_LENGTH",
    "FACE_UNIQUENESS_THRESHOLD",
    "LOG_LEVEL",
    "ensure_dirs",
]
