"""Opaque application state snapshots kept next to the scan tables."""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import DB_PATH, ensure_dirs
from .db import connect, transaction

STATE_TABLE = "app_state"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StateStore:
    """Key/value blob storage; the contents are never interpreted."""

    def __init__(self, db_path: Path | None = None) -> None:
        if db_path is None:
            ensure_dirs()
        self._db_path = Path(db_path or DB_PATH)
        self._write_lock = threading.Lock()
        self._ensure_schema()

    def save_state(self, state_id: str, state: str, timestamp: Optional[str] = None) -> Dict[str, Any]:
        item = {"stateId": state_id, "timeStamp": timestamp or _utcnow(), "state": state}
        with self._write_lock, connect(self._db_path) as conn:
            with transaction(conn):
                conn.execute(
                    f"REPLACE INTO {STATE_TABLE} (stateId, timeStamp, state) VALUES (:stateId, :timeStamp, :state)",
                    item,
                )
        return item

    def get_state(self, state_id: str) -> Optional[Dict[str, Any]]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                f"SELECT stateId, timeStamp, state FROM {STATE_TABLE} WHERE stateId = ?",
                (state_id,),
            ).fetchone()
        return dict(row) if row else None

    def delete_states(self) -> None:
        with self._write_lock, connect(self._db_path) as conn:
            conn.execute(f"DROP TABLE IF EXISTS {STATE_TABLE}")
            self._create_table(conn)

    # ------------------------------------------------------------------
    def _ensure_schema(self) -> None:
        with connect(self._db_path) as conn:
            self._create_table(conn)

    def _create_table(self, conn) -> None:
        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {STATE_TABLE} (stateId TEXT PRIMARY KEY, timeStamp TEXT, state TEXT)"
        )


__all__ = ["STATE_TABLE", "StateStore"]
