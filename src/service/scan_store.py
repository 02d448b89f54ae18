"""Persistent per-file frame scan cache."""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from src.framescan.types import DetectionRecord, FrameSample

from .config import DB_PATH, ensure_dirs
from .db import (
    FRAME_SCAN_PREFIX,
    connect,
    create_frame_scan_table,
    frame_scan_table_name,
    list_tables,
    quote,
    table_exists,
    transaction,
)
from .migrations import run_migrations


class PayloadDecodeError(ValueError):
    """Raised when stored rows cannot be decoded.

    ``records`` holds every row that did decode, ``frame_numbers`` the rows
    that did not.
    """

    def __init__(self, table_name: str, frame_numbers: Sequence[int], records: Sequence[object]) -> None:
        self.table_name = table_name
        self.frame_numbers = list(frame_numbers)
        self.records = list(records)
        super().__init__(f"Malformed payload in {table_name} at frames {self.frame_numbers}")


class ScanStore:
    """One sqlite table of per-frame samples per source file.

    Writes go through a single lock and one transaction per batch; reads use
    their own connection so they never wait on each other.
    """

    def __init__(self, db_path: Path | None = None, logger: logging.Logger | None = None) -> None:
        if db_path is None:
            ensure_dirs()
        self._db_path = Path(db_path or DB_PATH)
        self._logger = logger or logging.getLogger(__name__)
        self._write_lock = threading.Lock()
        with self._write_lock, connect(self._db_path) as conn:
            self.schema_version = run_migrations(conn, logger=self._logger)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ------------------------------------------------------------------
    def ensure_table(self, file_id: str) -> str:
        table_name = frame_scan_table_name(file_id)
        with self._write_lock, self._connect() as conn:
            create_frame_scan_table(conn, table_name)
        return table_name

    def upsert_frames(self, file_id: str, samples: Iterable[FrameSample]) -> int:
        """Insert or update difference values and mean colors; faces are left untouched."""
        table_name = frame_scan_table_name(file_id)
        rows = [
            (
                int(sample.frame_number),
                sample.difference_value,
                json.dumps(list(sample.mean_color)) if sample.mean_color is not None else None,
            )
            for sample in samples
        ]
        query = (
            f"INSERT INTO {quote(table_name)} (frameNumber, differenceValue, meanColor) VALUES (?, ?, ?) "
            "ON CONFLICT (frameNumber) DO UPDATE SET "
            "differenceValue = excluded.differenceValue, meanColor = excluded.meanColor"
        )
        self._write(table_name, query, rows)
        return len(rows)

    def upsert_faces(self, file_id: str, records: Iterable[DetectionRecord]) -> int:
        """Insert or update the serialised detection payload of each frame."""
        table_name = frame_scan_table_name(file_id)
        rows = [(int(record.frame_number), json.dumps(record.to_dict())) for record in records]
        query = (
            f"INSERT INTO {quote(table_name)} (frameNumber, faceObject) VALUES (?, ?) "
            "ON CONFLICT (frameNumber) DO UPDATE SET faceObject = excluded.faceObject"
        )
        self._write(table_name, query, rows)
        return len(rows)

    def get_frames(self, file_id: str) -> List[FrameSample]:
        table_name = frame_scan_table_name(file_id)
        with self._connect() as conn:
            if not table_exists(conn, table_name):
                return []
            rows = conn.execute(
                f"SELECT frameNumber, differenceValue, meanColor FROM {quote(table_name)} "
                "WHERE differenceValue IS NOT NULL ORDER BY frameNumber ASC"
            ).fetchall()

        samples: List[FrameSample] = []
        failed: List[int] = []
        for row in rows:
            try:
                color = json.loads(row["meanColor"]) if row["meanColor"] is not None else None
                samples.append(
                    FrameSample.from_dict(
                        {
                            "frameNumber": row["frameNumber"],
                            "differenceValue": row["differenceValue"],
                            "meanColor": color,
                        }
                    )
                )
            except (TypeError, ValueError) as error:
                self._logger.warning("Cannot decode meanColor of %s frame %s: %s", table_name, row["frameNumber"], error)
                failed.append(int(row["frameNumber"]))
        if failed:
            raise PayloadDecodeError(table_name, failed, samples)
        return samples

    def get_faces(self, file_id: str, frame_numbers: Optional[Sequence[int]] = None) -> List[DetectionRecord]:
        table_name = frame_scan_table_name(file_id)
        if frame_numbers is not None and not frame_numbers:
            return []
        with self._connect() as conn:
            if not table_exists(conn, table_name):
                return []
            if frame_numbers is None:
                rows = conn.execute(
                    f"SELECT frameNumber, faceObject FROM {quote(table_name)} "
                    "WHERE faceObject IS NOT NULL ORDER BY frameNumber ASC"
                ).fetchall()
            else:
                wanted = sorted({int(number) for number in frame_numbers})
                placeholders = ", ".join("?" for _ in wanted)
                rows = conn.execute(
                    f"SELECT frameNumber, faceObject FROM {quote(table_name)} "
                    f"WHERE frameNumber IN ({placeholders}) AND faceObject IS NOT NULL ORDER BY frameNumber ASC",
                    wanted,
                ).fetchall()

        records: List[DetectionRecord] = []
        failed: List[int] = []
        for row in rows:
            try:
                records.append(DetectionRecord.from_dict(json.loads(row["faceObject"])))
            except (AttributeError, KeyError, TypeError, ValueError) as error:
                self._logger.warning("Cannot decode faceObject of %s frame %s: %s", table_name, row["frameNumber"], error)
                failed.append(int(row["frameNumber"]))
        if failed:
            raise PayloadDecodeError(table_name, failed, records)
        return records

    def get_scanned_count(self, file_id: str) -> int:
        table_name = frame_scan_table_name(file_id)
        with self._connect() as conn:
            if not table_exists(conn, table_name):
                return 0
            cursor = conn.execute(
                f"SELECT count(frameNumber) FROM {quote(table_name)} WHERE differenceValue IS NOT NULL"
            )
            return int(cursor.fetchone()[0])

    def delete_table(self, file_id: Optional[str] = None) -> List[str]:
        """Drop the scan table of ``file_id``, or every scan table when omitted."""
        with self._write_lock, self._connect() as conn:
            if file_id is None:
                targets = list_tables(conn, FRAME_SCAN_PREFIX)
            else:
                targets = [frame_scan_table_name(file_id)]
            with transaction(conn):
                for table_name in targets:
                    conn.execute(f"DROP TABLE IF EXISTS {quote(table_name)}")
        self._logger.info("Deleted scan tables: %s", ", ".join(targets) or "-")
        return targets

    def list_tables(self) -> List[str]:
        with self._connect() as conn:
            return list_tables(conn, FRAME_SCAN_PREFIX)

    # ------------------------------------------------------------------
    def _write(self, table_name: str, query: str, rows: List[tuple]) -> None:
        if not rows:
            return
        with self._write_lock, self._connect() as conn:
            with transaction(conn):
                create_frame_scan_table(conn, table_name)
                conn.executemany(query, rows)
        self._logger.debug("Upserted %s rows into %s", len(rows), table_name)

    def _connect(self):
        return connect(self._db_path)


__all__ = ["PayloadDecodeError", "ScanStore"]
