"""Ordered schema migrations for the frame scan database.

Each step checks whether its target state already exists before touching the
schema, so a database left half-migrated by an earlier run can be migrated
again safely. The stored ``user_version`` only advances after a step succeeds.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .db import (
    column_names,
    create_frame_scan_table,
    frame_scan_table_name,
    get_user_version,
    quote,
    set_user_version,
    table_exists,
    transaction,
)

LEGACY_TABLE = "frameScanList"
LEGACY_DIFFERENCE_COLUMN = "meanValue"


@dataclass(frozen=True)
class Migration:
    target_version: int
    description: str
    apply: Callable[[sqlite3.Connection, logging.Logger], None]


def _rename_difference_column(conn: sqlite3.Connection, logger: logging.Logger) -> None:
    if not table_exists(conn, LEGACY_TABLE):
        logger.debug("No %s table, nothing to rename", LEGACY_TABLE)
        return
    columns = column_names(conn, LEGACY_TABLE)
    if "differenceValue" in columns:
        logger.info("Column differenceValue already present, only advancing the version")
        return
    if LEGACY_DIFFERENCE_COLUMN in columns:
        conn.execute(
            f"ALTER TABLE {quote(LEGACY_TABLE)} RENAME COLUMN {quote(LEGACY_DIFFERENCE_COLUMN)} TO \"differenceValue\""
        )
        logger.info("Renamed %s.%s to differenceValue", LEGACY_TABLE, LEGACY_DIFFERENCE_COLUMN)


def _split_per_file_tables(conn: sqlite3.Connection, logger: logging.Logger) -> None:
    if not table_exists(conn, LEGACY_TABLE):
        logger.debug("No %s table, nothing to split", LEGACY_TABLE)
        return
    file_ids = [row[0] for row in conn.execute(f"SELECT DISTINCT fileId FROM {quote(LEGACY_TABLE)}")]
    for file_id in file_ids:
        if file_id is None:
            continue
        table_name = frame_scan_table_name(str(file_id))
        create_frame_scan_table(conn, table_name)
        rows = conn.execute(
            f"SELECT frameNumber, differenceValue, meanColor FROM {quote(LEGACY_TABLE)} "
            "WHERE fileId = ? ORDER BY frameNumber ASC",
            (file_id,),
        ).fetchall()
        conn.executemany(
            f"INSERT INTO {quote(table_name)} (frameNumber, differenceValue, meanColor) VALUES (?, ?, ?) "
            "ON CONFLICT (frameNumber) DO UPDATE SET "
            "differenceValue = excluded.differenceValue, meanColor = excluded.meanColor",
            [(row["frameNumber"], row["differenceValue"], row["meanColor"]) for row in rows],
        )
        logger.info("Moved %s rows of %s into %s", len(rows), file_id, table_name)
    conn.execute(f"DROP TABLE IF EXISTS {quote(LEGACY_TABLE)}")


MIGRATIONS: List[Migration] = [
    Migration(1, "rename meanValue to differenceValue", _rename_difference_column),
    Migration(2, "split frameScanList into per-file tables", _split_per_file_tables),
]

CURRENT_VERSION = MIGRATIONS[-1].target_version


def run_migrations(
    conn: sqlite3.Connection,
    migrations: Optional[Sequence[Migration]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Bring the database up to date and return the version it ends on.

    A failing step is logged and rolled back; later steps are not attempted and
    the version stays at the last successful step so the next open retries.
    """
    log = logger or logging.getLogger(__name__)
    steps = list(migrations if migrations is not None else MIGRATIONS)
    version = get_user_version(conn)
    latest = steps[-1].target_version if steps else version
    log.debug("Database version %s, latest %s", version, latest)
    if version >= latest:
        return version

    log.info("Database migration necessary - database version: %s - latest version: %s", version, latest)
    for step in steps:
        if step.target_version <= version:
            continue
        try:
            with transaction(conn):
                step.apply(conn, log)
                set_user_version(conn, step.target_version)
        except Exception:
            log.exception("Database migration to version %s (%s) failed", step.target_version, step.description)
            break
        version = step.target_version
        log.info("Database migration successful - database version is now: %s", version)
    return version


__all__ = ["CURRENT_VERSION", "LEGACY_TABLE", "MIGRATIONS", "Migration", "run_migrations"]
