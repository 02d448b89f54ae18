"""SQLite helpers shared by the frame scan stores."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .config import SQLITE_TIMEOUT_SEC

FRAME_SCAN_PREFIX = "frameScan_"


def frame_scan_table_name(file_id: str) -> str:
    """Map a file id onto its scan table, e.g. ``a-b`` -> ``frameScan_a_b``.

    Only ``-`` is replaced; every other character is kept and the name is
    always quoted. File ids differing only in ``-`` versus ``_`` share a table.
    """
    if not file_id:
        raise ValueError("file_id must be a non-empty string")
    return FRAME_SCAN_PREFIX + str(file_id).replace("-", "_")


def quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def open_connection(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # autocommit mode; transactions are opened explicitly with BEGIN
    conn = sqlite3.connect(db_path, timeout=SQLITE_TIMEOUT_SEC, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = open_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    cursor = conn.execute(
        "SELECT count(name) FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table_name,),
    )
    return int(cursor.fetchone()[0]) == 1


def column_names(conn: sqlite3.Connection, table_name: str) -> List[str]:
    rows = conn.execute(f"PRAGMA table_info({quote(table_name)})").fetchall()
    return [row["name"] for row in rows]


def list_tables(conn: sqlite3.Connection, prefix: Optional[str] = None) -> List[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name").fetchall()
    names = [row["name"] for row in rows]
    if prefix is None:
        return names
    return [name for name in names if name.startswith(prefix)]


def get_user_version(conn: sqlite3.Connection) -> int:
    return int(conn.execute("PRAGMA user_version").fetchone()[0])


def set_user_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute(f"PRAGMA user_version = {int(version)}")


def create_frame_scan_table(conn: sqlite3.Connection, table_name: str) -> None:
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS {quote(table_name)} (
            frameNumber INTEGER PRIMARY KEY,
            differenceValue REAL,
            meanColor TEXT,
            faceObject TEXT
        )
        """
    )


__all__ = [
    "FRAME_SCAN_PREFIX",
    "column_names",
    "connect",
    "create_frame_scan_table",
    "frame_scan_table_name",
    "get_user_version",
    "list_tables",
    "open_connection",
    "quote",
    "set_user_version",
    "table_exists",
    "transaction",
]
