# database/__init__.py
from __future__ import annotations

from pathlib import Path
import sqlite3

from ..config import DB_PATH
from ..constants import TABLE_SCHEMA_VERSION, SCHEMA_VERSION
from . import schema as schema_module

MEMORY = ":memory:"


def _record_version(conn: sqlite3.Connection) -> str:
    """Create the single-row version table if needed; return the stored version."""
    conn.execute(
        f"CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}("
        "id INTEGER PRIMARY KEY CHECK (id=1), version TEXT NOT NULL)"
    )
    conn.execute(
        f"INSERT OR IGNORE INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?)",
        (SCHEMA_VERSION,),
    )
    return conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1").fetchone()[0]


def get_connection(path: Path | str | None = None) -> sqlite3.Connection:
    """
    Open the POS database (DB_PATH unless `path` is given; ":memory:" for a
    throwaway one) with foreign keys on and sqlite3.Row rows. File databases
    run in WAL mode. The schema is applied on every open; it is idempotent.
    """
    target = str(path) if path is not None else str(DB_PATH)
    if target != MEMORY:
        Path(target).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(target)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    if target != MEMORY:
        conn.execute("PRAGMA journal_mode = WAL;")

    schema_module.apply_schema(conn)
    _record_version(conn)
    conn.commit()
    return conn


__all__ = [
    "get_connection",
]
