"""SQLite key-value namespace backing the local store.

The database path is taken from the ``SURVEY_DATA_DIR`` environment variable
(default: ``./data``).

Usage::

    from satsurvey.db import get_db, init_db, kv_get, kv_set
    init_db()                  # idempotent
    conn = get_db()
    kv_set(conn, "nextId", "1001")
"""

from __future__ import annotations

import os
import sqlite3
import threading
from pathlib import Path

_DB_PATH: Path | None = None
_LOCAL = threading.local()

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


def _db_path() -> Path:
    global _DB_PATH
    if _DB_PATH is None:
        data_dir = Path(os.environ.get("SURVEY_DATA_DIR", "./data"))
        data_dir.mkdir(parents=True, exist_ok=True)
        _DB_PATH = data_dir / "survey.db"
    return _DB_PATH


def set_db_path(path: str | Path) -> None:
    """Override the database path (useful for tests)."""
    global _DB_PATH, _LOCAL
    _DB_PATH = Path(path)
    _LOCAL = threading.local()


def get_db() -> sqlite3.Connection:
    """Return a per-thread SQLite connection."""
    conn = getattr(_LOCAL, "conn", None)
    if conn is None:
        conn = sqlite3.connect(str(_db_path()), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        _LOCAL.conn = conn
    return conn


def init_db(path: str | Path | None = None) -> None:
    """Create the key-value table (idempotent)."""
    if path:
        set_db_path(path)
    conn = get_db()
    conn.executescript(_SCHEMA_SQL)
    conn.commit()


def kv_get(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return row[0]


def kv_set_many(conn: sqlite3.Connection, items: dict[str, str]) -> None:
    """Write several keys in one transaction."""
    with conn:
        conn.executemany(
            "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at",
            list(items.items()),
        )


def kv_set(conn: sqlite3.Connection, key: str, value: str) -> None:
    kv_set_many(conn, {key: value})


def close_db(conn: sqlite3.Connection | None = None) -> None:
    """Close *conn* (default: this thread's connection) and forget it."""
    cached = getattr(_LOCAL, "conn", None)
    conn = conn or cached
    if conn is None:
        return
    conn.close()
    if conn is cached:
        _LOCAL.conn = None
