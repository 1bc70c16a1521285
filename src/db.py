"""Shared SQLite helpers for the document store."""

import json
import sqlite3
from pathlib import Path
from typing import Any


def wal_connect(db_path: str | Path, row_factory: bool = True) -> sqlite3.Connection:
    """Open a SQLite connection in WAL mode, creating the parent directory.

    Args:
        db_path: Path to database file.
        row_factory: If True, rows come back as ``sqlite3.Row``.
    """
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=10)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


def to_json(value: Any) -> str:
    """Serialize a document column; non-JSON values are stringified."""
    return json.dumps(value, default=str)


def from_json(raw: str | None, default: Any = None) -> Any:
    if not raw:
        return default
    return json.loads(raw)
