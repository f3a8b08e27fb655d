"""File storage operations."""

from __future__ import annotations

import hashlib
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path

from hdlgraph.core.models import FileRecord


class FileStorage:
    """Storage operations for indexed files."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def insert_many(self, records: Iterable[FileRecord]) -> None:
        """Insert or update file records."""
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT INTO files (path, hash, indexed_at) VALUES (?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET hash = excluded.hash, indexed_at = excluded.indexed_at
            """,
            [(str(r.path), r.hash, r.indexed_at.isoformat()) for r in records],
        )

    def all(self) -> list[FileRecord]:
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM files ORDER BY path")
        return [FileRecord.from_row(row) for row in cursor.fetchall()]

    def count(self) -> int:
        return self._get_connection().execute("SELECT COUNT(*) FROM files").fetchone()[0]

    def clear(self) -> None:
        """Delete all file records."""
        self._get_connection().execute("DELETE FROM files")


def compute_file_hash(file: Path) -> str:
    """Compute SHA-256 hash of a file's contents ("" if unreadable)."""
    try:
        content = file.read_bytes()
    except OSError:
        return ""
    return hashlib.sha256(content).hexdigest()
