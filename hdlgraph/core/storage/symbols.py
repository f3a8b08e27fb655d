"""Symbol storage operations."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterable

from hdlgraph.core.models import Symbol


class SymbolStorage:
    """Storage operations for symbols."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def insert_many(self, symbols: Iterable[Symbol]) -> int:
        """Insert symbols. Returns count inserted."""
        rows = [
            (
                s.id,
                str(s.repo),
                str(s.file),
                s.name,
                s.kind.value,
                s.line,
                s.end_line,
                s.node_type,
                s.hash,
            )
            for s in symbols
        ]
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT INTO symbols (id, repo, file, name, kind, line, end_line, node_type, hash)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return len(rows)

    def all(self) -> list[Symbol]:
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM symbols ORDER BY file, line, name")
        return [Symbol.from_row(row) for row in cursor.fetchall()]

    def count(self) -> int:
        return self._get_connection().execute("SELECT COUNT(*) FROM symbols").fetchone()[0]

    def clear(self) -> None:
        """Delete all symbols."""
        self._get_connection().execute("DELETE FROM symbols")
