"""Index store that coordinates all storage operations."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from hdlgraph.core.exceptions import StorageError
from hdlgraph.core.graph.base import ModuleGraph
from hdlgraph.core.models import FileRecord, Instance, ModuleDefinition, Symbol
from hdlgraph.core.storage.designs import DesignStorage
from hdlgraph.core.storage.files import FileStorage
from hdlgraph.core.storage.graph import GraphStorage
from hdlgraph.core.storage.symbols import SymbolStorage
from hdlgraph.logging import get_logger

logger = get_logger("storage")

SCHEMA_VERSION = "1"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS symbols (
    id TEXT PRIMARY KEY,
    repo TEXT NOT NULL,
    file TEXT NOT NULL,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    line INTEGER NOT NULL,
    end_line INTEGER,
    node_type TEXT,
    hash TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS files (
    path TEXT PRIMARY KEY,
    hash TEXT NOT NULL,
    indexed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS modules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    file TEXT NOT NULL,
    line INTEGER NOT NULL,
    end_line INTEGER NOT NULL,
    ports TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS instances (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    module_type TEXT NOT NULL,
    file TEXT NOT NULL,
    line INTEGER NOT NULL,
    connections TEXT NOT NULL,
    parameters TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS graph_nodes (
    position INTEGER NOT NULL,
    name TEXT PRIMARY KEY,
    file TEXT NOT NULL,
    line INTEGER NOT NULL,
    end_line INTEGER NOT NULL,
    ports TEXT NOT NULL,
    instances TEXT NOT NULL,
    parameters TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS graph_edges (
    position INTEGER NOT NULL,
    parent TEXT NOT NULL,
    child TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS graph_unresolved (
    parent TEXT NOT NULL,
    module_type TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS signal_flows (
    position INTEGER NOT NULL,
    signal TEXT NOT NULL,
    source_module TEXT NOT NULL,
    source_port TEXT NOT NULL,
    source_instance TEXT,
    sink_module TEXT NOT NULL,
    sink_port TEXT NOT NULL,
    sink_instance TEXT,
    parent TEXT NOT NULL,
    child TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file);
CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name);
CREATE INDEX IF NOT EXISTS idx_modules_name ON modules(name);
CREATE INDEX IF NOT EXISTS idx_graph_edges_parent ON graph_edges(parent);
"""


@dataclass
class StoredIndex:
    """Everything read back from a store."""

    root: Path
    symbols: list[Symbol]
    modules: list[ModuleDefinition]
    instances: list[Instance]
    files: list[FileRecord]
    graph: ModuleGraph | None


class IndexStore:
    """Facade that coordinates symbols, designs, files, and graph storage.

    ``save`` rewrites the whole index in one transaction; a failure leaves the
    previous contents in place.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

        self.symbols = SymbolStorage(self._get_connection)
        self.designs = DesignStorage(self._get_connection)
        self.files = FileStorage(self._get_connection)
        self.graph = GraphStorage(self._get_connection)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def exists(self) -> bool:
        return self._db_path.exists()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a database connection."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> IndexStore:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def save(
        self,
        root: Path,
        symbols: list[Symbol],
        modules: list[ModuleDefinition],
        instances: list[Instance],
        files: list[FileRecord],
        graph: ModuleGraph | None = None,
    ) -> None:
        """Replace the stored index with the given contents."""
        try:
            conn = self._get_connection()
            with conn:
                self._clear_tables()
                self._set_meta("root", str(root))
                self._set_meta("version", SCHEMA_VERSION)
                self._set_meta("saved_at", datetime.now().isoformat())
                self._set_meta("has_graph", "1" if graph is not None else "0")
                self.symbols.insert_many(symbols)
                self.files.insert_many(files)
                self.designs.insert_modules(modules)
                self.designs.insert_instances(instances)
                if graph is not None:
                    self.graph.save(graph)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to save index to {self._db_path}: {e}") from e

        logger.info("Saved %d symbols from %d files to %s", len(symbols), len(files), self._db_path)

    def load(self) -> StoredIndex:
        """Read the whole index back.

        Raises:
            StorageError: the database does not exist, was never saved to, or
                is unreadable.
        """
        if not self.exists():
            raise StorageError(f"No index found at {self._db_path}")

        try:
            root = self._get_meta("root")
            if root is None:
                raise StorageError(f"{self._db_path} does not contain a saved index")
            version = self._get_meta("version")
            if version != SCHEMA_VERSION:
                raise StorageError(
                    f"{self._db_path} has schema version {version}, expected {SCHEMA_VERSION}"
                )
            graph = self.graph.load() if self._get_meta("has_graph") == "1" else None
            stored = StoredIndex(
                root=Path(root),
                symbols=self.symbols.all(),
                modules=self.designs.modules(),
                instances=self.designs.instances(),
                files=self.files.all(),
                graph=graph,
            )
        except (sqlite3.Error, KeyError, ValueError) as e:
            raise StorageError(f"Failed to load index from {self._db_path}: {e}") from e

        logger.debug("Loaded %d symbols from %s", len(stored.symbols), self._db_path)
        return stored

    def get_stats(self) -> dict[str, int | datetime | None]:
        """Get index statistics."""
        conn = self._get_connection()

        module_count = conn.execute("SELECT COUNT(*) FROM modules").fetchone()[0]
        instance_count = conn.execute("SELECT COUNT(*) FROM instances").fetchone()[0]
        edge_count = conn.execute("SELECT COUNT(*) FROM graph_edges").fetchone()[0]

        saved_at = self._get_meta("saved_at")
        return {
            "files": self.files.count(),
            "symbols": self.symbols.count(),
            "modules": module_count,
            "instances": instance_count,
            "graph_nodes": self.graph.count_nodes(),
            "graph_edges": edge_count,
            "saved_at": datetime.fromisoformat(saved_at) if saved_at else None,
        }

    def clear(self) -> None:
        """Clear all data from the database."""
        conn = self._get_connection()
        with conn:
            self._clear_tables()
            conn.execute("DELETE FROM meta")

    def _clear_tables(self) -> None:
        self.graph.clear()
        self.designs.clear()
        self.symbols.clear()
        self.files.clear()

    def _set_meta(self, key: str, value: str) -> None:
        self._get_connection().execute(
            "INSERT INTO meta (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def _get_meta(self, key: str) -> str | None:
        row = self._get_connection().execute(
            "SELECT value FROM meta WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None
