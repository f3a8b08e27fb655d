"""Data models for hdlgraph."""

from __future__ import annotations

import hashlib
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class SymbolKind(Enum):
    """Kinds of named entities found in hardware source."""

    MODULE = "module"
    FUNCTION = "function"
    TASK = "task"
    PORT = "port"
    SIGNAL = "signal"
    INSTANCE = "instance"
    CONSTANT = "constant"


class PortDirection(Enum):
    """Direction of a module port."""

    INPUT = "input"
    OUTPUT = "output"
    INOUT = "inout"


def make_symbol_id(repo: Path, file: Path, name: str, line: int) -> str:
    """Build the identifier for a symbol at file:name:line, relative to its repo."""
    try:
        location = file.relative_to(repo).as_posix()
    except ValueError:
        location = file.as_posix()
    return f"{location}:{name}:{line}"


def compute_symbol_hash(file: Path, name: str, line: int) -> str:
    """Content hash used to de-duplicate symbols."""
    return hashlib.sha1(f"{file}:{name}:{line}".encode()).hexdigest()[:16]


@dataclass(frozen=True)
class Symbol:
    """A named, located entity extracted from a source file."""

    id: str
    repo: Path
    file: Path
    name: str
    kind: SymbolKind
    line: int
    end_line: int
    node_type: str
    hash: str

    @classmethod
    def create(
        cls,
        repo: Path,
        file: Path,
        name: str,
        kind: SymbolKind,
        line: int,
        end_line: int | None = None,
        node_type: str | None = None,
    ) -> Symbol:
        """Create a Symbol, deriving its id and hash from (file, name, line)."""
        return cls(
            id=make_symbol_id(repo, file, name, line),
            repo=repo,
            file=file,
            name=name,
            kind=kind,
            line=line,
            end_line=end_line if end_line is not None else line,
            node_type=node_type or kind.value,
            hash=compute_symbol_hash(file, name, line),
        )

    @property
    def key(self) -> tuple[Path, str, int]:
        return (self.file, self.name, self.line)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Symbol:
        """Create a Symbol from a database row."""
        return cls(
            id=row["id"],
            repo=Path(row["repo"]),
            file=Path(row["file"]),
            name=row["name"],
            kind=SymbolKind(row["kind"]),
            line=row["line"],
            end_line=row["end_line"],
            node_type=row["node_type"],
            hash=row["hash"],
        )


@dataclass(frozen=True)
class Port:
    """A declared port of a module."""

    name: str
    direction: PortDirection
    type: str = "wire"


@dataclass
class Connection:
    """A binding of a child port to a signal at the instantiation site.

    Positional connections carry ``position`` and an empty ``port_name``
    until the graph builder resolves them against the child's port order.
    """

    port_name: str
    signal_name: str
    direction: PortDirection | None = None
    position: int | None = None


@dataclass
class Instance:
    """One instantiation statement inside a parent module."""

    name: str
    module_type: str
    file: Path
    line: int
    connections: list[Connection] = field(default_factory=list)
    parameters: dict[str, str] = field(default_factory=dict)


@dataclass
class ModuleDefinition:
    """A module declaration as reported by an extractor."""

    name: str
    file: Path
    line: int
    end_line: int
    ports: list[Port] = field(default_factory=list)

    def contains_line(self, line: int) -> bool:
        return self.line <= line <= self.end_line


@dataclass
class FileRecord:
    """A record of an indexed file."""

    path: Path
    hash: str
    indexed_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileRecord:
        """Create a FileRecord from a database row."""
        return cls(
            path=Path(row["path"]),
            hash=row["hash"],
            indexed_at=datetime.fromisoformat(row["indexed_at"]),
        )


class IndexStats:
    """Statistics from an indexing operation."""

    def __init__(self) -> None:
        self.files: int = 0
        self.symbols: int = 0
        self.modules: int = 0
        self.instances: int = 0
        self.skipped: int = 0
        self.unchanged: int = 0
        self.removed: int = 0
        self.cancelled: bool = False
        self.errors: list[str] = []

    @property
    def failed(self) -> int:
        return len(self.errors)

    def __repr__(self) -> str:
        return (
            f"IndexStats(files={self.files}, symbols={self.symbols}, "
            f"modules={self.modules}, instances={self.instances}, "
            f"skipped={self.skipped}, unchanged={self.unchanged}, "
            f"removed={self.removed}, errors={len(self.errors)})"
        )
