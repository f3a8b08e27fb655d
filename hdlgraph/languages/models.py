"""Data models for extractor results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hdlgraph.core.models import Instance, ModuleDefinition, SymbolKind


@dataclass
class ExtractedSymbol:
    """A symbol extracted from source code (before it enters the table)."""

    name: str
    kind: SymbolKind
    line: int
    end_line: int
    node_type: str


@dataclass
class ExtractionResult:
    """Result of extracting one file."""

    file: Path
    symbols: list[ExtractedSymbol] = field(default_factory=list)
    modules: list[ModuleDefinition] = field(default_factory=list)
    instances: list[Instance] = field(default_factory=list)
