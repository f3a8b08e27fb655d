"""hdlgraph custom exceptions."""

from __future__ import annotations

from pathlib import Path


class HdlGraphError(Exception):
    """Base exception for hdlgraph errors."""


class ExtractionError(HdlGraphError):
    """A source file could not be turned into symbols."""

    def __init__(self, file: Path, reason: str) -> None:
        super().__init__(f"Cannot extract {file}: {reason}")
        self.file = file
        self.reason = reason


class InvalidQueryError(HdlGraphError):
    """A query was rejected before any work was done."""


class TextSearchError(HdlGraphError):
    """A single text-search backend failed or is not installed."""


class TextSearchUnavailableError(HdlGraphError):
    """No text-search backend could answer the query."""


class IndexCancelled(HdlGraphError):
    """Raised from a progress callback to stop an index build early."""


class ConfigError(HdlGraphError):
    """The configuration file is malformed."""


class StorageError(HdlGraphError):
    """The persisted index is missing or unreadable."""
