"""Protocol for symbol extractors."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hdlgraph.languages.models import ExtractionResult


class Extractor(Protocol):
    """Protocol for hardware-description symbol extractors."""

    def extract(self, file: Path, content: str) -> ExtractionResult:
        """Extract symbols, module definitions and instances from file content."""
        ...

    def supports(self, file: Path) -> bool:
        """Check if this extractor understands the given file."""
        ...
