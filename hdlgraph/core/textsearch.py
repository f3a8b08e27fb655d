"""Line-oriented full-text search with graceful backend fallback."""

from __future__ import annotations

import json
import re
import shutil
import subprocess
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from hdlgraph.core.exceptions import TextSearchError, TextSearchUnavailableError
from hdlgraph.logging import get_logger

logger = get_logger("textsearch")

_GREP_LINE_RE = re.compile(r"^(.*?):(\d+):(.*)$")

# Exit status used by both ripgrep and grep for "no lines matched".
_NO_MATCH = 1

# Paths passed to one rg or grep invocation.
_BATCH_SIZE = 200


@dataclass(frozen=True)
class TextMatch:
    """One matching line."""

    file: Path
    line: int
    column: int
    text: str


@dataclass
class TextSearchScope:
    """What a text search looks at: the indexed files, some possibly held in memory."""

    root: Path
    files: Callable[[], list[Path]] = list
    contents: Callable[[], dict[Path, str]] = dict

    def disk_files(self) -> list[Path]:
        """Indexed files whose searchable text is what is on disk."""
        in_memory = self.contents()
        return [file for file in self.files() if file not in in_memory]


class TextSearchBackend(Protocol):
    """A strategy that can grep source files for a fixed string."""

    name: str

    def available(self) -> bool:
        """Whether the backend can run on this machine."""
        ...

    def search(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        """Case-insensitive fixed-string search of ``scope.disk_files()``.

        Raises TextSearchError on failure.
        """
        ...


class RipgrepBackend:
    """Search with ripgrep's JSON output."""

    name = "ripgrep"

    def __init__(self, executable: str = "rg") -> None:
        self._executable = executable

    def available(self) -> bool:
        return shutil.which(self._executable) is not None

    def search(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        # Explicit paths are searched even when gitignored or hidden.
        files = scope.disk_files()
        indexed = {file.resolve() for file in files}
        matches: list[TextMatch] = []
        for batch in _batches(files):
            cmd = [self._executable, "--json", "--fixed-strings", "--ignore-case", "--no-config"]
            cmd += ["--", query, *(str(file) for file in batch)]
            for match in self._parse(_run(cmd, self.name, scope.root)):
                if match.file not in indexed:
                    continue
                matches.append(match)
                if len(matches) >= limit:
                    return matches
        return matches

    def _parse(self, output: str) -> Iterator[TextMatch]:
        for raw in output.splitlines():
            if not raw.strip():
                continue
            try:
                event = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if event.get("type") != "match":
                continue
            data = event["data"]
            text = data.get("lines", {}).get("text")
            path = data.get("path", {}).get("text")
            if text is None or path is None:
                continue
            submatches = data.get("submatches") or [{}]
            yield TextMatch(
                file=Path(path).resolve(),
                line=data["line_number"],
                column=_char_column(text, submatches[0].get("start", 0)),
                text=text.strip(),
            )


class GrepBackend:
    """Search with POSIX grep."""

    name = "grep"

    def __init__(self, executable: str = "grep") -> None:
        self._executable = executable

    def available(self) -> bool:
        return shutil.which(self._executable) is not None

    def search(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        files = scope.disk_files()
        indexed = {file.resolve() for file in files}
        matches: list[TextMatch] = []
        for batch in _batches(files):
            cmd = [self._executable, "-nHIiF", "-e", query, "--"]
            cmd += [str(file) for file in batch]
            output = _run(cmd, self.name, scope.root)
            for raw in output.splitlines():
                parsed = _GREP_LINE_RE.match(raw)
                if parsed is None:
                    continue
                path, line, text = parsed.groups()
                file = Path(path).resolve()
                if file not in indexed:
                    continue
                matches.append(
                    TextMatch(
                        file=file,
                        line=int(line),
                        column=_find_column(text, query),
                        text=text.strip(),
                    )
                )
                if len(matches) >= limit:
                    return matches
        return matches


class ScanBackend:
    """Read each indexed file and scan it line by line."""

    name = "scan"

    def available(self) -> bool:
        return True

    def search(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        matches: list[TextMatch] = []
        for file in scope.disk_files():
            try:
                content = file.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug("Cannot scan %s: %s", file, e)
                continue
            matches.extend(scan_lines(file, content, query))
            if len(matches) >= limit:
                return matches[:limit]
        return matches


def scan_lines(file: Path, content: str, query: str) -> list[TextMatch]:
    """Case-insensitive fixed-string matches in one file's content."""
    needle = query.lower()
    return [
        TextMatch(file=file, line=number, column=_find_column(text, query), text=text.strip())
        for number, text in enumerate(content.splitlines(), start=1)
        if needle in text.lower()
    ]


BACKENDS: dict[str, Callable[[], TextSearchBackend]] = {
    "ripgrep": RipgrepBackend,
    "grep": GrepBackend,
    "scan": ScanBackend,
}


class TextSearcher:
    """Try text-search backends in order until one answers."""

    def __init__(self, backends: Sequence[TextSearchBackend]) -> None:
        self._backends = list(backends)

    @classmethod
    def from_names(cls, names: Sequence[str]) -> TextSearcher:
        unknown = [name for name in names if name not in BACKENDS]
        if unknown:
            raise ValueError(f"Unknown text search backends: {', '.join(unknown)}")
        return cls([BACKENDS[name]() for name in names])

    @property
    def backends(self) -> list[TextSearchBackend]:
        return list(self._backends)

    def search(self, query: str, scope: TextSearchScope, limit: int = 500) -> list[TextMatch]:
        """Search the scope's files on disk and its in-memory content.

        Files on disk go to the first available backend, falling back to the
        next on failure. In-memory content is always scanned directly.

        Raises:
            TextSearchUnavailableError: every backend is missing or failed.
        """
        matches = self._search_disk(query, scope, limit)
        for file, content in scope.contents().items():
            matches.extend(scan_lines(file, content, query))
        matches.sort(key=lambda m: (str(m.file), m.line))
        return matches[:limit]

    def _search_disk(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        failures: list[str] = []
        for backend in self._backends:
            if not backend.available():
                logger.debug("Text search backend %s is not installed", backend.name)
                failures.append(f"{backend.name}: not available")
                continue
            try:
                return backend.search(query, scope, limit)
            except TextSearchError as e:
                logger.warning("Text search backend %s failed, falling back: %s", backend.name, e)
                failures.append(f"{backend.name}: {e}")

        raise TextSearchUnavailableError(
            "No text search backend could run" + (f" ({'; '.join(failures)})" if failures else "")
        )


def _batches(files: list[Path]) -> Iterator[list[Path]]:
    for start in range(0, len(files), _BATCH_SIZE):
        yield files[start : start + _BATCH_SIZE]


def _run(cmd: list[str], name: str, cwd: Path | None = None) -> str:
    try:
        proc = subprocess.run(
            cmd, capture_output=True, text=True, errors="replace", check=False, cwd=cwd
        )
    except OSError as e:
        raise TextSearchError(f"{name} could not be started: {e}") from e
    if proc.returncode == _NO_MATCH:
        return ""
    if proc.returncode != 0:
        raise TextSearchError(f"{name} exited with {proc.returncode}: {proc.stderr.strip()}")
    return proc.stdout


def _find_column(text: str, query: str) -> int:
    """1-based column of the first case-insensitive occurrence."""
    return text.lower().find(query.lower()) + 1


def _char_column(text: str, byte_offset: int) -> int:
    """Convert a UTF-8 byte offset within ``text`` to a 1-based character column."""
    prefix = text.encode("utf-8")[:byte_offset]
    return len(prefix.decode("utf-8", errors="ignore")) + 1
