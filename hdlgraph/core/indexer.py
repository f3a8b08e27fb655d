"""Indexer that coordinates extraction and the symbol table."""

from __future__ import annotations

import fnmatch
import hashlib
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from hdlgraph.config import IndexConfig
from hdlgraph.core.exceptions import ExtractionError, IndexCancelled
from hdlgraph.core.models import FileRecord, IndexStats, Instance, ModuleDefinition, Symbol
from hdlgraph.core.storage.files import compute_file_hash
from hdlgraph.core.symbols import SymbolTable
from hdlgraph.languages import Extractor, ExtractionResult, VerilogExtractor
from hdlgraph.logging import get_logger

ProgressCallback = Callable[[Path, int, int], None]

logger = get_logger("indexer")


class Indexer:
    """Coordinates file discovery, extraction and symbol table updates.

    Besides symbols, the indexer keeps the module definitions and instance
    records reported for each file so the module graph can be rebuilt after
    any incremental change.
    """

    def __init__(
        self,
        table: SymbolTable,
        config: IndexConfig,
        extractor: Extractor | None = None,
    ) -> None:
        """Initialize with a symbol table and configuration."""
        self._table = table
        self._config = config
        self._extractor: Extractor = extractor or VerilogExtractor()
        self._root = config.root

        self._modules: dict[Path, list[ModuleDefinition]] = {}
        self._instances: dict[Path, list[Instance]] = {}
        self._files: dict[Path, FileRecord] = {}
        # Content handed to update_file that may differ from what is on disk.
        self._contents: dict[Path, str] = {}

    @property
    def root(self) -> Path:
        return self._root

    def discover(self, directory: Path) -> tuple[list[Path], int]:
        """Find indexable source files under a directory.

        Returns the files in sorted order and the number of candidates that
        were excluded by configuration.
        """
        extensions = {ext.lower() for ext in self._config.extensions}
        files: list[Path] = []
        skipped = 0
        for file in sorted(directory.rglob("*")):
            if not file.is_file() or file.suffix.lower() not in extensions:
                continue
            relative_path = file.relative_to(directory).as_posix()
            if self._should_exclude(relative_path) or not self._extractor.supports(file):
                skipped += 1
                continue
            files.append(file)
        return files, skipped

    def build_index(
        self,
        directory: Path | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IndexStats:
        """Index every source file under a directory, starting from an empty table.

        A file that fails extraction is skipped and reported in
        ``IndexStats.errors``. A progress callback may raise ``IndexCancelled``
        to stop after the current file; everything indexed so far stays
        queryable.

        Args:
            directory: Repository root (defaults to the configured root)
            on_progress: Optional callback for progress updates (file, current, total)

        Returns:
            IndexStats with counts of files/symbols/modules/instances processed
        """
        self._root = (directory or self._config.root).resolve()
        self.clear()

        stats = IndexStats()
        files, stats.skipped = self.discover(self._root)
        logger.info("Indexing %d files under %s", len(files), self._root)

        self._index_files(files, stats, on_progress)

        logger.info(
            "Indexed %d symbols from %d files (%d errors)",
            len(self._table),
            stats.files,
            len(stats.errors),
        )
        return stats

    def refresh(self, on_progress: ProgressCallback | None = None) -> IndexStats:
        """Re-index only files whose content changed since they were indexed.

        New files are added and files that disappeared from disk are removed.
        """
        stats = IndexStats()
        files, stats.skipped = self.discover(self._root)

        present = set(files)
        for vanished in [f for f in self._files if f not in present]:
            self.remove_file(vanished)
            stats.removed += 1

        changed: list[Path] = []
        for file in files:
            record = self._files.get(file)
            if record is not None and record.hash == compute_file_hash(file):
                stats.unchanged += 1
            else:
                changed.append(file)

        logger.info(
            "Refreshing %s: %d changed, %d unchanged, %d removed",
            self._root,
            len(changed),
            stats.unchanged,
            stats.removed,
        )
        self._index_files(changed, stats, on_progress)
        return stats

    def update_file(self, file: Path, content: str | None = None) -> IndexStats:
        """Replace everything known about one file.

        Works for files that were never indexed. When ``content`` is omitted
        the file is read from disk.

        Raises:
            ExtractionError: the file could not be read or extracted; the
                previously indexed symbols for it are left untouched.
        """
        file = file.resolve()
        in_memory = content is not None
        if content is None:
            content = _read_source(file)
        result = self._extractor.extract(file, content)

        stats = IndexStats()
        self._apply(file, result, _hash_text(content), stats)
        if in_memory:
            self._contents[file] = content
        else:
            self._contents.pop(file, None)
        logger.debug("Updated %s: %d symbols", file, stats.symbols)
        return stats

    def remove_file(self, file: Path) -> bool:
        """Drop a file and all its symbols, modules and instances."""
        file = file.resolve()
        known = file in self._files or bool(self._table.get_symbols_in_file(file))
        self._table.remove_file(file)
        self._modules.pop(file, None)
        self._instances.pop(file, None)
        self._files.pop(file, None)
        self._contents.pop(file, None)
        if known:
            logger.debug("Removed %s from index", file)
        return known

    def modules(self) -> list[ModuleDefinition]:
        """All module definitions, in file order."""
        return [m for file in sorted(self._modules) for m in self._modules[file]]

    def instances(self) -> list[Instance]:
        """All instance records, in file order."""
        return [i for file in sorted(self._instances) for i in self._instances[file]]

    def file_records(self) -> list[FileRecord]:
        return [self._files[f] for f in sorted(self._files)]

    def contents(self) -> dict[Path, str]:
        """Indexed content supplied in memory rather than read from disk."""
        return dict(self._contents)

    def restore(
        self,
        root: Path,
        modules: Iterable[ModuleDefinition],
        instances: Iterable[Instance],
        files: Iterable[FileRecord],
    ) -> None:
        """Reinstate design records loaded from a store."""
        self._root = root
        self._modules.clear()
        self._instances.clear()
        self._files = {record.path: record for record in files}
        self._contents.clear()
        for module in modules:
            self._modules.setdefault(module.file, []).append(module)
        for instance in instances:
            self._instances.setdefault(instance.file, []).append(instance)

    def clear(self) -> None:
        self._table.clear()
        self._modules.clear()
        self._instances.clear()
        self._files.clear()
        self._contents.clear()

    def _index_files(
        self,
        files: list[Path],
        stats: IndexStats,
        on_progress: ProgressCallback | None,
    ) -> None:
        total_files = len(files)
        for i, file in enumerate(files):
            try:
                content = _read_source(file)
                result = self._extractor.extract(file, content)
                self._apply(file, result, _hash_text(content), stats)
                self._contents.pop(file, None)
            except ExtractionError as e:
                logger.warning("Skipping %s: %s", file, e.reason)
                stats.errors.append(str(e))

            if on_progress:
                try:
                    on_progress(file, i + 1, total_files)
                except IndexCancelled:
                    logger.info("Indexing cancelled after %d of %d files", i + 1, total_files)
                    stats.cancelled = True
                    return

    def _apply(
        self, file: Path, result: ExtractionResult, content_hash: str, stats: IndexStats
    ) -> None:
        symbols = [
            Symbol.create(
                repo=self._root,
                file=file,
                name=extracted.name,
                kind=extracted.kind,
                line=extracted.line,
                end_line=extracted.end_line,
                node_type=extracted.node_type,
            )
            for extracted in result.symbols
        ]
        stats.symbols += self._table.replace_file(file, symbols)
        self._modules[file] = list(result.modules)
        self._instances[file] = list(result.instances)
        self._files[file] = FileRecord(path=file, hash=content_hash, indexed_at=datetime.now())

        stats.files += 1
        stats.modules += len(result.modules)
        stats.instances += len(result.instances)
        if not result.symbols:
            logger.debug("No symbols found in %s", file)

    def _should_exclude(self, path: str) -> bool:
        """Check if a relative path matches any exclusion rule.

        Excludes:
        - Any path component starting with '.' (hidden files/directories)
        - Any directory component listed in ``exclude_dirs``
        - Any path or component matching ``exclude_patterns``
        """
        parts = Path(path).parts
        for part in parts[:-1]:
            if part.startswith(".") or part in self._config.exclude_dirs:
                return True
        if parts and parts[-1].startswith("."):
            return True
        for pattern in self._config.exclude_patterns:
            if fnmatch.fnmatch(path, pattern):
                return True
            if any(fnmatch.fnmatch(part, pattern) for part in parts):
                return True
        return False


def _hash_text(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _read_source(file: Path) -> str:
    try:
        return file.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ExtractionError(file, f"cannot read file ({e})") from e
