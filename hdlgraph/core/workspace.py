"""HdlIndex: one repository's symbol table, search engine and module graph."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from hdlgraph.config import IndexConfig, load_config
from hdlgraph.core.exceptions import ConfigError
from hdlgraph.core.graph import ModuleGraph, build_graph
from hdlgraph.core.graph import analysis
from hdlgraph.core.graph.export import to_dot
from hdlgraph.core.graph.models import ModuleComplexity, SignalImpact, TreeNode
from hdlgraph.core.graph.pathfinding import find_module_path
from hdlgraph.core.graph.traversal import get_instance_tree
from hdlgraph.core.indexer import Indexer, ProgressCallback
from hdlgraph.core.models import IndexStats, Instance, ModuleDefinition, Symbol
from hdlgraph.core.search import SearchEngine, SearchResult
from hdlgraph.core.storage import IndexStore
from hdlgraph.core.symbols import SymbolTable
from hdlgraph.core.textsearch import TextSearcher, TextSearchScope
from hdlgraph.languages import Extractor
from hdlgraph.logging import get_logger

logger = get_logger("workspace")


class HdlIndex:
    """Facade over indexing, search and hierarchy analysis for one repository.

    The module graph is rebuilt lazily: any change to the indexed files marks
    it stale and the next graph query rebuilds it from the current modules and
    instances. An explicit ``build_graph`` call replaces it immediately.
    """

    def __init__(
        self,
        config: IndexConfig,
        extractor: Extractor | None = None,
        text_searcher: TextSearcher | None = None,
    ) -> None:
        self._config = config
        self._table = SymbolTable()
        self._indexer = Indexer(self._table, config, extractor)

        if text_searcher is None:
            try:
                text_searcher = TextSearcher.from_names(config.text_search_backends)
            except ValueError as e:
                raise ConfigError(str(e)) from e
        self._engine = SearchEngine(self._table, text_searcher, config.max_text_results)
        self._graph: ModuleGraph | None = None

    @classmethod
    def for_directory(cls, root: Path, **kwargs: Any) -> HdlIndex:
        """Create an empty index configured from ``<root>/.hdlgraph.toml``."""
        return cls(load_config(root), **kwargs)

    @classmethod
    def open(cls, root: Path, **kwargs: Any) -> HdlIndex:
        """Load a previously saved index for a repository.

        Raises:
            StorageError: no saved index exists or it cannot be read.
        """
        index = cls.for_directory(root, **kwargs)
        index.load()
        return index

    @property
    def config(self) -> IndexConfig:
        return self._config

    @property
    def root(self) -> Path:
        return self._indexer.root

    @property
    def table(self) -> SymbolTable:
        return self._table

    @property
    def graph(self) -> ModuleGraph:
        """The module graph, rebuilt if the index changed since it was built."""
        if self._graph is None:
            self._graph = build_graph(self._indexer.modules(), self._indexer.instances())
        return self._graph

    # Indexing

    def build_index(
        self,
        directory: Path | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IndexStats:
        """Index every source file of a repository from scratch."""
        stats = self._indexer.build_index(directory, on_progress)
        self._invalidate()
        return stats

    def update_file(self, file: Path, content: str | None = None) -> IndexStats:
        """Re-extract one file, replacing all of its symbols."""
        stats = self._indexer.update_file(file, content)
        self._invalidate()
        return stats

    def remove_file(self, file: Path) -> bool:
        removed = self._indexer.remove_file(file)
        if removed:
            self._invalidate()
        return removed

    def refresh(self, on_progress: ProgressCallback | None = None) -> IndexStats:
        """Re-index only the files that changed on disk."""
        stats = self._indexer.refresh(on_progress)
        self._invalidate()
        return stats

    def modules(self) -> list[ModuleDefinition]:
        return self._indexer.modules()

    def instances(self) -> list[Instance]:
        return self._indexer.instances()

    # Symbol queries

    def search(self, query: str, mode: str | None = None) -> list[SearchResult]:
        return self._engine.search(query, mode)

    def find_by_name(self, name: str) -> list[Symbol]:
        return self._table.find_by_name(name)

    def list_symbols(self) -> list[Symbol]:
        return self._table.list_symbols()

    def get_symbol(self, symbol_id: str) -> Symbol | None:
        return self._table.get_symbol(symbol_id)

    def get_symbols_in_file(self, file: Path) -> list[Symbol]:
        return self._table.get_symbols_in_file(file.resolve())

    def get_all_files(self) -> list[Path]:
        return self._table.get_all_files()

    def get_files_by_symbol(self, name: str) -> list[Path]:
        return self._table.get_files_by_symbol(name)

    # Module graph

    def build_graph(
        self,
        modules: list[ModuleDefinition] | None = None,
        instances: list[Instance] | None = None,
    ) -> ModuleGraph:
        """Build the module graph, by default from everything indexed."""
        self._graph = build_graph(
            modules if modules is not None else self._indexer.modules(),
            instances if instances is not None else self._indexer.instances(),
        )
        return self._graph

    def get_top_level_modules(self) -> list[str]:
        return analysis.get_top_level_modules(self.graph)

    def get_leaf_modules(self) -> list[str]:
        return analysis.get_leaf_modules(self.graph)

    def get_module_hierarchy(self) -> dict[str, list[str]]:
        return analysis.get_module_hierarchy(self.graph)

    def find_module_path(self, from_name: str, to_name: str) -> list[str] | None:
        return find_module_path(self.graph, from_name, to_name)

    def get_signal_impact(self, signal: str) -> SignalImpact:
        return analysis.get_signal_impact(self.graph, signal)

    def get_critical_path(self) -> list[str]:
        return analysis.get_critical_path(self.graph)

    def get_module_complexity(self, name: str) -> ModuleComplexity | None:
        return analysis.get_module_complexity(self.graph, name)

    def get_instance_tree(self, root: str, max_depth: int = 10) -> TreeNode | None:
        return get_instance_tree(self.graph, root, max_depth)

    def find_cycles(self, max_cycles: int = 10) -> list[list[str]]:
        return analysis.find_cycles(self.graph, max_cycles)

    def describe_module(self, name: str) -> dict[str, Any] | None:
        return analysis.describe_module(self.graph, name)

    def export_dot(self, include_unresolved: bool = False) -> str:
        return to_dot(self.graph, include_unresolved)

    # Persistence

    def save(self, db_path: Path | None = None) -> Path:
        """Write the index and the current module graph to SQLite."""
        path = db_path or self._config.database
        with IndexStore(path) as store:
            store.save(
                root=self.root,
                symbols=self._table.list_symbols(),
                modules=self._indexer.modules(),
                instances=self._indexer.instances(),
                files=self._indexer.file_records(),
                graph=self.graph,
            )
        return path

    def load(self, db_path: Path | None = None) -> None:
        """Replace the in-memory index with a saved one."""
        path = db_path or self._config.database
        with IndexStore(path) as store:
            stored = store.load()

        self._indexer.clear()
        for symbol in stored.symbols:
            self._table.add(symbol)
        self._indexer.restore(stored.root, stored.modules, stored.instances, stored.files)
        self._graph = stored.graph
        self._update_scope()
        logger.info("Loaded index for %s (%d symbols)", stored.root, len(self._table))

    def stats(self) -> dict[str, int]:
        graph = self.graph
        return {
            "files": len(self._indexer.file_records()),
            "symbols": len(self._table),
            "modules": len(self._indexer.modules()),
            "instances": len(self._indexer.instances()),
            "graph_nodes": graph.num_nodes,
            "graph_edges": graph.num_edges,
            "signal_flows": len(graph.signal_flows),
        }

    def close(self) -> None:
        """Drop all in-memory state. A saved store is left untouched."""
        self._indexer.clear()
        self._graph = None
        self._engine.set_scope(None)

    def __enter__(self) -> HdlIndex:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def _invalidate(self) -> None:
        self._graph = None
        self._update_scope()

    def _update_scope(self) -> None:
        self._engine.set_scope(
            TextSearchScope(
                root=self.root,
                files=lambda: [record.path for record in self._indexer.file_records()],
                contents=self._indexer.contents,
            )
        )

    def __repr__(self) -> str:
        return f"HdlIndex(root={self.root}, symbols={len(self._table)})"
