"""
Storage layer: SQLite persistence for a built index.

This module provides database operations split by concern:

Components:
    - IndexStore: Main facade that saves and loads a whole index
    - SymbolStorage: Rows of the symbols table
    - DesignStorage: Module definitions and instance records
    - FileStorage: Track indexed files and their hashes
    - GraphStorage: Module graph nodes, edges and signal flows

Database Schema:
    symbols: id, repo, file, name, kind, line, end_line, node_type, hash
    modules/instances: extractor output, ports and connections as JSON
    graph_nodes/graph_edges/graph_unresolved/signal_flows: the built graph
    files: path, hash, indexed_at

The database is stored at .hdlgraph/index.db relative to the project root.
"""

from hdlgraph.core.storage.designs import DesignStorage
from hdlgraph.core.storage.files import FileStorage, compute_file_hash
from hdlgraph.core.storage.graph import GraphStorage
from hdlgraph.core.storage.store import IndexStore, StoredIndex
from hdlgraph.core.storage.symbols import SymbolStorage

__all__ = [
    "IndexStore",
    "StoredIndex",
    "SymbolStorage",
    "DesignStorage",
    "FileStorage",
    "GraphStorage",
    "compute_file_hash",
]
