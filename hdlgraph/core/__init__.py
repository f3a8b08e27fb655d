"""
Core module: data models, exceptions, symbol table, search and storage.

This module provides the foundational types and persistence layer:

Models (models.py):
    - Symbol: A module, port, signal, instance, routine or constant in the design
    - ModuleDefinition/Instance/Connection/Port: Extractor output for the graph
    - SymbolKind/PortDirection: Enums for categorization

Exceptions (exceptions.py):
    - HdlGraphError: Base exception for all hdlgraph errors
    - ExtractionError: Source file could not be read or extracted
    - InvalidQueryError: Search query rejected
    - TextSearchUnavailableError: No text search backend could run

Symbol table (symbols.py) and search (search.py, textsearch.py):
    - SymbolTable: In-memory table with name and file indexes
    - SearchEngine: Ranked symbol search with full-text fallback

Storage (storage/):
    - IndexStore: Facade for all database operations
    - Uses SQLite for persistence in .hdlgraph/index.db

The HdlIndex facade lives in hdlgraph.core.workspace.
"""

from hdlgraph.core.exceptions import (
    ConfigError,
    ExtractionError,
    HdlGraphError,
    IndexCancelled,
    InvalidQueryError,
    StorageError,
    TextSearchError,
    TextSearchUnavailableError,
)
from hdlgraph.core.models import (
    Connection,
    FileRecord,
    IndexStats,
    Instance,
    ModuleDefinition,
    Port,
    PortDirection,
    Symbol,
    SymbolKind,
)
from hdlgraph.core.search import ResultType, SearchEngine, SearchResult
from hdlgraph.core.storage import IndexStore, compute_file_hash
from hdlgraph.core.symbols import SymbolTable

__all__ = [
    # Models
    "Symbol",
    "SymbolKind",
    "Port",
    "PortDirection",
    "Connection",
    "Instance",
    "ModuleDefinition",
    "FileRecord",
    "IndexStats",
    # Exceptions
    "HdlGraphError",
    "ExtractionError",
    "InvalidQueryError",
    "TextSearchError",
    "TextSearchUnavailableError",
    "IndexCancelled",
    "ConfigError",
    "StorageError",
    # Symbol table and search
    "SymbolTable",
    "SearchEngine",
    "SearchResult",
    "ResultType",
    # Storage
    "IndexStore",
    "compute_file_hash",
]
