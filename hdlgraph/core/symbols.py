"""In-memory symbol table with name and file indexes."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from hdlgraph.core.models import Symbol, SymbolKind


class SymbolTable:
    """Mutable set of symbols keyed by id.

    Secondary indexes map a symbol name and an owning file to the ids that
    carry them, so exact-name and per-file lookups are O(1) expected.
    """

    __slots__ = ("_symbols", "_by_name", "_by_file")

    def __init__(self) -> None:
        self._symbols: dict[str, Symbol] = {}
        self._by_name: dict[str, set[str]] = {}
        self._by_file: dict[Path, set[str]] = {}

    def add(self, symbol: Symbol) -> None:
        """Insert a symbol, replacing any record with the same id. O(1)."""
        if symbol.id in self._symbols:
            self.remove(symbol.id)
        self._symbols[symbol.id] = symbol
        self._by_name.setdefault(symbol.name, set()).add(symbol.id)
        self._by_file.setdefault(symbol.file, set()).add(symbol.id)

    def remove(self, symbol_id: str) -> Symbol | None:
        """Remove a symbol by id, returning it if it was present."""
        symbol = self._symbols.pop(symbol_id, None)
        if symbol is None:
            return None

        name_ids = self._by_name.get(symbol.name)
        if name_ids is not None:
            name_ids.discard(symbol_id)
            if not name_ids:
                del self._by_name[symbol.name]

        file_ids = self._by_file.get(symbol.file)
        if file_ids is not None:
            file_ids.discard(symbol_id)
            if not file_ids:
                del self._by_file[symbol.file]

        return symbol

    def remove_file(self, file: Path) -> int:
        """Delete all symbols owned by a file. Returns count deleted."""
        ids = list(self._by_file.get(file, ()))
        for symbol_id in ids:
            self.remove(symbol_id)
        return len(ids)

    def replace_file(self, file: Path, symbols: Iterable[Symbol]) -> int:
        """Swap the full symbol set of a file for a new one. Returns count inserted."""
        self.remove_file(file)
        count = 0
        for symbol in symbols:
            if symbol.file != file:
                raise ValueError(f"Symbol {symbol.id} belongs to {symbol.file}, not {file}")
            self.add(symbol)
            count += 1
        return count

    def find_by_name(self, name: str) -> list[Symbol]:
        """Exact, case-sensitive lookup across all files."""
        ids = self._by_name.get(name, ())
        return sorted((self._symbols[i] for i in ids), key=_location)

    def find_by_kind(self, kind: SymbolKind) -> list[Symbol]:
        return sorted((s for s in self._symbols.values() if s.kind == kind), key=_location)

    def get_symbol(self, symbol_id: str) -> Symbol | None:
        return self._symbols.get(symbol_id)

    def get_symbols_in_file(self, file: Path) -> list[Symbol]:
        ids = self._by_file.get(file, ())
        return sorted((self._symbols[i] for i in ids), key=_location)

    def get_files_by_symbol(self, name: str) -> list[Path]:
        """Distinct files that contain a symbol with this exact name."""
        return sorted({s.file for s in self.find_by_name(name)})

    def list_symbols(self) -> list[Symbol]:
        return sorted(self._symbols.values(), key=_location)

    def get_all_files(self) -> list[Path]:
        return sorted(self._by_file)

    def clear(self) -> None:
        self._symbols.clear()
        self._by_name.clear()
        self._by_file.clear()

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol_id: object) -> bool:
        return symbol_id in self._symbols

    def __repr__(self) -> str:
        return f"SymbolTable(symbols={len(self._symbols)}, files={len(self._by_file)})"


def _location(symbol: Symbol) -> tuple[str, int, str]:
    return (str(symbol.file), symbol.line, symbol.name)
