"""Hybrid search over symbol names and raw source text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from hdlgraph.core.exceptions import InvalidQueryError
from hdlgraph.core.models import Symbol
from hdlgraph.core.symbols import SymbolTable
from hdlgraph.core.textsearch import ScanBackend, TextSearcher, TextSearchScope
from hdlgraph.logging import get_logger

logger = get_logger("search")

EXACT_SCORE = 100
PREFIX_SCORE = 90
CONTAINS_SCORE = 70
FUZZY_BASE_SCORE = 60
FUZZY_PENALTY = 5
FUZZY_RATIO = 0.3


class ResultType(Enum):
    """Where a search result came from."""

    SYMBOL = "symbol"
    TEXT = "text"


@dataclass
class SearchResult:
    """One ranked search hit."""

    type: ResultType
    file: Path
    line: int
    snippet: str
    column: int | None = None
    symbol: Symbol | None = None
    score: int = 0


class SearchEngine:
    """Answers ranked queries against a symbol table and source text."""

    def __init__(
        self,
        table: SymbolTable,
        text_searcher: TextSearcher | None = None,
        max_text_results: int = 500,
    ) -> None:
        self._table = table
        self._text_searcher = text_searcher or TextSearcher([ScanBackend()])
        self._max_text_results = max_text_results
        self._scope: TextSearchScope | None = None

    def set_scope(self, scope: TextSearchScope | None) -> None:
        """Point text search at a repository."""
        self._scope = scope

    def search(self, query: str, mode: str | None = None) -> list[SearchResult]:
        """Search symbols, falling back to text when nothing matches by name.

        Args:
            query: Free text; must not be blank
            mode: None or "symbol" for symbol search with text fallback,
                "text" for text search only

        Raises:
            InvalidQueryError: blank query or unknown mode
            TextSearchUnavailableError: text search was needed and no
                backend could run
        """
        if not query or not query.strip():
            raise InvalidQueryError("Search query must not be empty")
        if mode not in (None, "symbol", "text"):
            raise InvalidQueryError(f"Unknown search mode '{mode}' (expected 'symbol' or 'text')")

        results: list[SearchResult] = []
        if mode is None or mode == "symbol":
            results.extend(self.search_symbols(query))

        if not results or mode == "text":
            results.extend(self.search_text(query))

        return sort_results(results)

    def search_symbols(self, query: str) -> list[SearchResult]:
        results = []
        for symbol in self._table.list_symbols():
            score = score_symbol(symbol.name, query)
            if score > 0:
                results.append(
                    SearchResult(
                        type=ResultType.SYMBOL,
                        file=symbol.file,
                        line=symbol.line,
                        snippet=f"{symbol.kind.value} {symbol.name}",
                        symbol=symbol,
                        score=score,
                    )
                )
        return results

    def search_text(self, query: str) -> list[SearchResult]:
        if self._scope is None:
            logger.warning("No repository indexed; skipping text search")
            return []

        matches = self._text_searcher.search(query, self._scope, self._max_text_results)
        return [
            SearchResult(
                type=ResultType.TEXT,
                file=match.file,
                line=match.line,
                column=match.column,
                snippet=match.text,
            )
            for match in matches
        ]


def sort_results(results: list[SearchResult]) -> list[SearchResult]:
    """Symbols before text; then score descending, file path, line."""
    return sorted(
        results,
        key=lambda r: (r.type != ResultType.SYMBOL, -r.score, str(r.file), r.line),
    )


def score_symbol(name: str, query: str) -> int:
    """Rank a symbol name against a query, case-insensitively. 0 means no match."""
    name = name.lower()
    query = query.lower()

    if name == query:
        return EXACT_SCORE
    if name.startswith(query):
        return PREFIX_SCORE
    if query in name:
        return CONTAINS_SCORE

    distance = edit_distance(name, query)
    threshold = max(1, int(len(name) * FUZZY_RATIO))
    if distance <= threshold:
        return max(1, FUZZY_BASE_SCORE - distance * FUZZY_PENALTY)
    return 0


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with a single rolling row. O(len(a) * len(b))."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    row = list(range(len(b) + 1))
    for i in range(1, len(a) + 1):
        prev = row[0]
        row[0] = i
        for j in range(1, len(b) + 1):
            current = row[j]
            cost = 0 if a[i - 1] == b[j - 1] else 1
            row[j] = min(row[j] + 1, row[j - 1] + 1, prev + cost)
            prev = current
    return row[len(b)]
