"""Unit tests for ranking, hybrid search and text-search fallback."""

import json
from pathlib import Path

import pytest

from hdlgraph.core import textsearch
from hdlgraph.core.exceptions import (
    InvalidQueryError,
    TextSearchError,
    TextSearchUnavailableError,
)
from hdlgraph.core.models import Symbol, SymbolKind
from hdlgraph.core.search import (
    ResultType,
    SearchEngine,
    SearchResult,
    edit_distance,
    score_symbol,
    sort_results,
)
from hdlgraph.core.symbols import SymbolTable
from hdlgraph.core.textsearch import (
    GrepBackend,
    RipgrepBackend,
    ScanBackend,
    TextMatch,
    TextSearcher,
    TextSearchScope,
)

SOURCE = """module alu (input wire a, output wire y);
  // Always block below
  always @(*) begin
  end
endmodule
"""


class FakeBackend:
    """Backend double that records calls and returns canned matches."""

    def __init__(
        self,
        name: str,
        matches: list[TextMatch] | None = None,
        available: bool = True,
        error: str | None = None,
    ) -> None:
        self.name = name
        self._matches = matches or []
        self._available = available
        self._error = error
        self.calls = 0

    def available(self) -> bool:
        return self._available

    def search(self, query: str, scope: TextSearchScope, limit: int) -> list[TextMatch]:
        self.calls += 1
        if self._error:
            raise TextSearchError(self._error)
        return self._matches[:limit]


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    file = tmp_path / "alu.v"
    file.write_text(SOURCE)
    return file


@pytest.fixture
def scope(tmp_path: Path, source_file: Path) -> TextSearchScope:
    return TextSearchScope(root=tmp_path, files=lambda: [source_file])


@pytest.fixture
def table(source_file: Path) -> SymbolTable:
    table = SymbolTable()
    for line, name in enumerate(["alu", "alu_ctrl", "zlu", "my_alu"], start=1):
        table.add(
            Symbol.create(
                repo=source_file.parent,
                file=source_file,
                name=name,
                kind=SymbolKind.MODULE,
                line=line,
            )
        )
    return table


class TestRanking:
    """Tests for the symbol ranking rule."""

    def test_exact(self) -> None:
        assert score_symbol("alu", "alu") == 100

    def test_exact_ignores_case(self) -> None:
        assert score_symbol("ALU", "alu") == 100

    def test_prefix(self) -> None:
        assert score_symbol("alu_ctrl", "alu") == 90

    def test_contains(self) -> None:
        assert score_symbol("my_alu", "alu") == 70

    def test_fuzzy_within_threshold(self) -> None:
        # distance 1, threshold max(1, floor(0.9)) = 1
        assert score_symbol("zlu", "alu") == 55

    def test_fuzzy_beyond_threshold(self) -> None:
        assert score_symbol("fifo", "alu") == 0

    def test_fuzzy_threshold_scales_with_name(self) -> None:
        # len 10 -> threshold 3
        assert score_symbol("data_valid", "dota_vlid") == 50
        assert score_symbol("data_valid", "xyz") == 0

    def test_zlu_ranks_below_alu_ctrl(self) -> None:
        assert score_symbol("zlu", "alu") <= score_symbol("alu_ctrl", "alu")

    def test_edit_distance(self) -> None:
        assert edit_distance("kitten", "sitting") == 3
        assert edit_distance("", "abc") == 3
        assert edit_distance("abc", "") == 3
        assert edit_distance("same", "same") == 0


class TestSortResults:
    """Tests for merging symbol and text results."""

    def test_symbols_before_text_then_score_file_line(self) -> None:
        results = [
            SearchResult(ResultType.TEXT, Path("a.v"), 1, "t1"),
            SearchResult(ResultType.SYMBOL, Path("b.v"), 5, "s1", score=70),
            SearchResult(ResultType.SYMBOL, Path("b.v"), 2, "s2", score=90),
            SearchResult(ResultType.SYMBOL, Path("a.v"), 9, "s3", score=90),
            SearchResult(ResultType.SYMBOL, Path("a.v"), 3, "s4", score=90),
        ]
        assert [r.snippet for r in sort_results(results)] == ["s4", "s3", "s2", "s1", "t1"]


class TestSearchEngine:
    """Tests for the hybrid search engine."""

    def test_symbol_ranking_order(self, table: SymbolTable) -> None:
        engine = SearchEngine(table)
        results = engine.search("alu")
        assert [(r.symbol.name, r.score) for r in results if r.symbol] == [
            ("alu", 100),
            ("alu_ctrl", 90),
            ("my_alu", 70),
            ("zlu", 55),
        ]
        assert all(r.type == ResultType.SYMBOL for r in results)

    def test_symbol_mode(self, table: SymbolTable) -> None:
        assert len(SearchEngine(table).search("alu", mode="symbol")) == 4

    def test_empty_query_rejected(self, table: SymbolTable) -> None:
        engine = SearchEngine(table)
        with pytest.raises(InvalidQueryError):
            engine.search("")
        with pytest.raises(InvalidQueryError):
            engine.search("   ")

    def test_unknown_mode_rejected(self, table: SymbolTable) -> None:
        with pytest.raises(InvalidQueryError):
            SearchEngine(table).search("alu", mode="regex")

    def test_falls_back_to_text(self, table: SymbolTable, scope: TextSearchScope) -> None:
        engine = SearchEngine(table)
        engine.set_scope(scope)

        results = engine.search("always")

        assert [r.line for r in results] == [2, 3]
        assert all(r.type == ResultType.TEXT for r in results)
        assert results[1].snippet == "always @(*) begin"
        assert results[1].column == 3

    def test_text_mode_skips_symbols(self, table: SymbolTable, scope: TextSearchScope) -> None:
        engine = SearchEngine(table)
        engine.set_scope(scope)

        results = engine.search("alu", mode="text")

        assert results
        assert all(r.type == ResultType.TEXT for r in results)

    def test_no_text_when_symbols_match(self, table: SymbolTable, scope: TextSearchScope) -> None:
        backend = FakeBackend("fake")
        engine = SearchEngine(table, TextSearcher([backend]))
        engine.set_scope(scope)

        engine.search("alu")

        assert backend.calls == 0

    def test_text_without_scope_is_empty(self, table: SymbolTable) -> None:
        assert SearchEngine(table).search("always") == []

    def test_text_results_are_capped(self, table: SymbolTable, scope: TextSearchScope) -> None:
        engine = SearchEngine(table, max_text_results=1)
        engine.set_scope(scope)
        assert len(engine.search("always")) == 1

    def test_unavailable_text_search_is_query_error(
        self, table: SymbolTable, scope: TextSearchScope
    ) -> None:
        engine = SearchEngine(table, TextSearcher([FakeBackend("gone", available=False)]))
        engine.set_scope(scope)

        with pytest.raises(TextSearchUnavailableError):
            engine.search("always")

        # The engine keeps answering symbol queries.
        assert engine.search("alu")


class TestTextSearcher:
    """Tests for backend fallback."""

    def test_first_available_backend_wins(self, scope: TextSearchScope) -> None:
        match = TextMatch(Path("x.v"), 1, 1, "x")
        first = FakeBackend("first", [match])
        second = FakeBackend("second")

        assert TextSearcher([first, second]).search("x", scope) == [match]
        assert second.calls == 0

    def test_skips_unavailable_backend(self, scope: TextSearchScope) -> None:
        missing = FakeBackend("missing", available=False)
        results = TextSearcher([missing, ScanBackend()]).search("endmodule", scope)
        assert [m.line for m in results] == [5]
        assert missing.calls == 0

    def test_falls_back_after_failure(self, scope: TextSearchScope) -> None:
        broken = FakeBackend("broken", error="exit 2")
        results = TextSearcher([broken, ScanBackend()]).search("endmodule", scope)
        assert broken.calls == 1
        assert len(results) == 1

    def test_all_backends_failing(self, scope: TextSearchScope) -> None:
        searcher = TextSearcher(
            [FakeBackend("a", available=False), FakeBackend("b", error="boom")]
        )
        with pytest.raises(TextSearchUnavailableError) as exc_info:
            searcher.search("x", scope)
        assert "boom" in str(exc_info.value)

    def test_no_backends(self, scope: TextSearchScope) -> None:
        with pytest.raises(TextSearchUnavailableError):
            TextSearcher([]).search("x", scope)

    def test_from_names(self) -> None:
        searcher = TextSearcher.from_names(["ripgrep", "grep", "scan"])
        assert [b.name for b in searcher.backends] == ["ripgrep", "grep", "scan"]

    def test_from_names_unknown(self) -> None:
        with pytest.raises(ValueError):
            TextSearcher.from_names(["scan", "ag"])


class TestBackends:
    """Tests for the concrete text-search backends."""

    def test_scan_is_case_insensitive(self, scope: TextSearchScope) -> None:
        results = ScanBackend().search("ENDMODULE", scope, 10)
        assert results[0].text == "endmodule"
        assert results[0].column == 1

    def test_scan_skips_unreadable_files(self, tmp_path: Path, source_file: Path) -> None:
        scope = TextSearchScope(
            root=tmp_path,
            files=lambda: [tmp_path / "missing.v", source_file],
        )
        assert len(ScanBackend().search("endmodule", scope, 10)) == 1

    def test_missing_executables_are_unavailable(self) -> None:
        assert not RipgrepBackend("hdlgraph-no-such-rg").available()
        assert not GrepBackend("hdlgraph-no-such-grep").available()

    def test_ripgrep_json_parsing(
        self, monkeypatch: pytest.MonkeyPatch, scope: TextSearchScope, source_file: Path
    ) -> None:
        events = [
            {"type": "begin", "data": {"path": {"text": str(source_file)}}},
            {
                "type": "match",
                "data": {
                    "path": {"text": str(source_file)},
                    "lines": {"text": "  always @(*) begin\n"},
                    "line_number": 3,
                    "submatches": [{"start": 2, "end": 8}],
                },
            },
            {"type": "end", "data": {}},
        ]
        output = "\n".join(json.dumps(e) for e in events)
        commands: list[list[str]] = []

        def run(cmd: list[str], name: str, cwd: Path | None = None) -> str:
            commands.append(cmd)
            return output

        monkeypatch.setattr(textsearch, "_run", run)

        results = RipgrepBackend().search("always", scope, 10)

        assert results == [TextMatch(source_file.resolve(), 3, 3, "always @(*) begin")]
        assert commands[0][-2:] == ["always", str(source_file)]

    def test_grep_output_parsing(
        self, monkeypatch: pytest.MonkeyPatch, scope: TextSearchScope, source_file: Path
    ) -> None:
        output = f"{source_file}:3:  always @(*) begin\n{source_file}:2:  // Always block\n"
        monkeypatch.setattr(textsearch, "_run", lambda cmd, name, cwd=None: output)

        results = GrepBackend().search("always", scope, 1)

        assert len(results) == 1
        assert results[0].line == 3
        assert results[0].column == 3

    def test_grep_searches_only_scope_files(
        self, monkeypatch: pytest.MonkeyPatch, scope: TextSearchScope, source_file: Path
    ) -> None:
        other = source_file.parent / "gen" / "big_tb.v"
        output = f"{other}:1:always\n{source_file}:3:  always @(*) begin\n"
        commands: list[list[str]] = []

        def run(cmd: list[str], name: str, cwd: Path | None = None) -> str:
            commands.append(cmd)
            return output

        monkeypatch.setattr(textsearch, "_run", run)

        results = GrepBackend().search("always", scope, 10)

        assert [(m.file, m.line) for m in results] == [(source_file.resolve(), 3)]
        assert commands[0][-1] == str(source_file)
        assert str(source_file.parent) not in commands[0][:-1]

    def test_paths_are_batched(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, source_file: Path
    ) -> None:
        second = tmp_path / "b.v"
        second.write_text(SOURCE)
        scope = TextSearchScope(root=tmp_path, files=lambda: [source_file, second])
        commands: list[list[str]] = []

        def run(cmd: list[str], name: str, cwd: Path | None = None) -> str:
            commands.append(cmd)
            return ""

        monkeypatch.setattr(textsearch, "_BATCH_SIZE", 1)
        monkeypatch.setattr(textsearch, "_run", run)

        GrepBackend().search("always", scope, 10)

        assert [cmd[-1] for cmd in commands] == [str(source_file), str(second)]

    def test_empty_scope_runs_nothing(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        def run(cmd: list[str], name: str, cwd: Path | None = None) -> str:
            raise AssertionError("no files to search")

        monkeypatch.setattr(textsearch, "_run", run)
        scope = TextSearchScope(root=tmp_path)

        assert RipgrepBackend().search("always", scope, 10) == []
        assert GrepBackend().search("always", scope, 10) == []

    def test_in_memory_content_replaces_disk(self, tmp_path: Path, source_file: Path) -> None:
        scope = TextSearchScope(
            root=tmp_path,
            files=lambda: [source_file],
            contents=lambda: {source_file: "module alu;\n  wire needle;\nendmodule\n"},
        )
        searcher = TextSearcher([ScanBackend()])

        assert scope.disk_files() == []
        assert searcher.search("always", scope) == []
        assert searcher.search("needle", scope) == [
            TextMatch(source_file, 2, 8, "wire needle;")
        ]
