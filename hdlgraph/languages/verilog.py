"""Verilog/SystemVerilog extractor built on a comment-aware source scanner."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field
from pathlib import Path

from hdlgraph.core.exceptions import ExtractionError
from hdlgraph.core.models import (
    Connection,
    Instance,
    ModuleDefinition,
    Port,
    PortDirection,
    SymbolKind,
)
from hdlgraph.languages.models import ExtractedSymbol, ExtractionResult

VERILOG_EXTENSIONS = frozenset({".v", ".sv", ".svh", ".vh"})

_IDENT = r"[A-Za-z_][\w$]*"

_MODULE_RE = re.compile(rf"\b(?:module|macromodule)\s+(?:(?:automatic|static)\s+)?({_IDENT})")
_ENDMODULE_RE = re.compile(r"\bendmodule\b")
_ROUTINE_RE = re.compile(r"\b(function|task)\b")
_PORT_DECL_RE = re.compile(r"\b(input|output|inout)\b([^;]*);")
_SIGNAL_DECL_RE = re.compile(r"(?m)^[ \t]*(wire|reg|logic|tri|wand|wor|bit)\b([^;]*);")
_PARAM_DECL_RE = re.compile(r"\b(parameter|localparam)\b([^;]*);")
_INSTANCE_RE = re.compile(rf"(?m)^[ \t]*({_IDENT})\s*(#\s*\()?")
_INSTANCE_NAME_RE = re.compile(rf"\s*({_IDENT})\s*((?:\[[^\]]*\]\s*)*)\(")
_NAMED_CONN_RE = re.compile(rf"^\.\s*({_IDENT})\s*(?:\((.*)\))?$", re.DOTALL)
_TRAILING_IDENT_RE = re.compile(rf"({_IDENT})\s*$")
_TRAILING_DIMS_RE = re.compile(r"\s*\[[^\[\]]*\]\s*$")
_DIRECTION_RE = re.compile(r"^(input|output|inout)\b\s*(.*)$", re.DOTALL)

# Identifiers that can start a line but never name a module type.
_KEYWORDS = frozenset(
    {
        "always", "always_comb", "always_ff", "always_latch", "and", "assert", "assign",
        "assume", "automatic", "begin", "bit", "buf", "byte", "case", "casex", "casez",
        "class", "cover", "default", "defparam", "disable", "do", "else", "end",
        "endcase", "endfunction", "endgenerate", "endmodule", "endtask", "enum", "event",
        "final", "for", "force", "foreach", "forever", "fork", "function", "generate",
        "genvar", "if", "import", "initial", "inout", "input", "int", "integer", "join",
        "localparam", "logic", "module", "nand", "nor", "not", "or", "output", "package",
        "parameter", "real", "reg", "release", "repeat", "return", "signed", "specify",
        "static", "struct", "supply0", "supply1", "task", "tri", "typedef", "union",
        "unique", "unsigned", "var", "void", "wait", "wand", "while", "wire", "wor",
        "xnor", "xor",
    }
)

_OPENERS = {"(": ")", "[": "]", "{": "}"}


class VerilogExtractor:
    """Extractor for Verilog and SystemVerilog source files."""

    def supports(self, file: Path) -> bool:
        """Check if this extractor supports the given file."""
        return file.suffix.lower() in VERILOG_EXTENSIONS

    def extract(self, file: Path, content: str) -> ExtractionResult:
        """Extract symbols, module definitions and instances from content."""
        if "\x00" in content:
            raise ExtractionError(file, "binary content")

        scanner = _Scanner(file, strip_comments(content))
        scanner.scan()
        return ExtractionResult(
            file=file,
            symbols=scanner.symbols,
            modules=scanner.modules,
            instances=scanner.instances,
        )


@dataclass
class _ModuleScope:
    """Offsets of one module declaration within the stripped text."""

    name: str
    start: int
    header_end: int
    end: int
    routines: list[tuple[int, int]] = field(default_factory=list)

    def in_routine(self, offset: int) -> bool:
        return any(start <= offset < end for start, end in self.routines)


class _Scanner:
    """Walks comment-free source text and collects declarations."""

    def __init__(self, file: Path, text: str) -> None:
        self.file = file
        self.text = text
        self.symbols: list[ExtractedSymbol] = []
        self.modules: list[ModuleDefinition] = []
        self.instances: list[Instance] = []
        self._newlines = [i for i, ch in enumerate(text) if ch == "\n"]

    def line_of(self, offset: int) -> int:
        """1-based line number of a character offset."""
        return bisect.bisect_left(self._newlines, offset) + 1

    def _emit(self, name: str, kind: SymbolKind, start: int, end: int, node_type: str) -> None:
        self.symbols.append(
            ExtractedSymbol(
                name=name,
                kind=kind,
                line=self.line_of(start),
                end_line=self.line_of(end),
                node_type=node_type,
            )
        )

    def scan(self) -> None:
        pos = 0
        while True:
            match = _MODULE_RE.search(self.text, pos)
            if match is None:
                break
            end_match = _ENDMODULE_RE.search(self.text, match.end())
            end = end_match.start() if end_match else len(self.text)
            self._scan_module(match, end)
            pos = end_match.end() if end_match else len(self.text)

    def _scan_module(self, match: re.Match[str], end: int) -> None:
        name = match.group(1)
        text = self.text
        pos = _skip_space(text, match.end())

        if text.startswith("#", pos):
            open_idx = _skip_space(text, pos + 1)
            close_idx = find_matching(text, open_idx)
            if close_idx is not None and close_idx < end:
                self._scan_parameters(open_idx + 1, close_idx, "parameter_port_declaration")
                pos = _skip_space(text, close_idx + 1)

        header_ports: list[tuple[Port | None, str, int]] = []
        if text.startswith("(", pos):
            close_idx = find_matching(text, pos)
            if close_idx is not None and close_idx < end:
                header_ports = self._parse_port_list(pos + 1, close_idx)
                pos = close_idx + 1

        semicolon = text.find(";", pos, end)
        header_end = semicolon + 1 if semicolon != -1 else pos
        scope = _ModuleScope(name=name, start=match.start(), header_end=header_end, end=end)
        scope.routines = self._scan_routines(scope)

        ports: list[Port] = []
        ansi_ports = [(port, offset) for port, _, offset in header_ports if port is not None]
        if header_ports and len(ansi_ports) == len(header_ports):
            ports = [port for port, _ in ansi_ports]
            for port, offset in ansi_ports:
                self._emit(port.name, SymbolKind.PORT, offset, offset, "ansi_port_declaration")
        else:
            declared = self._scan_body_ports(scope)
            order = [port_name for _, port_name, _ in header_ports] or list(declared)
            for port_name in order:
                port = declared.get(port_name, Port(port_name, PortDirection.INOUT))
                ports.append(port)

        self._emit(name, SymbolKind.MODULE, match.start(), end, "module_declaration")
        self.modules.append(
            ModuleDefinition(
                name=name,
                file=self.file,
                line=self.line_of(match.start()),
                end_line=self.line_of(end),
                ports=ports,
            )
        )

        self._scan_signals(scope)
        self._scan_parameters(header_end, end, "parameter_declaration", scope=scope)
        self._scan_instances(scope)

    def _parse_port_list(self, start: int, end: int) -> list[tuple[Port | None, str, int]]:
        """Parse a header port list.

        Returns (port, name, offset) tuples. ``port`` is None for non-ANSI
        entries whose direction is declared in the module body.
        """
        result: list[tuple[Port | None, str, int]] = []
        direction: PortDirection | None = None
        port_type = "wire"
        for segment, offset in split_top_level(self.text, start, end):
            stripped = segment.strip()
            if not stripped:
                continue
            dir_match = _DIRECTION_RE.match(stripped)
            if dir_match:
                direction = PortDirection(dir_match.group(1))
                declaration = dir_match.group(2)
                port_name = declared_name(declaration)
                if port_name is None:
                    continue
                port_type = _type_before(declaration, port_name) or "wire"
            else:
                port_name = declared_name(stripped)
                if port_name is None:
                    continue
                explicit_type = _type_before(stripped, port_name)
                if explicit_type and direction is not None:
                    port_type = explicit_type
            name_offset = offset + _name_offset(segment, port_name)
            port = Port(port_name, direction, port_type) if direction is not None else None
            result.append((port, port_name, name_offset))
        return result

    def _scan_routines(self, scope: _ModuleScope) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        pos = scope.header_end
        while True:
            match = _ROUTINE_RE.search(self.text, pos, scope.end)
            if match is None:
                break
            keyword = match.group(1)
            closer = re.compile(rf"\bend{keyword}\b")
            end_match = closer.search(self.text, match.end(), scope.end)
            span_end = end_match.end() if end_match else scope.end

            terminator = _first_of(self.text, match.end(), span_end, "(;")
            name = declared_name(self.text[match.end() : terminator])
            if name is not None:
                kind = SymbolKind.FUNCTION if keyword == "function" else SymbolKind.TASK
                self._emit(name, kind, match.start(), span_end, f"{keyword}_declaration")
            spans.append((match.start(), span_end))
            pos = span_end
        return spans

    def _scan_body_ports(self, scope: _ModuleScope) -> dict[str, Port]:
        declared: dict[str, Port] = {}
        for match in _PORT_DECL_RE.finditer(self.text, scope.header_end, scope.end):
            if scope.in_routine(match.start()):
                continue
            direction = PortDirection(match.group(1))
            port_type = "wire"
            for segment, offset in split_top_level(self.text, match.start(2), match.end(2)):
                port_name = declared_name(segment)
                if port_name is None:
                    continue
                explicit_type = _type_before(segment, port_name)
                if explicit_type:
                    port_type = explicit_type
                declared[port_name] = Port(port_name, direction, port_type)
                name_offset = offset + _name_offset(segment, port_name)
                self._emit(port_name, SymbolKind.PORT, name_offset, name_offset, "port_declaration")
        return declared

    def _scan_signals(self, scope: _ModuleScope) -> None:
        for match in _SIGNAL_DECL_RE.finditer(self.text, scope.header_end, scope.end):
            if scope.in_routine(match.start()):
                continue
            is_net = match.group(1) in ("wire", "tri", "wand", "wor")
            node_type = "net_declaration" if is_net else "data_declaration"
            for segment, offset in split_top_level(self.text, match.start(2), match.end(2)):
                name = declared_name(segment)
                if name is not None:
                    name_offset = offset + _name_offset(segment, name)
                    self._emit(name, SymbolKind.SIGNAL, name_offset, name_offset, node_type)

    def _scan_parameters(
        self,
        start: int,
        end: int,
        node_type: str,
        scope: _ModuleScope | None = None,
    ) -> None:
        if node_type == "parameter_port_declaration":
            chunks = [(start, end)]
        else:
            chunks = [
                (m.start(2), m.end(2))
                for m in _PARAM_DECL_RE.finditer(self.text, start, end)
                if scope is None or not scope.in_routine(m.start())
            ]
        for chunk_start, chunk_end in chunks:
            for segment, offset in split_top_level(self.text, chunk_start, chunk_end):
                head = segment.split("=", 1)[0]
                head = re.sub(r"^\s*(parameter|localparam)\b", "", head)
                name = declared_name(head)
                if name is None:
                    continue
                name_offset = offset + _name_offset(segment, name)
                self._emit(name, SymbolKind.CONSTANT, name_offset, name_offset, node_type)

    def _scan_instances(self, scope: _ModuleScope) -> None:
        text = self.text
        pos = scope.header_end
        while True:
            match = _INSTANCE_RE.search(text, pos, scope.end)
            if match is None:
                break
            pos = match.end()
            module_type = match.group(1)
            if module_type in _KEYWORDS or scope.in_routine(match.start()):
                continue

            cursor = match.end()
            parameters: dict[str, str] = {}
            if match.group(2):
                close_idx = find_matching(text, cursor - 1)
                if close_idx is None or close_idx >= scope.end:
                    continue
                parameters = parse_bindings(text[cursor:close_idx])
                cursor = close_idx + 1

            name_match = _INSTANCE_NAME_RE.match(text, cursor, scope.end)
            if name_match is None or name_match.group(1) in _KEYWORDS:
                continue
            open_idx = name_match.end() - 1
            close_idx = find_matching(text, open_idx)
            if close_idx is None or close_idx >= scope.end:
                continue
            tail = _skip_space(text, close_idx + 1)
            if not text.startswith((";", ","), tail):
                continue

            instance_name = name_match.group(1)
            connections = parse_connections(text[open_idx + 1 : close_idx])
            name_offset = name_match.start(1)
            self.instances.append(
                Instance(
                    name=instance_name,
                    module_type=module_type,
                    file=self.file,
                    line=self.line_of(name_offset),
                    connections=connections,
                    parameters=parameters,
                )
            )
            self._emit(
                instance_name, SymbolKind.INSTANCE, name_offset, close_idx, "module_instantiation"
            )
            pos = tail + 1


def strip_comments(text: str) -> str:
    """Blank out // and /* */ comments, keeping offsets and line breaks intact."""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            j = i + 1
            while j < n and text[j] not in '"\n':
                j += 2 if text[j] == "\\" else 1
            j = min(j + 1, n)
            out.append(text[i:j])
            i = j
        elif text.startswith("//", i):
            j = text.find("\n", i)
            j = n if j == -1 else j
            out.append(" " * (j - i))
            i = j
        elif text.startswith("/*", i):
            j = text.find("*/", i + 2)
            j = n if j == -1 else j + 2
            out.append(re.sub(r"[^\n]", " ", text[i:j]))
            i = j
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def find_matching(text: str, open_idx: int) -> int | None:
    """Index of the bracket closing the one at ``open_idx``, or None."""
    if open_idx >= len(text) or text[open_idx] not in _OPENERS:
        return None
    stack = [_OPENERS[text[open_idx]]]
    for i in range(open_idx + 1, len(text)):
        ch = text[i]
        if ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ")]}":
            if ch != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return i
    return None


def split_top_level(text: str, start: int, end: int) -> list[tuple[str, int]]:
    """Split text[start:end] on commas outside brackets. Returns (segment, offset) pairs."""
    segments: list[tuple[str, int]] = []
    depth = 0
    seg_start = start
    for i in range(start, end):
        ch = text[i]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            segments.append((text[seg_start:i], seg_start))
            seg_start = i + 1
    segments.append((text[seg_start:end], seg_start))
    return segments


def declared_name(declaration: str) -> str | None:
    """Name introduced by a declaration fragment such as ``logic [7:0] data [4]``."""
    head = _cut_top_level(declaration, "=").strip()
    while True:
        trimmed = _TRAILING_DIMS_RE.sub("", head)
        if trimmed == head:
            break
        head = trimmed
    match = _TRAILING_IDENT_RE.search(head)
    if match is None or match.group(1) in _KEYWORDS:
        return None
    return match.group(1)


def parse_connections(text: str) -> list[Connection]:
    """Parse the port connection list of an instantiation."""
    connections: list[Connection] = []
    position = 0
    for segment, _ in split_top_level(text, 0, len(text)):
        stripped = " ".join(segment.split())
        if not stripped:
            continue
        if stripped == ".*":
            continue
        named = _NAMED_CONN_RE.match(stripped)
        if named:
            signal = named.group(2)
            signal_name = signal.strip() if signal is not None else named.group(1)
            connections.append(Connection(port_name=named.group(1), signal_name=signal_name))
        else:
            connections.append(Connection(port_name="", signal_name=stripped, position=position))
        position += 1
    return connections


def parse_bindings(text: str) -> dict[str, str]:
    """Parse a ``#(...)`` parameter override list into name -> value."""
    bindings: dict[str, str] = {}
    for index, (segment, _) in enumerate(split_top_level(text, 0, len(text))):
        stripped = " ".join(segment.split())
        if not stripped:
            continue
        named = _NAMED_CONN_RE.match(stripped)
        if named:
            bindings[named.group(1)] = (named.group(2) or "").strip()
        else:
            bindings[f"#{index}"] = stripped
    return bindings


def _cut_top_level(text: str, sep: str) -> str:
    depth = 0
    for i, ch in enumerate(text):
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == sep and depth == 0:
            return text[:i]
    return text


def _type_before(declaration: str, name: str) -> str:
    head = _cut_top_level(declaration, "=")
    idx = head.rfind(name)
    prefix = head[:idx] if idx != -1 else ""
    return " ".join(prefix.split())


def _skip_space(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _first_of(text: str, start: int, end: int, chars: str) -> int:
    for i in range(start, end):
        if text[i] in chars:
            return i
    return end


def _name_offset(segment: str, name: str) -> int:
    return max(_cut_top_level(segment, "=").rfind(name), 0)
