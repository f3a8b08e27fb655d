"""MCP server implementation for hdlgraph."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from hdlgraph.core.exceptions import HdlGraphError, StorageError
from hdlgraph.core.graph.models import FlowEndpoint, TreeNode
from hdlgraph.core.models import Symbol, SymbolKind
from hdlgraph.core.search import SearchResult
from hdlgraph.core.workspace import HdlIndex
from hdlgraph.logging import get_logger

logger = get_logger("mcp")

server = Server("hdlgraph")


def _get_index() -> HdlIndex:
    """Open the saved index for the current directory."""
    try:
        return HdlIndex.open(Path.cwd())
    except StorageError as e:
        raise StorageError(f"{e}\nRun 'hdlgraph index .' first.") from e


def _symbol_to_dict(symbol: Symbol) -> dict[str, Any]:
    """Convert a Symbol to a JSON-serializable dict."""
    return {
        "id": symbol.id,
        "name": symbol.name,
        "kind": symbol.kind.value,
        "file": str(symbol.file),
        "line": symbol.line,
        "end_line": symbol.end_line,
    }


def _result_to_dict(result: SearchResult) -> dict[str, Any]:
    return {
        "type": result.type.value,
        "file": str(result.file),
        "line": result.line,
        "column": result.column,
        "snippet": result.snippet,
        "score": result.score,
        "symbol": _symbol_to_dict(result.symbol) if result.symbol else None,
    }


def _endpoint_to_dict(endpoint: FlowEndpoint) -> dict[str, Any]:
    return {"module": endpoint.module, "port": endpoint.port, "instance": endpoint.instance}


def _tree_to_dict(node: TreeNode) -> dict[str, Any]:
    """Convert a TreeNode to a JSON-serializable dict."""
    return {
        "module": node.module,
        "instance": node.instance,
        "depth": node.depth,
        "resolved": node.resolved,
        "children": [_tree_to_dict(c) for c in node.children],
    }


def _module_schema(description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"module": {"type": "string", "description": description}},
        "required": ["module"],
    }


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="hdl_search",
            description=(
                "Search modules, ports, signals, instances, functions, tasks and parameters "
                "by name with exact/prefix/substring/fuzzy ranking. Falls back to a "
                "full-text search of the source when no symbol matches."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Name or text to search for"},
                    "mode": {
                        "type": "string",
                        "enum": ["symbol", "text"],
                        "description": "'text' searches source text only (optional)",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results (default: 50)",
                        "default": 50,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="hdl_find",
            description="Find symbols by exact name, optionally filtered by kind.",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Exact symbol name"},
                    "kind": {
                        "type": "string",
                        "enum": [k.value for k in SymbolKind],
                        "description": "Filter by symbol kind (optional)",
                    },
                },
                "required": ["name"],
            },
        ),
        Tool(
            name="hdl_hierarchy",
            description=(
                "Instance hierarchy below a module as a tree. Without a module, returns "
                "the trees of all top-level modules."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "module": {"type": "string", "description": "Root module (optional)"},
                    "max_depth": {
                        "type": "integer",
                        "description": "Maximum depth (default: 10)",
                        "default": 10,
                    },
                },
            },
        ),
        Tool(
            name="hdl_path",
            description="Find an instantiation path from one module down to another.",
            inputSchema={
                "type": "object",
                "properties": {
                    "from": {"type": "string", "description": "Ancestor module"},
                    "to": {"type": "string", "description": "Descendant module"},
                },
                "required": ["from", "to"],
            },
        ),
        Tool(
            name="hdl_impact",
            description=(
                "Trace a signal across instantiation boundaries: which ports drive it, "
                "which ports receive it and which modules are involved."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "signal": {"type": "string", "description": "Signal name"},
                },
                "required": ["signal"],
            },
        ),
        Tool(
            name="hdl_complexity",
            description="Instance, port and connection counts plus hierarchy depth of a module.",
            inputSchema=_module_schema("Module name"),
        ),
        Tool(
            name="hdl_describe",
            description=(
                "Structured description of a module: ports, parameters, instances with "
                "connections, parents, children and complexity."
            ),
            inputSchema=_module_schema("Module name"),
        ),
        Tool(
            name="hdl_stats",
            description="Get statistics about the indexed design.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "hdl_search":
            result = _handle_search(
                arguments["query"],
                arguments.get("mode"),
                arguments.get("limit", 50),
            )
        elif name == "hdl_find":
            result = _handle_find(arguments["name"], arguments.get("kind"))
        elif name == "hdl_hierarchy":
            result = _handle_hierarchy(arguments.get("module"), arguments.get("max_depth", 10))
        elif name == "hdl_path":
            result = _handle_path(arguments["from"], arguments["to"])
        elif name == "hdl_impact":
            result = _handle_impact(arguments["signal"])
        elif name == "hdl_complexity":
            result = _handle_complexity(arguments["module"])
        elif name == "hdl_describe":
            result = _handle_describe(arguments["module"])
        elif name == "hdl_stats":
            result = _handle_stats()
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except HdlGraphError as e:
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


def _handle_search(query: str, mode: str | None, limit: int) -> dict[str, Any]:
    """Handle hdl_search tool."""
    results = _get_index().search(query, mode)
    return {
        "total": len(results),
        "results": [_result_to_dict(r) for r in results[:limit]],
    }


def _handle_find(name: str, kind: str | None) -> dict[str, Any]:
    """Handle hdl_find tool."""
    kind_filter = SymbolKind(kind) if kind else None
    symbols = _get_index().find_by_name(name)
    return {
        "results": [
            _symbol_to_dict(s) for s in symbols if kind_filter is None or s.kind == kind_filter
        ],
    }


def _handle_hierarchy(module: str | None, max_depth: int) -> dict[str, Any]:
    """Handle hdl_hierarchy tool."""
    index = _get_index()
    if module is None:
        roots = index.get_top_level_modules()
    else:
        roots = [module]

    trees = [index.get_instance_tree(root, max_depth) for root in roots]
    if module is not None and trees[0] is None:
        return {"error": f"No module named '{module}'"}
    return {
        "top_level": index.get_top_level_modules(),
        "trees": [_tree_to_dict(t) for t in trees if t is not None],
    }


def _handle_path(from_name: str, to_name: str) -> dict[str, Any]:
    """Handle hdl_path tool."""
    path = _get_index().find_module_path(from_name, to_name)
    return {"from": from_name, "to": to_name, "path": path}


def _handle_impact(signal: str) -> dict[str, Any]:
    """Handle hdl_impact tool."""
    impact = _get_index().get_signal_impact(signal)
    return {
        "signal": impact.signal,
        "sources": [_endpoint_to_dict(e) for e in impact.sources],
        "sinks": [_endpoint_to_dict(e) for e in impact.sinks],
        "affected_modules": impact.affected_modules,
    }


def _handle_complexity(module: str) -> dict[str, Any]:
    """Handle hdl_complexity tool."""
    metrics = _get_index().get_module_complexity(module)
    if metrics is None:
        return {"error": f"No module named '{module}'"}
    return {
        "module": metrics.module,
        "instance_count": metrics.instance_count,
        "port_count": metrics.port_count,
        "connection_count": metrics.connection_count,
        "hierarchy_depth": metrics.hierarchy_depth,
    }


def _handle_describe(module: str) -> dict[str, Any]:
    """Handle hdl_describe tool."""
    info = _get_index().describe_module(module)
    if info is None:
        return {"error": f"No module named '{module}'"}
    return info


def _handle_stats() -> dict[str, Any]:
    """Handle hdl_stats tool."""
    index = _get_index()
    return {
        "root": str(index.root),
        **index.stats(),
        "top_level": index.get_top_level_modules(),
        "critical_path": index.get_critical_path(),
    }


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
