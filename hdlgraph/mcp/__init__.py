"""
MCP server for hdlgraph.

Exposes symbol search and module hierarchy analysis to LLMs via the Model
Context Protocol.

Tools:
    - hdl_search: Ranked symbol search with full-text fallback
    - hdl_find: Exact symbol lookup
    - hdl_hierarchy: Instance tree below a module
    - hdl_path: Instantiation path between two modules
    - hdl_impact: Sources and sinks of a signal
    - hdl_complexity: Size and depth metrics of a module
    - hdl_describe: Ports, parameters, instances and neighbours of a module
    - hdl_stats: Get index statistics

Usage:
    Run: hdlgraph-mcp (from a directory indexed with 'hdlgraph index .')
"""

import asyncio

from hdlgraph.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
