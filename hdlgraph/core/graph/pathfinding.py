"""Path finding over instantiation edges."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hdlgraph.core.graph.base import ModuleGraph


def find_module_path(graph: ModuleGraph, from_name: str, to_name: str) -> list[str] | None:
    """First instantiation path found by DFS from one module to another.

    Each module is expanded at most once, so cycles are pruned. O(V + E).
    """
    if from_name not in graph.nodes or to_name not in graph.nodes:
        return None

    visited: set[str] = set()
    path: list[str] = []

    def dfs(current: str) -> bool:
        if current == to_name:
            path.append(current)
            return True
        if current in visited:
            return False

        visited.add(current)
        path.append(current)
        for child in graph._out.get(current, []):
            if dfs(child):
                return True
        path.pop()
        return False

    return path if dfs(from_name) else None
