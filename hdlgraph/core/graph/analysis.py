"""Graph analysis: roots, leaves, critical path, complexity, signal impact, cycles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from hdlgraph.core.graph.models import FlowEndpoint, ModuleComplexity, SignalImpact

if TYPE_CHECKING:
    from hdlgraph.core.graph.base import ModuleGraph


def get_top_level_modules(graph: ModuleGraph) -> list[str]:
    """Modules nothing instantiates (in-degree = 0). O(V)."""
    return [name for name in graph.nodes if not graph._in.get(name)]


def get_leaf_modules(graph: ModuleGraph) -> list[str]:
    """Modules that instantiate no known module (out-degree = 0). O(V)."""
    return [name for name in graph.nodes if not graph._out.get(name)]


def get_module_hierarchy(graph: ModuleGraph) -> dict[str, list[str]]:
    """Map each instantiating module to the module types it instantiates."""
    return {name: sorted(children) for name, children in graph._out.items() if children}


def get_signal_impact(graph: ModuleGraph, signal: str) -> SignalImpact:
    """Distinct source and sink ports of every flow carrying ``signal``. O(F)."""
    impact = SignalImpact(signal=signal)
    seen_sources: set[FlowEndpoint] = set()
    seen_sinks: set[FlowEndpoint] = set()
    affected: dict[str, None] = {}

    for flow in graph.signal_flows:
        if flow.signal != signal:
            continue
        if flow.source not in seen_sources:
            seen_sources.add(flow.source)
            impact.sources.append(flow.source)
        if flow.sink not in seen_sinks:
            seen_sinks.add(flow.sink)
            impact.sinks.append(flow.sink)
        affected[flow.source.module] = None
        affected[flow.sink.module] = None

    impact.affected_modules = list(affected)
    return impact


def get_critical_path(graph: ModuleGraph) -> list[str]:
    """Longest instantiation chain from a top-level module to a leaf.

    Depth-first from every top-level module. Modules already on the current
    path are skipped and released again on backtrack, so a malformed cyclic
    hierarchy still terminates and a module can appear on chains reached
    through different ancestors. Ties keep the first chain found.
    """
    on_path: set[str] = set()

    def longest_from(name: str) -> list[str] | None:
        children = graph._out.get(name, [])
        if not children:
            return [name]

        on_path.add(name)
        longest: list[str] | None = None
        for child in children:
            if child in on_path:
                continue
            candidate = longest_from(child)
            if candidate is not None and (longest is None or len(candidate) > len(longest)):
                longest = candidate
        on_path.discard(name)
        return [name, *longest] if longest is not None else None

    critical: list[str] = []
    for top in get_top_level_modules(graph):
        path = longest_from(top)
        if path is not None and len(path) > len(critical):
            critical = path
    return critical


def get_hierarchy_depth(graph: ModuleGraph, name: str) -> int:
    """Length of the longest forward chain starting at a module (a leaf is 1)."""
    if name not in graph.nodes:
        return 0

    on_path: set[str] = set()

    def dfs(module: str) -> int:
        on_path.add(module)
        deepest = 0
        for child in graph._out.get(module, []):
            if child not in on_path:
                deepest = max(deepest, dfs(child))
        on_path.discard(module)
        return deepest + 1

    return dfs(name)


def get_module_complexity(graph: ModuleGraph, name: str) -> ModuleComplexity | None:
    """Instance, port and connection counts plus hierarchy depth, or None if unknown."""
    node = graph.get_node(name)
    if node is None:
        return None
    return ModuleComplexity(
        module=name,
        instance_count=len(node.instances),
        port_count=len(node.ports),
        connection_count=sum(len(instance.connections) for instance in node.instances),
        hierarchy_depth=get_hierarchy_depth(graph, name),
    )


def find_cycles(graph: ModuleGraph, max_cycles: int = 10) -> list[list[str]]:
    """Find instantiation cycles (only possible with malformed input)."""
    cycles: list[list[str]] = []
    visited: set[str] = set()
    stack: list[str] = []
    stack_set: set[str] = set()

    def dfs(name: str) -> None:
        if len(cycles) >= max_cycles:
            return

        visited.add(name)
        stack.append(name)
        stack_set.add(name)

        for child in graph._out.get(name, []):
            if child not in visited:
                dfs(child)
            elif child in stack_set and len(cycles) < max_cycles:
                idx = stack.index(child)
                cycles.append(stack[idx:])

        stack.pop()
        stack_set.remove(name)

    for name in graph.nodes:
        if name not in visited:
            dfs(name)

    return cycles


def describe_module(graph: ModuleGraph, name: str) -> dict[str, Any] | None:
    """Structured context about one module for explanation generators."""
    node = graph.get_node(name)
    complexity = get_module_complexity(graph, name)
    if node is None or complexity is None:
        return None
    return {
        "name": node.name,
        "file": str(node.file),
        "line": node.line,
        "end_line": node.end_line,
        "ports": [
            {"name": p.name, "direction": p.direction.value, "type": p.type} for p in node.ports
        ],
        "parameters": dict(node.parameters),
        "instances": [
            {
                "name": instance.name,
                "module_type": instance.module_type,
                "line": instance.line,
                "connections": [
                    {
                        "port": c.port_name,
                        "signal": c.signal_name,
                        "direction": c.direction.value if c.direction else None,
                    }
                    for c in instance.connections
                ],
                "parameters": dict(instance.parameters),
            }
            for instance in node.instances
        ],
        "parents": graph.get_parents(name),
        "children": graph.get_children(name),
        "unresolved_children": graph.get_unresolved(name),
        "complexity": {
            "instance_count": complexity.instance_count,
            "port_count": complexity.port_count,
            "connection_count": complexity.connection_count,
            "hierarchy_depth": complexity.hierarchy_depth,
        },
    }
