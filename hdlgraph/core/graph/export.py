"""Graphviz export of the module hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hdlgraph.core.graph.base import ModuleGraph


def to_dot(graph: ModuleGraph, include_unresolved: bool = False) -> str:
    """Render the instantiation hierarchy as a DOT digraph."""
    lines = [
        "digraph ModuleHierarchy {",
        "  rankdir=TB;",
        "  node [shape=box, style=rounded];",
        "",
    ]

    for name, node in graph.nodes.items():
        label = f"{name}\\n({len(node.instances)} instances, {len(node.ports)} ports)"
        lines.append(f'  "{_escape(name)}" [label="{_escape(label)}"];')

    if include_unresolved:
        external = sorted({t for types in graph.unresolved.values() for t in types})
        for name in external:
            lines.append(f'  "{_escape(name)}" [style=dashed];')

    lines.append("")
    for parent, child in graph.edges():
        lines.append(f'  "{_escape(parent)}" -> "{_escape(child)}";')

    if include_unresolved:
        for parent, types in graph.unresolved.items():
            for module_type in types:
                lines.append(f'  "{_escape(parent)}" -> "{_escape(module_type)}" [style=dashed];')

    lines.append("}")
    return "\n".join(lines) + "\n"


def _escape(text: str) -> str:
    return text.replace('"', '\\"')
