"""Core ModuleGraph class with adjacency list representation."""

from __future__ import annotations

from collections.abc import Iterator

from hdlgraph.core.graph.models import ModuleNode, SignalFlow


class ModuleGraph:
    """Directed instantiation graph over module names.

    Forward edges point from an instantiating module to each distinct module
    type it instantiates; reverse edges mirror them. Both maps are only
    written through ``add_edge`` so they always stay symmetric.
    """

    __slots__ = ("_nodes", "_out", "_in", "_flows", "_unresolved")

    def __init__(self) -> None:
        self._nodes: dict[str, ModuleNode] = {}
        self._out: dict[str, list[str]] = {}
        self._in: dict[str, list[str]] = {}
        self._flows: list[SignalFlow] = []
        self._unresolved: dict[str, list[str]] = {}

    def add_node(self, node: ModuleNode) -> bool:
        """Add a module node. O(1). Returns False if the name already exists."""
        if node.name in self._nodes:
            return False
        self._nodes[node.name] = node
        self._out.setdefault(node.name, [])
        self._in.setdefault(node.name, [])
        return True

    def add_edge(self, parent: str, child: str) -> None:
        """Add an instantiation edge between two nodes. Repeated edges collapse."""
        if parent not in self._nodes or child not in self._nodes:
            raise KeyError(f"Edge {parent} -> {child} references an unknown module")
        if child not in self._out[parent]:
            self._out[parent].append(child)
            self._in[child].append(parent)

    def add_unresolved(self, parent: str, module_type: str) -> None:
        """Record that ``parent`` instantiates a module type with no definition."""
        targets = self._unresolved.setdefault(parent, [])
        if module_type not in targets:
            targets.append(module_type)

    def add_flow(self, flow: SignalFlow) -> None:
        self._flows.append(flow)

    def get_node(self, name: str) -> ModuleNode | None:
        """Get module node by name. O(1)."""
        return self._nodes.get(name)

    def get_children(self, name: str) -> list[str]:
        """Distinct module types instantiated by a module. O(1)."""
        return list(self._out.get(name, []))

    def get_parents(self, name: str) -> list[str]:
        """Modules that instantiate a module. O(1)."""
        return list(self._in.get(name, []))

    def get_unresolved(self, name: str) -> list[str]:
        return list(self._unresolved.get(name, []))

    def edges(self) -> Iterator[tuple[str, str]]:
        for parent, children in self._out.items():
            for child in children:
                yield parent, child

    def reverse_edges(self) -> Iterator[tuple[str, str]]:
        for child, parents in self._in.items():
            for parent in parents:
                yield child, parent

    def clear(self) -> None:
        self._nodes.clear()
        self._out.clear()
        self._in.clear()
        self._flows.clear()
        self._unresolved.clear()

    @property
    def nodes(self) -> dict[str, ModuleNode]:
        return self._nodes

    @property
    def signal_flows(self) -> list[SignalFlow]:
        return self._flows

    @property
    def unresolved(self) -> dict[str, list[str]]:
        return self._unresolved

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    @property
    def num_edges(self) -> int:
        return sum(len(children) for children in self._out.values())

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __repr__(self) -> str:
        return (
            f"ModuleGraph(nodes={self.num_nodes}, edges={self.num_edges}, "
            f"flows={len(self._flows)})"
        )
