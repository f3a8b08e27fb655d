"""Build a ModuleGraph from module definitions and instance records."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from hdlgraph.core.graph.base import ModuleGraph
from hdlgraph.core.graph.models import FlowEndpoint, ModuleNode, SignalFlow
from hdlgraph.core.models import Connection, Instance, ModuleDefinition, Port, PortDirection
from hdlgraph.logging import get_logger

logger = get_logger("graph")


def build_graph(
    modules: Iterable[ModuleDefinition],
    instances: Iterable[Instance],
    graph: ModuleGraph | None = None,
) -> ModuleGraph:
    """Build the instantiation and signal-flow graph. O(M + I + C).

    Any state already held by ``graph`` is discarded first.
    """
    graph = graph if graph is not None else ModuleGraph()
    graph.clear()

    modules = list(modules)
    instances = list(instances)
    logger.debug("Building module graph: %d modules, %d instances", len(modules), len(instances))

    by_file: dict[Path, list[ModuleDefinition]] = {}
    for module in modules:
        by_file.setdefault(module.file, []).append(module)
        node = ModuleNode(
            name=module.name,
            file=module.file,
            line=module.line,
            end_line=module.end_line,
            ports=list(module.ports),
        )
        if not graph.add_node(node):
            existing = graph.nodes[module.name]
            logger.warning(
                "Module %s declared in %s and %s; keeping the first",
                module.name,
                existing.file,
                module.file,
            )

    orphans = 0
    for instance in instances:
        parent = find_enclosing_module(instance, by_file.get(instance.file, []))
        if parent is None:
            orphans += 1
            continue

        child = graph.get_node(instance.module_type)
        resolved = replace(instance, connections=_resolve_connections(instance, child))
        graph.nodes[parent.name].instances.append(resolved)

        if child is None:
            graph.add_unresolved(parent.name, instance.module_type)
            continue
        graph.add_edge(parent.name, child.name)
        child.parameters.update(instance.parameters)

    if orphans:
        logger.debug("%d instances are outside any known module", orphans)

    _build_signal_flows(graph)

    logger.info(
        "Graph built: %d nodes, %d edges, %d signal flows",
        graph.num_nodes,
        graph.num_edges,
        len(graph.signal_flows),
    )
    return graph


def find_enclosing_module(
    instance: Instance, candidates: list[ModuleDefinition]
) -> ModuleDefinition | None:
    """Pick the module of the same file whose line range contains the instance.

    Falls back to the first module of the file when no range matches.
    """
    for module in candidates:
        if module.contains_line(instance.line):
            return module
    return candidates[0] if candidates else None


def _resolve_connections(instance: Instance, child: ModuleNode | None) -> list[Connection]:
    """Copy connections, naming positional ones and filling in port directions."""
    resolved: list[Connection] = []
    for connection in instance.connections:
        port = _find_port(connection, child) if child is not None else None
        if port is None:
            resolved.append(replace(connection))
            continue
        resolved.append(replace(connection, port_name=port.name, direction=port.direction))
    return resolved


def _find_port(connection: Connection, child: ModuleNode) -> Port | None:
    if connection.port_name:
        return child.get_port(connection.port_name)
    if connection.position is not None and 0 <= connection.position < len(child.ports):
        return child.ports[connection.position]
    return None


def _build_signal_flows(graph: ModuleGraph) -> None:
    for parent_name, node in graph.nodes.items():
        for instance in node.instances:
            if instance.module_type not in graph:
                continue
            for connection in instance.connections:
                for flow in _trace_signal_flow(parent_name, instance, connection):
                    graph.add_flow(flow)


def _trace_signal_flow(
    parent: str, instance: Instance, connection: Connection
) -> list[SignalFlow]:
    if connection.direction is None:
        return []

    outer = FlowEndpoint(module=parent, port=connection.signal_name)
    inner = FlowEndpoint(
        module=instance.module_type,
        port=connection.port_name,
        instance=instance.name,
    )
    path = (parent, instance.module_type)
    signal = connection.signal_name

    inbound = SignalFlow(source=outer, sink=inner, signal=signal, path=path)
    outbound = SignalFlow(source=inner, sink=outer, signal=signal, path=path)
    if connection.direction == PortDirection.INPUT:
        return [inbound]
    if connection.direction == PortDirection.OUTPUT:
        return [outbound]
    return [inbound, outbound]
