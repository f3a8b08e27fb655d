"""Module graph storage operations."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable
from pathlib import Path

from hdlgraph.core.graph.base import ModuleGraph
from hdlgraph.core.graph.models import FlowEndpoint, ModuleNode, SignalFlow
from hdlgraph.core.models import Instance
from hdlgraph.core.storage.designs import (
    decode_connections,
    decode_ports,
    encode_connections,
    encode_ports,
)


class GraphStorage:
    """Storage operations for a built ModuleGraph."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def save(self, graph: ModuleGraph) -> None:
        """Write nodes, edges, unresolved references and signal flows."""
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT INTO graph_nodes
                (position, name, file, line, end_line, ports, instances, parameters)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    position,
                    node.name,
                    str(node.file),
                    node.line,
                    node.end_line,
                    json.dumps(encode_ports(node.ports)),
                    json.dumps([_encode_instance(i) for i in node.instances]),
                    json.dumps(node.parameters),
                )
                for position, node in enumerate(graph.nodes.values())
            ],
        )
        conn.executemany(
            "INSERT INTO graph_edges (position, parent, child) VALUES (?, ?, ?)",
            [(position, parent, child) for position, (parent, child) in enumerate(graph.edges())],
        )
        conn.executemany(
            "INSERT INTO graph_unresolved (parent, module_type) VALUES (?, ?)",
            [(parent, t) for parent, types in graph.unresolved.items() for t in types],
        )
        conn.executemany(
            """
            INSERT INTO signal_flows (position, signal, source_module, source_port, source_instance,
                                      sink_module, sink_port, sink_instance, parent, child)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    position,
                    flow.signal,
                    flow.source.module,
                    flow.source.port,
                    flow.source.instance,
                    flow.sink.module,
                    flow.sink.port,
                    flow.sink.instance,
                    flow.path[0],
                    flow.path[1],
                )
                for position, flow in enumerate(graph.signal_flows)
            ],
        )

    def load(self) -> ModuleGraph:
        """Rebuild a ModuleGraph exactly as it was saved."""
        conn = self._get_connection()
        graph = ModuleGraph()

        for row in conn.execute("SELECT * FROM graph_nodes ORDER BY position").fetchall():
            graph.add_node(
                ModuleNode(
                    name=row["name"],
                    file=Path(row["file"]),
                    line=row["line"],
                    end_line=row["end_line"],
                    ports=decode_ports(json.loads(row["ports"])),
                    instances=[_decode_instance(d) for d in json.loads(row["instances"])],
                    parameters=json.loads(row["parameters"]),
                )
            )

        for row in conn.execute("SELECT * FROM graph_edges ORDER BY position").fetchall():
            graph.add_edge(row["parent"], row["child"])

        for row in conn.execute("SELECT * FROM graph_unresolved ORDER BY rowid").fetchall():
            graph.add_unresolved(row["parent"], row["module_type"])

        for row in conn.execute("SELECT * FROM signal_flows ORDER BY position").fetchall():
            graph.add_flow(
                SignalFlow(
                    source=FlowEndpoint(
                        row["source_module"], row["source_port"], row["source_instance"]
                    ),
                    sink=FlowEndpoint(row["sink_module"], row["sink_port"], row["sink_instance"]),
                    signal=row["signal"],
                    path=(row["parent"], row["child"]),
                )
            )

        return graph

    def count_nodes(self) -> int:
        return self._get_connection().execute("SELECT COUNT(*) FROM graph_nodes").fetchone()[0]

    def clear(self) -> None:
        conn = self._get_connection()
        for table in ("graph_nodes", "graph_edges", "graph_unresolved", "signal_flows"):
            conn.execute(f"DELETE FROM {table}")


def _encode_instance(instance: Instance) -> dict[str, object]:
    return {
        "name": instance.name,
        "module_type": instance.module_type,
        "file": str(instance.file),
        "line": instance.line,
        "connections": encode_connections(instance.connections),
        "parameters": instance.parameters,
    }


def _decode_instance(data: dict[str, object]) -> Instance:
    return Instance(
        name=str(data["name"]),
        module_type=str(data["module_type"]),
        file=Path(str(data["file"])),
        line=int(data["line"]),  # type: ignore[call-overload]
        connections=decode_connections(data["connections"]),  # type: ignore[arg-type]
        parameters=dict(data["parameters"]),  # type: ignore[call-overload]
    )
