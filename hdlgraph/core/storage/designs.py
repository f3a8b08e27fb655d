"""Module definition and instance storage operations."""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from hdlgraph.core.models import Connection, Instance, ModuleDefinition, Port, PortDirection


class DesignStorage:
    """Storage operations for the module definitions and instances an extractor reported."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def insert_modules(self, modules: Iterable[ModuleDefinition]) -> None:
        conn = self._get_connection()
        conn.executemany(
            "INSERT INTO modules (name, file, line, end_line, ports) VALUES (?, ?, ?, ?, ?)",
            [
                (m.name, str(m.file), m.line, m.end_line, json.dumps(encode_ports(m.ports)))
                for m in modules
            ],
        )

    def insert_instances(self, instances: Iterable[Instance]) -> None:
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT INTO instances (name, module_type, file, line, connections, parameters)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    i.name,
                    i.module_type,
                    str(i.file),
                    i.line,
                    json.dumps(encode_connections(i.connections)),
                    json.dumps(i.parameters),
                )
                for i in instances
            ],
        )

    def modules(self) -> list[ModuleDefinition]:
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM modules ORDER BY id")
        return [
            ModuleDefinition(
                name=row["name"],
                file=Path(row["file"]),
                line=row["line"],
                end_line=row["end_line"],
                ports=decode_ports(json.loads(row["ports"])),
            )
            for row in cursor.fetchall()
        ]

    def instances(self) -> list[Instance]:
        conn = self._get_connection()
        cursor = conn.execute("SELECT * FROM instances ORDER BY id")
        return [instance_from_row(row) for row in cursor.fetchall()]

    def clear(self) -> None:
        conn = self._get_connection()
        conn.execute("DELETE FROM modules")
        conn.execute("DELETE FROM instances")


def instance_from_row(row: sqlite3.Row) -> Instance:
    return Instance(
        name=row["name"],
        module_type=row["module_type"],
        file=Path(row["file"]),
        line=row["line"],
        connections=decode_connections(json.loads(row["connections"])),
        parameters=json.loads(row["parameters"]),
    )


def encode_ports(ports: Iterable[Port]) -> list[dict[str, str]]:
    return [{"name": p.name, "direction": p.direction.value, "type": p.type} for p in ports]


def decode_ports(data: list[dict[str, str]]) -> list[Port]:
    return [Port(d["name"], PortDirection(d["direction"]), d["type"]) for d in data]


def encode_connections(connections: Iterable[Connection]) -> list[dict[str, Any]]:
    return [
        {
            "port": c.port_name,
            "signal": c.signal_name,
            "direction": c.direction.value if c.direction else None,
            "position": c.position,
        }
        for c in connections
    ]


def decode_connections(data: list[dict[str, Any]]) -> list[Connection]:
    return [
        Connection(
            port_name=d["port"],
            signal_name=d["signal"],
            direction=PortDirection(d["direction"]) if d["direction"] else None,
            position=d["position"],
        )
        for d in data
    ]
