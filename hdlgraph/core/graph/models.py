"""Data models for module graph operations."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from hdlgraph.core.models import Instance, Port


@dataclass
class ModuleNode:
    """Aggregated view of one module definition."""

    name: str
    file: Path
    line: int
    end_line: int
    ports: list[Port] = field(default_factory=list)
    instances: list[Instance] = field(default_factory=list)
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.name

    def get_port(self, name: str) -> Port | None:
        for port in self.ports:
            if port.name == name:
                return port
        return None


@dataclass(frozen=True)
class FlowEndpoint:
    """One side of a signal flow: a port (or local signal) of a module."""

    module: str
    port: str
    instance: str | None = None


@dataclass(frozen=True)
class SignalFlow:
    """A signal crossing one instantiation boundary."""

    source: FlowEndpoint
    sink: FlowEndpoint
    signal: str
    path: tuple[str, str]


@dataclass
class SignalImpact:
    """Everything a named signal touches across instantiation boundaries."""

    signal: str
    sources: list[FlowEndpoint] = field(default_factory=list)
    sinks: list[FlowEndpoint] = field(default_factory=list)
    affected_modules: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.sources or self.sinks)


@dataclass
class ModuleComplexity:
    """Size metrics for one module."""

    module: str
    instance_count: int
    port_count: int
    connection_count: int
    hierarchy_depth: int


@dataclass
class TreeNode:
    """A node in the instance hierarchy tree."""

    module: str
    instance: str | None
    depth: int
    resolved: bool = True
    children: list[TreeNode] = field(default_factory=list)

    def __iter__(self) -> Iterator[TreeNode]:
        """Pre-order traversal."""
        yield self
        for child in self.children:
            yield from child

    def __len__(self) -> int:
        """Total nodes in subtree."""
        return 1 + sum(len(c) for c in self.children)
