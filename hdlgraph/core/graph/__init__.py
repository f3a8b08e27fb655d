"""
Module graph data structures and algorithms.

This module turns module definitions and instance records into an in-memory
instantiation graph and answers hierarchy questions about it:

Data Structures:
    - ModuleGraph: Adjacency lists with symmetric forward/reverse edges
    - ModuleNode: One module with its ports, instances and parameter overrides
    - SignalFlow: A signal crossing one instantiation boundary
    - TreeNode: Tree representation of the instance hierarchy

Algorithms:
    - builder: build_graph() with line-range parent resolution
    - analysis: top-level/leaf modules, critical path, complexity, signal impact, cycles
    - pathfinding: DFS module path
    - traversal: instance tree extraction
    - export: Graphviz DOT rendering
"""

from hdlgraph.core.graph.base import ModuleGraph
from hdlgraph.core.graph.builder import build_graph
from hdlgraph.core.graph.models import (
    FlowEndpoint,
    ModuleComplexity,
    ModuleNode,
    SignalFlow,
    SignalImpact,
    TreeNode,
)

__all__ = [
    "FlowEndpoint",
    "ModuleComplexity",
    "ModuleGraph",
    "ModuleNode",
    "SignalFlow",
    "SignalImpact",
    "TreeNode",
    "build_graph",
]
