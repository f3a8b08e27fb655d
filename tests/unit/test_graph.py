"""Unit tests for graph building and graph algorithms."""

from pathlib import Path

import pytest

from hdlgraph.core.graph import ModuleGraph, ModuleNode, build_graph
from hdlgraph.core.graph.analysis import (
    describe_module,
    find_cycles,
    get_critical_path,
    get_hierarchy_depth,
    get_leaf_modules,
    get_module_complexity,
    get_module_hierarchy,
    get_signal_impact,
    get_top_level_modules,
)
from hdlgraph.core.graph.builder import find_enclosing_module
from hdlgraph.core.graph.export import to_dot
from hdlgraph.core.graph.models import FlowEndpoint
from hdlgraph.core.graph.pathfinding import find_module_path
from hdlgraph.core.graph.traversal import flatten_tree, get_instance_tree
from hdlgraph.core.models import Connection, Instance, ModuleDefinition, Port, PortDirection

IN = PortDirection.INPUT
OUT = PortDirection.OUTPUT
INOUT = PortDirection.INOUT


def make_module(
    name: str,
    ports: list[tuple[str, PortDirection]] | None = None,
    file: str | None = None,
    line: int = 1,
    end_line: int = 100,
) -> ModuleDefinition:
    """Create a test module definition."""
    return ModuleDefinition(
        name=name,
        file=Path(file or f"{name}.v"),
        line=line,
        end_line=end_line,
        ports=[Port(port, direction) for port, direction in ports or []],
    )


def make_instance(
    name: str,
    module_type: str,
    parent_file: str,
    line: int = 10,
    connections: dict[str, str] | None = None,
    parameters: dict[str, str] | None = None,
) -> Instance:
    """Create a test instance with named connections."""
    return Instance(
        name=name,
        module_type=module_type,
        file=Path(parent_file),
        line=line,
        connections=[Connection(port, signal) for port, signal in (connections or {}).items()],
        parameters=parameters or {},
    )


def chain(*names: str) -> tuple[list[ModuleDefinition], list[Instance]]:
    """Modules where each one instantiates the next."""
    modules = [make_module(name) for name in names]
    instances = [
        make_instance(f"u_{child}", child, f"{parent}.v")
        for parent, child in zip(names, names[1:])
    ]
    return modules, instances


@pytest.fixture
def linear_graph() -> ModuleGraph:
    """top -> mid -> leaf."""
    return build_graph(*chain("top", "mid", "leaf"))


@pytest.fixture
def diamond_graph() -> ModuleGraph:
    """top -> left -> bottom, top -> right -> bottom."""
    modules = [make_module(n) for n in ("top", "left", "right", "bottom")]
    instances = [
        make_instance("u_left", "left", "top.v", line=5),
        make_instance("u_right", "right", "top.v", line=6),
        make_instance("u_bottom", "bottom", "left.v"),
        make_instance("u_bottom", "bottom", "right.v"),
    ]
    return build_graph(modules, instances)


@pytest.fixture
def cyclic_graph() -> ModuleGraph:
    """root -> a -> b -> a (malformed)."""
    modules = [make_module(n) for n in ("root", "a", "b")]
    instances = [
        make_instance("u_a", "a", "root.v"),
        make_instance("u_b", "b", "a.v"),
        make_instance("u_a", "a", "b.v"),
    ]
    return build_graph(modules, instances)


@pytest.fixture
def soc_graph() -> ModuleGraph:
    """soc instantiating a cpu whose output feeds a cache input."""
    modules = [
        make_module("soc", [("clk", IN)]),
        make_module("cpu", [("clk", IN), ("cpu_data_out", OUT)]),
        make_module("cache", [("clk", IN), ("cpu_data_in", IN), ("bus", INOUT)]),
    ]
    instances = [
        make_instance(
            "u_cpu",
            "cpu",
            "soc.v",
            line=5,
            connections={"clk": "clk", "cpu_data_out": "data_out"},
        ),
        make_instance(
            "u_cache",
            "cache",
            "soc.v",
            line=9,
            connections={"clk": "clk", "cpu_data_in": "data_out", "bus": "sys_bus"},
            parameters={"DEPTH": "64"},
        ),
    ]
    return build_graph(modules, instances)


class TestModuleGraph:
    """Tests for the ModuleGraph class."""

    def test_add_node_rejects_duplicates(self) -> None:
        graph = ModuleGraph()
        assert graph.add_node(ModuleNode("a", Path("a.v"), 1, 2))
        assert not graph.add_node(ModuleNode("a", Path("other.v"), 1, 2))
        assert graph.nodes["a"].file == Path("a.v")

    def test_add_edge_requires_nodes(self) -> None:
        graph = ModuleGraph()
        graph.add_node(ModuleNode("a", Path("a.v"), 1, 2))
        with pytest.raises(KeyError):
            graph.add_edge("a", "missing")

    def test_repeated_edges_collapse(self) -> None:
        graph = ModuleGraph()
        graph.add_node(ModuleNode("a", Path("a.v"), 1, 2))
        graph.add_node(ModuleNode("b", Path("b.v"), 1, 2))
        graph.add_edge("a", "b")
        graph.add_edge("a", "b")
        assert graph.num_edges == 1
        assert graph.get_parents("b") == ["a"]

    def test_edges_are_symmetric(self, diamond_graph: ModuleGraph) -> None:
        forward = set(diamond_graph.edges())
        reverse = {(parent, child) for child, parent in diamond_graph.reverse_edges()}
        assert forward == reverse
        assert len(list(diamond_graph.reverse_edges())) == diamond_graph.num_edges

    def test_clear(self, linear_graph: ModuleGraph) -> None:
        linear_graph.clear()
        assert linear_graph.num_nodes == 0
        assert linear_graph.num_edges == 0


class TestBuildGraph:
    """Tests for build_graph."""

    def test_nodes_and_edges(self, linear_graph: ModuleGraph) -> None:
        assert set(linear_graph.nodes) == {"top", "mid", "leaf"}
        assert list(linear_graph.edges()) == [("top", "mid"), ("mid", "leaf")]

    def test_one_edge_per_child_type(self) -> None:
        modules = [make_module("top"), make_module("reg_bit")]
        instances = [make_instance(f"u_{i}", "reg_bit", "top.v", line=i) for i in range(4)]
        graph = build_graph(modules, instances)
        assert graph.num_edges == 1
        assert len(graph.nodes["top"].instances) == 4

    def test_unresolved_module_type(self) -> None:
        graph = build_graph(
            [make_module("top")], [make_instance("u_ip", "vendor_ip", "top.v")]
        )
        assert graph.num_edges == 0
        assert graph.get_unresolved("top") == ["vendor_ip"]
        assert get_leaf_modules(graph) == ["top"]
        assert graph.nodes["top"].instances[0].name == "u_ip"
        assert graph.signal_flows == []

    def test_parent_resolved_by_line_range(self) -> None:
        modules = [
            make_module("first", file="pair.v", line=1, end_line=10),
            make_module("second", file="pair.v", line=12, end_line=30),
            make_module("leaf"),
        ]
        graph = build_graph(modules, [make_instance("u_leaf", "leaf", "pair.v", line=20)])
        assert graph.get_parents("leaf") == ["second"]

    def test_parent_falls_back_to_first_module_in_file(self) -> None:
        first = make_module("first", file="pair.v", line=1, end_line=10)
        second = make_module("second", file="pair.v", line=12, end_line=30)
        stray = make_instance("u_x", "x", "pair.v", line=50)
        assert find_enclosing_module(stray, [first, second]) is first
        assert find_enclosing_module(stray, []) is None

    def test_instance_outside_any_module_is_ignored(self) -> None:
        graph = build_graph([make_module("leaf")], [make_instance("u", "leaf", "nowhere.v")])
        assert graph.num_edges == 0

    def test_duplicate_module_keeps_first(self) -> None:
        modules = [make_module("dup", file="one.v"), make_module("dup", file="two.v")]
        graph = build_graph(modules, [])
        assert graph.nodes["dup"].file == Path("one.v")

    def test_rebuild_resets_state(self, linear_graph: ModuleGraph) -> None:
        build_graph([make_module("solo")], [], graph=linear_graph)
        assert list(linear_graph.nodes) == ["solo"]
        assert linear_graph.num_edges == 0

    def test_parameter_overrides_recorded_on_child(self, soc_graph: ModuleGraph) -> None:
        assert soc_graph.nodes["cache"].parameters == {"DEPTH": "64"}

    def test_connection_directions_copied_from_child(self, soc_graph: ModuleGraph) -> None:
        instance = soc_graph.nodes["soc"].instances[0]
        assert [(c.port_name, c.direction) for c in instance.connections] == [
            ("clk", IN),
            ("cpu_data_out", OUT),
        ]

    def test_positional_connections_use_port_order(self) -> None:
        modules = [make_module("top"), make_module("alu", [("a", IN), ("y", OUT)])]
        instance = Instance(
            name="u_alu",
            module_type="alu",
            file=Path("top.v"),
            line=3,
            connections=[Connection("", "x", position=0), Connection("", "res", position=1)],
        )
        graph = build_graph(modules, [instance])

        resolved = graph.nodes["top"].instances[0].connections
        assert [(c.port_name, c.direction) for c in resolved] == [("a", IN), ("y", OUT)]
        # The extractor's record is not mutated.
        assert instance.connections[0].port_name == ""


class TestSignalFlows:
    """Tests for signal flow derivation and impact analysis."""

    def test_flow_directions(self, soc_graph: ModuleGraph) -> None:
        flows = {(f.signal, f.source.port, f.sink.port) for f in soc_graph.signal_flows}
        assert ("data_out", "cpu_data_out", "data_out") in flows
        assert ("data_out", "data_out", "cpu_data_in") in flows
        assert ("clk", "clk", "clk") in flows

    def test_inout_flows_both_ways(self, soc_graph: ModuleGraph) -> None:
        bus = [f for f in soc_graph.signal_flows if f.signal == "sys_bus"]
        assert {(f.source.module, f.sink.module) for f in bus} == {
            ("soc", "cache"),
            ("cache", "soc"),
        }

    def test_flow_path(self, soc_graph: ModuleGraph) -> None:
        assert all(f.path[0] == "soc" for f in soc_graph.signal_flows)

    def test_signal_impact(self, soc_graph: ModuleGraph) -> None:
        impact = get_signal_impact(soc_graph, "data_out")

        assert FlowEndpoint("cpu", "cpu_data_out", "u_cpu") in impact.sources
        assert FlowEndpoint("cache", "cpu_data_in", "u_cache") in impact.sinks
        assert {"cpu", "cache"} <= set(impact.affected_modules)
        assert impact.found

    def test_signal_impact_deduplicates(self, soc_graph: ModuleGraph) -> None:
        impact = get_signal_impact(soc_graph, "clk")
        assert impact.sources == [FlowEndpoint("soc", "clk")]
        assert len(impact.sinks) == 2

    def test_signal_impact_unknown(self, soc_graph: ModuleGraph) -> None:
        impact = get_signal_impact(soc_graph, "nothing")
        assert not impact.found
        assert impact.affected_modules == []


class TestHierarchyQueries:
    """Tests for roots, leaves, hierarchy and paths."""

    def test_top_level_and_leaves(self, diamond_graph: ModuleGraph) -> None:
        assert get_top_level_modules(diamond_graph) == ["top"]
        assert get_leaf_modules(diamond_graph) == ["bottom"]

    def test_module_hierarchy(self, diamond_graph: ModuleGraph) -> None:
        assert get_module_hierarchy(diamond_graph) == {
            "top": ["left", "right"],
            "left": ["bottom"],
            "right": ["bottom"],
        }

    def test_find_module_path(self, linear_graph: ModuleGraph) -> None:
        assert find_module_path(linear_graph, "top", "leaf") == ["top", "mid", "leaf"]

    def test_find_module_path_to_self(self, linear_graph: ModuleGraph) -> None:
        assert find_module_path(linear_graph, "mid", "mid") == ["mid"]

    def test_find_module_path_upwards_is_none(self, linear_graph: ModuleGraph) -> None:
        assert find_module_path(linear_graph, "leaf", "top") is None

    def test_find_module_path_unknown(self, linear_graph: ModuleGraph) -> None:
        assert find_module_path(linear_graph, "top", "ghost") is None

    def test_find_module_path_in_cycle(self, cyclic_graph: ModuleGraph) -> None:
        assert find_module_path(cyclic_graph, "root", "b") == ["root", "a", "b"]
        assert find_module_path(cyclic_graph, "b", "root") is None


class TestCriticalPathAndComplexity:
    """Tests for critical path, depth and complexity metrics."""

    def test_critical_path_linear(self, linear_graph: ModuleGraph) -> None:
        assert get_critical_path(linear_graph) == ["top", "mid", "leaf"]

    def test_critical_path_tie_keeps_first(self, diamond_graph: ModuleGraph) -> None:
        assert get_critical_path(diamond_graph) == ["top", "left", "bottom"]

    def test_critical_path_across_roots(self) -> None:
        modules, instances = chain("x", "y")
        more_modules, more_instances = chain("p", "q", "r", "s")
        graph = build_graph(modules + more_modules, instances + more_instances)
        assert get_critical_path(graph) == ["p", "q", "r", "s"]

    def test_critical_path_empty_graph(self) -> None:
        assert get_critical_path(ModuleGraph()) == []

    def test_critical_path_terminates_on_cycle(self, cyclic_graph: ModuleGraph) -> None:
        # No chain reaches a leaf.
        assert get_critical_path(cyclic_graph) == []

    def test_critical_path_leaves_cycle_at_leaf(self) -> None:
        modules = [make_module(n) for n in ("root", "a", "b", "leaf")]
        instances = [
            make_instance("u_a", "a", "root.v"),
            make_instance("u_b", "b", "a.v"),
            make_instance("u_a", "a", "b.v", line=10),
            make_instance("u_leaf", "leaf", "b.v", line=11),
        ]
        graph = build_graph(modules, instances)
        assert get_critical_path(graph) == ["root", "a", "b", "leaf"]

    def test_chain_depends_on_ancestors(self) -> None:
        # x can reach y only when y is not already above it.
        modules = [make_module(n) for n in ("t", "y", "z", "x", "m", "l")]
        instances = [
            make_instance("u_y", "y", "t.v"),
            make_instance("u_z", "z", "t.v", line=11),
            make_instance("u_x", "x", "y.v"),
            make_instance("u_m", "m", "y.v", line=11),
            make_instance("u_y", "y", "x.v"),
            make_instance("u_l", "l", "x.v", line=11),
            make_instance("u_x", "x", "z.v"),
        ]
        graph = build_graph(modules, instances)

        assert get_critical_path(graph) == ["t", "z", "x", "y", "m"]
        assert get_hierarchy_depth(graph, "t") == 5
        assert get_hierarchy_depth(graph, "y") == 3

    def test_pure_cycle_has_no_top_level(self) -> None:
        graph = build_graph(
            [make_module("a"), make_module("b")],
            [make_instance("u_b", "b", "a.v"), make_instance("u_a", "a", "b.v")],
        )
        assert get_top_level_modules(graph) == []
        assert get_critical_path(graph) == []

    def test_hierarchy_depth(self, linear_graph: ModuleGraph) -> None:
        assert get_hierarchy_depth(linear_graph, "top") == 3
        assert get_hierarchy_depth(linear_graph, "leaf") == 1
        assert get_hierarchy_depth(linear_graph, "ghost") == 0

    def test_hierarchy_depth_terminates_on_cycle(self, cyclic_graph: ModuleGraph) -> None:
        assert get_hierarchy_depth(cyclic_graph, "a") == 2

    def test_module_complexity(self, soc_graph: ModuleGraph) -> None:
        metrics = get_module_complexity(soc_graph, "soc")
        assert metrics is not None
        assert metrics.instance_count == 2
        assert metrics.port_count == 1
        assert metrics.connection_count == 5
        assert metrics.hierarchy_depth == 2

    def test_module_complexity_unknown(self, soc_graph: ModuleGraph) -> None:
        assert get_module_complexity(soc_graph, "ghost") is None

    def test_module_complexity_on_cycle(self, cyclic_graph: ModuleGraph) -> None:
        metrics = get_module_complexity(cyclic_graph, "b")
        assert metrics is not None
        assert metrics.hierarchy_depth == 2


class TestCycles:
    """Tests for cycle detection."""

    def test_no_cycles(self, diamond_graph: ModuleGraph) -> None:
        assert find_cycles(diamond_graph) == []

    def test_finds_cycle(self, cyclic_graph: ModuleGraph) -> None:
        assert find_cycles(cyclic_graph) == [["a", "b"]]

    def test_max_cycles(self) -> None:
        modules = [make_module(f"n{i}") for i in range(6)]
        instances = []
        for a, b in [(0, 1), (2, 3), (4, 5)]:
            instances.append(make_instance(f"u{b}", f"n{b}", f"n{a}.v"))
            instances.append(make_instance(f"u{a}", f"n{a}", f"n{b}.v"))
        graph = build_graph(modules, instances)

        assert len(find_cycles(graph)) == 3
        assert len(find_cycles(graph, max_cycles=2)) == 2


class TestInstanceTree:
    """Tests for instance tree extraction."""

    def test_tree_shape(self, diamond_graph: ModuleGraph) -> None:
        tree = get_instance_tree(diamond_graph, "top")
        assert tree is not None
        assert [(n.instance, n.module, n.depth) for n in flatten_tree(tree)] == [
            (None, "top", 0),
            ("u_left", "left", 1),
            ("u_bottom", "bottom", 2),
            ("u_right", "right", 1),
            ("u_bottom", "bottom", 2),
        ]
        assert len(tree) == 5

    def test_max_depth(self, linear_graph: ModuleGraph) -> None:
        tree = get_instance_tree(linear_graph, "top", max_depth=1)
        assert tree is not None
        assert [n.module for n in tree] == ["top", "mid"]

    def test_unresolved_leaf(self) -> None:
        graph = build_graph([make_module("top")], [make_instance("u_ip", "vendor_ip", "top.v")])
        tree = get_instance_tree(graph, "top")
        assert tree is not None
        assert tree.children[0].module == "vendor_ip"
        assert not tree.children[0].resolved

    def test_cycle_is_cut(self, cyclic_graph: ModuleGraph) -> None:
        tree = get_instance_tree(cyclic_graph, "root")
        assert tree is not None
        assert [n.module for n in tree] == ["root", "a", "b", "a"]

    def test_unknown_root(self, linear_graph: ModuleGraph) -> None:
        assert get_instance_tree(linear_graph, "ghost") is None


class TestDescribeAndExport:
    """Tests for module descriptions and DOT export."""

    def test_describe_module(self, soc_graph: ModuleGraph) -> None:
        info = describe_module(soc_graph, "cache")
        assert info is not None
        assert info["parents"] == ["soc"]
        assert info["parameters"] == {"DEPTH": "64"}
        assert [p["name"] for p in info["ports"]] == ["clk", "cpu_data_in", "bus"]
        assert info["complexity"]["hierarchy_depth"] == 1

    def test_describe_unknown(self, soc_graph: ModuleGraph) -> None:
        assert describe_module(soc_graph, "ghost") is None

    def test_to_dot(self, linear_graph: ModuleGraph) -> None:
        dot = to_dot(linear_graph)
        assert dot.startswith("digraph ModuleHierarchy {")
        assert '"top" -> "mid";' in dot
        assert '"mid" -> "leaf";' in dot

    def test_to_dot_unresolved(self) -> None:
        graph = build_graph([make_module("top")], [make_instance("u_ip", "vendor_ip", "top.v")])
        assert "vendor_ip" not in to_dot(graph)
        assert '"top" -> "vendor_ip" [style=dashed];' in to_dot(graph, include_unresolved=True)
