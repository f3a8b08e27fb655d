"""Instance hierarchy extraction using DFS traversal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hdlgraph.core.graph.models import TreeNode

if TYPE_CHECKING:
    from hdlgraph.core.graph.base import ModuleGraph


def get_instance_tree(graph: ModuleGraph, root: str, max_depth: int = 10) -> TreeNode | None:
    """Build the tree of instances below a module.

    DFS with cycle detection. Instances of undefined module types appear as
    unresolved leaves.
    """
    if root not in graph.nodes:
        return None

    visited: set[str] = set()

    def dfs(module: str, instance: str | None, depth: int) -> TreeNode:
        node = graph.get_node(module)
        tree = TreeNode(module=module, instance=instance, depth=depth, resolved=node is not None)
        if node is None or depth >= max_depth or module in visited:
            return tree

        visited.add(module)
        for inst in sorted(node.instances, key=lambda i: i.line):
            tree.children.append(dfs(inst.module_type, inst.name, depth + 1))
        visited.remove(module)
        return tree

    return dfs(root, None, 0)


def flatten_tree(root: TreeNode, include_root: bool = True) -> list[TreeNode]:
    """Flatten tree to list in pre-order. O(n)."""
    result: list[TreeNode] = []
    if include_root:
        result.append(root)
    for child in root.children:
        result.extend(flatten_tree(child, include_root=True))
    return result
