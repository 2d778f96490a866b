"""Adjacency helpers and structural checks for a node snapshot."""

from typing import Dict, List, Optional, Set

from ..constants import NodeType
from .base import Node, Snapshot


class TreeStructureError(AssertionError):
    """A snapshot is not a single rooted tree.

    Only a bug in the mutation layer can produce one, so it is raised rather
    than tolerated.
    """


def build_child_index(nodes: Snapshot) -> Dict[Optional[str], List[Node]]:
    """Map each parent id (None for the root) to its children in snapshot order."""
    index: Dict[Optional[str], List[Node]] = {}
    for node in nodes:
        index.setdefault(node.parent_id, []).append(node)
    return index


def get_children(nodes: Snapshot, parent_id: Optional[str]) -> List[Node]:
    return [n for n in nodes if n.parent_id == parent_id]


def find_node(nodes: Snapshot, node_id: str) -> Optional[Node]:
    for node in nodes:
        if node.id == node_id:
            return node
    return None


def find_root(nodes: Snapshot) -> Optional[Node]:
    for node in nodes:
        if node.parent_id is None:
            return node
    return None


def descendant_ids(nodes: Snapshot, node_id: str) -> Set[str]:
    """Ids of every node below ``node_id`` (the node itself excluded)."""
    index = build_child_index(nodes)
    found: Set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        for child in index.get(current, []):
            if child.id not in found:
                found.add(child.id)
                stack.append(child.id)
    return found


def count_descendants(nodes: Snapshot, node_id: str) -> int:
    return len(descendant_ids(nodes, node_id))


def calculation_order(nodes: Snapshot,
                      index: Optional[Dict[Optional[str], List[Node]]] = None) -> List[Node]:
    """Pre-order traversal from the root; every node follows its parent."""
    if index is None:
        index = build_child_index(nodes)
    order: List[Node] = []
    stack = list(reversed(index.get(None, [])))
    while stack:
        current = stack.pop()
        order.append(current)
        stack.extend(reversed(index.get(current.id, [])))
    return order


def validate_tree(nodes: Snapshot) -> None:
    """Raise :class:`TreeStructureError` unless ``nodes`` form one rooted tree."""
    ids: Set[str] = set()
    for node in nodes:
        if node.id in ids:
            raise TreeStructureError(f"Duplicate node id: {node.id}")
        ids.add(node.id)

    roots = [n for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        raise TreeStructureError(f"Expected exactly one root, found {len(roots)}")
    if roots[0].type != NodeType.SOURCE:
        raise TreeStructureError(f"Root {roots[0].id} must be a SOURCE node")

    for node in nodes:
        if node.parent_id is not None and node.parent_id not in ids:
            raise TreeStructureError(f"Node {node.id} has unknown parent {node.parent_id}")
        if node.parent_id == node.id:
            raise TreeStructureError(f"Node {node.id} is its own parent")

    reachable = calculation_order(nodes)
    if len(reachable) != len(nodes):
        # Anything not reachable from the root sits on a parent cycle
        stranded = sorted(ids - {n.id for n in reachable})
        raise TreeStructureError(f"Cycle in parent links: {stranded}")
