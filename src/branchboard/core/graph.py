"""Graph mutation API: every edit produces a new snapshot in history."""

from dataclasses import replace
from typing import Any, Callable, Dict, FrozenSet, Optional
from uuid import uuid4
import logging

from .constants import (
    DEFAULT_AGGREGATE_FN,
    DEFAULT_FILTER_OPERATOR,
    ROOT_NODE_ID,
    ComponentType,
    JoinType,
    NodeType,
)
from .history import HistoryManager
from .nodes.base import Node
from .nodes.tree import descendant_ids, find_node, get_children, validate_tree

logger = logging.getLogger(__name__)

# UI field name -> Node attribute for metadata edits
META_FIELDS = {
    "title": "title",
    "description": "description",
    "branchName": "branch_name",
    "branch_name": "branch_name",
}


def create_initial_nodes() -> tuple:
    """Snapshot of a fresh graph: a single SOURCE with no table picked."""
    return (
        Node(
            id=ROOT_NODE_ID,
            parent_id=None,
            type=NodeType.SOURCE,
            title="Load Raw Data",
            description="Upload dataset",
            branch_name="Main",
            params={"table": None},
        ),
    )


def default_params(subtype=ComponentType.TABLE) -> Dict[str, Any]:
    """Params a freshly added node starts with."""
    subtype = ComponentType(subtype) if subtype else ComponentType.TABLE
    return {
        "subtype": subtype.value,
        "operator": DEFAULT_FILTER_OPERATOR,
        "fn": DEFAULT_AGGREGATE_FN,
        "joinType": JoinType.LEFT.value,
        "chartType": "bar",
        "chartAggFn": "sum",
        "tableSortBy": "",
        "tableSortDirection": "",
        "target": 100,
        "metrics": [],
        "pivotRow": "",
        "pivotColumn": "",
        "pivotValue": "",
        "pivotFn": DEFAULT_AGGREGATE_FN,
    }


def _new_node_id() -> str:
    return f"node-{uuid4().hex[:12]}"


class GraphEditor:
    """Applies add/insert/remove/update to the current snapshot.

    User edits are committed to history; system corrections and display
    toggles replace the current snapshot in place.
    """

    def __init__(self, history: Optional[HistoryManager] = None,
                 id_factory: Callable[[], str] = _new_node_id):
        self.history = history or HistoryManager(create_initial_nodes())
        self._id_factory = id_factory

    @property
    def nodes(self) -> tuple:
        return self.history.current

    def get(self, node_id: str) -> Node:
        node = find_node(self.nodes, node_id)
        if node is None:
            raise KeyError(f"Unknown node: {node_id}")
        return node

    # ==========================================================================
    # Structural edits
    # ==========================================================================

    def _check_new_type(self, node_type) -> NodeType:
        node_type = NodeType(node_type)
        if node_type == NodeType.SOURCE:
            raise ValueError("A graph has exactly one SOURCE node")
        return node_type

    def _commit(self, nodes) -> None:
        nodes = tuple(nodes)
        validate_tree(nodes)
        self.history.commit(nodes)

    def _replace(self, nodes) -> None:
        nodes = tuple(nodes)
        validate_tree(nodes)
        self.history.replace_current(nodes)

    def add(self, node_type, parent_id: str, subtype=ComponentType.TABLE) -> str:
        """Append a leaf under ``parent_id``; a second child becomes a labelled fork."""
        node_type = self._check_new_type(node_type)
        self.get(parent_id)
        siblings = get_children(self.nodes, parent_id)
        node = Node(
            id=self._id_factory(),
            parent_id=parent_id,
            type=node_type,
            title="New Step",
            branch_name=f"Fork {len(siblings) + 1}" if siblings else None,
            params=default_params(subtype),
        )
        nodes = [replace(n, are_children_collapsed=False) if n.id == parent_id else n
                 for n in self.nodes]
        nodes.append(node)
        self._commit(nodes)
        logger.info(f"Added {node_type.value} node {node.id} under {parent_id}")
        return node.id

    def insert(self, node_type, parent_id: str, subtype=ComponentType.TABLE) -> str:
        """Splice a node between ``parent_id`` and all of its current children."""
        node_type = self._check_new_type(node_type)
        self.get(parent_id)
        node = Node(
            id=self._id_factory(),
            parent_id=parent_id,
            type=node_type,
            title="Inserted Step",
            params=default_params(subtype),
        )
        nodes = []
        for n in self.nodes:
            if n.id == parent_id:
                n = replace(n, are_children_collapsed=False)
            elif n.parent_id == parent_id:
                n = replace(n, parent_id=node.id)
            nodes.append(n)
        nodes.append(node)
        self._commit(nodes)
        logger.info(f"Inserted {node_type.value} node {node.id} after {parent_id}")
        return node.id

    def remove(self, node_id: str) -> FrozenSet[str]:
        """Delete a node and its whole subtree. Returns the removed ids."""
        node = self.get(node_id)
        if node.is_root:
            raise ValueError("The root SOURCE node cannot be removed")
        doomed = descendant_ids(self.nodes, node_id) | {node_id}
        self._commit(n for n in self.nodes if n.id not in doomed)
        logger.info(f"Removed {len(doomed)} node(s) starting at {node_id}")
        return frozenset(doomed)

    # ==========================================================================
    # Param and metadata edits
    # ==========================================================================

    def _with_params(self, node_id: str, params: Dict[str, Any]):
        self.get(node_id)
        return [n.with_params(params) if n.id == node_id else n for n in self.nodes]

    def apply_user_edit(self, node_id: str, params: Dict[str, Any]) -> None:
        """Replace a node's params as an undoable step."""
        self._commit(self._with_params(node_id, params))

    def apply_system_correction(self, node_id: str, params: Dict[str, Any]) -> None:
        """Replace a node's params without an undo step (e.g. default table pick)."""
        self._replace(self._with_params(node_id, params))

    def apply_meta_edit(self, node_id: str, updates: Dict[str, Any]) -> None:
        """Merge display metadata such as ``title`` or ``branchName`` as an undoable step."""
        self.get(node_id)
        changes = {}
        for key, value in updates.items():
            if key not in META_FIELDS:
                raise ValueError(f"Not a metadata field: {key}")
            changes[META_FIELDS[key]] = value
        self._commit(n.with_meta(**changes) if n.id == node_id else n for n in self.nodes)

    # ==========================================================================
    # Display-only toggles (never undoable)
    # ==========================================================================

    def _toggle(self, node_id: str, attr: str, value: Optional[bool] = None) -> None:
        node = self.get(node_id)
        new_value = (not getattr(node, attr)) if value is None else value
        if new_value == getattr(node, attr):
            return
        self._replace(replace(n, **{attr: new_value}) if n.id == node_id else n
                      for n in self.nodes)

    def toggle_expanded(self, node_id: str) -> None:
        self._toggle(node_id, "is_expanded")

    def toggle_branch_collapsed(self, node_id: str) -> None:
        self._toggle(node_id, "is_branch_collapsed")

    def toggle_children_collapsed(self, node_id: str) -> None:
        self._toggle(node_id, "are_children_collapsed")

    def expand(self, node_id: str) -> None:
        """Mark a node expanded, as happens when it is selected."""
        self._toggle(node_id, "is_expanded", True)

    # ==========================================================================
    # History
    # ==========================================================================

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    def reset(self, nodes=None) -> None:
        """Replace the whole history with ``nodes`` (a fresh graph by default)."""
        nodes = tuple(nodes) if nodes is not None else create_initial_nodes()
        validate_tree(nodes)
        self.history.reset(nodes)
