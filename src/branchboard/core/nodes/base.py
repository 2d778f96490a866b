"""Base classes for the branchboard pipeline tree.

A :class:`Node` is pure data describing one step; a :class:`Transform` is
the behaviour registered for a node type and built from a node's params.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence

from ..constants import ComponentType, NodeType

Row = Dict[str, Any]


@dataclass(frozen=True)
class Node:
    """One step in the pipeline tree.

    ``params`` is the type-specific configuration; display flags are carried
    along so a snapshot round-trips, but evaluation never reads them.
    """
    id: str
    parent_id: Optional[str]
    type: NodeType
    params: Dict[str, Any] = field(default_factory=dict)
    title: str = ""
    description: str = ""
    branch_name: Optional[str] = None
    is_expanded: bool = True
    is_branch_collapsed: bool = False
    are_children_collapsed: bool = False

    @property
    def subtype(self) -> Optional[ComponentType]:
        """Component subtype, only meaningful for COMPONENT nodes."""
        if self.type != NodeType.COMPONENT:
            return None
        raw = self.params.get("subtype")
        try:
            return ComponentType(raw) if raw else ComponentType.TABLE
        except ValueError:
            return None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def with_params(self, params: Dict[str, Any]) -> "Node":
        return replace(self, params=dict(params))

    def with_meta(self, **updates) -> "Node":
        return replace(self, **updates)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "parentId": self.parent_id,
            "type": self.type.value,
            "title": self.title,
            "isExpanded": self.is_expanded,
            "isBranchCollapsed": self.is_branch_collapsed,
            "areChildrenCollapsed": self.are_children_collapsed,
            "params": dict(self.params),
        }
        if self.description:
            data["description"] = self.description
        if self.branch_name is not None:
            data["branchName"] = self.branch_name
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Node":
        return cls(
            id=data["id"],
            parent_id=data.get("parentId"),
            type=NodeType(data["type"]),
            params=dict(data.get("params") or {}),
            title=data.get("title", ""),
            description=data.get("description", ""),
            branch_name=data.get("branchName"),
            is_expanded=bool(data.get("isExpanded", True)),
            is_branch_collapsed=bool(data.get("isBranchCollapsed", False)),
            are_children_collapsed=bool(data.get("areChildrenCollapsed", False)),
        )


Snapshot = Sequence[Node]


def snapshot_to_list(nodes: Snapshot) -> List[dict]:
    """Serialize a snapshot to JSON-compatible dicts."""
    return [n.to_dict() for n in nodes]


def snapshot_from_list(data: List[dict]) -> tuple:
    return tuple(Node.from_dict(d) for d in data)


class Transform(ABC):
    """Abstract base class for per-type node behaviour.

    A transform receives the parent's rows, applies its logic and returns the
    rows for its own node. Incomplete configuration must pass data through.
    """

    # Class-level metadata
    node_type: NodeType = None
    display_name: str = "Base Transform"
    category: str = "base"

    def __init__(self, **params):
        self.params = params

    @abstractmethod
    def execute(self, data: List[Row], context) -> List[Row]:
        """Run the transformation.

        Args:
            data: Rows from the parent node (a fresh list, safe to rebind).
            context: The ``TableSet`` being evaluated against.

        Returns:
            Rows for this node.
        """

    def is_configured(self) -> bool:
        """Whether enough params are set for the transform to do anything."""
        return True

    def extra_schema(self, context) -> List[str]:
        """Columns to report even when the sampled rows do not contain them."""
        return []

    @classmethod
    def from_node(cls, node: Node) -> "Transform":
        return cls(**node.params)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.params})"


# Registry for transform types
_TRANSFORM_REGISTRY: Dict[NodeType, type] = {}


def register_node(transform_class: type) -> type:
    """Decorator to register a transform class for its node type."""
    _TRANSFORM_REGISTRY[NodeType(transform_class.node_type)] = transform_class
    return transform_class


def get_transform_class(node_type) -> Optional[type]:
    """Get transform class by node type."""
    try:
        return _TRANSFORM_REGISTRY.get(NodeType(node_type))
    except ValueError:
        return None


def create_transform(node: Node) -> Transform:
    """Factory function to build the transform for a node."""
    transform_class = get_transform_class(node.type)
    if not transform_class:
        raise ValueError(f"Unknown node type: {node.type}")
    return transform_class.from_node(node)


def list_node_types() -> List[NodeType]:
    """List all registered node types."""
    return list(_TRANSFORM_REGISTRY.keys())
