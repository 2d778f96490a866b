"""Terminal view nodes (table, pivot, chart, KPI, gauge, assistant)."""

from typing import List

from ..constants import ComponentType, NodeType
from .base import Node, Row, Transform, register_node
from .pipeline import TableSet


@register_node
class ComponentNode(Transform):
    """Passes rows through unchanged.

    Each view derives its own shape (sorted window, chart groups, pivot
    matrix, scalar metric) from the node's result view.
    """

    node_type = NodeType.COMPONENT
    display_name = "View"
    category = "component"

    def __init__(self, subtype: ComponentType = ComponentType.TABLE, **kwargs):
        super().__init__(subtype=subtype, **kwargs)
        self.subtype = subtype

    @classmethod
    def from_node(cls, node: Node) -> "ComponentNode":
        return cls(subtype=node.subtype or ComponentType.TABLE)

    def execute(self, data: List[Row], context: TableSet) -> List[Row]:
        return data
