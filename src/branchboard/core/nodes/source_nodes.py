"""Source node: the root of every pipeline tree."""

from typing import List, Optional

from ..constants import NodeType
from .base import Row, Transform, register_node
from .pipeline import TableSet


@register_node
class SourceNode(Transform):
    """Loads a full copy of one ingested table."""

    node_type = NodeType.SOURCE
    display_name = "Load Raw Data"
    category = "source"

    def __init__(self, table: Optional[str] = None, **kwargs):
        super().__init__(table=table, **kwargs)
        self.table = table

    def resolve_table(self, context: TableSet) -> Optional[str]:
        """Configured table, or the first ingested one when unset."""
        return self.table or context.default_table

    def execute(self, data: List[Row], context: TableSet) -> List[Row]:
        name = self.resolve_table(context)
        return [dict(row) for row in context.get_rows(name)]

    def is_configured(self) -> bool:
        return bool(self.table)
