"""Table set, node results and the tree evaluation pass."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from ..constants import (
    DEFAULT_CHART_SAMPLE_SIZE,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_TOP_VALUES,
    SCHEMA_SAMPLE_SIZE,
    SORT_CHECK_SIZE,
)
from .base import Row, Snapshot, create_transform
from .tree import build_child_index, calculation_order, validate_tree

logger = logging.getLogger(__name__)


@dataclass
class TableSet:
    """Ingested tables keyed by name, plus their display order."""

    tables: Dict[str, List[Row]] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def get_rows(self, name: Optional[str]) -> List[Row]:
        if not name:
            return []
        rows = self.tables.get(name)
        return rows if isinstance(rows, list) else []

    @property
    def default_table(self) -> Optional[str]:
        return self.order[0] if self.order else None

    @property
    def is_empty(self) -> bool:
        return not self.order

    @property
    def row_count(self) -> int:
        return sum(len(self.get_rows(name)) for name in self.order)

    def to_dict(self) -> dict:
        return {"order": list(self.order), "tables": {k: list(v) for k, v in self.tables.items()}}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TableSet":
        data = data or {}
        tables = dict(data.get("tables") or {})
        order = list(data.get("order") or tables.keys())
        return cls(tables=tables, order=order)


def derive_schema(rows: List[Row], sample_size: int = SCHEMA_SAMPLE_SIZE) -> List[str]:
    """Union of keys over the first ``sample_size`` rows, in first-seen order.

    Columns that only appear further down are not reported.
    """
    seen: Dict[str, None] = {}
    for row in rows[:sample_size]:
        for key in row or {}:
            seen.setdefault(key, None)
    return list(seen)


@dataclass(frozen=True)
class ViewSettings:
    """Defaults handed to every result view of an evaluation pass."""

    sort_check_size: int = SORT_CHECK_SIZE
    sample_size: int = DEFAULT_SAMPLE_SIZE
    chart_sample_size: int = DEFAULT_CHART_SAMPLE_SIZE
    top_values: int = DEFAULT_TOP_VALUES


@dataclass
class NodeResult:
    """Materialized rows and schema for one node of one evaluation pass."""

    node_id: str
    data: List[Row]
    schema: List[str]
    settings: ViewSettings = field(default_factory=ViewSettings, repr=False, compare=False)
    _view: Any = field(default=None, init=False, repr=False, compare=False)

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def view(self):
        """Lazily built :class:`ResultView`; it lives exactly as long as this result."""
        if self._view is None:
            from ..result_view import ResultView
            self._view = ResultView(self, self.settings)
        return self._view

    def to_dict(self) -> dict:
        return {"nodeId": self.node_id, "data": self.data, "schema": self.schema}


def evaluate_tree(nodes: Snapshot, tables: TableSet,
                  schema_sample_size: int = SCHEMA_SAMPLE_SIZE,
                  view_settings: Optional[ViewSettings] = None) -> Dict[str, NodeResult]:
    """Evaluate every node of a snapshot against a table set.

    Each node starts from a copy of its parent's rows (the root from nothing),
    applies its transform and records the sampled schema. The snapshot and the
    table set are never modified, so the same inputs give the same output.

    Returns:
        Mapping of node id to :class:`NodeResult`, in calculation order.
    """
    validate_tree(nodes)
    settings = view_settings or ViewSettings()
    index = build_child_index(nodes)
    results: Dict[str, NodeResult] = {}

    for node in calculation_order(nodes, index):
        parent = results.get(node.parent_id) if node.parent_id else None
        current_data = list(parent.data) if parent is not None else []

        transform = create_transform(node)
        if not transform.is_configured():
            logger.debug(f"Node {node.id} ({node.type.value}) not configured, passing data through")
        current_data = transform.execute(current_data, tables)

        schema = derive_schema(current_data, schema_sample_size)
        for column in transform.extra_schema(tables):
            if column not in schema:
                schema.append(column)

        results[node.id] = NodeResult(node_id=node.id, data=current_data, schema=schema,
                                      settings=settings)
        logger.debug(f"Node {node.id} ({transform.__class__.__name__}) output rows: {len(current_data)}")

    return results
