"""Transform nodes: filtering, grouping and joining."""

from typing import Any, Dict, List, Optional

from ..aggregation import aggregate_rows, to_number, to_text
from ..constants import DEFAULT_AGGREGATE_FN, DEFAULT_FILTER_OPERATOR, JoinType, NodeType
from .base import Node, Row, Transform, register_node
from .pipeline import TableSet


def normalize_filters(params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Conditions of a filter node as ``{field, operator, value}`` dicts.

    Accepts either a ``filters`` list or a single ``field``/``operator``/``value``
    triple. Conditions without a field are dropped.
    """
    if not params:
        return []
    if isinstance(params.get("filters"), list):
        raw = params["filters"]
    elif params.get("field"):
        raw = [params]
    else:
        return []

    conditions = []
    for item in raw:
        item = item or {}
        if not item.get("field"):
            continue
        value = item.get("value")
        conditions.append({
            "field": item["field"],
            "operator": item.get("operator") or DEFAULT_FILTER_OPERATOR,
            "value": "" if value is None else value,
        })
    return conditions


def _split_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = [to_text(v).strip() for v in value]
    else:
        items = [part.strip() for part in to_text(value).split(",")]
    return [item for item in items if item]


def matches(row: Row, field: str, operator: str, value: Any) -> bool:
    """Evaluate one filter condition against a row.

    An empty value (but not the number 0) matches everything. Numeric
    operators fail when either side does not coerce to a number.
    """
    if value is None or (isinstance(value, str) and value == ""):
        return True
    cell = row.get(field)

    if operator == "in":
        allowed = _split_list(value)
        if not allowed:
            return True
        return to_text(cell) in allowed
    if isinstance(value, (list, tuple)) and not value:
        return True
    if operator == "equals":
        return to_text(cell) == to_text(value)
    if operator == "not_equals":
        return to_text(cell) != to_text(value)
    if operator == "contains":
        return to_text(value).lower() in to_text(cell).lower()
    if operator == "gt":
        return to_number(cell) > to_number(value)
    if operator == "lt":
        return to_number(cell) < to_number(value)
    if operator == "gte":
        return to_number(cell) >= to_number(value)
    if operator == "lte":
        return to_number(cell) <= to_number(value)
    return True


@register_node
class FilterNode(Transform):
    """Keeps rows for which every condition holds."""

    node_type = NodeType.FILTER
    display_name = "Filter"
    category = "transform"

    def __init__(self, conditions: Optional[List[Dict[str, Any]]] = None, **kwargs):
        super().__init__(conditions=conditions, **kwargs)
        self.conditions = conditions or []

    @classmethod
    def from_node(cls, node: Node) -> "FilterNode":
        return cls(conditions=normalize_filters(node.params))

    def is_configured(self) -> bool:
        return bool(self.conditions)

    def execute(self, data: List[Row], context: TableSet) -> List[Row]:
        if not self.conditions:
            return data
        return [
            row for row in data
            if all(matches(row, c["field"], c["operator"], c["value"]) for c in self.conditions)
        ]


@register_node
class AggregateNode(Transform):
    """Groups rows and emits one summary row per group."""

    node_type = NodeType.AGGREGATE
    display_name = "Aggregate"
    category = "transform"

    def __init__(self, group_by: Optional[str] = None, fn: str = DEFAULT_AGGREGATE_FN,
                 metric_field: Optional[str] = None, **kwargs):
        super().__init__(group_by=group_by, fn=fn, metric_field=metric_field, **kwargs)
        self.group_by = group_by
        self.fn = fn or DEFAULT_AGGREGATE_FN
        self.metric_field = metric_field

    @classmethod
    def from_node(cls, node: Node) -> "AggregateNode":
        p = node.params
        return cls(group_by=p.get("groupBy"), fn=p.get("fn"), metric_field=p.get("metricField"))

    def is_configured(self) -> bool:
        return bool(self.group_by)

    def execute(self, data: List[Row], context: TableSet) -> List[Row]:
        if not self.group_by:
            return data
        rows, _ = aggregate_rows(data, self.group_by, self.fn, self.metric_field)
        return rows


def normalize_join_value(value: Any) -> Optional[str]:
    """Join key as trimmed text; None when missing or blank (never matches)."""
    if value is None:
        return None
    text = to_text(value).strip()
    return text or None


@register_node
class JoinNode(Transform):
    """Joins the incoming rows against another ingested table.

    Every left row scans the whole right table (O(left x right)); right
    tables are expected to fit in memory.
    """

    node_type = NodeType.JOIN
    display_name = "Join"
    category = "transform"

    def __init__(self, right_table: Optional[str] = None, left_key: Optional[str] = None,
                 right_key: Optional[str] = None, join_type: str = JoinType.LEFT.value, **kwargs):
        super().__init__(right_table=right_table, left_key=left_key, right_key=right_key,
                         join_type=join_type, **kwargs)
        self.right_table = right_table
        self.left_key = left_key
        self.right_key = right_key
        try:
            self.join_type = JoinType(join_type or JoinType.LEFT.value)
        except ValueError:
            self.join_type = JoinType.LEFT

    @classmethod
    def from_node(cls, node: Node) -> "JoinNode":
        p = node.params
        return cls(
            right_table=p.get("rightTable"),
            left_key=p.get("leftKey"),
            right_key=p.get("rightKey"),
            join_type=p.get("joinType"),
        )

    def is_configured(self) -> bool:
        return bool(self.right_table and self.left_key and self.right_key)

    def _prefixed(self, row: Row) -> Row:
        return {f"{self.right_table}_{key}": value for key, value in row.items()}

    def execute(self, data: List[Row], context: TableSet) -> List[Row]:
        if not self.is_configured():
            return data

        right_rows = context.get_rows(self.right_table)
        keep_left = self.join_type in (JoinType.LEFT, JoinType.FULL)
        keep_right = self.join_type in (JoinType.RIGHT, JoinType.FULL)
        matched_right = set()
        joined: List[Row] = []

        for left_row in data:
            left_value = normalize_join_value(left_row.get(self.left_key))
            found = False
            if left_value is not None:
                for r_idx, right_row in enumerate(right_rows):
                    if normalize_join_value(right_row.get(self.right_key)) != left_value:
                        continue
                    found = True
                    matched_right.add(r_idx)
                    merged = dict(left_row)
                    merged.update(self._prefixed(right_row))
                    joined.append(merged)
            if not found and keep_left:
                joined.append(dict(left_row))

        if keep_right:
            for r_idx, right_row in enumerate(right_rows):
                if r_idx not in matched_right:
                    joined.append(self._prefixed(right_row))

        return joined

    def extra_schema(self, context: TableSet) -> List[str]:
        if not self.right_table:
            return []
        right_rows = context.get_rows(self.right_table)
        if not right_rows:
            return []
        return [f"{self.right_table}_{key}" for key in right_rows[0]]
