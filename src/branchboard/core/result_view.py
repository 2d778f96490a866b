"""Read-only projections over one node's materialized result.

A :class:`ResultView` is created lazily by :attr:`NodeResult.view` and owns
its caches, so they are dropped together with the result they describe when
the next evaluation pass replaces it. Nothing here mutates the result rows;
rows handed out are copies.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
import logging
import math

import pandas as pd

from .aggregation import (
    aggregate_rows,
    compute_metric,
    group_value,
    is_blank,
    looks_numeric,
    natural_key,
    normalize_fn,
    numeric_series,
    output_field,
    summarize_groups,
    to_number,
    to_text,
)
from .constants import (
    BLANK_KEY,
    DEFAULT_AGGREGATE_FN,
    RECORD_COUNT,
    SortDirection,
)
from .nodes.base import Row
from .nodes.pipeline import ViewSettings

logger = logging.getLogger(__name__)


@dataclass
class AggregatedRows:
    """Grouped rows for chart and map views."""
    rows: List[Row]
    output_field: str

    def to_dict(self) -> dict:
        return {"rows": self.rows, "outputField": self.output_field}


@dataclass
class PivotData:
    """Row x column matrix of aggregates; cells with no rows are None."""
    row_keys: List[str]
    col_keys: List[str]
    matrix: List[List[Optional[float]]]
    fn: str
    row_field: str
    column_field: str

    @property
    def shape(self) -> Tuple[int, int]:
        return len(self.row_keys), len(self.col_keys)

    def to_dict(self) -> dict:
        return {
            "rowKeys": self.row_keys,
            "colKeys": self.col_keys,
            "matrix": self.matrix,
            "fn": self.fn,
            "rowField": self.row_field,
            "columnField": self.column_field,
        }


@dataclass
class ColumnStats:
    """Profile of one column, used by filter value pickers."""
    total_rows: int
    null_count: int
    non_null_count: int
    distinct_count: int
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    top_values: List[Dict[str, Any]] = field(default_factory=list)
    max_count: int = 0

    def to_dict(self) -> dict:
        return {
            "totalRows": self.total_rows,
            "nullCount": self.null_count,
            "nonNullCount": self.non_null_count,
            "distinctCount": self.distinct_count,
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "topValues": self.top_values,
            "maxCount": self.max_count,
        }


def _parse_direction(sort_direction) -> Optional[SortDirection]:
    if not sort_direction:
        return None
    try:
        return SortDirection(sort_direction)
    except ValueError:
        return None


def _pivot_key(value: Any) -> str:
    return BLANK_KEY if is_blank(value) else to_text(value)


class ResultView:
    """Lazy accessors a renderer uses instead of walking ``data`` itself."""

    def __init__(self, result, settings: Optional[ViewSettings] = None):
        self._result = result
        self._settings = settings or ViewSettings()
        self._sort_cache: Dict[Tuple, List[int]] = {}
        self._sample_cache: Dict[Tuple, List[Row]] = {}
        self._metric_cache: Dict[Tuple, float] = {}
        self._aggregate_cache: Dict[Tuple, AggregatedRows] = {}
        self._pivot_cache: Dict[Tuple, PivotData] = {}
        self._column_stats_cache: Dict[Tuple, ColumnStats] = {}

    @property
    def node_id(self) -> str:
        return self._result.node_id

    @property
    def row_count(self) -> int:
        return len(self._result.data)

    @property
    def schema(self) -> List[str]:
        return list(self._result.schema)

    # ==========================================================================
    # Row access
    # ==========================================================================

    def _sorted_indices(self, sort_by: Optional[str], sort_direction) -> Optional[List[int]]:
        direction = _parse_direction(sort_direction)
        if not sort_by or direction is None:
            return None

        rows = self._result.data
        cache_key = (sort_by, direction, len(rows))
        cached = self._sort_cache.get(cache_key)
        if cached is not None:
            return cached

        values = [row.get(sort_by) for row in rows]
        if looks_numeric(values, self._settings.sort_check_size):
            def sort_key(i):
                number = to_number(values[i])
                return (1, 0.0) if math.isnan(number) else (0, number)
        else:
            def sort_key(i):
                value = values[i]
                return (1, ()) if value is None else (0, natural_key(value))

        # sorted() keeps equal keys in input order for either direction
        indices = sorted(range(len(rows)), key=sort_key, reverse=direction == SortDirection.DESC)
        self._sort_cache[cache_key] = indices
        logger.debug(f"Sorted {len(rows)} rows of {self.node_id} by {sort_by} {direction.value}")
        return indices

    def get_row_at(self, index: int, sort_by: Optional[str] = None,
                   sort_direction=None) -> Optional[Row]:
        """Row at ``index`` under an optional single-column sort, or None if out of range."""
        rows = self._result.data
        if index is None or index < 0 or index >= len(rows):
            return None
        order = self._sorted_indices(sort_by, sort_direction)
        position = order[index] if order is not None else index
        return dict(rows[position])

    def get_rows(self, start: int = 0, size: Optional[int] = None,
                 sort_by: Optional[str] = None, sort_direction=None) -> List[Row]:
        """Contiguous window of rows for a virtualized table."""
        size = self._settings.sample_size if size is None else size
        if size <= 0 or start < 0:
            return []
        end = min(start + size, self.row_count)
        return [self.get_row_at(i, sort_by, sort_direction) for i in range(start, end)]

    def get_sample_rows(self, limit: Optional[int] = None, sort_by: Optional[str] = None,
                        sort_direction=None) -> List[Row]:
        """Leading rows, bounded by ``limit``, for charts that do not aggregate."""
        limit = self._settings.chart_sample_size if limit is None else limit
        cache_key = (limit, sort_by or "", _parse_direction(sort_direction), self.row_count)
        if cache_key not in self._sample_cache:
            self._sample_cache[cache_key] = self.get_rows(0, limit, sort_by, sort_direction)
        return [dict(row) for row in self._sample_cache[cache_key]]

    # ==========================================================================
    # Derived shapes
    # ==========================================================================

    def get_aggregated_rows(self, group_by: Optional[str], fn: str = DEFAULT_AGGREGATE_FN,
                            metric_field: Optional[str] = None) -> AggregatedRows:
        """Group the full result exactly like an AGGREGATE node would."""
        if not group_by:
            return AggregatedRows(rows=[], output_field=metric_field or RECORD_COUNT)
        cache_key = (group_by, normalize_fn(fn), metric_field or "")
        if cache_key not in self._aggregate_cache:
            rows, out_field = aggregate_rows(self._result.data, group_by, fn, metric_field)
            self._aggregate_cache[cache_key] = AggregatedRows(rows=rows, output_field=out_field)
        cached = self._aggregate_cache[cache_key]
        return AggregatedRows(rows=[dict(r) for r in cached.rows], output_field=cached.output_field)

    def get_metric(self, fn: str = DEFAULT_AGGREGATE_FN, field: Optional[str] = None) -> float:
        """Single scalar over the whole result for KPI and gauge views."""
        cache_key = (normalize_fn(fn), field or "")
        if cache_key not in self._metric_cache:
            self._metric_cache[cache_key] = compute_metric(self._result.data, fn, field)
        return self._metric_cache[cache_key]

    def get_pivot_data(self, row_field: Optional[str], column_field: Optional[str],
                       value_field: Optional[str] = None,
                       fn: str = DEFAULT_AGGREGATE_FN) -> PivotData:
        """Aggregate ``value_field`` over every (row value, column value) pair.

        Keys are sorted, blank keys are bucketed as ``(blank)`` and placed
        last, and pairs with no rows stay None.
        """
        fn = normalize_fn(fn)
        if not row_field or not column_field:
            return PivotData([], [], [], fn, row_field or "", column_field or "")

        cache_key = (row_field, column_field, value_field or "", fn)
        if cache_key not in self._pivot_cache:
            self._pivot_cache[cache_key] = self._build_pivot(row_field, column_field, value_field, fn)
        cached = self._pivot_cache[cache_key]
        return replace(cached, row_keys=list(cached.row_keys), col_keys=list(cached.col_keys),
                       matrix=[list(line) for line in cached.matrix])

    def _build_pivot(self, row_field: str, column_field: str,
                     value_field: Optional[str], fn: str) -> PivotData:
        effective_fn = fn if output_field(fn, value_field) != RECORD_COUNT else "count"
        rows = self._result.data
        pairs = [(_pivot_key(row.get(row_field)), _pivot_key(row.get(column_field))) for row in rows]
        values = [row.get(value_field) for row in rows] if value_field else None
        group_keys, stats = summarize_groups(pairs, values)
        cells = {pair: group_value(stats, i, effective_fn) for i, pair in enumerate(group_keys)}

        row_keys = self._ordered_keys({r for r, _ in cells})
        col_keys = self._ordered_keys({c for _, c in cells})
        matrix = [[cells.get((r, c)) for c in col_keys] for r in row_keys]
        return PivotData(row_keys, col_keys, matrix, fn, row_field, column_field)

    def _ordered_keys(self, keys) -> List[str]:
        present = [k for k in keys if k != BLANK_KEY]
        if looks_numeric(present, len(present) or 1):
            present.sort(key=to_number)
        else:
            present.sort(key=natural_key)
        if BLANK_KEY in keys:
            present.append(BLANK_KEY)
        return present

    def get_column_stats(self, field: Optional[str],
                         limit: Optional[int] = None) -> Optional[ColumnStats]:
        """Counts, numeric range and the ``limit`` most frequent values of a column."""
        if not field:
            return None
        limit = self._settings.top_values if limit is None else limit
        cache_key = (field, limit)
        if cache_key not in self._column_stats_cache:
            self._column_stats_cache[cache_key] = self._build_column_stats(field, limit)
        cached = self._column_stats_cache[cache_key]
        return replace(cached, top_values=[dict(item) for item in cached.top_values])

    def _build_column_stats(self, field: str, limit: int) -> ColumnStats:
        column = pd.Series([row.get(field) for row in self._result.data], dtype=object)
        present = column[~column.map(is_blank).astype(bool)]
        total = len(column)

        counts = present.map(to_text).value_counts(sort=False)
        ranked = sorted(counts.items(), key=lambda item: (-item[1], natural_key(item[0])))
        top_values = [{"value": value, "count": int(count)} for value, count in ranked[:limit]]

        numbers = numeric_series(present).dropna()
        has_numbers = not numbers.empty
        return ColumnStats(
            total_rows=total,
            null_count=total - len(present),
            non_null_count=len(present),
            distinct_count=len(counts),
            min=float(numbers.min()) if has_numbers else None,
            max=float(numbers.max()) if has_numbers else None,
            avg=float(numbers.mean()) if has_numbers else None,
            top_values=top_values,
            max_count=max((item["count"] for item in top_values), default=0),
        )
