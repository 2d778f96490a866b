"""Value coercion and grouped aggregation shared by transforms and views.

The AGGREGATE transform, chart aggregation, pivot cells and KPI metrics all
group through :func:`summarize_groups` (a pandas groupby) so the same
inputs always produce the same numbers no matter which surface asks for them.
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .constants import AGGREGATE_FUNCTIONS, DEFAULT_AGGREGATE_FN, RECORD_COUNT

_DIGITS = re.compile(r"(\d+)")


def to_number(value: Any) -> float:
    """Coerce a cell to float, returning NaN when it is not numeric.

    None, blank strings and unparseable text all become NaN.
    """
    if value is None:
        return np.nan
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return np.nan
        try:
            return float(text)
        except ValueError:
            return np.nan
    return np.nan


def to_text(value: Any) -> str:
    """Coerce a cell to the string used for equality and substring tests."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def natural_key(value: Any) -> Tuple:
    """Case-insensitive sort key that orders embedded digits numerically."""
    parts = _DIGITS.split(to_text(value).casefold())
    return tuple(int(part) if i % 2 else part for i, part in enumerate(parts))


def looks_numeric(values: Iterable[Any], limit: int) -> bool:
    """True when every non-blank value in the first ``limit`` coerces to a number."""
    seen = 0
    for value in values:
        if is_blank(value):
            continue
        if math.isnan(to_number(value)):
            return False
        seen += 1
        if seen >= limit:
            break
    return seen > 0


def normalize_fn(fn: Optional[str]) -> str:
    """Unknown or missing aggregate functions fall back to count."""
    return fn if fn in AGGREGATE_FUNCTIONS else DEFAULT_AGGREGATE_FN


def output_field(fn: Optional[str], metric_field: Optional[str]) -> str:
    """Column name an aggregate writes its value under."""
    fn = normalize_fn(fn)
    if fn == "count" or not metric_field:
        return RECORD_COUNT
    return metric_field


def numeric_series(values: Iterable[Any]) -> pd.Series:
    """Float series of ``values`` with anything non-finite set to NaN."""
    numbers = pd.Series([to_number(v) for v in values], dtype=float)
    return numbers.where(np.isfinite(numbers))


def summarize_groups(keys: List[Any],
                     values: Optional[List[Any]] = None) -> Tuple[List[Any], pd.DataFrame]:
    """Per-group statistics for rows bucketed by ``keys``.

    Groups follow first-seen key order and keep the raw key of their first
    row (None included). With ``values`` given, the frame carries
    ``numeric_count``/``sum``/``min``/``max`` over the finite numeric values
    and ``distinct`` over the raw values; ``count`` always counts every row.

    Returns:
        ``(group_keys, stats)`` where row ``i`` of ``stats`` describes
        ``group_keys[i]``.
    """
    if not keys:
        return [], pd.DataFrame(columns=["count", "numeric_count", "sum", "min", "max", "distinct"])

    codes, _ = pd.factorize(pd.Series(keys, dtype=object), use_na_sentinel=False)
    _, first_seen = np.unique(codes, return_index=True)
    group_keys = [keys[i] for i in first_seen]

    frame = pd.DataFrame({"code": codes})
    if values is not None:
        frame["numeric"] = numeric_series(values)
        frame["raw"] = pd.Series(values, dtype=object)
    grouped = frame.groupby("code", sort=True)

    stats = pd.DataFrame({"count": grouped.size()})
    if values is not None:
        stats["numeric_count"] = grouped["numeric"].count()
        stats["sum"] = grouped["numeric"].sum()
        stats["min"] = grouped["numeric"].min()
        stats["max"] = grouped["numeric"].max()
        stats["distinct"] = grouped["raw"].nunique(dropna=False)
    else:
        stats["numeric_count"] = 0
        stats["sum"] = 0.0
        stats["min"] = np.nan
        stats["max"] = np.nan
        stats["distinct"] = 0
    return group_keys, stats.reset_index(drop=True)


def group_value(stats: pd.DataFrame, i: int, fn: Optional[str]) -> float:
    """The ``fn`` aggregate of group ``i`` as a plain Python number."""
    fn = normalize_fn(fn)
    if fn == "sum":
        return float(stats.at[i, "sum"])
    if fn == "avg":
        numeric_count = int(stats.at[i, "numeric_count"])
        return float(stats.at[i, "sum"]) / numeric_count if numeric_count else 0
    if fn in ("min", "max"):
        value = stats.at[i, fn]
        return 0 if pd.isna(value) else float(value)
    if fn == "count_distinct":
        return int(stats.at[i, "distinct"])
    return int(stats.at[i, "count"])


def aggregate_rows(rows: Iterable[Dict[str, Any]], group_by: str, fn: Optional[str],
                   metric_field: Optional[str] = None) -> Tuple[List[Dict[str, Any]], str]:
    """Collapse rows to one record per group.

    Returns ``(rows, output_field)`` where each row holds the group key under
    ``group_by`` and the aggregate under ``output_field``.
    """
    rows = list(rows)
    field_name = output_field(fn, metric_field)
    effective_fn = normalize_fn(fn) if field_name != RECORD_COUNT else "count"
    keys = [row.get(group_by) for row in rows]
    values = [row.get(metric_field) for row in rows] if metric_field else None
    group_keys, stats = summarize_groups(keys, values)
    result = [
        {group_by: key, field_name: group_value(stats, i, effective_fn)}
        for i, key in enumerate(group_keys)
    ]
    return result, field_name


def compute_metric(rows: List[Dict[str, Any]], fn: Optional[str], field: Optional[str]) -> float:
    """Single scalar over all rows, as shown by KPI and gauge views."""
    fn = normalize_fn(fn)
    if fn == "count":
        return len(rows)
    if not field:
        return 0
    if fn == "count_distinct":
        return len({row.get(field) for row in rows if not is_blank(row.get(field))})

    values = numeric_series(row.get(field) for row in rows).dropna()
    if values.empty:
        return 0
    if fn == "sum":
        return float(values.sum())
    if fn == "avg":
        return float(values.mean())
    if fn == "min":
        return float(values.min())
    return float(values.max())
