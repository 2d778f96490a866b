"""Global constants for the branchboard pipeline engine."""

from enum import Enum


class NodeType(str, Enum):
    """Kind of step a node represents in the pipeline tree."""
    SOURCE = "SOURCE"
    FILTER = "FILTER"
    AGGREGATE = "AGGREGATE"
    JOIN = "JOIN"
    COMPONENT = "COMPONENT"


class ComponentType(str, Enum):
    """Terminal view rendered by a COMPONENT node."""
    TABLE = "TABLE"
    PIVOT = "PIVOT"
    CHART = "CHART"
    KPI = "KPI"
    GAUGE = "GAUGE"
    AI = "AI"


class JoinType(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    FULL = "FULL"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Filter operators
FILTER_OPERATORS = ("equals", "not_equals", "gt", "lt", "gte", "lte", "contains", "in")
NUMERIC_OPERATORS = ("gt", "lt", "gte", "lte")
DEFAULT_FILTER_OPERATOR = "equals"

# Aggregate functions
AGGREGATE_FUNCTIONS = ("count", "sum", "avg", "min", "max", "count_distinct")
DEFAULT_AGGREGATE_FN = "count"

# Output column used by fn=count
RECORD_COUNT = "Record Count"

# Pivot bucket for null/blank keys
BLANK_KEY = "(blank)"

# Root node created for every fresh graph
ROOT_NODE_ID = "node-start"

# Sampling defaults
SCHEMA_SAMPLE_SIZE = 10
DEFAULT_SAMPLE_SIZE = 200
DEFAULT_CHART_SAMPLE_SIZE = 5000
DEFAULT_TOP_VALUES = 6
SORT_CHECK_SIZE = 50
