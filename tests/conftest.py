"""
Pytest configuration and fixtures for branchboard tests.
"""

import itertools
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from branchboard.core.config import ConfigManager
from branchboard.core.constants import NodeType
from branchboard.core.graph import GraphEditor
from branchboard.core.nodes import Node, TableSet
from branchboard.core.status import StatusManager


@pytest.fixture
def tmp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = Path(tempfile.mkdtemp(prefix="branchboard_test_"))
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def tmp_config(tmp_dir: Path) -> ConfigManager:
    """Config manager writing under a temporary directory."""
    return ConfigManager(config_dir=tmp_dir / "config")


@pytest.fixture
def status() -> StatusManager:
    return StatusManager()


@pytest.fixture
def sample_rows() -> list[dict]:
    """Three-row table used throughout the examples."""
    return [
        {"r": "a", "v": 1},
        {"r": "a", "v": 3},
        {"r": "b", "v": 5},
    ]


@pytest.fixture
def sample_tables(sample_rows) -> TableSet:
    """Orders/customers tables plus the small example table."""
    return TableSet(
        tables={
            "orders": [
                {"id": "1", "region": "West", "amount": 10},
                {"id": "2", "region": "East", "amount": 20},
                {"id": "3", "region": "West", "amount": 5},
                {"id": "4", "region": "North", "amount": "n/a"},
            ],
            "customers": [
                {"customer_id": "1", "name": "A"},
                {"customer_id": "3", "name": "C"},
                {"customer_id": "9", "name": "Z"},
            ],
            "example": sample_rows,
        },
        order=["orders", "customers", "example"],
    )


def source(table=None, node_id="src") -> Node:
    return Node(id=node_id, parent_id=None, type=NodeType.SOURCE, params={"table": table})


def step(node_id, parent_id, node_type, **params) -> Node:
    return Node(id=node_id, parent_id=parent_id, type=NodeType(node_type), params=params)


@pytest.fixture
def id_factory():
    """Deterministic node ids: n1, n2, ..."""
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


@pytest.fixture
def editor(id_factory) -> GraphEditor:
    return GraphEditor(id_factory=id_factory)
