"""
Tests for the node model, tree helpers and transform registry (core/nodes).
"""

import json

import pytest

from branchboard.core.constants import ComponentType, NodeType
from branchboard.core.nodes import (
    Node,
    TreeStructureError,
    calculation_order,
    count_descendants,
    create_transform,
    descendant_ids,
    find_root,
    get_transform_class,
    list_node_types,
    snapshot_from_list,
    snapshot_to_list,
    validate_tree,
)
from branchboard.core.nodes.component_nodes import ComponentNode
from branchboard.core.nodes.transform_nodes import AggregateNode, JoinNode

from conftest import source, step


@pytest.fixture
def tree():
    return (
        source("orders"),
        step("a", "src", "FILTER"),
        step("b", "a", "AGGREGATE"),
        step("c", "a", "COMPONENT", subtype="PIVOT"),
        step("d", "src", "JOIN"),
    )


class TestNode:
    """Tests for the Node dataclass."""

    def test_round_trip(self):
        node = Node(id="x", parent_id="src", type=NodeType.COMPONENT, title="Chart",
                    branch_name="Fork 2", params={"subtype": "CHART", "chartType": "line"})
        data = node.to_dict()
        assert data["parentId"] == "src"
        assert data["branchName"] == "Fork 2"
        assert Node.from_dict(json.loads(json.dumps(data))) == node

    def test_snapshot_round_trip(self, tree):
        assert snapshot_from_list(snapshot_to_list(tree)) == tree

    def test_subtype(self, tree):
        assert tree[3].subtype == ComponentType.PIVOT
        assert tree[1].subtype is None
        assert Node(id="v", parent_id="src", type=NodeType.COMPONENT).subtype == ComponentType.TABLE

    def test_with_params_copies(self, tree):
        params = {"field": "x"}
        updated = tree[1].with_params(params)
        params["field"] = "y"
        assert updated.params == {"field": "x"}
        assert tree[1].params == {}

    def test_frozen(self, tree):
        with pytest.raises(AttributeError):
            tree[0].title = "changed"


class TestTreeHelpers:
    """Tests for traversal and validation helpers."""

    def test_calculation_order_is_preorder(self, tree):
        assert [n.id for n in calculation_order(tree)] == ["src", "a", "b", "c", "d"]

    def test_descendants(self, tree):
        assert descendant_ids(tree, "a") == {"b", "c"}
        assert count_descendants(tree, "src") == 4
        assert descendant_ids(tree, "d") == set()

    def test_find_root(self, tree):
        assert find_root(tree).id == "src"

    def test_validate_accepts_tree(self, tree):
        validate_tree(tree)

    def test_validate_rejects_non_source_root(self):
        with pytest.raises(TreeStructureError):
            validate_tree([step("f", None, "FILTER")])

    def test_validate_rejects_empty(self):
        with pytest.raises(TreeStructureError):
            validate_tree([])

    def test_validate_rejects_self_parent(self):
        with pytest.raises(TreeStructureError):
            validate_tree([source(), step("x", "x", "FILTER")])


class TestRegistry:
    """Tests for the transform registry."""

    def test_every_type_registered(self):
        assert set(list_node_types()) == set(NodeType)

    def test_create_transform_parses_params(self):
        join = create_transform(step("j", "src", "JOIN", rightTable="r", leftKey="a",
                                     rightKey="b", joinType="bogus"))
        assert isinstance(join, JoinNode)
        assert join.is_configured()
        assert join.join_type.value == "LEFT"

        agg = create_transform(step("g", "src", "AGGREGATE", groupBy="r", fn=None))
        assert isinstance(agg, AggregateNode)
        assert agg.fn == "count"

    def test_component_subtype(self):
        view = create_transform(step("v", "src", "COMPONENT", subtype="GAUGE"))
        assert isinstance(view, ComponentNode)
        assert view.subtype == ComponentType.GAUGE
        assert view.execute([{"a": 1}], None) == [{"a": 1}]

    def test_unknown_type(self):
        assert get_transform_class("SORT") is None
