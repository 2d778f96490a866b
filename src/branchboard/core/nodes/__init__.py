"""Pipeline tree model and evaluation engine for branchboard.

This package provides the node model, the per-type transforms and the
evaluation pass that turns a snapshot into per-node results.
"""

from .base import (
    Node,
    Row,
    Snapshot,
    Transform,
    register_node,
    get_transform_class,
    create_transform,
    list_node_types,
    snapshot_to_list,
    snapshot_from_list,
)

from .tree import (
    TreeStructureError,
    build_child_index,
    calculation_order,
    count_descendants,
    descendant_ids,
    find_node,
    find_root,
    get_children,
    validate_tree,
)

from .pipeline import (
    TableSet,
    NodeResult,
    ViewSettings,
    derive_schema,
    evaluate_tree,
)

# Import all node types to register them
from . import source_nodes
from . import transform_nodes
from . import component_nodes

__all__ = [
    'Node',
    'Row',
    'Snapshot',
    'Transform',
    'register_node',
    'get_transform_class',
    'create_transform',
    'list_node_types',
    'snapshot_to_list',
    'snapshot_from_list',
    'TreeStructureError',
    'build_child_index',
    'calculation_order',
    'count_descendants',
    'descendant_ids',
    'find_node',
    'find_root',
    'get_children',
    'validate_tree',
    'TableSet',
    'NodeResult',
    'ViewSettings',
    'derive_schema',
    'evaluate_tree',
]
