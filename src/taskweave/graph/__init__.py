"""Task graph storage, traversal and mutation."""

from taskweave.graph.store import GraphStore
from taskweave.graph.cycles import would_create_cycle
from taskweave.graph.critical_path import CriticalPath, critical_path
from taskweave.graph.relationships import RelationshipManager
from taskweave.graph.traversal import (
    DependencyChain,
    TaskNode,
    blocking_set,
    dependency_chain,
    dependent_tasks,
    duplicate_tasks,
    hierarchy_tree,
    related_tasks,
)

__all__ = [
    "CriticalPath",
    "DependencyChain",
    "GraphStore",
    "RelationshipManager",
    "TaskNode",
    "blocking_set",
    "critical_path",
    "dependency_chain",
    "dependent_tasks",
    "duplicate_tasks",
    "hierarchy_tree",
    "related_tasks",
    "would_create_cycle",
]
