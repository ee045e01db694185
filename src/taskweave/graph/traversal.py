"""Read-only traversals over the task graph.

All traversals rebuild what they need from storage on each call and never
mutate the graph. Tasks with no edges of the relevant type produce an empty
result rather than an error.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from taskweave.db.models import Task
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType

log = structlog.get_logger()


@dataclass
class DependencyChain:
    """Transitive depends_on closure of a root task."""

    root_id: str
    order: list[str] = field(default_factory=list)  # discovery order, root excluded
    edges: dict[str, list[str]] = field(default_factory=dict)  # task -> its dependencies

    def __len__(self) -> int:
        return len(self.order)

    @property
    def task_ids(self) -> list[str]:
        """Root plus every reachable dependency."""
        return [self.root_id, *self.order]


@dataclass
class TaskNode:
    """A task with its parent_child descendants."""

    task: Task
    children: list["TaskNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.model_dump(mode="json"),
            "children": [child.to_dict() for child in self.children],
        }


async def dependency_chain(store: GraphStore, root_id: str) -> DependencyChain:
    """Collect every task reachable from `root_id` via depends_on, depth-first.

    Each task is expanded once; edges are followed in creation order.
    """
    chain = DependencyChain(root_id=root_id)
    visited: set[str] = set()
    discovered: set[str] = {root_id}

    async def traverse(current_id: str) -> None:
        if current_id in visited:
            return
        visited.add(current_id)

        edges = await store.find_relationships(
            source_id=current_id, types=[RelationshipType.DEPENDS_ON]
        )
        chain.edges[current_id] = [edge.target_task_id for edge in edges]

        for edge in edges:
            dep_id = edge.target_task_id
            if dep_id not in discovered:
                discovered.add(dep_id)
                chain.order.append(dep_id)
            await traverse(dep_id)

    await traverse(root_id)
    return chain


async def hierarchy_tree(store: GraphStore, root_id: str) -> TaskNode | None:
    """Rebuild the parent_child tree under `root_id`.

    parent_child is expected to be acyclic, but a task already placed in the
    tree is never expanded again so corrupt data cannot recurse forever.
    Returns None when the root task does not exist.
    """
    visited: set[str] = set()

    async def build(task_id: str) -> TaskNode | None:
        if task_id in visited:
            return None
        visited.add(task_id)

        task = await store.find_task(task_id)
        if task is None:
            log.debug("hierarchy_dangling_task", task_id=task_id)
            return None

        node = TaskNode(task=task)
        edges = await store.find_relationships(
            source_id=task_id, types=[RelationshipType.PARENT_CHILD]
        )
        for edge in edges:
            child = await build(edge.target_task_id)
            if child is not None:
                node.children.append(child)
        return node

    return await build(root_id)


async def _one_hop(
    store: GraphStore,
    task_id: str,
    *,
    outgoing: Sequence[RelationshipType],
    incoming: Sequence[RelationshipType],
) -> list[Task]:
    """Tasks one edge away: targets of `outgoing` edges and sources of `incoming` edges."""
    edges = await store.find_edges_touching(task_id, [*outgoing, *incoming])

    neighbour_ids: list[str] = []
    for edge in edges:
        if edge.source_task_id == task_id and edge.type in outgoing:
            other = edge.target_task_id
        elif edge.target_task_id == task_id and edge.type in incoming:
            other = edge.source_task_id
        else:
            continue
        if other != task_id and other not in neighbour_ids:
            neighbour_ids.append(other)

    tasks = await store.find_tasks(neighbour_ids)
    return [tasks[tid] for tid in neighbour_ids if tid in tasks]


_BLOCKING_TYPES = (RelationshipType.BLOCKS, RelationshipType.BLOCKED_BY)


async def blocking_set(store: GraphStore, task_id: str) -> list[Task]:
    """Tasks joined to `task_id` by a blocks/blocked_by edge in either direction.

    One hop only; blockers of blockers are not included.
    """
    return await _one_hop(store, task_id, outgoing=_BLOCKING_TYPES, incoming=_BLOCKING_TYPES)


async def dependent_tasks(store: GraphStore, task_id: str) -> list[Task]:
    """Tasks that directly need `task_id` to finish first."""
    return await _one_hop(
        store,
        task_id,
        outgoing=[RelationshipType.REQUIRED_FOR],
        incoming=[RelationshipType.DEPENDS_ON],
    )


async def related_tasks(store: GraphStore, task_id: str) -> list[Task]:
    """Tasks linked by related_to in either direction."""
    related = [RelationshipType.RELATED_TO]
    return await _one_hop(store, task_id, outgoing=related, incoming=related)


async def duplicate_tasks(store: GraphStore, task_id: str) -> list[Task]:
    """Tasks that `task_id` duplicates.

    Either `task_id duplicates X` or `X duplicated_by task_id`. The reverse
    edges name tasks that duplicate this one and are not included.
    """
    return await _one_hop(
        store,
        task_id,
        outgoing=[RelationshipType.DUPLICATES],
        incoming=[RelationshipType.DUPLICATED_BY],
    )
