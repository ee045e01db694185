"""Dependency cycle detection."""

import structlog

from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType

log = structlog.get_logger()


async def would_create_cycle(store: GraphStore, source_id: str, target_id: str) -> bool:
    """Check whether adding `source depends_on target` would close a cycle.

    Walks the existing depends_on edges outward from `target_id`; reaching
    `source_id` means the new edge would complete a loop. Each task is
    expanded at most once, so the walk is O(V+E) even when dependency chains
    share sub-dependencies.
    """
    visited: set[str] = set()
    stack = [target_id]

    while stack:
        current = stack.pop()
        if current == source_id:
            log.debug("dependency_cycle_detected", source=source_id, target=target_id)
            return True
        if current in visited:
            continue
        visited.add(current)

        edges = await store.find_relationships(
            source_id=current, types=[RelationshipType.DEPENDS_ON]
        )
        # Reversed so the first-created edge is explored first
        stack.extend(edge.target_task_id for edge in reversed(edges))

    return False
