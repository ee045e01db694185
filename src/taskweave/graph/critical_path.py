"""Critical path through a task's dependency closure."""

from dataclasses import dataclass, field

import structlog

from taskweave.graph.store import GraphStore
from taskweave.graph.traversal import dependency_chain

log = structlog.get_logger()


@dataclass
class CriticalPath:
    """Longest duration-weighted chain of depends_on edges from a root task."""

    path: list[str] = field(default_factory=list)
    duration: float = 0.0


async def critical_path(store: GraphStore, root_id: str) -> CriticalPath:
    """Find the longest root-to-leaf chain by summed task duration.

    The depends_on closure is bounded first, then explored depth-first in
    edge-creation order without memoization. Each task contributes its planned
    duration in days (zero unless both start and end dates are set). A leaf
    replaces the best answer only when its accumulated total is strictly
    greater, so ties keep the first chain discovered. Returns an empty path
    with zero duration when no chain has a positive duration.
    """
    chain = await dependency_chain(store, root_id)
    tasks = await store.find_tasks(chain.task_ids)

    best = CriticalPath()

    def explore(task_id: str, path: list[str], accumulated: float) -> None:
        nonlocal best
        task = tasks.get(task_id)
        if task is None:
            return

        path = [*path, task_id]
        total = accumulated + task.duration_days
        # Tasks already on this path are skipped so cyclic data still terminates
        deps = [d for d in chain.edges.get(task_id, []) if d not in path and d in tasks]

        if not deps:
            if total > best.duration:
                best = CriticalPath(path=path, duration=total)
            return

        for dep_id in deps:
            explore(dep_id, path, total)

    explore(root_id, [], 0.0)

    log.debug(
        "critical_path_computed",
        root_id=root_id,
        closure_size=len(chain),
        path_length=len(best.path),
        duration=best.duration,
    )
    return best
