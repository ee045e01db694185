"""Progress rollup along parent_child edges."""

import math
from dataclasses import dataclass

import structlog

from taskweave.db.models import ActivityType
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType, TaskStatus

log = structlog.get_logger()


@dataclass
class ProgressUpdate:
    """Progress and status written to one task during a rollup."""

    task_id: str
    progress: int
    status: TaskStatus


def status_for_progress(progress: int) -> TaskStatus:
    """Derive a task status from its rollup percentage."""
    if progress >= 100:
        return TaskStatus.DONE
    if progress > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.TODO


def rollup_percentage(done: int, total: int) -> int:
    """Completion percentage rounded half-up."""
    if total <= 0:
        return 0
    return math.floor(100 * done / total + 0.5)


async def recompute_progress(store: GraphStore, task_id: str) -> list[ProgressUpdate]:
    """Recompute a task's progress from its children, then walk up to its parents.

    A task with parent_child children gets `round(100 * done / total)` and
    the matching status. Whether or not it has children, its parent (if any)
    is recomputed next, all the way up. A visited set stops the walk on
    corrupt cyclic hierarchies; a missing task ends the walk quietly.
    Dangling child edges are not counted.
    """
    updates: list[ProgressUpdate] = []
    visited: set[str] = set()
    current: str | None = task_id

    while current is not None and current not in visited:
        visited.add(current)

        task = await store.find_task(current)
        if task is None:
            log.debug("rollup_missing_task", task_id=current)
            break

        child_edges = await store.find_relationships(
            source_id=current, types=[RelationshipType.PARENT_CHILD]
        )
        if child_edges:
            children = await store.find_tasks(e.target_task_id for e in child_edges)
            statuses = [
                children[e.target_task_id].status
                for e in child_edges
                if e.target_task_id in children
            ]
            if statuses:
                done = sum(1 for s in statuses if s == TaskStatus.DONE)
                progress = rollup_percentage(done, len(statuses))
                status = status_for_progress(progress)
                previous = (task.progress, task.status)

                await store.update_task_progress_and_status(current, progress, status)
                updates.append(ProgressUpdate(task_id=current, progress=progress, status=status))

                if previous != (progress, status):
                    await store.create_activity(
                        current,
                        ActivityType.PROGRESS_UPDATED,
                        meta={
                            "previousValue": {"progress": previous[0], "status": previous[1]},
                            "newValue": {"progress": progress, "status": status},
                        },
                    )

        parent_edges = await store.find_relationships(
            target_id=current, types=[RelationshipType.PARENT_CHILD]
        )
        current = parent_edges[0].source_task_id if parent_edges else None

    if updates:
        log.info("progress_rolled_up", task_id=task_id, updated=len(updates))
    return updates
