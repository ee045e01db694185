"""Task graph endpoints.

Read-only views over a task's edges (dependencies, hierarchy, blocking set,
critical path) plus the task mutations the graph owns: progress recompute,
priority changes and cascading delete.
"""

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskweave.api.decorators import handle_graph_errors
from taskweave.api.schemas import ApiModel, RelationshipResponse, TaskResponse
from taskweave.db.connection import get_session_dependency
from taskweave.db.models import Task
from taskweave.errors import TaskNotFoundError
from taskweave.graph import traversal
from taskweave.graph.critical_path import critical_path
from taskweave.graph.relationships import RelationshipManager
from taskweave.graph.store import GraphStore
from taskweave.graph.traversal import TaskNode
from taskweave.models.priority import TaskStatus
from taskweave.tasks.priority import update_task_priority
from taskweave.tasks.progress import recompute_progress

log = structlog.get_logger()

router = APIRouter(prefix="/tasks", tags=["tasks"])


# =============================================================================
# Request/Response Models
# =============================================================================


class TaskRelationshipsResponse(ApiModel):
    """Edges leaving and entering a task."""

    outgoing: list[RelationshipResponse]
    incoming: list[RelationshipResponse]


class DependenciesResponse(ApiModel):
    """Transitive depends_on closure of a task."""

    task_id: str
    dependencies: list[TaskResponse]
    edges: dict[str, list[str]]


class HierarchyResponse(ApiModel):
    """A task with its parent_child descendants."""

    task: TaskResponse
    children: list["HierarchyResponse"] = []

    @classmethod
    def from_node(cls, node: TaskNode) -> "HierarchyResponse":
        return cls(
            task=TaskResponse.model_validate(node.task),
            children=[cls.from_node(child) for child in node.children],
        )


class CriticalPathResponse(ApiModel):
    """Longest duration-weighted dependency chain from a task."""

    task_id: str
    path: list[str]
    duration: float


class ProgressUpdateResponse(ApiModel):
    task_id: str
    progress: int
    status: TaskStatus


class RecomputeProgressResponse(ApiModel):
    """Tasks written by a rollup, starting task first."""

    task_id: str
    updates: list[ProgressUpdateResponse]


class UpdatePriorityRequest(ApiModel):
    """Request to set a task's priority by name."""

    priority: str
    user_id: str | None = None


async def _require_task(store: GraphStore, task_id: str) -> Task:
    task = await store.find_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


# =============================================================================
# Graph Views
# =============================================================================


@router.get("/{task_id}/relationships", response_model=TaskRelationshipsResponse)
@handle_graph_errors("get_task_relationships")
async def get_task_relationships(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> TaskRelationshipsResponse:
    edges = await RelationshipManager(GraphStore(session)).for_task(task_id)
    return TaskRelationshipsResponse(
        outgoing=[RelationshipResponse.from_edge(e) for e in edges["outgoing"]],
        incoming=[RelationshipResponse.from_edge(e) for e in edges["incoming"]],
    )


@router.get("/{task_id}/dependencies", response_model=DependenciesResponse)
@handle_graph_errors("get_task_dependencies")
async def get_task_dependencies(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> DependenciesResponse:
    """Every task reachable through depends_on, in discovery order."""
    store = GraphStore(session)
    await _require_task(store, task_id)

    chain = await traversal.dependency_chain(store, task_id)
    tasks = await store.find_tasks(chain.order)
    return DependenciesResponse(
        task_id=task_id,
        dependencies=TaskResponse.from_tasks([tasks[t] for t in chain.order if t in tasks]),
        edges=chain.edges,
    )


@router.get("/{task_id}/hierarchy", response_model=HierarchyResponse)
@handle_graph_errors("get_task_hierarchy")
async def get_task_hierarchy(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> HierarchyResponse:
    tree = await traversal.hierarchy_tree(GraphStore(session), task_id)
    if tree is None:
        raise TaskNotFoundError(task_id)
    return HierarchyResponse.from_node(tree)


@router.get("/{task_id}/blocking", response_model=list[TaskResponse])
@handle_graph_errors("get_blocking_tasks")
async def get_blocking_tasks(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> list[TaskResponse]:
    """Tasks joined by blocks/blocked_by in either direction (one hop)."""
    store = GraphStore(session)
    await _require_task(store, task_id)
    return TaskResponse.from_tasks(await traversal.blocking_set(store, task_id))


@router.get("/{task_id}/dependents", response_model=list[TaskResponse])
@handle_graph_errors("get_dependent_tasks")
async def get_dependent_tasks(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> list[TaskResponse]:
    store = GraphStore(session)
    await _require_task(store, task_id)
    return TaskResponse.from_tasks(await traversal.dependent_tasks(store, task_id))


@router.get("/{task_id}/related", response_model=list[TaskResponse])
@handle_graph_errors("get_related_tasks")
async def get_related_tasks(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> list[TaskResponse]:
    store = GraphStore(session)
    await _require_task(store, task_id)
    return TaskResponse.from_tasks(await traversal.related_tasks(store, task_id))


@router.get("/{task_id}/duplicates", response_model=list[TaskResponse])
@handle_graph_errors("get_duplicate_tasks")
async def get_duplicate_tasks(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> list[TaskResponse]:
    store = GraphStore(session)
    await _require_task(store, task_id)
    return TaskResponse.from_tasks(await traversal.duplicate_tasks(store, task_id))


@router.get("/{task_id}/critical-path", response_model=CriticalPathResponse)
@handle_graph_errors("get_critical_path")
async def get_critical_path(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> CriticalPathResponse:
    store = GraphStore(session)
    await _require_task(store, task_id)
    result = await critical_path(store, task_id)
    return CriticalPathResponse(task_id=task_id, path=result.path, duration=result.duration)


# =============================================================================
# Mutations
# =============================================================================


@router.post("/{task_id}/progress", response_model=RecomputeProgressResponse)
@handle_graph_errors("recompute_progress")
async def recompute_task_progress(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> RecomputeProgressResponse:
    """Recompute progress from children and propagate up the hierarchy."""
    store = GraphStore(session)
    await _require_task(store, task_id)
    updates = await recompute_progress(store, task_id)
    await session.commit()
    return RecomputeProgressResponse(
        task_id=task_id,
        updates=[
            ProgressUpdateResponse(task_id=u.task_id, progress=u.progress, status=u.status)
            for u in updates
        ],
    )


@router.patch("/{task_id}/priority", response_model=TaskResponse)
@handle_graph_errors("update_task_priority")
async def set_task_priority(
    task_id: str,
    request: UpdatePriorityRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> TaskResponse:
    task = await update_task_priority(
        GraphStore(session), task_id, request.priority, user_id=request.user_id
    )
    await session.commit()
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=204)
@handle_graph_errors("delete_task")
async def delete_task(
    task_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> Response:
    """Delete a task with all its edges; former parents are re-rolled."""
    removed = await RelationshipManager(GraphStore(session)).delete_task(task_id)
    await session.commit()
    log.info("delete_task_success", task_id=task_id, relationships_removed=len(removed))
    return Response(status_code=204)
