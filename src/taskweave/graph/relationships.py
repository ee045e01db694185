"""Relationship management for the task graph.

Every edge mutation goes through `RelationshipManager` so the graph
invariants are checked in one place: no self-loops, both endpoints exist and
share a project, and depends_on never closes a cycle.
"""

from typing import Any

import structlog

from taskweave.db.models import ActivityType, TaskRelationship
from taskweave.errors import (
    CrossProjectRelationshipError,
    DependencyCycleError,
    RelationshipNotFoundError,
    SelfLoopError,
    TaskNotFoundError,
)
from taskweave.graph.cycles import would_create_cycle
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType
from taskweave.models.relationships import RelationshipMetadata
from taskweave.tasks.progress import recompute_progress

log = structlog.get_logger()


def _metadata_json(metadata: RelationshipMetadata | dict[str, Any] | None) -> dict[str, Any] | None:
    if metadata is None:
        return None
    if isinstance(metadata, dict):
        metadata = RelationshipMetadata.model_validate(metadata)
    return metadata.to_json()


class RelationshipManager:
    """Create, update and delete task relationships."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    async def create(
        self,
        source_task_id: str,
        target_task_id: str,
        rel_type: RelationshipType,
        metadata: RelationshipMetadata | dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> TaskRelationship:
        """Validate and insert a new edge.

        Raises:
            SelfLoopError: source and target are the same task.
            TaskNotFoundError: either endpoint is missing.
            CrossProjectRelationshipError: endpoints belong to different projects.
            DependencyCycleError: a depends_on edge would close a cycle.
        """
        if source_task_id == target_task_id:
            raise SelfLoopError(source_task_id)

        tasks = await self._store.find_tasks([source_task_id, target_task_id])
        for task_id in (source_task_id, target_task_id):
            if task_id not in tasks:
                raise TaskNotFoundError(task_id)

        source, target = tasks[source_task_id], tasks[target_task_id]
        if source.project_id != target.project_id:
            raise CrossProjectRelationshipError(source_task_id, target_task_id)

        if rel_type == RelationshipType.DEPENDS_ON and await would_create_cycle(
            self._store, source_task_id, target_task_id
        ):
            log.info(
                "relationship_rejected_cycle",
                source_task_id=source_task_id,
                target_task_id=target_task_id,
            )
            raise DependencyCycleError(source_task_id, target_task_id)

        edge = await self._store.create_relationship(
            source_task_id, target_task_id, rel_type, _metadata_json(metadata)
        )
        await self._store.create_activity(
            source_task_id,
            ActivityType.DEPENDENCY_ADDED,
            meta={"relationshipId": edge.id, "type": rel_type.value, "targetTaskId": target_task_id},
            user_id=user_id,
        )

        if rel_type == RelationshipType.PARENT_CHILD:
            await recompute_progress(self._store, source_task_id)

        log.info(
            "relationship_created",
            relationship_id=edge.id,
            type=rel_type,
            source_task_id=source_task_id,
            target_task_id=target_task_id,
        )
        return edge

    async def get(self, relationship_id: str) -> TaskRelationship:
        edge = await self._store.find_relationship(relationship_id)
        if edge is None:
            raise RelationshipNotFoundError(relationship_id)
        return edge

    async def update(
        self,
        relationship_id: str,
        *,
        rel_type: RelationshipType | None = None,
        metadata: RelationshipMetadata | dict[str, Any] | None = None,
    ) -> TaskRelationship:
        """Change an edge's type and/or metadata.

        Retyping an edge to depends_on runs the same cycle check as creation.
        """
        edge = await self.get(relationship_id)

        if (
            rel_type == RelationshipType.DEPENDS_ON
            and edge.type != RelationshipType.DEPENDS_ON
            and await would_create_cycle(self._store, edge.source_task_id, edge.target_task_id)
        ):
            raise DependencyCycleError(edge.source_task_id, edge.target_task_id)

        was_parent_child = edge.type == RelationshipType.PARENT_CHILD
        edge = await self._store.update_relationship(
            edge, rel_type=rel_type, meta=_metadata_json(metadata)
        )
        if was_parent_child or edge.type == RelationshipType.PARENT_CHILD:
            await recompute_progress(self._store, edge.source_task_id)
        return edge

    async def update_progress(self, relationship_id: str, progress: float) -> TaskRelationship:
        """Record progress on an edge, keeping its other metadata."""
        edge = await self.get(relationship_id)
        meta = dict(edge.meta or {})
        meta["progress"] = progress
        return await self._store.update_relationship(edge, meta=_metadata_json(meta))

    async def delete(self, relationship_id: str, *, user_id: str | None = None) -> TaskRelationship:
        edge = await self._store.delete_relationship(relationship_id)
        if edge is None:
            raise RelationshipNotFoundError(relationship_id)
        await self._after_delete([edge], user_id=user_id)
        return edge

    async def delete_between(
        self, source_task_id: str, target_task_id: str, rel_type: RelationshipType
    ) -> int:
        """Delete every edge of `rel_type` from source to target; returns how many."""
        edges = await self._store.find_relationships(
            source_id=source_task_id, target_id=target_task_id, types=[rel_type]
        )
        for edge in edges:
            await self._store.delete_relationship(edge.id)
        await self._after_delete(edges)
        return len(edges)

    async def for_task(self, task_id: str) -> dict[str, list[TaskRelationship]]:
        """Edges leaving and entering a task."""
        if await self._store.find_task(task_id) is None:
            raise TaskNotFoundError(task_id)
        return {
            "outgoing": await self._store.find_relationships(source_id=task_id),
            "incoming": await self._store.find_relationships(target_id=task_id),
        }

    async def delete_task(self, task_id: str) -> list[TaskRelationship]:
        """Delete a task, cascading its edges and re-rolling its former parents."""
        if await self._store.find_task(task_id) is None:
            raise TaskNotFoundError(task_id)

        edges = await self._store.delete_relationships_for_task(task_id)
        await self._store.delete_task(task_id)

        parents = [
            e.source_task_id
            for e in edges
            if e.type == RelationshipType.PARENT_CHILD and e.target_task_id == task_id
        ]
        for parent_id in dict.fromkeys(parents):
            await recompute_progress(self._store, parent_id)

        log.info("task_deleted", task_id=task_id, relationships_removed=len(edges))
        return edges

    async def _after_delete(
        self, edges: list[TaskRelationship], *, user_id: str | None = None
    ) -> None:
        for edge in edges:
            if await self._store.find_task(edge.source_task_id) is not None:
                await self._store.create_activity(
                    edge.source_task_id,
                    ActivityType.DEPENDENCY_REMOVED,
                    meta={"relationshipId": edge.id, "type": edge.type.value},
                    user_id=user_id,
                )
        parents = [e.source_task_id for e in edges if e.type == RelationshipType.PARENT_CHILD]
        for parent_id in dict.fromkeys(parents):
            await recompute_progress(self._store, parent_id)
