"""Storage access for the task graph.

`GraphStore` is the only place that issues queries for tasks, edges, rules,
activity and notifications. It never commits; callers own the transaction.
"""

from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from taskweave.db.models import (
    Activity,
    Notification,
    PriorityRule,
    Project,
    Task,
    TaskRelationship,
    utcnow_naive,
)
from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus

log = structlog.get_logger()


class GraphStore:
    """Task graph persistence over an AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def find_task(self, task_id: str) -> Task | None:
        return await self._session.get(Task, task_id)

    async def find_tasks(self, task_ids: Iterable[str]) -> dict[str, Task]:
        ids = list(dict.fromkeys(task_ids))
        if not ids:
            return {}
        result = await self._session.execute(select(Task).where(col(Task.id).in_(ids)))
        return {task.id: task for task in result.scalars().all()}

    async def update_task_priority(self, task_id: str, priority: TaskPriority) -> Task | None:
        task = await self.find_task(task_id)
        if task is None:
            return None
        task.priority = priority
        task.updated_at = utcnow_naive()
        self._session.add(task)
        await self._session.flush()
        return task

    async def update_task_progress_and_status(
        self, task_id: str, progress: int, status: TaskStatus
    ) -> Task | None:
        task = await self.find_task(task_id)
        if task is None:
            return None
        task.progress = progress
        task.status = status
        task.updated_at = utcnow_naive()
        self._session.add(task)
        await self._session.flush()
        return task

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task and the activity/notification rows that point at it.

        Edges must be removed first with `delete_relationships_for_task`.
        """
        task = await self.find_task(task_id)
        if task is None:
            return False
        await self._session.execute(delete(Activity).where(col(Activity.task_id) == task_id))
        await self._session.execute(
            delete(Notification).where(col(Notification.task_id) == task_id)
        )
        await self._session.delete(task)
        await self._session.flush()
        return True

    async def find_open_tasks_with_rules(self) -> list[Task]:
        """Tasks not yet done in projects that have at least one enabled rule."""
        projects_with_rules = select(PriorityRule.project_id).where(
            col(PriorityRule.enabled).is_(True)
        )
        result = await self._session.execute(
            select(Task)
            .where(col(Task.status) != TaskStatus.DONE)
            .where(col(Task.project_id).in_(projects_with_rules))
            .order_by(col(Task.created_at), col(Task.id))
        )
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------

    async def find_relationship(self, relationship_id: str) -> TaskRelationship | None:
        return await self._session.get(TaskRelationship, relationship_id)

    async def find_relationships(
        self,
        *,
        source_id: str | None = None,
        target_id: str | None = None,
        types: Sequence[RelationshipType] | None = None,
    ) -> list[TaskRelationship]:
        """Edges matching every given filter, in creation order."""
        query = select(TaskRelationship)
        if source_id is not None:
            query = query.where(col(TaskRelationship.source_task_id) == source_id)
        if target_id is not None:
            query = query.where(col(TaskRelationship.target_task_id) == target_id)
        if types:
            query = query.where(col(TaskRelationship.type).in_(list(types)))
        query = query.order_by(col(TaskRelationship.created_at), col(TaskRelationship.id))
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def find_edges_touching(
        self, task_id: str, types: Sequence[RelationshipType]
    ) -> list[TaskRelationship]:
        """Edges of the given types with the task on either end, in creation order."""
        result = await self._session.execute(
            select(TaskRelationship)
            .where(
                or_(
                    col(TaskRelationship.source_task_id) == task_id,
                    col(TaskRelationship.target_task_id) == task_id,
                )
            )
            .where(col(TaskRelationship.type).in_(list(types)))
            .order_by(col(TaskRelationship.created_at), col(TaskRelationship.id))
        )
        return list(result.scalars().all())

    async def create_relationship(
        self,
        source_id: str,
        target_id: str,
        rel_type: RelationshipType,
        meta: dict[str, Any] | None = None,
    ) -> TaskRelationship:
        edge = TaskRelationship(
            source_task_id=source_id,
            target_task_id=target_id,
            type=rel_type,
            meta=meta,
        )
        self._session.add(edge)
        await self._session.flush()
        log.debug("relationship_created", id=edge.id, type=rel_type, source=source_id, target=target_id)
        return edge

    async def update_relationship(
        self,
        edge: TaskRelationship,
        *,
        rel_type: RelationshipType | None = None,
        meta: dict[str, Any] | None = None,
    ) -> TaskRelationship:
        if rel_type is not None:
            edge.type = rel_type
        if meta is not None:
            edge.meta = meta
        self._session.add(edge)
        await self._session.flush()
        return edge

    async def delete_relationship(self, relationship_id: str) -> TaskRelationship | None:
        edge = await self.find_relationship(relationship_id)
        if edge is None:
            return None
        await self._session.delete(edge)
        await self._session.flush()
        return edge

    async def delete_relationships_for_task(self, task_id: str) -> list[TaskRelationship]:
        """Remove every edge with the task on either end."""
        edges = await self.find_edges_touching(task_id, list(RelationshipType))
        for edge in edges:
            await self._session.delete(edge)
        await self._session.flush()
        return edges

    # -------------------------------------------------------------------------
    # Activity / notifications
    # -------------------------------------------------------------------------

    async def find_latest_activity(self, task_id: str) -> Activity | None:
        result = await self._session.execute(
            select(Activity)
            .where(col(Activity.task_id) == task_id)
            .order_by(col(Activity.created_at).desc())
            .limit(1)
        )
        return result.scalars().first()

    async def create_activity(
        self,
        task_id: str,
        activity_type: str,
        *,
        meta: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> Activity:
        activity = Activity(task_id=task_id, type=activity_type, meta=meta, user_id=user_id)
        self._session.add(activity)
        await self._session.flush()
        return activity

    async def create_notification(
        self,
        user_id: str,
        *,
        task_id: str | None,
        notification_type: str,
        title: str,
        content: str,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            task_id=task_id,
            type=notification_type,
            title=title,
            content=content,
        )
        self._session.add(notification)
        await self._session.flush()
        return notification

    # -------------------------------------------------------------------------
    # Priority rules
    # -------------------------------------------------------------------------

    async def find_project(self, project_id: str) -> Project | None:
        return await self._session.get(Project, project_id)

    async def find_rule(self, rule_id: str) -> PriorityRule | None:
        return await self._session.get(PriorityRule, rule_id)

    async def find_rules(self, project_id: str, *, enabled_only: bool = False) -> list[PriorityRule]:
        query = select(PriorityRule).where(col(PriorityRule.project_id) == project_id)
        if enabled_only:
            query = query.where(col(PriorityRule.enabled).is_(True))
        query = query.order_by(col(PriorityRule.created_at), col(PriorityRule.id))
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def save_rule(self, rule: PriorityRule) -> PriorityRule:
        rule.updated_at = utcnow_naive()
        self._session.add(rule)
        await self._session.flush()
        return rule

    async def delete_rule(self, rule_id: str) -> bool:
        rule = await self.find_rule(rule_id)
        if rule is None:
            return False
        await self._session.delete(rule)
        await self._session.flush()
        return True
