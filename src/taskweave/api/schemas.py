"""Response models shared across routers.

Bodies are camelCase on the wire; request models accept either casing.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from taskweave.db.models import PriorityRule, Task, TaskRelationship
from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus


class ApiModel(BaseModel):
    """Base for request and response bodies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskResponse(ApiModel):
    """A task as returned by graph endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    progress: int
    due_date: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    assignee_id: str | None = None

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> list["TaskResponse"]:
        return [cls.model_validate(task) for task in tasks]


class RelationshipResponse(ApiModel):
    """A stored edge."""

    id: str
    source_task_id: str
    target_task_id: str
    type: RelationshipType
    metadata: dict[str, Any] | None = None
    created_at: datetime

    @classmethod
    def from_edge(cls, edge: TaskRelationship) -> "RelationshipResponse":
        # The ORM attribute is `meta`; `metadata` belongs to the declarative base
        return cls(
            id=edge.id,
            source_task_id=edge.source_task_id,
            target_task_id=edge.target_task_id,
            type=edge.type,
            metadata=edge.meta,
            created_at=edge.created_at,
        )


class PriorityRuleResponse(ApiModel):
    """A stored priority rule."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    conditions: dict[str, Any]
    enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rule(cls, rule: PriorityRule) -> "PriorityRuleResponse":
        return cls.model_validate(rule)
