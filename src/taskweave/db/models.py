"""SQLModel schemas for taskweave storage.

This module defines the tables for:
- Projects, users and tasks (the graph's nodes)
- Typed task relationships (the graph's edges)
- Per-project priority rules
- Activity records and notifications written by the escalation engine

Architecture:
- Task: node with status, priority, scheduling dates and rollup progress
- TaskRelationship: directed typed edge; metadata is free-form JSON
- PriorityRule: JSON conditions parsed into clause models at the boundary
- Activity / Notification: append-only side effects of graph mutations
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Column, Enum, Index, text
from sqlmodel import Field, SQLModel

from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus


def utcnow_naive() -> datetime:
    """Get current UTC time as naive datetime (for TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    """Generate a new string identifier."""
    return str(uuid4())


def _enum_column(enum_cls: type[StrEnum], name: str, default: StrEnum) -> Column:
    return Column(
        Enum(
            enum_cls,
            name=name,
            values_callable=lambda enum: [e.value for e in enum],
            native_enum=False,
            length=32,
        ),
        nullable=False,
        server_default=text(f"'{default.value}'"),
    )


# =============================================================================
# Base Model
# =============================================================================


class TimestampMixin(SQLModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was created",
    )
    updated_at: datetime = Field(
        default_factory=utcnow_naive,
        description="When this record was last updated",
        sa_column_kwargs={"onupdate": utcnow_naive},
    )


# =============================================================================
# Project / User
# =============================================================================


class Project(TimestampMixin, table=True):
    """A project owning tasks and priority rules."""

    __tablename__ = "projects"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=255, description="Project display name")

    def __repr__(self) -> str:
        return f"<Project id={self.id!r} name={self.name!r}>"


class User(TimestampMixin, table=True):
    """A user that tasks can be assigned to."""

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(default="", max_length=255, description="Display name")
    email: str | None = Field(default=None, max_length=255, unique=True, index=True)


# =============================================================================
# Task - graph node
# =============================================================================


class Task(TimestampMixin, table=True):
    """A unit of work."""

    __tablename__ = "tasks"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    project_id: str = Field(foreign_key="projects.id", index=True, max_length=64)
    title: str = Field(max_length=500)
    status: TaskStatus = Field(
        default=TaskStatus.TODO,
        sa_column=_enum_column(TaskStatus, "taskstatus", TaskStatus.TODO),
    )
    priority: TaskPriority = Field(
        default=TaskPriority.MEDIUM,
        sa_column=_enum_column(TaskPriority, "taskpriority", TaskPriority.MEDIUM),
    )
    due_date: datetime | None = Field(default=None, description="When the task is due")
    start_date: datetime | None = Field(default=None, description="Planned start")
    end_date: datetime | None = Field(default=None, description="Planned end")
    progress: int = Field(default=0, ge=0, le=100, description="Completion percentage")
    assignee_id: str | None = Field(
        default=None, foreign_key="users.id", index=True, max_length=64
    )

    @property
    def duration_days(self) -> float:
        """Planned duration in days; zero unless both start and end are set."""
        if self.start_date is None or self.end_date is None:
            return 0.0
        return (self.end_date - self.start_date).total_seconds() / 86400

    def __repr__(self) -> str:
        return f"<Task id={self.id!r} status={self.status} priority={self.priority}>"


# =============================================================================
# TaskRelationship - graph edge
# =============================================================================


class TaskRelationship(SQLModel, table=True):
    """A directed, typed edge between two tasks."""

    __tablename__ = "task_relationships"
    __table_args__ = (
        Index("ix_task_relationships_source_type", "source_task_id", "type"),
        Index("ix_task_relationships_target_type", "target_task_id", "type"),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    source_task_id: str = Field(foreign_key="tasks.id", max_length=64)
    target_task_id: str = Field(foreign_key="tasks.id", max_length=64)
    type: RelationshipType = Field(
        sa_column=_enum_column(RelationshipType, "relationshiptype", RelationshipType.RELATED_TO),
    )
    # Column is named "metadata"; that attribute name is reserved on declarative models
    meta: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )
    created_at: datetime = Field(default_factory=utcnow_naive, index=True)

    def __repr__(self) -> str:
        return (
            f"<TaskRelationship {self.source_task_id!r} -{self.type}-> {self.target_task_id!r}>"
        )


# =============================================================================
# PriorityRule
# =============================================================================


class PriorityRule(TimestampMixin, table=True):
    """A per-project declarative escalation policy."""

    __tablename__ = "priority_rules"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    project_id: str = Field(foreign_key="projects.id", index=True, max_length=64)
    conditions: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Stored clause JSON (dueDate / dependencies / inactivity)",
    )
    enabled: bool = Field(default=True)


# =============================================================================
# Activity / Notification
# =============================================================================


class ActivityType(StrEnum):
    """Kinds of task activity recorded by the engine."""

    PRIORITY_CHANGED = "priority_changed"
    PROGRESS_UPDATED = "progress_updated"
    DEPENDENCY_ADDED = "dependency_added"
    DEPENDENCY_REMOVED = "dependency_removed"


class Activity(SQLModel, table=True):
    """An activity log entry for a task."""

    __tablename__ = "activities"
    __table_args__ = (Index("ix_activities_task_created", "task_id", "created_at"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    task_id: str = Field(foreign_key="tasks.id", max_length=64)
    user_id: str | None = Field(default=None, foreign_key="users.id", max_length=64)
    type: str = Field(max_length=64)
    meta: dict[str, Any] | None = Field(
        default=None,
        sa_column=Column("metadata", JSON, nullable=True),
    )
    created_at: datetime = Field(default_factory=utcnow_naive)


class Notification(SQLModel, table=True):
    """A notification addressed to a user."""

    __tablename__ = "notifications"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=64)
    task_id: str | None = Field(default=None, foreign_key="tasks.id", max_length=64)
    type: str = Field(max_length=64)
    title: str = Field(max_length=255)
    content: str = Field(default="")
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow_naive)
