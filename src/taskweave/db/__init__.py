"""taskweave database module.

This module provides:
- SQLModel schemas for tasks, relationships, rules, activity and notifications
- Async connection management with SQLAlchemy 2.0

Usage:
    from taskweave.db import get_session, Task

    async with get_session() as session:
        session.add(Task(project_id=project.id, title="Write docs"))
        await session.commit()
"""

from taskweave.db.connection import (
    async_session_factory,
    check_db_health,
    close_db,
    create_engine_for_url,
    get_engine,
    get_session,
    get_session_dependency,
    get_session_factory_dependency,
    init_db,
    make_session_factory,
)
from taskweave.db.models import (
    Activity,
    ActivityType,
    Notification,
    PriorityRule,
    Project,
    Task,
    TaskRelationship,
    User,
    new_id,
    utcnow_naive,
)

__all__ = [
    # Connection
    "async_session_factory",
    "check_db_health",
    "close_db",
    "create_engine_for_url",
    "get_engine",
    "get_session",
    "get_session_dependency",
    "get_session_factory_dependency",
    "init_db",
    "make_session_factory",
    # Models
    "Activity",
    "ActivityType",
    "Notification",
    "PriorityRule",
    "Project",
    "Task",
    "TaskRelationship",
    "User",
    "new_id",
    "utcnow_naive",
]
