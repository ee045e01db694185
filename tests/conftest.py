"""Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database (aiosqlite + StaticPool)
with all tables created.
"""

from collections.abc import AsyncIterator
from datetime import datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from taskweave.db.connection import create_engine_for_url, init_db, make_session_factory
from taskweave.db.models import Project, Task, TaskRelationship, User
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus

DAY0 = datetime(2025, 1, 6, 9, 0, 0)


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session: AsyncSession) -> GraphStore:
    return GraphStore(session)


class GraphBuilder:
    """Seeds projects, users, tasks and edges directly, bypassing validation."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._tick = 0

    def _next_created_at(self) -> datetime:
        # Strictly increasing timestamps keep creation order deterministic
        self._tick += 1
        return DAY0 + timedelta(seconds=self._tick)

    async def project(self, name: str = "Project") -> Project:
        project = Project(name=name)
        self.session.add(project)
        await self.session.flush()
        return project

    async def user(self, name: str = "Ada") -> User:
        user = User(name=name)
        self.session.add(user)
        await self.session.flush()
        return user

    async def task(
        self,
        project: Project,
        title: str,
        *,
        status: TaskStatus = TaskStatus.TODO,
        priority: TaskPriority = TaskPriority.MEDIUM,
        start_day: float | None = None,
        end_day: float | None = None,
        **fields: Any,
    ) -> Task:
        task = Task(
            project_id=project.id,
            title=title,
            status=status,
            priority=priority,
            start_date=DAY0 + timedelta(days=start_day) if start_day is not None else None,
            end_date=DAY0 + timedelta(days=end_day) if end_day is not None else None,
            created_at=self._next_created_at(),
            **fields,
        )
        self.session.add(task)
        await self.session.flush()
        return task

    async def edge(
        self,
        source: Task,
        target: Task,
        rel_type: RelationshipType,
        meta: dict[str, Any] | None = None,
    ) -> TaskRelationship:
        edge = TaskRelationship(
            source_task_id=source.id,
            target_task_id=target.id,
            type=rel_type,
            meta=meta,
            created_at=self._next_created_at(),
        )
        self.session.add(edge)
        await self.session.flush()
        return edge


@pytest.fixture
def graph(session: AsyncSession) -> GraphBuilder:
    return GraphBuilder(session)
