"""HTTP tests for the API routers.

Requests go through httpx's ASGI transport on the test's own event loop, with
the session dependencies pointed at the per-test in-memory database.
"""

from collections.abc import AsyncIterator
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio

from taskweave.api import create_app
from taskweave.db.connection import get_session_dependency, get_session_factory_dependency
from taskweave.db.models import Task, utcnow_naive
from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(manage_db=False)

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session_dependency] = override_session
    app.dependency_overrides[get_session_factory_dependency] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.asyncio
    async def test_health(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == {"status": "healthy"}


class TestRelationshipRoutes:
    """Tests for /relationships."""

    @pytest.mark.asyncio
    async def test_create_relationship(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        b = await graph.task(project, "B")
        await session.commit()

        response = await client.post(
            "/relationships",
            json={
                "sourceTaskId": a.id,
                "targetTaskId": b.id,
                "type": "depends_on",
                "metadata": {"description": "needs schema"},
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["sourceTaskId"] == a.id
        assert body["targetTaskId"] == b.id
        assert body["type"] == "depends_on"
        assert body["metadata"] == {"description": "needs schema"}

        fetched = await client.get(f"/relationships/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == body["id"]

    @pytest.mark.asyncio
    async def test_self_loop_is_400(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        await session.commit()

        response = await client.post(
            "/relationships",
            json={"sourceTaskId": a.id, "targetTaskId": a.id, "type": "blocks"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "self_loop"

    @pytest.mark.asyncio
    async def test_cycle_is_400(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        b = await graph.task(project, "B")
        await graph.edge(a, b, RelationshipType.DEPENDS_ON)
        await session.commit()

        response = await client.post(
            "/relationships",
            json={"sourceTaskId": b.id, "targetTaskId": a.id, "type": "depends_on"},
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "dependency_cycle"
        assert "circular" in detail["message"]

    @pytest.mark.asyncio
    async def test_missing_task_is_404(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        await session.commit()

        response = await client.post(
            "/relationships",
            json={"sourceTaskId": a.id, "targetTaskId": "ghost", "type": "blocks"},
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client) -> None:
        response = await client.post("/relationships", json={"sourceTaskId": "x"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "invalid_input"
        assert detail["errors"]

    @pytest.mark.asyncio
    async def test_unknown_relationship_is_404(self, client) -> None:
        response = await client.delete("/relationships/nope")
        assert response.status_code == 404


class TestTaskRoutes:
    """Tests for /tasks."""

    @pytest.mark.asyncio
    async def test_critical_path(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        b = await graph.task(project, "B", start_day=0, end_day=5)
        c = await graph.task(project, "C", start_day=5, end_day=8)
        await graph.edge(a, b, RelationshipType.DEPENDS_ON)
        await graph.edge(b, c, RelationshipType.DEPENDS_ON)
        await session.commit()

        response = await client.get(f"/tasks/{a.id}/critical-path")

        assert response.status_code == 200
        body = response.json()
        assert body["path"] == [a.id, b.id, c.id]
        assert body["duration"] == pytest.approx(8.0)

    @pytest.mark.asyncio
    async def test_hierarchy_and_progress(self, client, graph, session) -> None:
        project = await graph.project()
        parent = await graph.task(project, "P")
        done = await graph.task(project, "Done", status=TaskStatus.DONE)
        todo = await graph.task(project, "Todo")
        await graph.edge(parent, done, RelationshipType.PARENT_CHILD)
        await graph.edge(parent, todo, RelationshipType.PARENT_CHILD)
        await session.commit()

        tree = await client.get(f"/tasks/{parent.id}/hierarchy")
        assert tree.status_code == 200
        assert [child["task"]["id"] for child in tree.json()["children"]] == [done.id, todo.id]

        response = await client.post(f"/tasks/{parent.id}/progress")
        assert response.status_code == 200
        assert response.json()["updates"] == [
            {"taskId": parent.id, "progress": 50, "status": "in_progress"}
        ]

    @pytest.mark.asyncio
    async def test_unknown_task_is_404(self, client) -> None:
        response = await client.get("/tasks/ghost/dependencies")
        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Task not found: ghost"

    @pytest.mark.asyncio
    async def test_set_priority(self, client, graph, session) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        await session.commit()

        response = await client.patch(f"/tasks/{a.id}/priority", json={"priority": "high"})
        assert response.status_code == 200
        assert response.json()["priority"] == "high"

        bad = await client.patch(f"/tasks/{a.id}/priority", json={"priority": "asap"})
        assert bad.status_code == 400
        assert bad.json()["detail"]["code"] == "invalid_priority"

    @pytest.mark.asyncio
    async def test_delete_task(self, client, graph, session, session_factory) -> None:
        project = await graph.project()
        a = await graph.task(project, "A")
        b = await graph.task(project, "B")
        await graph.edge(a, b, RelationshipType.BLOCKS)
        await session.commit()

        response = await client.delete(f"/tasks/{b.id}")
        assert response.status_code == 204

        async with session_factory() as s:
            assert await s.get(Task, b.id) is None
        edges = await client.get(f"/tasks/{a.id}/relationships")
        assert edges.json() == {"outgoing": [], "incoming": []}


class TestPriorityRuleRoutes:
    """Tests for priority rule CRUD and the sweep endpoint."""

    @pytest.mark.asyncio
    async def test_rule_crud(self, client, graph, session) -> None:
        project = await graph.project()
        await session.commit()

        created = await client.post(
            f"/projects/{project.id}/priority-rules",
            json={"conditions": {"inactivity": {"days": 7, "priority": "high"}}},
        )
        assert created.status_code == 200
        rule = created.json()
        assert rule["enabled"] is True
        assert rule["conditions"] == {"inactivity": {"days": 7, "priority": "high"}}

        listed = await client.get(f"/projects/{project.id}/priority-rules")
        assert [r["id"] for r in listed.json()] == [rule["id"]]

        updated = await client.patch(f"/priority-rules/{rule['id']}", json={"enabled": False})
        assert updated.json()["enabled"] is False

        deleted = await client.delete(f"/priority-rules/{rule['id']}")
        assert deleted.status_code == 204
        assert (await client.get(f"/projects/{project.id}/priority-rules")).json() == []

    @pytest.mark.asyncio
    async def test_invalid_conditions_is_400(self, client, graph, session) -> None:
        project = await graph.project()
        await session.commit()

        response = await client.post(
            f"/projects/{project.id}/priority-rules",
            json={"conditions": {"dueDate": {"days": "soon"}}},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_conditions"

    @pytest.mark.asyncio
    async def test_unknown_project_is_404(self, client) -> None:
        response = await client.get("/projects/ghost/priority-rules")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_evaluate_escalates(self, client, graph, session) -> None:
        project = await graph.project()
        task = await graph.task(
            project, "Ship", due_date=utcnow_naive() + timedelta(hours=20)
        )
        await session.commit()
        await client.post(
            f"/projects/{project.id}/priority-rules",
            json={"conditions": {"dueDate": {"days": 2, "priority": "urgent"}}},
        )

        response = await client.post("/priority-rules/evaluate")

        assert response.status_code == 200
        body = response.json()
        assert body["tasksEvaluated"] == 1
        assert body["failedTasks"] == []
        assert [(e["taskId"], e["previous"], e["priority"]) for e in body["escalations"]] == [
            (task.id, TaskPriority.MEDIUM.value, TaskPriority.URGENT.value)
        ]
