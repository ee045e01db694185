"""Tests for rule-driven priority escalation."""

import asyncio
import itertools
from datetime import datetime, timedelta

import pytest
from sqlmodel import col, select

from taskweave.db.models import Activity, ActivityType, Notification, PriorityRule, Task
from taskweave.errors import (
    InvalidPriorityError,
    InvalidRuleConditionsError,
    PriorityRuleNotFoundError,
    ProjectNotFoundError,
    SweepInProgressError,
    TaskNotFoundError,
)
from taskweave.graph.store import GraphStore
from taskweave.models.priority import RelationshipType, TaskPriority, TaskStatus
from taskweave.tasks.priority import (
    ESCALATION_NOTIFICATION_TYPE,
    PriorityEscalationEngine,
    PriorityRuleManager,
    days_since,
    days_until,
    run_scheduled_sweep,
    update_task_priority,
)

NOW = datetime(2025, 2, 10, 12, 0, 0)

_rule_clock = itertools.count(1)


async def add_rule(session, project, conditions, *, enabled: bool = True) -> PriorityRule:
    rule = PriorityRule(
        project_id=project.id,
        conditions=conditions,
        enabled=enabled,
        created_at=NOW - timedelta(days=30) + timedelta(seconds=next(_rule_clock)),
    )
    session.add(rule)
    await session.flush()
    return rule


async def reload_task(session_factory, task_id: str) -> Task:
    async with session_factory() as s:
        return await s.get(Task, task_id)


async def rows(session_factory, model, **filters) -> list:
    async with session_factory() as s:
        query = select(model)
        for name, value in filters.items():
            query = query.where(col(getattr(model, name)) == value)
        result = await s.execute(query)
        return list(result.scalars().all())


class TestDayHelpers:
    """Tests for days_until / days_since rounding."""

    def test_days_until_rounds_up(self) -> None:
        assert days_until(NOW + timedelta(hours=1), NOW) == 1
        assert days_until(NOW + timedelta(days=1), NOW) == 1
        assert days_until(NOW + timedelta(days=1, hours=1), NOW) == 2
        assert days_until(NOW - timedelta(hours=12), NOW) == 0

    def test_days_since_rounds_down(self) -> None:
        assert days_since(NOW - timedelta(days=6, hours=23), NOW) == 6
        assert days_since(NOW - timedelta(days=7), NOW) == 7


class TestEvaluateRules:
    """Tests for PriorityEscalationEngine.evaluate_rules."""

    @pytest.mark.asyncio
    async def test_due_date_escalates_and_notifies(self, graph, session, session_factory) -> None:
        """Due tomorrow with a 2-day urgent rule: medium becomes urgent."""
        project = await graph.project()
        user = await graph.user()
        task = await graph.task(
            project, "Ship it", due_date=NOW + timedelta(days=1), assignee_id=user.id
        )
        rule = await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory, notify=True).evaluate_rules(NOW)

        assert result.tasks_evaluated == 1
        assert result.escalated_count == 1
        escalation = result.escalations[0]
        assert escalation.previous == TaskPriority.MEDIUM
        assert escalation.priority == TaskPriority.URGENT
        assert escalation.rule_id == rule.id
        assert escalation.clause == "due_date"

        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.URGENT

        activities = await rows(session_factory, Activity, task_id=task.id)
        assert len(activities) == 1
        assert activities[0].type == ActivityType.PRIORITY_CHANGED
        assert activities[0].meta["previousValue"] == "medium"
        assert activities[0].meta["newValue"] == "urgent"
        assert activities[0].meta["ruleId"] == rule.id

        notifications = await rows(session_factory, Notification, task_id=task.id)
        assert len(notifications) == 1
        assert notifications[0].user_id == user.id
        assert notifications[0].type == ESCALATION_NOTIFICATION_TYPE
        assert notifications[0].title == "Task Priority Escalated"
        assert notifications[0].content == 'Task "Ship it" priority has been escalated to urgent'

    @pytest.mark.asyncio
    async def test_unassigned_task_gets_no_notification(
        self, graph, session, session_factory
    ) -> None:
        project = await graph.project()
        task = await graph.task(project, "X", due_date=NOW + timedelta(days=1))
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.URGENT
        assert await rows(session_factory, Notification) == []

    @pytest.mark.asyncio
    async def test_notify_disabled(self, graph, session, session_factory) -> None:
        project = await graph.project()
        user = await graph.user()
        await graph.task(project, "X", due_date=NOW + timedelta(days=1), assignee_id=user.id)
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory, notify=False).evaluate_rules(NOW)

        assert result.escalated_count == 1
        assert await rows(session_factory, Notification) == []

    @pytest.mark.asyncio
    async def test_due_date_outside_window(self, graph, session, session_factory) -> None:
        project = await graph.project()
        task = await graph.task(project, "Later", due_date=NOW + timedelta(days=5))
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert result.tasks_evaluated == 1
        assert result.escalations == []
        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_never_lowers_priority(self, graph, session, session_factory) -> None:
        project = await graph.project()
        task = await graph.task(
            project, "Hot", priority=TaskPriority.CRITICAL, due_date=NOW + timedelta(days=1)
        )
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert result.escalations == []
        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.CRITICAL

    @pytest.mark.asyncio
    async def test_done_tasks_and_disabled_rules_are_skipped(
        self, graph, session, session_factory
    ) -> None:
        project = await graph.project()
        other = await graph.project("Other")
        await graph.task(project, "Done", status=TaskStatus.DONE, due_date=NOW)
        idle = await graph.task(other, "Idle", due_date=NOW)
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await add_rule(
            session, other, {"dueDate": {"days": 2, "priority": "urgent"}}, enabled=False
        )
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert result.tasks_evaluated == 0
        assert (await reload_task(session_factory, idle.id)).priority == TaskPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_last_staged_escalation_wins(self, graph, session, session_factory) -> None:
        """A later rule's lower escalation replaces an earlier higher one."""
        project = await graph.project()
        task = await graph.task(project, "X", due_date=NOW + timedelta(days=1))
        session.add(Activity(task_id=task.id, type="comment", created_at=NOW - timedelta(days=10)))
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "critical"}})
        await add_rule(session, project, {"inactivity": {"days": 7, "priority": "high"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert [e.priority for e in result.escalations] == [TaskPriority.HIGH]
        assert result.escalations[0].clause == "inactivity"
        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.HIGH

    @pytest.mark.asyncio
    async def test_dependency_clause_raises_one_level(
        self, graph, session, session_factory
    ) -> None:
        """A low task that a high task depends on is bumped to medium."""
        project = await graph.project()
        base = await graph.task(project, "Base", priority=TaskPriority.LOW)
        waiter = await graph.task(project, "Waiter", priority=TaskPriority.HIGH)
        await graph.edge(waiter, base, RelationshipType.DEPENDS_ON)
        await add_rule(
            session, project, {"dependencies": {"priority": "high", "escalate": True}}
        )
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert [(e.task_id, e.priority) for e in result.escalations] == [
            (base.id, TaskPriority.MEDIUM)
        ]
        assert (await reload_task(session_factory, waiter.id)).priority == TaskPriority.HIGH

    @pytest.mark.asyncio
    async def test_dependency_clause_requires_escalate_and_threshold(
        self, graph, session, session_factory
    ) -> None:
        project = await graph.project()
        base = await graph.task(project, "Base", priority=TaskPriority.LOW)
        waiter = await graph.task(project, "Waiter", priority=TaskPriority.MEDIUM)
        await graph.edge(waiter, base, RelationshipType.DEPENDS_ON)
        await add_rule(
            session, project, {"dependencies": {"priority": "high", "escalate": True}}
        )
        await add_rule(
            session, project, {"dependencies": {"priority": "low", "escalate": False}}
        )
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert result.escalations == []

    @pytest.mark.asyncio
    async def test_inactivity_needs_some_activity(self, graph, session, session_factory) -> None:
        project = await graph.project()
        quiet = await graph.task(project, "Quiet")
        never = await graph.task(project, "Never touched")
        session.add(Activity(task_id=quiet.id, type="comment", created_at=NOW - timedelta(days=7)))
        await add_rule(session, project, {"inactivity": {"days": 7, "priority": "high"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert [e.task_id for e in result.escalations] == [quiet.id]
        assert (await reload_task(session_factory, never.id)).priority == TaskPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_malformed_rule_is_skipped(self, graph, session, session_factory) -> None:
        project = await graph.project()
        task = await graph.task(project, "X", due_date=NOW + timedelta(days=1))
        await add_rule(session, project, {"dueDate": {"days": "soon", "priority": "urgent"}})
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "high"}})
        await session.commit()

        result = await PriorityEscalationEngine(session_factory).evaluate_rules(NOW)

        assert result.skipped_rules == 1
        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.HIGH

    @pytest.mark.asyncio
    async def test_failing_task_does_not_stop_sweep(
        self, graph, session, session_factory, monkeypatch
    ) -> None:
        project = await graph.project()
        bad = await graph.task(project, "Bad", due_date=NOW)
        good = await graph.task(project, "Good", due_date=NOW)
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        engine = PriorityEscalationEngine(session_factory)
        original = engine._evaluate_task

        async def flaky(store, task_id, now):
            if task_id == bad.id:
                raise RuntimeError("boom")
            return await original(store, task_id, now)

        monkeypatch.setattr(engine, "_evaluate_task", flaky)
        result = await engine.evaluate_rules(NOW)

        assert result.failed_tasks == [bad.id]
        assert [e.task_id for e in result.escalations] == [good.id]
        assert (await reload_task(session_factory, bad.id)).priority == TaskPriority.MEDIUM
        assert (await reload_task(session_factory, good.id)).priority == TaskPriority.URGENT

    @pytest.mark.asyncio
    async def test_escalation_rolls_back_when_notification_fails(
        self, graph, session, session_factory, monkeypatch
    ) -> None:
        """Priority, activity and notification commit together or not at all."""
        project = await graph.project()
        user = await graph.user()
        task = await graph.task(project, "Ship it", due_date=NOW, assignee_id=user.id)
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        async def refuse(self, *args, **kwargs):
            raise RuntimeError("notification backend unavailable")

        monkeypatch.setattr(GraphStore, "create_notification", refuse)
        result = await PriorityEscalationEngine(session_factory, notify=True).evaluate_rules(NOW)

        assert result.failed_tasks == [task.id]
        assert result.escalations == []
        assert (await reload_task(session_factory, task.id)).priority == TaskPriority.MEDIUM
        assert await rows(session_factory, Activity, task_id=task.id) == []
        assert await rows(session_factory, Notification) == []

    @pytest.mark.asyncio
    async def test_concurrent_sweep_rejected(self, graph, session, session_factory) -> None:
        project = await graph.project()
        await graph.task(project, "X", due_date=NOW)
        await add_rule(session, project, {"dueDate": {"days": 2, "priority": "urgent"}})
        await session.commit()

        engine = PriorityEscalationEngine(session_factory)
        first, second = await asyncio.gather(
            engine.evaluate_rules(NOW), engine.evaluate_rules(NOW), return_exceptions=True
        )

        assert first.escalated_count == 1
        assert isinstance(second, SweepInProgressError)
        assert not engine.running

    @pytest.mark.asyncio
    async def test_run_scheduled_sweep_swallows_errors(self, session_factory) -> None:
        engine = PriorityEscalationEngine(session_factory)
        assert (await run_scheduled_sweep(engine)).tasks_evaluated == 0

        async with engine._lock:
            assert await run_scheduled_sweep(engine) is None


class TestPriorityRuleManager:
    """Tests for PriorityRuleManager."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, graph, store) -> None:
        project = await graph.project()
        manager = PriorityRuleManager(store)

        rule = await manager.create(project.id, {"due_date": {"days": 3, "priority": "high"}})

        assert rule.conditions == {"dueDate": {"days": 3, "priority": "high"}}
        assert [r.id for r in await manager.list(project.id)] == [rule.id]

    @pytest.mark.asyncio
    async def test_create_rejects_bad_conditions(self, graph, store) -> None:
        project = await graph.project()
        with pytest.raises(InvalidRuleConditionsError) as exc_info:
            await PriorityRuleManager(store).create(
                project.id, {"inactivity": {"priority": "bogus"}}
            )
        assert exc_info.value.code == "invalid_conditions"

    @pytest.mark.asyncio
    async def test_unknown_project(self, store) -> None:
        manager = PriorityRuleManager(store)
        with pytest.raises(ProjectNotFoundError):
            await manager.create("nope", {})
        with pytest.raises(ProjectNotFoundError):
            await manager.list("nope")

    @pytest.mark.asyncio
    async def test_update_and_delete(self, graph, store) -> None:
        project = await graph.project()
        manager = PriorityRuleManager(store)
        rule = await manager.create(project.id, {"inactivity": {"days": 5, "priority": "high"}})

        updated = await manager.update(rule.id, enabled=False)
        assert updated.enabled is False
        assert updated.conditions == {"inactivity": {"days": 5, "priority": "high"}}

        await manager.delete(rule.id)
        with pytest.raises(PriorityRuleNotFoundError):
            await manager.get(rule.id)
        with pytest.raises(PriorityRuleNotFoundError):
            await manager.delete(rule.id)


class TestUpdateTaskPriority:
    """Tests for manual priority changes."""

    @pytest.mark.asyncio
    async def test_raise_notifies_assignee(self, graph, store, session) -> None:
        project = await graph.project()
        user = await graph.user()
        task = await graph.task(project, "X", assignee_id=user.id)

        await update_task_priority(store, task.id, "critical", user_id=user.id)

        assert (await store.find_task(task.id)).priority == TaskPriority.CRITICAL
        notifications = (await session.execute(select(Notification))).scalars().all()
        assert len(notifications) == 1
        activity = await store.find_latest_activity(task.id)
        assert activity.type == ActivityType.PRIORITY_CHANGED
        assert activity.user_id == user.id

    @pytest.mark.asyncio
    async def test_lowering_does_not_notify(self, graph, store, session) -> None:
        project = await graph.project()
        user = await graph.user()
        task = await graph.task(project, "X", priority=TaskPriority.HIGH, assignee_id=user.id)

        await update_task_priority(store, task.id, TaskPriority.LOW)

        assert (await store.find_task(task.id)).priority == TaskPriority.LOW
        assert (await session.execute(select(Notification))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_invalid_priority(self, graph, store) -> None:
        project = await graph.project()
        task = await graph.task(project, "X")
        with pytest.raises(InvalidPriorityError):
            await update_task_priority(store, task.id, "whenever")

    @pytest.mark.asyncio
    async def test_missing_task(self, store) -> None:
        with pytest.raises(TaskNotFoundError):
            await update_task_priority(store, "missing", "high")
