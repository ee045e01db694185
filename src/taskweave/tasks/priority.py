"""Rule-driven priority escalation.

Projects carry declarative `PriorityRule`s with up to three clauses (due
date proximity, dependent-task priority, inactivity). A sweep evaluates
every enabled rule against every task that is not done and raises priorities
where a clause fires. Each task's escalation commits in its own transaction;
a broken rule or a failing task is logged and skipped so the rest of the
sweep still runs.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskweave.config import settings
from taskweave.db.models import Activity, ActivityType, PriorityRule, Task, utcnow_naive
from taskweave.errors import (
    InvalidRuleConditionsError,
    PriorityRuleNotFoundError,
    ProjectNotFoundError,
    SweepInProgressError,
    TaskNotFoundError,
)
from taskweave.graph.store import GraphStore
from taskweave.models.priority import (
    MAX_PRIORITY_LEVEL,
    RelationshipType,
    TaskPriority,
    TaskStatus,
    parse_priority,
    priority_for_level,
    priority_level,
)
from taskweave.models.rules import (
    DependencyClause,
    DueDateClause,
    InactivityClause,
    RuleConditions,
)

log = structlog.get_logger()

_SECONDS_PER_DAY = 86400

ESCALATION_NOTIFICATION_TYPE = "task_priority_escalated"


@dataclass
class Escalation:
    """A priority change staged for one task during a sweep."""

    task_id: str
    previous: TaskPriority
    priority: TaskPriority
    rule_id: str
    clause: str


@dataclass
class SweepResult:
    """Outcome of one escalation sweep."""

    tasks_evaluated: int = 0
    escalations: list[Escalation] = field(default_factory=list)
    skipped_rules: int = 0
    failed_tasks: list[str] = field(default_factory=list)

    @property
    def escalated_count(self) -> int:
        return len(self.escalations)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days until `moment`, rounded up."""
    return math.ceil((moment - now).total_seconds() / _SECONDS_PER_DAY)


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed since `moment`, rounded down."""
    return math.floor((now - moment).total_seconds() / _SECONDS_PER_DAY)


async def _notify_escalation(store: GraphStore, task: Task, priority: TaskPriority) -> None:
    if not task.assignee_id:
        return
    await store.create_notification(
        task.assignee_id,
        task_id=task.id,
        notification_type=ESCALATION_NOTIFICATION_TYPE,
        title="Task Priority Escalated",
        content=f'Task "{task.title}" priority has been escalated to {priority.value}',
    )


async def update_task_priority(
    store: GraphStore,
    task_id: str,
    priority: str | TaskPriority,
    *,
    user_id: str | None = None,
) -> Task:
    """Set a task's priority by hand.

    Logs a priority_changed activity; the assignee is notified only when the
    new priority is higher than the old one.
    """
    new_priority = parse_priority(priority)
    task = await store.find_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    previous = task.priority
    await store.update_task_priority(task_id, new_priority)
    await store.create_activity(
        task_id,
        ActivityType.PRIORITY_CHANGED,
        meta={"previousValue": previous.value, "newValue": new_priority.value},
        user_id=user_id,
    )
    if priority_level(new_priority) > priority_level(previous):
        await _notify_escalation(store, task, new_priority)

    log.info("task_priority_updated", task_id=task_id, previous=previous, priority=new_priority)
    return task


class PriorityRuleManager:
    """CRUD for per-project priority rules.

    Conditions are validated on every write so stored rules always parse;
    rules written by other means are still guarded at evaluation time.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    async def create(
        self,
        project_id: str,
        conditions: RuleConditions | dict[str, Any] | str,
        *,
        enabled: bool = True,
    ) -> PriorityRule:
        if await self._store.find_project(project_id) is None:
            raise ProjectNotFoundError(project_id)
        parsed = RuleConditions.parse(conditions)
        rule = PriorityRule(project_id=project_id, conditions=parsed.to_json(), enabled=enabled)
        await self._store.save_rule(rule)
        log.info("priority_rule_created", rule_id=rule.id, project_id=project_id)
        return rule

    async def get(self, rule_id: str) -> PriorityRule:
        rule = await self._store.find_rule(rule_id)
        if rule is None:
            raise PriorityRuleNotFoundError(rule_id)
        return rule

    async def list(self, project_id: str) -> list[PriorityRule]:
        if await self._store.find_project(project_id) is None:
            raise ProjectNotFoundError(project_id)
        return await self._store.find_rules(project_id)

    async def update(
        self,
        rule_id: str,
        *,
        conditions: RuleConditions | dict[str, Any] | str | None = None,
        enabled: bool | None = None,
    ) -> PriorityRule:
        rule = await self.get(rule_id)
        if conditions is not None:
            rule.conditions = RuleConditions.parse(conditions).to_json()
        if enabled is not None:
            rule.enabled = enabled
        return await self._store.save_rule(rule)

    async def delete(self, rule_id: str) -> None:
        if not await self._store.delete_rule(rule_id):
            raise PriorityRuleNotFoundError(rule_id)
        log.info("priority_rule_deleted", rule_id=rule_id)


_NOT_LOADED: Any = object()


class _TaskEvaluation:
    """Clause evaluation for one task; dependents and latest activity load lazily."""

    def __init__(self, store: GraphStore, task: Task, now: datetime) -> None:
        self.store = store
        self.task = task
        self.now = now
        self.current_level = priority_level(task.priority)
        self.staged: Escalation | None = None
        self._dependents: list[Task] | None = None
        self._latest_activity: Activity | None = _NOT_LOADED

    def stage(self, priority: TaskPriority, rule: PriorityRule, clause: str) -> None:
        # Last staged value wins across clauses and rules
        self.staged = Escalation(
            task_id=self.task.id,
            previous=self.task.priority,
            priority=priority,
            rule_id=rule.id,
            clause=clause,
        )

    async def dependents(self) -> list[Task]:
        """Tasks holding an incoming depends_on edge, i.e. waiting on this task."""
        if self._dependents is None:
            edges = await self.store.find_relationships(
                target_id=self.task.id, types=[RelationshipType.DEPENDS_ON]
            )
            found = await self.store.find_tasks(e.source_task_id for e in edges)
            self._dependents = [found[e.source_task_id] for e in edges if e.source_task_id in found]
        return self._dependents

    async def latest_activity(self) -> Activity | None:
        if self._latest_activity is _NOT_LOADED:
            self._latest_activity = await self.store.find_latest_activity(self.task.id)
        return self._latest_activity

    async def apply_rule(self, rule: PriorityRule, conditions: RuleConditions) -> None:
        for clause in conditions.clauses():
            if isinstance(clause, DueDateClause):
                await self._apply_due_date(rule, clause)
            elif isinstance(clause, DependencyClause):
                await self._apply_dependencies(rule, clause)
            else:
                await self._apply_inactivity(rule, clause)

    async def _apply_due_date(self, rule: PriorityRule, due: DueDateClause) -> None:
        if self.task.due_date is None:
            return
        if (
            days_until(self.task.due_date, self.now) <= due.days
            and priority_level(due.priority) > self.current_level
        ):
            self.stage(due.priority, rule, "due_date")

    async def _apply_dependencies(self, rule: PriorityRule, deps: DependencyClause) -> None:
        if not deps.escalate:
            return
        threshold = priority_level(deps.priority)
        escalated_level = min(self.current_level + 1, MAX_PRIORITY_LEVEL)
        if escalated_level <= self.current_level:
            return
        for dependent in await self.dependents():
            if priority_level(dependent.priority) >= threshold:
                self.stage(priority_for_level(escalated_level), rule, "dependencies")
                break

    async def _apply_inactivity(self, rule: PriorityRule, idle: InactivityClause) -> None:
        latest = await self.latest_activity()
        if (
            latest is not None
            and days_since(latest.created_at, self.now) >= idle.days
            and priority_level(idle.priority) > self.current_level
        ):
            self.stage(idle.priority, rule, "inactivity")


class PriorityEscalationEngine:
    """Evaluates priority rules over all open tasks.

    Sweeps on one engine are serialized: starting a sweep while another is
    running raises SweepInProgressError.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        notify: bool | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._notify = settings.notify_on_escalation if notify is None else notify
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def evaluate_rules(self, now: datetime | None = None) -> SweepResult:
        """Run one sweep over every open task in projects with enabled rules."""
        if self._lock.locked():
            raise SweepInProgressError("A priority sweep is already running")

        async with self._lock:
            now = now or utcnow_naive()
            result = SweepResult()

            async with self._session_factory() as session:
                task_ids = [t.id for t in await GraphStore(session).find_open_tasks_with_rules()]

            log.info("priority_sweep_started", tasks=len(task_ids))

            for task_id in task_ids:
                try:
                    async with self._session_factory() as session, session.begin():
                        escalation, skipped = await self._evaluate_task(
                            GraphStore(session), task_id, now
                        )
                except Exception as e:
                    log.exception("priority_sweep_task_failed", task_id=task_id, error=str(e))
                    result.failed_tasks.append(task_id)
                    continue

                result.tasks_evaluated += 1
                result.skipped_rules += skipped
                if escalation is not None:
                    result.escalations.append(escalation)

            log.info(
                "priority_sweep_complete",
                evaluated=result.tasks_evaluated,
                escalated=result.escalated_count,
                skipped_rules=result.skipped_rules,
                failed=len(result.failed_tasks),
            )
            return result

    async def _evaluate_task(
        self, store: GraphStore, task_id: str, now: datetime
    ) -> tuple[Escalation | None, int]:
        task = await store.find_task(task_id)
        if task is None or task.status == TaskStatus.DONE:
            # Deleted or completed since the sweep enumerated it
            return None, 0

        evaluation = _TaskEvaluation(store, task, now)
        skipped = 0
        for rule in await store.find_rules(task.project_id, enabled_only=True):
            try:
                conditions = RuleConditions.parse(rule.conditions)
            except InvalidRuleConditionsError as e:
                log.warning(
                    "priority_rule_skipped",
                    rule_id=rule.id,
                    task_id=task_id,
                    error=e.message,
                    details=e.details,
                )
                skipped += 1
                continue
            await evaluation.apply_rule(rule, conditions)

        escalation = evaluation.staged
        if escalation is None or escalation.priority == escalation.previous:
            return None, skipped

        await store.update_task_priority(task_id, escalation.priority)
        await store.create_activity(
            task_id,
            ActivityType.PRIORITY_CHANGED,
            meta={
                "previousValue": escalation.previous.value,
                "newValue": escalation.priority.value,
                "ruleId": escalation.rule_id,
                "clause": escalation.clause,
                "automatic": True,
            },
        )
        if self._notify:
            await _notify_escalation(store, task, escalation.priority)

        log.info(
            "task_priority_escalated",
            task_id=task_id,
            previous=escalation.previous,
            priority=escalation.priority,
            rule_id=escalation.rule_id,
            clause=escalation.clause,
        )
        return escalation, skipped


async def run_scheduled_sweep(engine: PriorityEscalationEngine) -> SweepResult | None:
    """Entry point for schedulers: never raises, returns None when nothing ran."""
    if engine.running:
        log.info("priority_sweep_skipped", reason="already_running")
        return None
    try:
        return await engine.evaluate_rules()
    except Exception as e:
        log.exception("priority_sweep_failed", error=str(e))
        return None
