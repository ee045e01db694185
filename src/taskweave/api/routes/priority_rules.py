"""Priority rule endpoints.

Per-project rule CRUD plus an on-demand escalation sweep. Conditions are
validated on write; a malformed body is a 400 with code invalid_conditions.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskweave.api.decorators import handle_graph_errors
from taskweave.api.schemas import ApiModel, PriorityRuleResponse
from taskweave.db.connection import get_session_dependency, get_session_factory_dependency
from taskweave.graph.store import GraphStore
from taskweave.models.priority import TaskPriority
from taskweave.tasks.priority import PriorityEscalationEngine, PriorityRuleManager

router = APIRouter(tags=["priority-rules"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CreatePriorityRuleRequest(ApiModel):
    """Request to add a rule to a project."""

    conditions: dict[str, Any]
    enabled: bool = True


class UpdatePriorityRuleRequest(ApiModel):
    """Request to change a rule's conditions or toggle it."""

    conditions: dict[str, Any] | None = None
    enabled: bool | None = None


class EscalationResponse(ApiModel):
    task_id: str
    previous: TaskPriority
    priority: TaskPriority
    rule_id: str
    clause: str


class SweepResponse(ApiModel):
    """Outcome of an escalation sweep."""

    tasks_evaluated: int
    escalations: list[EscalationResponse]
    skipped_rules: int
    failed_tasks: list[str]


def get_escalation_engine(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dependency),
) -> PriorityEscalationEngine:
    """One engine per app so concurrent sweeps share its lock."""
    engine = getattr(request.app.state, "escalation_engine", None)
    if engine is None:
        engine = PriorityEscalationEngine(session_factory)
        request.app.state.escalation_engine = engine
    return engine


def _manager(session: AsyncSession) -> PriorityRuleManager:
    return PriorityRuleManager(GraphStore(session))


# =============================================================================
# Rule CRUD
# =============================================================================


@router.get("/projects/{project_id}/priority-rules", response_model=list[PriorityRuleResponse])
@handle_graph_errors("list_priority_rules")
async def list_priority_rules(
    project_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> list[PriorityRuleResponse]:
    rules = await _manager(session).list(project_id)
    return [PriorityRuleResponse.from_rule(rule) for rule in rules]


@router.post("/projects/{project_id}/priority-rules", response_model=PriorityRuleResponse)
@handle_graph_errors("create_priority_rule")
async def create_priority_rule(
    project_id: str,
    request: CreatePriorityRuleRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> PriorityRuleResponse:
    rule = await _manager(session).create(
        project_id, request.conditions, enabled=request.enabled
    )
    await session.commit()
    return PriorityRuleResponse.from_rule(rule)


@router.patch("/priority-rules/{rule_id}", response_model=PriorityRuleResponse)
@handle_graph_errors("update_priority_rule")
async def update_priority_rule(
    rule_id: str,
    request: UpdatePriorityRuleRequest,
    session: AsyncSession = Depends(get_session_dependency),
) -> PriorityRuleResponse:
    rule = await _manager(session).update(
        rule_id, conditions=request.conditions, enabled=request.enabled
    )
    await session.commit()
    return PriorityRuleResponse.from_rule(rule)


@router.delete("/priority-rules/{rule_id}", status_code=204)
@handle_graph_errors("delete_priority_rule")
async def delete_priority_rule(
    rule_id: str,
    session: AsyncSession = Depends(get_session_dependency),
) -> Response:
    await _manager(session).delete(rule_id)
    await session.commit()
    return Response(status_code=204)


# =============================================================================
# Sweep
# =============================================================================


@router.post("/priority-rules/evaluate", response_model=SweepResponse)
@handle_graph_errors("evaluate_priority_rules")
async def evaluate_priority_rules(
    engine: PriorityEscalationEngine = Depends(get_escalation_engine),
) -> SweepResponse:
    """Run one escalation sweep now. 409 if a sweep is already running."""
    result = await engine.evaluate_rules()
    return SweepResponse(
        tasks_evaluated=result.tasks_evaluated,
        escalations=[
            EscalationResponse(
                task_id=e.task_id,
                previous=e.previous,
                priority=e.priority,
                rule_id=e.rule_id,
                clause=e.clause,
            )
            for e in result.escalations
        ],
        skipped_rules=result.skipped_rules,
        failed_tasks=result.failed_tasks,
    )
