"""Derived task properties: progress rollup and priority escalation."""

from taskweave.tasks.priority import (
    Escalation,
    PriorityEscalationEngine,
    PriorityRuleManager,
    SweepResult,
    run_scheduled_sweep,
    update_task_priority,
)
from taskweave.tasks.progress import ProgressUpdate, recompute_progress

__all__ = [
    # Priority
    "Escalation",
    "PriorityEscalationEngine",
    "PriorityRuleManager",
    "SweepResult",
    "run_scheduled_sweep",
    "update_task_priority",
    # Progress
    "ProgressUpdate",
    "recompute_progress",
]
