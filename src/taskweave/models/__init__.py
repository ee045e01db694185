"""Pydantic models and enums for taskweave."""

from taskweave.models.priority import (
    MAX_PRIORITY_LEVEL,
    PRIORITY_LEVELS,
    PriorityLevel,
    RelationshipType,
    TaskPriority,
    TaskStatus,
    parse_priority,
    priority_for_level,
    priority_level,
)
from taskweave.models.relationships import RelationshipMetadata
from taskweave.models.rules import (
    DependencyClause,
    DueDateClause,
    InactivityClause,
    RuleClause,
    RuleConditions,
)

__all__ = [
    "MAX_PRIORITY_LEVEL",
    "PRIORITY_LEVELS",
    "DependencyClause",
    "DueDateClause",
    "InactivityClause",
    "PriorityLevel",
    "RelationshipMetadata",
    "RelationshipType",
    "RuleClause",
    "RuleConditions",
    "TaskPriority",
    "TaskStatus",
    "parse_priority",
    "priority_for_level",
    "priority_level",
]
