"""Task status, priority and relationship enums plus the priority level table."""

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from taskweave.errors import InvalidPriorityError


class TaskStatus(StrEnum):
    """Lifecycle status of a task."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(StrEnum):
    """Priority names, ordered by level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class RelationshipType(StrEnum):
    """Directed edge types between two tasks."""

    BLOCKS = "blocks"
    BLOCKED_BY = "blocked_by"
    DEPENDS_ON = "depends_on"
    REQUIRED_FOR = "required_for"
    RELATED_TO = "related_to"
    DUPLICATES = "duplicates"
    DUPLICATED_BY = "duplicated_by"
    PARENT_CHILD = "parent_child"


@dataclass(frozen=True)
class PriorityLevel:
    """Static attributes of one priority."""

    level: int
    color: str
    auto_escalation: bool


MAX_PRIORITY_LEVEL = 5

PRIORITY_LEVELS: MappingProxyType[TaskPriority, PriorityLevel] = MappingProxyType(
    {
        TaskPriority.CRITICAL: PriorityLevel(level=5, color="red", auto_escalation=True),
        TaskPriority.URGENT: PriorityLevel(level=4, color="orange", auto_escalation=True),
        TaskPriority.HIGH: PriorityLevel(level=3, color="yellow", auto_escalation=False),
        TaskPriority.MEDIUM: PriorityLevel(level=2, color="blue", auto_escalation=False),
        TaskPriority.LOW: PriorityLevel(level=1, color="gray", auto_escalation=False),
    }
)

_PRIORITY_BY_LEVEL: MappingProxyType[int, TaskPriority] = MappingProxyType(
    {attrs.level: name for name, attrs in PRIORITY_LEVELS.items()}
)


def parse_priority(value: str | TaskPriority) -> TaskPriority:
    """Coerce a priority name, raising InvalidPriorityError for unknown names."""
    try:
        return TaskPriority(value)
    except ValueError as e:
        raise InvalidPriorityError(value) from e


def priority_level(value: str | TaskPriority) -> int:
    """Numeric level (1-5) for a priority name."""
    return PRIORITY_LEVELS[parse_priority(value)].level


def priority_for_level(level: int) -> TaskPriority:
    """Priority name for a numeric level, clamped to the table's range."""
    clamped = max(1, min(level, MAX_PRIORITY_LEVEL))
    return _PRIORITY_BY_LEVEL[clamped]
