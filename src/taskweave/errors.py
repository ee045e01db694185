"""Custom exceptions for taskweave."""


class TaskweaveError(Exception):
    """Base exception for all taskweave errors."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TaskNotFoundError(TaskweaveError):
    """Raised when a referenced task does not exist."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", details={"task_id": task_id})
        self.task_id = task_id


class RelationshipNotFoundError(TaskweaveError):
    """Raised when a referenced relationship does not exist."""

    def __init__(self, relationship_id: str) -> None:
        super().__init__(
            f"Relationship not found: {relationship_id}",
            details={"relationship_id": relationship_id},
        )


class PriorityRuleNotFoundError(TaskweaveError):
    """Raised when a referenced priority rule does not exist."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Priority rule not found: {rule_id}", details={"rule_id": rule_id})


class ValidationError(TaskweaveError):
    """Raised when input validation fails."""

    code = "invalid_input"


class SelfLoopError(ValidationError):
    """Raised when a relationship would connect a task to itself."""

    code = "self_loop"

    def __init__(self, task_id: str) -> None:
        super().__init__("A task cannot depend on itself", details={"task_id": task_id})


class DependencyCycleError(ValidationError):
    """Raised when a depends_on edge would close a cycle."""

    code = "dependency_cycle"

    def __init__(self, source_id: str, target_id: str) -> None:
        super().__init__(
            "Creating this dependency would result in a circular dependency",
            details={"source_task_id": source_id, "target_task_id": target_id},
        )


class CrossProjectRelationshipError(ValidationError):
    """Raised when both endpoints of a relationship live in different projects."""

    code = "cross_project"

    def __init__(self, source_id: str, target_id: str) -> None:
        super().__init__(
            "Tasks must be in the same project",
            details={"source_task_id": source_id, "target_task_id": target_id},
        )


class InvalidRuleConditionsError(ValidationError):
    """Raised when a priority rule's conditions do not match a known clause shape."""

    code = "invalid_conditions"


class InvalidPriorityError(ValidationError):
    """Raised when a priority name is not in the level table."""

    code = "invalid_priority"

    def __init__(self, priority: object) -> None:
        super().__init__(f"Unknown priority: {priority!r}", details={"priority": priority})


class SweepInProgressError(TaskweaveError):
    """Raised when a priority sweep is started while another one is running."""


class ProjectNotFoundError(TaskweaveError):
    """Raised when a referenced project does not exist."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}", details={"project_id": project_id})
