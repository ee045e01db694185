"""Priority rule condition clauses.

Rule conditions are stored as free-form JSON. They are parsed into these
clause models at the storage boundary so the escalation engine never works
with untyped dicts.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from taskweave.errors import InvalidRuleConditionsError
from taskweave.models.priority import TaskPriority


class _Clause(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class DueDateClause(_Clause):
    """Escalate when the due date is within `days` days."""

    days: int
    priority: TaskPriority


class DependencyClause(_Clause):
    """Escalate one level when a dependent task has at least `priority`."""

    priority: TaskPriority
    escalate: bool


class InactivityClause(_Clause):
    """Escalate when the task has had no activity for `days` days."""

    days: int
    priority: TaskPriority


RuleClause = DueDateClause | DependencyClause | InactivityClause


class RuleConditions(BaseModel):
    """The up-to-three clauses of a priority rule."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    due_date: DueDateClause | None = None
    dependencies: DependencyClause | None = None
    inactivity: InactivityClause | None = None

    @classmethod
    def parse(cls, raw: "str | dict[str, Any] | RuleConditions | None") -> "RuleConditions":
        """Parse stored conditions, raising InvalidRuleConditionsError on bad shapes."""
        if isinstance(raw, RuleConditions):
            return raw
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise InvalidRuleConditionsError(
                    "Rule conditions are not valid JSON", details={"error": str(e)}
                ) from e
        if not isinstance(raw, dict):
            raise InvalidRuleConditionsError(
                "Rule conditions must be an object",
                details={"type": type(raw).__name__},
            )
        try:
            return cls.model_validate(raw)
        except PydanticValidationError as e:
            raise InvalidRuleConditionsError(
                "Rule conditions do not match a known clause shape",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

    def clauses(self) -> list[RuleClause]:
        """Clauses present on this rule, in evaluation order."""
        found: list[RuleClause | None] = [self.due_date, self.dependencies, self.inactivity]
        return [c for c in found if c is not None]

    def to_json(self) -> dict[str, Any]:
        """Serialize to the stored camelCase shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
