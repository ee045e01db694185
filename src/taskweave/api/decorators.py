"""Route decorators translating domain errors into HTTP responses."""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import structlog
from fastapi import HTTPException

from taskweave.api.errors import (
    raise_conflict,
    raise_internal_error,
    raise_not_found,
    raise_validation_error,
)
from taskweave.errors import (
    PriorityRuleNotFoundError,
    ProjectNotFoundError,
    RelationshipNotFoundError,
    SweepInProgressError,
    TaskNotFoundError,
    ValidationError,
)

log = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")

_NOT_FOUND: dict[type[Exception], tuple[str, str]] = {
    TaskNotFoundError: ("task", "task_id"),
    RelationshipNotFoundError: ("relationship", "relationship_id"),
    PriorityRuleNotFoundError: ("priority rule", "rule_id"),
    ProjectNotFoundError: ("project", "project_id"),
}


def handle_graph_errors(
    action: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Map taskweave exceptions raised by a route to 400/404/409/500 responses.

    HTTPExceptions raised by the route itself pass through untouched.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except ValidationError as e:
                raise_validation_error(e.message, code=e.code, exc=e, context=action)
            except SweepInProgressError as e:
                raise_conflict(e.message, exc=e, context=action)
            except Exception as e:
                for exc_type, (resource, key) in _NOT_FOUND.items():
                    if isinstance(e, exc_type):
                        resource_id: Any = e.details.get(key)  # type: ignore[attr-defined]
                        raise_not_found(resource, resource_id=resource_id)
                raise_internal_error(e, context=action)

        return wrapper

    return decorator
