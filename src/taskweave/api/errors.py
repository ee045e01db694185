"""Secure error handling for API responses.

Client-facing error bodies are `{"code": ..., "message": ...}` dicts. Full
exception details are logged, never returned.
"""

import uuid
from typing import Any, NoReturn

import structlog
from fastapi import HTTPException

log = structlog.get_logger()

# Generic messages for different error categories
INTERNAL_ERROR = "An internal error occurred. Please try again later."
VALIDATION_ERROR = "Invalid request data."
CONFLICT_ERROR = "The operation conflicts with the current state."


def error_detail(code: str, message: str) -> dict[str, Any]:
    """Build the error body carried in HTTPException.detail."""
    return {"code": code, "message": message}


def raise_internal_error(
    exc: Exception,
    *,
    context: str | None = None,
    log_details: dict | None = None,
) -> NoReturn:
    """Raise a 500 error with a safe message while logging full details.

    Args:
        exc: The original exception (logged but not exposed)
        context: Human-readable context for logs (e.g., "creating relationship")
        log_details: Additional details to include in logs

    Raises:
        HTTPException: 500 with generic message
    """
    error_id = str(uuid.uuid4())[:8]

    log.error(
        "internal_error",
        error_id=error_id,
        context=context,
        error_type=type(exc).__name__,
        error_message=str(exc),
        **(log_details or {}),
    )

    raise HTTPException(
        status_code=500,
        detail=error_detail("internal_error", f"{INTERNAL_ERROR} (ref: {error_id})"),
    ) from exc


def raise_validation_error(
    message: str | None = None,
    *,
    code: str = "invalid_input",
    exc: Exception | None = None,
    context: str | None = None,
) -> NoReturn:
    """Raise a 400 error with a machine-readable code.

    Args:
        message: Safe user-facing message (or uses default)
        code: Error code clients can branch on (e.g. "dependency_cycle")
        exc: Optional original exception (for logging only)
        context: Human-readable context for logs

    Raises:
        HTTPException: 400 with code and message
    """
    if exc:
        log.warning(
            "validation_error",
            context=context,
            code=code,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )

    raise HTTPException(
        status_code=400,
        detail=error_detail(code, message or VALIDATION_ERROR),
    ) from exc


def raise_not_found(
    resource: str,
    *,
    resource_id: str | None = None,
) -> NoReturn:
    """Raise a 404 error for a missing resource.

    Args:
        resource: Type of resource (e.g., "task", "relationship")
        resource_id: Optional ID included in the message

    Raises:
        HTTPException: 404 with safe message
    """
    log.info("resource_not_found", resource=resource, resource_id=resource_id)

    message = f"{resource.capitalize()} not found"
    if resource_id:
        message = f"{resource.capitalize()} not found: {resource_id}"

    raise HTTPException(status_code=404, detail=error_detail("not_found", message))


def raise_conflict(
    message: str | None = None,
    *,
    exc: Exception | None = None,
    context: str | None = None,
) -> NoReturn:
    """Raise a 409 conflict error with a safe message.

    Raises:
        HTTPException: 409 with conflict message
    """
    if exc:
        log.warning(
            "conflict_error",
            context=context,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )

    raise HTTPException(
        status_code=409,
        detail=error_detail("conflict", message or CONFLICT_ERROR),
    ) from exc
