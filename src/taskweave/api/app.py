"""FastAPI application factory."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskweave import __version__
from taskweave.api.errors import VALIDATION_ERROR, error_detail
from taskweave.api.routes import priority_rules, relationships, tasks
from taskweave.config import settings
from taskweave.db.connection import (
    async_session_factory,
    check_db_health,
    close_db,
    get_session_factory_dependency,
    init_db,
)
from taskweave.tasks.priority import PriorityEscalationEngine, run_scheduled_sweep

log = structlog.get_logger()


async def _sweep_periodically(engine: PriorityEscalationEngine, interval: int) -> None:
    while True:
        await asyncio.sleep(interval)
        await run_scheduled_sweep(engine)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables, start the sweep loop if configured, dispose the engine on shutdown."""
    await init_db()
    engine = PriorityEscalationEngine(async_session_factory())
    app.state.escalation_engine = engine

    sweeper: asyncio.Task | None = None
    if settings.sweep_interval_seconds:
        sweeper = asyncio.create_task(_sweep_periodically(engine, settings.sweep_interval_seconds))

    log.info(
        "server_started",
        name=settings.server_name,
        environment=settings.environment,
        version=__version__,
        sweep_interval_seconds=settings.sweep_interval_seconds,
    )
    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await close_db()
    log.info("server_stopped")


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    log.info("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    detail = error_detail("invalid_input", VALIDATION_ERROR)
    detail["errors"] = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": detail})


def create_app(*, manage_db: bool = True) -> FastAPI:
    """Build the API application.

    Args:
        manage_db: Create tables on startup and dispose the engine on
            shutdown. Tests that provide their own engine turn this off.
    """
    app = FastAPI(
        title="taskweave",
        description="Task relationship graph: dependencies, rollup and priority escalation",
        version=__version__,
        lifespan=lifespan if manage_db else None,
    )
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    @app.get("/health", tags=["system"])
    async def health(
        session_factory: async_sessionmaker[AsyncSession] = Depends(
            get_session_factory_dependency
        ),
    ) -> dict:
        database = await check_db_health(session_factory)
        return {
            "status": database["status"],
            "name": settings.server_name,
            "version": __version__,
            "database": database,
        }

    app.include_router(relationships.router)
    app.include_router(tasks.router)
    app.include_router(priority_rules.router)
    return app
