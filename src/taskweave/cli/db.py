"""Database operations CLI commands."""

import typer

from taskweave.cli.common import (
    BAD,
    GOOD,
    HIGHLIGHT,
    console,
    error,
    make_table,
    print_db_hint,
    run_async,
    success,
    working,
)

app = typer.Typer(
    name="db",
    help="Database operations",
    no_args_is_help=True,
)


@app.command("init")
def init_database() -> None:
    """Create any tables that do not exist yet."""

    @run_async
    async def _init() -> None:
        from taskweave.config import settings
        from taskweave.db.connection import close_db, init_db

        try:
            with working("Creating tables..."):
                await init_db()
            success("Database initialized")
            console.print(f"  [{HIGHLIGHT}]{settings.database_url}[/{HIGHLIGHT}]")
        except Exception as e:
            error(f"Database init failed: {e}")
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

    _init()


@app.command("health")
def database_health() -> None:
    """Check that the database is reachable."""

    @run_async
    async def _health() -> None:
        from taskweave.config import settings
        from taskweave.db.connection import check_db_health, close_db

        try:
            status = await check_db_health()
        finally:
            await close_db()

        table = make_table("Database", "Metric", "Value")
        table.add_row("Backend", "sqlite" if settings.is_sqlite else "postgresql")
        style = GOOD if status["status"] == "healthy" else BAD
        table.add_row("Status", f"[{style}]{status['status']}[/{style}]")
        if "error" in status:
            table.add_row("Error", status["error"])
        console.print(table)

        if status["status"] != "healthy":
            print_db_hint()
            raise typer.Exit(code=1)

    _health()
