"""Main CLI application - ties all subcommands together.

This is the entry point for the taskweave CLI.
"""

import typer

from taskweave.cli.common import (
    HIGHLIGHT,
    HOT,
    console,
    error,
    info,
    make_table,
    print_db_hint,
    run_async,
    styled_priority,
    success,
    warn,
    working,
)

# Import subcommand apps
from taskweave.cli.db import app as db_app
from taskweave.cli.task import app as task_app

# Main app
app = typer.Typer(
    name="taskweave",
    help="taskweave - task relationship graph",
    add_completion=False,
    no_args_is_help=True,
)

# Register subcommand groups
app.add_typer(task_app, name="task")
app.add_typer(db_app, name="db")


# ============================================================================
# Root-level commands
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(None, "--port", "-p", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
) -> None:
    """Start the taskweave API server.

    Examples:
        taskweave serve                    # Default: localhost:3340
        taskweave serve -p 9000            # Custom port
        taskweave serve -h 0.0.0.0         # Listen on all interfaces
    """
    from taskweave.main import run_server

    try:
        run_server(host=host, port=port, reload=reload)
    except KeyboardInterrupt:
        console.print(f"\n[{HIGHLIGHT}]Shutting down...[/{HIGHLIGHT}]")


@app.command()
def sweep() -> None:
    """Run one priority escalation sweep over all open tasks."""

    @run_async
    async def _sweep() -> None:
        from taskweave.db.connection import async_session_factory, close_db
        from taskweave.tasks.priority import PriorityEscalationEngine

        try:
            with working("Evaluating priority rules..."):
                result = await PriorityEscalationEngine(async_session_factory()).evaluate_rules()
        except Exception as e:
            error(f"Sweep failed: {e}")
            print_db_hint()
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

        success(
            f"Evaluated {result.tasks_evaluated} task(s), escalated {result.escalated_count}"
        )
        if result.escalations:
            table = make_table("Escalations", "Task", "From", "To", "Clause")
            for esc in result.escalations:
                table.add_row(
                    esc.task_id,
                    styled_priority(esc.previous),
                    styled_priority(esc.priority),
                    esc.clause,
                )
            console.print(table)
        if result.skipped_rules:
            warn(f"Skipped {result.skipped_rules} malformed rule evaluation(s)")
        if result.failed_tasks:
            console.print(f"\n[{HOT}]Failed tasks:[/{HOT}]")
            for task_id in result.failed_tasks:
                console.print(f"  [{HOT}]•[/{HOT}] {task_id}")
        if not result.tasks_evaluated and not result.failed_tasks:
            info("No open tasks in projects with enabled rules")

    _sweep()


@app.command()
def version() -> None:
    """Print the taskweave version."""
    from taskweave import __version__

    console.print(f"taskweave [{HIGHLIGHT}]{__version__}[/{HIGHLIGHT}]")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
