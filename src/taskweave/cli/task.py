"""Task graph CLI commands.

Read the graph around a task (dependencies, hierarchy, critical path) and
trigger the task mutations the graph owns (rollup, priority changes).
"""

import json
from typing import Annotated

import typer
from rich.tree import Tree

from taskweave.cli.common import (
    ACCENT,
    HOT,
    console,
    error,
    info,
    make_table,
    run_async,
    styled_priority,
    styled_status,
    success,
    task_label,
)
from taskweave.errors import TaskNotFoundError, TaskweaveError

app = typer.Typer(
    name="task",
    help="Task graph operations",
    no_args_is_help=True,
)


@app.command("path")
def critical_path_cmd(
    task_id: Annotated[str, typer.Argument(help="Root task ID")],
) -> None:
    """Show the longest duration-weighted dependency chain from a task."""

    @run_async
    async def _path() -> None:
        from taskweave.db.connection import close_db, get_session
        from taskweave.graph.critical_path import critical_path
        from taskweave.graph.store import GraphStore

        try:
            async with get_session() as session:
                store = GraphStore(session)
                if await store.find_task(task_id) is None:
                    raise TaskNotFoundError(task_id)
                result = await critical_path(store, task_id)
                tasks = await store.find_tasks(result.path)
        except TaskweaveError as e:
            error(e.message)
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

        if not result.path:
            info("No dependency chain with a positive duration")
            return

        table = make_table("Critical Path", "#", "Task", "Title", "Days", numeric=("#", "Days"))
        for i, tid in enumerate(result.path, 1):
            task = tasks.get(tid)
            title = task.title if task else "?"
            days = f"{task.duration_days:.1f}" if task else "0.0"
            table.add_row(str(i), tid, title, days)
        console.print(table)
        console.print(
            f"[{ACCENT}]Total duration:[/{ACCENT}] "
            f"[{HOT}]{result.duration:.1f} days[/{HOT}]"
        )

    _path()


@app.command("tree")
def tree_cmd(
    task_id: Annotated[str, typer.Argument(help="Root task ID")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the tree as JSON")] = False,
) -> None:
    """Show the parent_child hierarchy under a task."""

    @run_async
    async def _tree() -> None:
        from taskweave.db.connection import close_db, get_session
        from taskweave.graph.store import GraphStore
        from taskweave.graph.traversal import TaskNode, hierarchy_tree

        try:
            async with get_session() as session:
                root = await hierarchy_tree(GraphStore(session), task_id)
        finally:
            await close_db()

        if root is None:
            error(f"Task not found: {task_id}")
            raise typer.Exit(code=1)

        if as_json:
            console.print_json(json.dumps(root.to_dict()))
            return

        def add(branch, node: TaskNode) -> None:
            for child in node.children:
                add(branch.add(task_label(child.task)), child)

        tree = Tree(task_label(root.task), guide_style=ACCENT)
        add(tree, root)
        console.print(tree)

    _tree()


@app.command("rollup")
def rollup_cmd(
    task_id: Annotated[str, typer.Argument(help="Task whose progress to recompute")],
) -> None:
    """Recompute progress from children and propagate it up the hierarchy."""

    @run_async
    async def _rollup() -> None:
        from taskweave.db.connection import close_db, get_session
        from taskweave.graph.store import GraphStore
        from taskweave.tasks.progress import recompute_progress

        try:
            async with get_session() as session:
                store = GraphStore(session)
                if await store.find_task(task_id) is None:
                    raise TaskNotFoundError(task_id)
                updates = await recompute_progress(store, task_id)
                await session.commit()
        except TaskweaveError as e:
            error(e.message)
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

        if not updates:
            info("Nothing to roll up (no children)")
            return

        table = make_table("Progress Rollup", "Task", "Progress", "Status", numeric=("Progress",))
        for update in updates:
            table.add_row(update.task_id, f"{update.progress}%", styled_status(update.status))
        console.print(table)
        success(f"Updated {len(updates)} task(s)")

    _rollup()


@app.command("deps")
def dependencies_cmd(
    task_id: Annotated[str, typer.Argument(help="Root task ID")],
) -> None:
    """List every task reachable through depends_on."""

    @run_async
    async def _deps() -> None:
        from taskweave.db.connection import close_db, get_session
        from taskweave.graph.store import GraphStore
        from taskweave.graph.traversal import dependency_chain

        try:
            async with get_session() as session:
                store = GraphStore(session)
                if await store.find_task(task_id) is None:
                    raise TaskNotFoundError(task_id)
                chain = await dependency_chain(store, task_id)
                tasks = await store.find_tasks(chain.order)
        except TaskweaveError as e:
            error(e.message)
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

        if not chain.order:
            info("No dependencies")
            return

        table = make_table("Dependencies", "Task", "Title", "Status", "Priority")
        for tid in chain.order:
            task = tasks.get(tid)
            if task is None:
                continue
            table.add_row(
                tid, task.title, styled_status(task.status), styled_priority(task.priority)
            )
        console.print(table)

    _deps()


@app.command("priority")
def priority_cmd(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    priority: Annotated[str, typer.Argument(help="low, medium, high, urgent or critical")],
) -> None:
    """Set a task's priority by hand."""

    @run_async
    async def _priority() -> None:
        from taskweave.db.connection import close_db, get_session
        from taskweave.graph.store import GraphStore
        from taskweave.tasks.priority import update_task_priority

        try:
            async with get_session() as session:
                task = await update_task_priority(GraphStore(session), task_id, priority)
                await session.commit()
        except TaskweaveError as e:
            error(e.message)
            raise typer.Exit(code=1) from e
        finally:
            await close_db()

        success(f"{task.id} priority set to {styled_priority(task.priority)}")

    _priority()
