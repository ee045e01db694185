"""Console output shared by the taskweave commands."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import ParamSpec, TypeVar

from rich.console import Console
from rich.table import Table

from taskweave.models.priority import TaskPriority, TaskStatus

# Palette, by role
ACCENT = "#e135ff"
HIGHLIGHT = "#80ffea"
HOT = "#ff6ac1"
CAUTION = "#f1fa8c"
GOOD = "#50fa7b"
BAD = "#ff6363"

TITLE_WIDTH = 48

console = Console()

STATUS_STYLES: dict[TaskStatus, str] = {
    TaskStatus.TODO: HIGHLIGHT,
    TaskStatus.IN_PROGRESS: ACCENT,
    TaskStatus.DONE: GOOD,
    TaskStatus.CANCELLED: "dim",
}

PRIORITY_STYLES: dict[TaskPriority, str] = {
    TaskPriority.CRITICAL: BAD,
    TaskPriority.URGENT: HOT,
    TaskPriority.HIGH: CAUTION,
    TaskPriority.MEDIUM: HIGHLIGHT,
    TaskPriority.LOW: "dim",
}

P = ParamSpec("P")
R = TypeVar("R")


def _emit(symbol: str, style: str, message: str) -> None:
    console.print(f"[{style}]{symbol}[/{style}] {message}")


def success(message: str) -> None:
    _emit("✓", GOOD, message)


def error(message: str) -> None:
    _emit("✗", BAD, message)


def warn(message: str) -> None:
    _emit("!", CAUTION, message)


def info(message: str) -> None:
    _emit("→", HIGHLIGHT, message)


def print_db_hint() -> None:
    """Point at `db init` after a failure that smells like a missing schema."""
    _emit(
        "Hint:",
        CAUTION,
        f"create the tables with [{HIGHLIGHT}]taskweave db init[/{HIGHLIGHT}]",
    )


@contextmanager
def working(message: str) -> Iterator[None]:
    """Show a status spinner while the block runs."""
    with console.status(f"[{HIGHLIGHT}]{message}[/{HIGHLIGHT}]", spinner_style=HIGHLIGHT):
        yield


def make_table(title: str, *columns: str, numeric: tuple[str, ...] = ()) -> Table:
    """Table with the first column as the key and `numeric` columns right-aligned.

    A column named "Title" is clipped to TITLE_WIDTH with an ellipsis.
    """
    table = Table(title=title, title_style=ACCENT, border_style=HIGHLIGHT)
    for i, name in enumerate(columns):
        table.add_column(
            name,
            style=ACCENT if i == 0 else None,
            justify="right" if name in numeric else "left",
            max_width=TITLE_WIDTH if name == "Title" else None,
            overflow="ellipsis",
        )
    return table


def run_async(func: Callable[P, Awaitable[R]]) -> Callable[P, R]:
    """Run an async command body to completion from a sync Typer command."""

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        return asyncio.run(func(*args, **kwargs))

    return wrapper


def styled_status(status: str) -> str:
    style = STATUS_STYLES.get(TaskStatus(status), HIGHLIGHT)
    return f"[{style}]{status}[/{style}]"


def styled_priority(priority: str) -> str:
    style = PRIORITY_STYLES.get(TaskPriority(priority), HIGHLIGHT)
    return f"[{style}]{priority}[/{style}]"


def task_label(task) -> str:
    """One-line summary of a task for trees and messages."""
    title = task.title
    if len(title) > TITLE_WIDTH:
        title = title[: TITLE_WIDTH - 1] + "…"
    return (
        f"{title} [dim]({task.id})[/dim] "
        f"{styled_status(task.status)} {styled_priority(task.priority)} "
        f"[{HIGHLIGHT}]{task.progress}%[/{HIGHLIGHT}]"
    )
