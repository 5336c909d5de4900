from __future__ import annotations

import datetime
from io import StringIO
from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from covfetch.execdata.store import ExecutionDataStore, SessionInfoStore


def _format_millis(millis: int) -> str:
    try:
        stamp = datetime.datetime.fromtimestamp(millis / 1000, tz=datetime.UTC)
    except (OverflowError, OSError, ValueError):
        return str(millis)
    return stamp.strftime("%Y-%m-%d %H:%M:%S UTC")


def render_exec_info(
    sessions: SessionInfoStore,
    executions: ExecutionDataStore,
    *,
    title: str = "Execution Data",
    color: bool = True,
) -> str:
    """Render the sessions of an exec file as a Rich table, plus class and probe totals."""
    # session ids and file names come from outside and must not be read as markup
    table = Table(title=escape(title), box=box.SIMPLE_HEAVY, header_style="bold", expand=True)
    table.add_column("Session", overflow="fold")
    table.add_column("Start")
    table.add_column("Dump")

    for info in sessions:
        table.add_row(escape(info.id), _format_millis(info.start), _format_millis(info.dump))

    probes = sum(len(data.probes) for data in executions)
    hits = sum(data.hit_count for data in executions)

    buf = StringIO()
    console = Console(file=buf, force_terminal=color, no_color=not color)
    console.print()
    if sessions.is_empty():
        console.print("[yellow]no session records[/yellow]")
    else:
        console.print(table)
    console.print(f"[bold]{len(executions)}[/bold] class records, [bold]{hits}[/bold] of {probes} probes hit")
    console.print()
    return buf.getvalue().rstrip()


__all__ = ["render_exec_info"]
