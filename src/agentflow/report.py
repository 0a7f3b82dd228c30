"""Execution report rendering with rich."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentflow.models import ExecutionResult, RunStatus, TaskStatus

_STATUS_STYLE = {
    RunStatus.COMPLETED: "green",
    RunStatus.FAILED: "red",
    RunStatus.NO_VIABLE_TASKS: "yellow",
    RunStatus.IN_PROGRESS: "yellow",
}


def render_report(result: ExecutionResult, console: Console) -> None:
    style = _STATUS_STYLE[result.status]
    summary = result.summary
    lines = [
        f"[bold]Goal:[/bold] {result.goal}",
        f"[bold]Status:[/bold] [{style}]{result.status.value}[/{style}]",
        f"[bold]Duration:[/bold] {result.duration or 0:.1f}s",
        f"[bold]Iterations:[/bold] {result.iterations}",
    ]
    if summary is not None:
        lines.append(
            f"[bold]Tasks:[/bold] {summary.completed} completed, "
            f"{summary.failed} failed, {summary.pending} pending"
        )
        lines.append(f"[bold]Success Rate:[/bold] {summary.completion_rate:.0%}")
    console.print(Panel("\n".join(lines), title="Execution Report", border_style=style))

    completed = [t for t in result.tasks if t.status == TaskStatus.COMPLETED]
    failed = [t for t in result.tasks if t.status == TaskStatus.FAILED]

    if completed:
        table = Table(title="Completed Tasks")
        table.add_column("Task", style="cyan")
        table.add_column("Confidence", justify="right")
        table.add_column("Iterations", justify="right")
        for task in completed:
            res = task.result
            table.add_row(
                task.name or task.id,
                f"{res.confidence:.0%}" if res else "-",
                str(res.iterations) if res else "-",
            )
        console.print(table)

    if failed:
        table = Table(title="Failed Tasks")
        table.add_column("Task", style="cyan")
        table.add_column("Error", style="red")
        for task in failed:
            error = task.result.error if task.result and task.result.error else "Unknown error"
            table.add_row(task.name or task.id, error)
        console.print(table)
