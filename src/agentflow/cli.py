"""AgentFlow CLI - goal-driven autonomous task execution from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Callable, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agentflow.config import AgentFlowConfig, default_config_path
from agentflow.errors import ConfigError, RunAbortedError
from agentflow.models import ExecutionResult, RunStatus
from agentflow.report import render_report
from agentflow.tools.registry import ToolRegistry

console = Console()


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def console_emitter(out: Console) -> Callable[..., None]:
    """Render orchestrator progress events."""

    def emit(event: str, **kwargs: Any) -> None:
        data = kwargs.get("data")
        if event == "checklist_created":
            out.print(f"[bold]Checklist:[/bold] {len(data)} task(s)")
        elif event == "iteration_start":
            names = ", ".join(data.get("tasks", []))
            out.print(f"\n[blue]Iteration {kwargs.get('iteration')}[/blue]: {names}")
        elif event == "task_finished":
            task, result = data["task"], data["result"]
            if result.success:
                out.print(f"  [green]✔[/green] {task.name} (confidence: {result.confidence:.0%})")
            else:
                out.print(f"  [red]✘[/red] {task.name}: {result.error or 'Unknown error'}")
        elif event == "reflection":
            out.print(
                f"  [yellow]Reassessing strategy[/yellow] "
                f"(failure rate {data['failure_rate']:.0%}, "
                f"{len(data['adjustments'])} adjustment(s))"
            )

    return emit


def _load_config(args: argparse.Namespace) -> AgentFlowConfig:
    return AgentFlowConfig.load(args.config)


def _apply_run_overrides(config: AgentFlowConfig, args: argparse.Namespace) -> AgentFlowConfig:
    """Return a validated copy of ``config`` with the ``run`` flags applied."""
    agent: dict[str, Any] = {}
    if args.max_iterations is not None:
        agent["max_iterations"] = args.max_iterations
    if args.confidence is not None:
        agent["confidence_threshold"] = args.confidence
    if args.no_parallel:
        agent["parallel_execution"] = False
    if args.max_concurrency is not None:
        agent["max_concurrency"] = args.max_concurrency
    if args.task_selection:
        agent["task_selection"] = args.task_selection

    data = config.model_dump()
    data["agent"].update(agent)
    if args.workspace:
        data["tools"]["workspace"] = args.workspace
    return AgentFlowConfig.model_validate(data)


def cmd_run(args: argparse.Namespace) -> int:
    """Execute a goal."""
    from agentflow.llm.provider import create_llm
    from agentflow.oracle.llm import LLMOracle
    from agentflow.orchestrator.controller import Orchestrator

    config = _load_config(args)
    setup_logging(args.log_level or config.log_level)

    try:
        context = json.loads(args.context) if args.context else {}
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid --context JSON: {e}[/red]")
        return 1
    if not isinstance(context, dict):
        console.print("[red]--context must be a JSON object[/red]")
        return 1

    try:
        config = _apply_run_overrides(config, args)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        console.print(f"[red]Invalid option {field}: {error['msg']}[/red]")
        return 1
    agent = config.agent

    console.print(Panel(
        "[bold blue]AgentFlow[/bold blue]\n"
        "Goal-driven autonomous task execution",
        expand=False,
    ))
    console.print(f"\n[bold]Goal:[/bold] {args.goal}")
    console.print(f"[bold]Provider:[/bold] {config.llm.provider}")
    console.print(f"[bold]Model:[/bold] {config.llm.model}")
    console.print(f"[bold]Concurrency:[/bold] {agent.effective_concurrency}\n")

    try:
        llm = create_llm(config)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    orchestrator = Orchestrator(
        LLMOracle(llm, default_threshold=agent.confidence_threshold),
        ToolRegistry.with_default_tools(config),
        agent,
        emit=console_emitter(console),
    )

    try:
        result = asyncio.run(orchestrator.achieve_goal(args.goal, context))
    except RunAbortedError as e:
        console.print(Panel(f"[bold red]Execution failed[/bold red]\n\n{e}", border_style="red"))
        if e.result is not None:
            _write_json(args.output_json, e.result)
        return 1

    render_report(result, console)
    _write_json(args.output_json, result)

    if result.status == RunStatus.COMPLETED:
        console.print("\n[bold green]Goal completed successfully![/bold green]")
        return 0
    if result.status == RunStatus.FAILED:
        console.print("\n[bold red]Goal execution failed[/bold red]")
        return 1
    console.print(f"\n[bold yellow]Goal execution incomplete: {result.status.value}[/bold yellow]")
    return 0


def _write_json(path: Optional[str], result: ExecutionResult) -> None:
    if not path:
        return
    with open(path, "w") as f:
        f.write(result.model_dump_json(indent=2))
    console.print(f"\nResult saved to {path}")


def cmd_config_show(args: argparse.Namespace) -> int:
    config = _load_config(args)
    data = config.model_dump(mode="json")
    if data["llm"].get("api_key"):
        data["llm"]["api_key"] = "***"
    console.print(f"[bold]Config file:[/bold] {args.config or default_config_path()}")
    console.print_json(json.dumps(data))
    return 0


def cmd_config_set(args: argparse.Namespace) -> int:
    config = _load_config(args)
    try:
        updated = config.set_value(args.key, args.value)
        path = updated.save(args.config)
    except ConfigError as e:
        console.print(f"[red]Failed to set config: {e}[/red]")
        return 1
    console.print(f"[green]Set {args.key} = {args.value}[/green] ({path})")
    return 0


def cmd_tools(args: argparse.Namespace) -> int:
    registry = ToolRegistry.with_default_tools(_load_config(args))
    table = Table(title="Capability Tools")
    table.add_column("Id", style="cyan")
    table.add_column("Description")
    table.add_column("Capabilities", style="magenta")
    for tool in registry.list_tools():
        table.add_row(tool.id, tool.description, ", ".join(tool.capabilities))
    console.print(table)
    return 0


def cmd_example(args: argparse.Namespace) -> int:
    console.print("[bold blue]AgentFlow Example Usage[/bold blue]\n")
    examples = [
        ("Basic goal execution", 'agentflow run "Research and summarize the latest AI trends"'),
        ("With context", 'agentflow run "Create a marketing plan" --context \'{"company": "TechCorp"}\''),
        ("Custom settings", 'agentflow run "Build a web scraper" --max-iterations 50 --confidence 0.9 --no-parallel'),
        ("Configuration", "agentflow config show\nagentflow config set agent.max_iterations 200"),
        ("Available tools", "agentflow tools"),
    ]
    for title, cmd in examples:
        console.print(f"[bold]{title}:[/bold]")
        for line in cmd.splitlines():
            console.print(f"  [dim]{line}[/dim]", markup=True, highlight=False)
        console.print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentflow",
        description="AgentFlow: goal-driven autonomous task execution",
    )
    parser.add_argument("--config", help="Path to config file (default: ~/.agentflow.json)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Execute a goal")
    run_parser.add_argument("goal", help="The goal to achieve")
    run_parser.add_argument("-c", "--context", help="Additional context as a JSON object")
    run_parser.add_argument("--max-iterations", type=int, help="Maximum iterations")
    run_parser.add_argument("--confidence", type=float, help="Default success threshold (0-1)")
    run_parser.add_argument("--no-parallel", action="store_true", help="Run tasks one at a time")
    run_parser.add_argument("--max-concurrency", type=int, help="Concurrent task limit")
    run_parser.add_argument("--task-selection", choices=["insertion", "oracle"], help="Batch ordering")
    run_parser.add_argument("--workspace", help="Root directory for file and code tools")
    run_parser.add_argument("--log-level", help="Logging level")
    run_parser.add_argument("--output-json", help="Save result to JSON file")
    run_parser.set_defaults(func=cmd_run)

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="config_command")
    show_parser = config_sub.add_parser("show", help="Show current configuration")
    show_parser.set_defaults(func=cmd_config_show)
    set_parser = config_sub.add_parser("set", help="Set a configuration value")
    set_parser.add_argument("key", help="Dotted key, e.g. agent.max_iterations")
    set_parser.add_argument("value", help="Value (JSON or string)")
    set_parser.set_defaults(func=cmd_config_set)

    tools_parser = subparsers.add_parser("tools", help="List capability tools")
    tools_parser.set_defaults(func=cmd_tools)

    example_parser = subparsers.add_parser("example", help="Show example usage")
    example_parser.set_defaults(func=cmd_example)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
