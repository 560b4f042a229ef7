"""steptrail CLI entry point."""

from __future__ import annotations

import asyncio
import importlib
from collections.abc import Mapping
from datetime import datetime
from fnmatch import fnmatchcase
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from steptrail.model.outcomes import TestOutcomes
    from steptrail.runs.history_sqlite import SqliteHistory

app = typer.Typer(
    name="steptrail",
    help="steptrail: step-level test outcomes and suite statistics",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    "success": "green",
    "ignored": "dim",
    "skipped": "cyan",
    "pending": "yellow",
    "failure": "red",
    "error": "bold red",
}

STATUS_ICONS = {
    "success": "[green]\u2713[/green]",
    "ignored": "[dim]-[/dim]",
    "skipped": "[cyan]\u2298[/cyan]",
    "pending": "[yellow]\u2026[/yellow]",
    "failure": "[red]\u2717[/red]",
    "error": "[bold red]![/bold red]",
}


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def _load_history() -> SqliteHistory:
    from steptrail.config.loader import load_config
    from steptrail.runs.history_sqlite import SqliteHistory

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    return SqliteHistory(config.history_db_path, config.history_max_records)


@app.command()
def history(limit: int = typer.Option(10, help="Number of runs to show")) -> None:
    """Show the most recent test outcomes."""
    store = _load_history()
    records = asyncio.run(store.get_recent(limit))

    table = Table(title="Recent Test Outcomes")
    table.add_column("Test", style="bold")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Duration", justify="right")

    for r in records:
        table.add_row(
            r.title,
            r.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            _styled(r.status.value),
            str(r.to_dict()["step_count"]),
            f"{r.duration_ms:.0f}ms",
        )
    console.print(table)


@app.command()
def summary(
    status: Optional[str] = typer.Option(None, help="Only outcomes with this overall status"),
    requirement: Optional[str] = typer.Option(None, help="Only outcomes tagged with this requirement"),
    since: Optional[datetime] = typer.Option(None, help="Only outcomes started at or after this time"),
    until: Optional[datetime] = typer.Option(None, help="Only outcomes started at or before this time"),
) -> None:
    """Show suite statistics over the recorded history."""
    from steptrail.errors import InvalidArgumentError
    from steptrail.runs.query import select_outcomes

    store = _load_history()
    grouped = asyncio.run(store.get_all())
    records = [r for recs in grouped.values() for r in recs]
    try:
        outcomes = select_outcomes(records, status=status, requirement=requirement, since=since, until=until)
    except InvalidArgumentError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)

    table = Table(title="Suite Summary")
    table.add_column("Status", style="bold")
    table.add_column("Tests", justify="right")
    table.add_column("Steps", justify="right")
    step_counts = outcomes.step_counts()
    by_status = outcomes.count_by_status()
    for s in sorted(set(by_status) | set(step_counts)):
        table.add_row(_styled(s.value), str(by_status.get(s, 0)), str(step_counts[s]))
    console.print(table)
    console.print(
        f"Total: {outcomes.total_count} tests, pass rate {outcomes.pass_rate():.1%}, "
        f"{outcomes.step_count} steps, {outcomes.total_duration_ms:.0f}ms"
    )


@app.command()
def show(identifier: str = typer.Argument(..., help="Test method identifier")) -> None:
    """Show the step tree of the latest run of a test."""
    store = _load_history()
    records = asyncio.run(store.get_history(identifier))
    if not records:
        console.print(f"[red]No recorded runs for {identifier}[/red]")
        raise typer.Exit(1)

    outcome = records[0].to_outcome()
    root = Tree(f"[bold]{outcome.title}[/bold] {_styled(outcome.overall_status.value)}")
    branches: list[Tree] = [root]
    for step in outcome.root_steps:
        for depth, node in step.flatten(1):
            del branches[depth:]
            label = f"{node.description} {_styled(node.status.value)} {node.duration_ms:.0f}ms"
            if node.error:
                label += f" [dim]{node.error.kind}: {node.error.message}[/dim]"
            branches.append(branches[-1].add(label))
    console.print(root)


def _load_scenarios(target: str) -> dict[str, Any]:
    """Resolve ``package.module[:attribute]`` to an identifier -> scenario mapping.

    The attribute defaults to ``SCENARIOS``. A single callable runs under its
    own name.
    """
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    value = getattr(module, attr or "SCENARIOS")
    if isinstance(value, Mapping):
        return dict(value)
    if callable(value):
        return {attr or value.__name__: value}
    raise TypeError(f"{target} is neither a scenario mapping nor a scenario callable")


@app.command("run")
def run_scenarios(
    target: str = typer.Argument(..., help="Scenarios to run, as package.module[:attribute]"),
    parallel: bool = typer.Option(False, "--parallel", help="Run scenarios concurrently"),
) -> None:
    """Run scenarios, record their outcomes and print the results."""
    from steptrail.config.loader import load_config
    from steptrail.events.emitter import create_cli_emitter
    from steptrail.runs.driver import ScenarioRunner
    from steptrail.runs.history_sqlite import SqliteHistory

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    try:
        scenarios = _load_scenarios(target)
    except (ImportError, AttributeError, TypeError) as exc:
        console.print(f"[red]Cannot load scenarios from {target}: {exc}[/red]")
        raise typer.Exit(1)

    emitter = create_cli_emitter(config)
    runner = ScenarioRunner(
        config,
        history=SqliteHistory(config.history_db_path, config.history_max_records),
        emitter=emitter,
    )

    async def _run() -> TestOutcomes:
        outcomes = await runner.run_suite(scenarios, parallel=parallel)
        await emitter.drain()
        return outcomes

    outcomes = asyncio.run(_run())
    for outcome in outcomes:
        icon = STATUS_ICONS[outcome.overall_status.value]
        console.print(f"  {icon} {outcome.title} ({outcome.step_count} steps, {outcome.duration_ms:.0f}ms)")
        for leaf in outcome.leaves():
            if leaf.error:
                console.print(f"    [red]{leaf.description}: {leaf.error.message}[/red]")

    console.print(f"\nTotal: {outcomes.total_count} tests, pass rate {outcomes.pass_rate():.1%}")
    if any(o.overall_status.is_failing for o in outcomes):
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind host"),
    port: int = typer.Option(8000, help="Bind port"),
) -> None:
    """Start the read-only outcome API server."""
    import uvicorn

    console.print(f"[bold]steptrail[/bold] starting on http://{host}:{port}")
    uvicorn.run("steptrail.api.app:create_app", host=host, port=port, factory=True, reload=False)


config_app = typer.Typer(name="config", help="Configuration commands")
app.add_typer(config_app)


@config_app.command("validate")
def config_validate(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Path to .steptrail.yaml"),
) -> None:
    """Validate the configuration file."""
    from urllib.parse import urlparse

    import yaml

    from steptrail.config.loader import load_config

    try:
        config = load_config(path=path)
        console.print("[green]✓[/green] YAML parses correctly")
        console.print("[green]✓[/green] Pydantic validation passes")
    except FileNotFoundError as exc:
        console.print(f"[red]✗ {exc}[/red]")
        raise typer.Exit(1)
    except yaml.YAMLError as exc:
        console.print(f"[red]✗ YAML parsing failed: {exc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print("[green]✓[/green] YAML parses correctly")
        console.print(f"[red]✗ Pydantic validation failed: {exc}[/red]")
        raise typer.Exit(1)

    errors: list[str] = []
    warnings: list[str] = []
    if config.driver.test_timeout is not None and config.driver.test_timeout <= 0:
        errors.append(f"driver.test_timeout must be positive, got {config.driver.test_timeout}")
    if config.history_max_records < 0:
        errors.append(f"history_max_records must be 0 (unlimited) or more, got {config.history_max_records}")

    for identifier, meta in config.tests.items():
        if not meta.requirements:
            warnings.append(f"Test '{identifier}' has no requirement tags")

    known_event_types = {"test.started", "test.completed", "failure.detected"}
    for i, wh in enumerate(config.webhooks):
        parsed = urlparse(wh.url)
        if not parsed.scheme or not parsed.netloc:
            errors.append(f"Webhook {i}: invalid URL '{wh.url}'")
        for pattern in wh.events:
            if not any(fnmatchcase(evt, pattern) for evt in known_event_types):
                warnings.append(f"Webhook {i}: pattern '{pattern}' matches no event type")

    if errors:
        for err in errors:
            console.print(f"[red]✗ {err}[/red]")
        console.print(f"\n[red bold]{len(errors)} validation error(s) found.[/red bold]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {len(config.tests)} test(s) with metadata")
    if config.webhooks:
        console.print(f"[green]✓[/green] {len(config.webhooks)} webhook(s) configured")
    for w in warnings:
        console.print(f"[yellow]! {w}[/yellow]")
    console.print("\n[green bold]Configuration is valid.[/green bold]")


def main() -> None:
    app()
