"""CLI entry point for TestRail synchronization."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from railsync.errors import ConfigurationError, RailSyncError
from railsync.models.config import SyncConfig
from railsync.reporter.ledger import read_ledger
from railsync.sync.orchestrator import SubmissionOrchestrator
from railsync.sync.resolver import PlanResolver
from railsync.testrail.client import TestRailClient

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(**overrides) -> SyncConfig:
    try:
        cfg = SyncConfig.from_env()
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return cfg.model_copy(update=overrides) if overrides else cfg


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Synchronize end-to-end test results with TestRail."""
    setup_logging(verbose)


@cli.command()
def check() -> None:
    """Validate credentials, project and suite configuration."""
    cfg = _load_config()
    client = TestRailClient.from_config(cfg)
    resolver = PlanResolver(client, cfg)
    try:
        project = resolver.validate_project()
        suites = client.get_suites(cfg.project_id)
    except RailSyncError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"[green]Connected:[/green] project {project.id} ({project.name})")
    table = Table(title="Suites")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    for suite in suites:
        marker = " [green](selected)[/green]" if suite.name == cfg.suite_name else ""
        table.add_row(str(suite.id), f"{suite.name}{marker}")
    console.print(table)


@cli.command()
@click.argument("ledger", type=click.Path(exists=True, dir_okay=False))
@click.option("--plan-id", type=int, default=None, help="Report into an existing plan")
@click.option("--close/--no-close", default=None, help="Close the plan or runs afterwards")
def sync(ledger: str, plan_id: Optional[int], close: Optional[bool]) -> None:
    """Replay a saved result ledger into TestRail."""
    cfg = _load_config(plan_id=plan_id, close_on_finish=close)
    buffer = read_ledger(ledger)
    client = TestRailClient.from_config(cfg)
    resolver = PlanResolver(client, cfg)

    try:
        resolver.validate_project()
        plan = resolver.attach(cfg.plan_id) if cfg.plan_id is not None else None
        summary = SubmissionOrchestrator(client, cfg, resolver).synchronize(buffer, plan=plan)
    except RailSyncError as e:
        console.print(f"[red]Synchronization failed:[/red] {e}")
        sys.exit(1)

    table = Table(title="Synchronization Summary")
    table.add_column("Configuration", style="bold")
    table.add_column("Run")
    table.add_column("Results")
    for label, count in summary.submitted.items():
        table.add_row(label, str(summary.run_ids[label]), f"[green]{count}[/green]")
    for label in summary.skipped:
        table.add_row(label, "-", "[yellow]skipped[/yellow]")
    console.print(table)
    if summary.plan_id is not None:
        console.print(f"  Plan: [blue]{summary.plan_url or summary.plan_id}[/blue]")


@cli.command()
@click.argument("plan_id", type=int)
def plan(plan_id: int) -> None:
    """Show the runs of a TestRail plan."""
    cfg = _load_config()
    client = TestRailClient.from_config(cfg)
    try:
        test_plan = PlanResolver(client, cfg).attach(plan_id)
    except RailSyncError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"Plan {test_plan.id}: {test_plan.name}")
    table.add_column("Run", style="bold")
    table.add_column("Configuration")
    table.add_column("Name")
    table.add_column("Completed")
    for run in test_plan.runs():
        table.add_row(str(run.id), run.config or "-", run.name,
                      "[green]yes[/green]" if run.is_completed else "no")
    console.print(table)


if __name__ == "__main__":
    cli()
