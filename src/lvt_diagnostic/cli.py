"""Typer CLI entry point for lvt-diagnostic."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from lvt_diagnostic import __version__
from lvt_diagnostic.config import Settings, format_validation_error
from lvt_diagnostic.exceptions import InvalidArgumentError
from lvt_diagnostic.logging import configure_logging, generate_run_id
from lvt_diagnostic.scenarios import SCENARIOS, RunSummary, ScenarioRunner

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="lvt-diagnostic",
    help="Reproduce list view threshold failures against a throttled list API.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


def _display_summary(summary: RunSummary) -> None:
    table = Table(title="LVT Diagnostic", show_lines=True)
    table.add_column("Scenario", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("LVT", justify="center")
    table.add_column("Elapsed", justify="right")
    table.add_column("Detail")

    for outcome in summary.outcomes:
        status = "[green]OK[/green]" if outcome.succeeded else "[red]FAIL[/red]"
        lvt = "[yellow]yes[/yellow]" if outcome.list_view_threshold else ""
        detail = (
            ""
            if outcome.succeeded
            else f"{outcome.error_type}: {outcome.message}"
        )
        table.add_row(
            outcome.name,
            status,
            lvt,
            f"{outcome.elapsed_seconds:.2f}s",
            detail,
        )

    console.print(table)
    console.print(f"[dim]Finished! Elapsed time: {summary.elapsed_seconds:.2f}s[/dim]")


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]lvt-diagnostic[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """lvt-diagnostic global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def run(
    scenario: Annotated[
        list[str] | None,
        typer.Option(
            "--scenario",
            "-s",
            help="Scenario to run (repeatable). Defaults to the standard set.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    max_attempts: Annotated[
        int | None,
        typer.Option("--max-attempts", help="Throttling retry attempts per batch."),
    ] = None,
    base_delay: Annotated[
        int | None,
        typer.Option("--base-delay", help="First backoff wait in seconds."),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit non-zero when any scenario fails."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Run the list view threshold scenarios against the configured site."""
    overrides: dict[str, Any] = {}
    retry: dict[str, int] = {}
    if max_attempts is not None:
        retry["max_attempts"] = max_attempts
    if base_delay is not None:
        retry["base_delay_seconds"] = base_delay
    if retry:
        overrides["retry"] = retry
    if verbose:
        overrides["logging"] = {"level": "DEBUG"}

    settings = _load_settings(config, **overrides)
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
        run_id=generate_run_id(),
    )

    logger.info(
        "run_started",
        site=settings.site.url,
        list_title=settings.site.list_title,
        scenarios=scenario or "default",
    )

    runner = ScenarioRunner(settings)
    try:
        summary = runner.run(scenario)
    except InvalidArgumentError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    _display_summary(summary)

    if strict and not summary.succeeded:
        raise typer.Exit(code=1)


@app.command(name="scenarios")
def list_scenarios() -> None:
    """List the available scenarios."""
    table = Table(title="Scenarios")
    table.add_column("Name", style="cyan")
    table.add_column("Default", justify="center")
    table.add_column("Description")
    for item in SCENARIOS.values():
        table.add_row(item.name, "yes" if item.default else "", item.description)
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
