"""CLI entry point for visreg."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visreg.constants import DEFAULT_CONFIG_FILE, EXIT_TESTS_FAILED, EXIT_TOOL_ERROR
from visreg.models.config import AdapterConfig, AdaptersConfig, VisregConfig
from visreg.models.test_result import RunOutcome
from visreg.orchestrator import Orchestrator

console = Console()
logger = logging.getLogger("visreg")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(
    path: str, include: tuple[str, ...] = (), exclude: tuple[str, ...] = (),
) -> VisregConfig:
    try:
        cfg = VisregConfig.load(path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {path}[/red]")
        console.print("Run 'visreg init' to create a default config.")
        sys.exit(EXIT_TOOL_ERROR)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid config {path}:[/red]\n{e}")
        sys.exit(EXIT_TOOL_ERROR)
    if cfg.runtime.quiet:
        logging.getLogger().setLevel(logging.ERROR)
    return cfg.with_filters(list(include), list(exclude))


def _outcome_table(title: str, outcome: RunOutcome) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Total", str(outcome.total))
    table.add_row("Passed", f"[green]{outcome.passed}[/green]")
    table.add_row("Pixel diffs", f"[red]{outcome.failed_diffs}[/red]")
    table.add_row("Missing current", f"[red]{outcome.failed_missing_current}[/red]")
    table.add_row("Missing baseline", f"[yellow]{outcome.failed_missing_base}[/yellow]")
    table.add_row("Errors", f"[red]{outcome.failed_errors}[/red]")
    table.add_row("Capture failures", f"[red]{outcome.capture_failures}[/red]")
    table.add_row("Duration", f"{outcome.durations.total_duration_ms / 1000:.1f}s")
    return table


def _failures_table(outcome: RunOutcome) -> Table | None:
    failed = [c for c in outcome.test_cases if c.status != "passed"]
    if not failed:
        return None
    table = Table(title="Failures")
    table.add_column("Case")
    table.add_column("Status")
    table.add_column("Reason")
    table.add_column("Diff %", justify="right")
    for case in failed:
        diff = f"{case.diff_percentage:.2f}" if case.diff_percentage is not None else ""
        table.add_row(case.id, case.status, case.reason or "", diff)
    return table


def _filter_options(fn):
    fn = click.option("--exclude", multiple=True, help="Exclude case ids matching pattern")(fn)
    fn = click.option("--include", multiple=True, help="Only case ids matching pattern")(fn)
    return fn


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
def cli(verbose: bool, quiet: bool) -> None:
    """Visual regression testing: capture, compare, report."""
    setup_logging(verbose, quiet)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file path")
@_filter_options
def test(config: str, include: tuple[str, ...], exclude: tuple[str, ...]) -> None:
    """Capture screenshots and compare them against the baselines."""
    cfg = _load_config(config, include, exclude)
    try:
        result = Orchestrator(cfg).run_tests()
    except Exception as e:
        logger.debug("Run aborted", exc_info=True)
        console.print(f"[red]Run aborted:[/red] {e}")
        sys.exit(EXIT_TOOL_ERROR)

    console.print(_outcome_table("Visual Test Results", result.outcome))
    failures = _failures_table(result.outcome)
    if failures is not None:
        console.print(failures)
        console.print(f"Diff images: [blue]{Path(cfg.screenshot_dir) / 'diff'}[/blue]")
    if result.success:
        console.print("[bold green]All visual tests passed[/bold green]")
    else:
        console.print(f"[bold red]{result.outcome.failed} visual test(s) failed[/bold red]")
    sys.exit(result.exit_code)


@cli.command()
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file path")
@_filter_options
def update(config: str, include: tuple[str, ...], exclude: tuple[str, ...]) -> None:
    """Capture screenshots and store them as the new baselines."""
    cfg = _load_config(config, include, exclude)
    try:
        outcome = Orchestrator(cfg).update_baselines()
    except Exception as e:
        logger.debug("Update aborted", exc_info=True)
        console.print(f"[red]Update aborted:[/red] {e}")
        sys.exit(EXIT_TOOL_ERROR)

    console.print(
        f"[green]Baselines updated:[/green] {outcome.passed}/{outcome.total} stored"
    )
    failures = _failures_table(outcome)
    if failures is not None:
        console.print(failures)
        sys.exit(EXIT_TESTS_FAILED)


@cli.command("list")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file path")
@_filter_options
def list_cases(config: str, include: tuple[str, ...], exclude: tuple[str, ...]) -> None:
    """List the test cases discovery finds, without capturing."""
    cfg = _load_config(config, include, exclude)
    try:
        result = Orchestrator(cfg).list_cases()
    except Exception as e:
        console.print(f"[red]Discovery aborted:[/red] {e}")
        sys.exit(EXIT_TOOL_ERROR)

    if not result.test_cases:
        console.print("[yellow]No test cases found[/yellow]")
        return
    table = Table(title=f"Test Cases ({result.total})")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Browser")
    table.add_column("Viewport")
    table.add_column("URL")
    for case in result.test_cases:
        table.add_row(
            case.id,
            case.title,
            case.browser or "",
            case.viewport.label() if case.viewport else "",
            case.url,
        )
    console.print(table)
    console.print(f"Browsers: {', '.join(result.browsers)}  "
                  f"Viewports: {', '.join(result.viewports)}")


@cli.command()
@click.option("--url", "-u", prompt="URL to test", help="Page URL for the first test case")
@click.option("--config", "-c", default=DEFAULT_CONFIG_FILE, help="Config file path")
def init(url: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = VisregConfig(
        adapters=AdaptersConfig(
            browser=AdapterConfig(name="playwright", options={"browser": "chromium"}),
            test_case=[AdapterConfig(name="url", options={
                "urls": [{"id": "home", "url": url}],
            })],
        ),
    )
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nCapture the first baselines with:")
    console.print("  [blue]visreg update[/blue]")
    console.print("Then compare against them with:")
    console.print("  [blue]visreg test[/blue]")


if __name__ == "__main__":
    cli()
