"""Typer CLI entrypoint for maps-harvester."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, RunConfig, validate_run_config
from .errors import ConfigurationError, LocationNotFoundError
from .logging_conf import available_run_logs, configure_logging, log_file_path, tail_log
from .orchestrator import Orchestrator, RunSummary

app = typer.Typer(
    help="maps-harvester command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
profile_app = typer.Typer(
    name="profile",
    help="Manage saved run profiles.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()

EXIT_CONFIGURATION = 2
EXIT_LOCATION = 3


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    orchestrator = Orchestrator(config_repository=repository)
    return AppState(repository=repository, orchestrator=orchestrator)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _render_profiles_table(profiles: Sequence[RunConfig]) -> Table:
    table = Table(title="Run profiles", box=box.SIMPLE_HEAD)
    table.add_column("Name", style="cyan")
    table.add_column("Search terms", style="green")
    table.add_column("Location")
    table.add_column("Zoom", justify="right")
    table.add_column("Max results", justify="right")
    table.add_column("Output")
    for profile in profiles:
        table.add_row(
            profile.run_name,
            ", ".join(profile.search_terms),
            profile.location,
            str(profile.zoom),
            str(profile.max_results),
            profile.output_format,
        )
    return table


def _render_summary_table(summary: RunSummary) -> Table:
    stats = summary.stats
    table = Table(title=f"{summary.run_name} results", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    rows = [
        ("Segments", summary.segments),
        ("Planned tasks", summary.tasks),
        ("Pages finished", summary.finished),
        ("Pages failed", summary.failed),
        ("Pages skipped", summary.skipped),
        ("Retries", summary.retries),
        ("Places seen", stats.get("seen", 0)),
        ("Places accepted", summary.accepted),
        ("Duplicates", stats.get("duplicate", 0)),
        ("Out of area", stats.get("out_of_area", 0)),
        ("Below min rating", stats.get("below_min_rating", 0)),
        ("Category rejected", stats.get("category_rejected", 0)),
        ("Paginations", stats.get("paginations", 0)),
        ("Reached max results", "yes" if summary.reached_max_results else "no"),
        ("Elapsed (s)", f"{summary.elapsed_seconds:.1f}"),
    ]
    for label, value in rows:
        table.add_row(label, str(value))
    for term, count in sorted(stats.get("per_search_term", {}).items()):
        table.add_row(f"  {term}", str(count))
    if summary.output:
        table.add_row("Output", summary.output)
    return table


def _run_payload(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    payload = dict(base)
    payload.update({key: value for key, value in overrides.items() if value not in (None, [], ())})
    return payload


app.add_typer(profile_app, name="profile", help="Manage saved run profiles (list/show/save/remove).")
app.add_typer(log_app, name="log", help="List or tail log files.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Harvest places for one or more search terms around a location.")
def run(
    ctx: typer.Context,
    terms: Optional[List[str]] = typer.Argument(None, help="Search terms, e.g. 'coffee shop'."),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Free-text location to search around."),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Load settings from a saved profile."),
    name: Optional[str] = typer.Option(None, "--name", help="Run name used for logs and output files."),
    max_results: Optional[int] = typer.Option(None, "--max-results", help="Stop after this many accepted places."),
    zoom: Optional[int] = typer.Option(None, "--zoom", help="Map zoom level (1-21)."),
    min_stars: Optional[float] = typer.Option(None, "--min-stars", help="Drop places rated below this."),
    category: Optional[List[str]] = typer.Option(None, "--category", "-c", help="Only keep these categories."),
    max_per_search: Optional[int] = typer.Option(
        None, "--max-per-search", help="Cap on accepted places per search term."
    ),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", help="Maximum pagination depth per segment."),
    max_segments: Optional[int] = typer.Option(None, "--max-segments", help="Segments searched per term."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Pages fetched in parallel."),
    retries: Optional[int] = typer.Option(None, "--retries", help="Retries per failed page."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-page timeout in seconds."),
    output_format: Optional[str] = typer.Option(
        None, "--format", help="Output sink: json, csv, sqlite or mongodb."
    ),
    save_profile: bool = typer.Option(False, "--save-profile", help="Store these settings as a profile.", is_flag=True),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line result only.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    base: dict[str, Any] = {}
    if profile:
        try:
            base = state.repository.load_profile(profile).model_dump(mode="json")
        except FileNotFoundError as exc:
            console.print(str(exc), style="red")
            raise typer.Exit(code=1)
        except ConfigurationError as exc:
            console.print(str(exc), style="red")
            raise typer.Exit(code=EXIT_CONFIGURATION)
    overrides = {
        "run_name": name,
        "search_terms": list(terms or []),
        "location": location,
        "max_results": max_results,
        "zoom": zoom,
        "min_stars": min_stars,
        "category_filter": list(category or []),
        "max_crawled_places_per_search": max_per_search,
        "max_pagination_depth": max_depth,
        "max_segments_per_term": max_segments,
        "max_concurrency": concurrency,
        "max_request_retries": retries,
        "request_timeout_secs": timeout,
        "output_format": output_format,
    }
    try:
        config = validate_run_config(_run_payload(base, overrides))
    except ConfigurationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    if save_profile:
        path = state.repository.save_profile(config)
        if not quiet:
            console.print(f"Profile saved: {path}", style="dim")

    try:
        summary = state.orchestrator.run(config, progress_enabled=_progress_default_enabled() and not quiet)
    except LocationNotFoundError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_LOCATION)
    except ConfigurationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_CONFIGURATION)

    if quiet:
        console.print(
            f"Run finished: {summary.accepted} accepted, {summary.finished} pages, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        return
    console.print(_render_summary_table(summary))


@profile_app.command("list", help="List saved run profiles.")
def profile_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        profiles = state.repository.list_profiles()
    except ConfigurationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    if not profiles:
        console.print("No profiles yet. Use `maps-harvester run ... --save-profile` to create one.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_profiles_table(profiles))


@profile_app.command("show", help="Print a saved profile as YAML.")
def profile_show(ctx: typer.Context, name: str = typer.Argument(..., help="Profile name.")) -> None:
    state = _get_state(ctx)
    try:
        config = state.repository.load_profile(name)
    except FileNotFoundError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    console.print(
        yaml.safe_dump(config.model_dump(mode="json"), allow_unicode=True, sort_keys=False),
        markup=False,
        highlight=False,
    )


@profile_app.command("save", help="Validate a YAML/JSON run file and store it as a profile.")
def profile_save(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Path to a YAML or JSON run file."),
    name: Optional[str] = typer.Option(None, "--name", help="Override the run name stored in the file."),
) -> None:
    state = _get_state(ctx)
    try:
        config, path = state.repository.import_profile(source, run_name=name)
    except FileNotFoundError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1)
    except ConfigurationError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=EXIT_CONFIGURATION)
    console.print(f"Profile {config.run_name} saved to {path}", style="green")


@profile_app.command("remove", help="Delete a saved profile.")
def profile_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Profile name."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Delete profile {name}?", default=False):
        raise typer.Exit(code=0)
    if not state.repository.delete_profile(name):
        console.print(f"Profile not found: {name}", style="red")
        raise typer.Exit(code=1)
    console.print(f"Profile {name} removed.", style="green")


@log_app.command("list", help="List available run logs.")
def log_list() -> None:
    logs = list(available_run_logs())
    if not logs:
        console.print("No run logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the last lines of a run log or the global log.")
def log_show(
    run_name: Optional[str] = typer.Option(None, "--run", help="Run name (global log when omitted)."),
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
) -> None:
    lines = tail_log(log_file_path(run_name), tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    header = f"{'Run log ' + run_name if run_name else 'Global log'} · last {len(lines)} lines"
    console.print(header, style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()


__all__ = ["AppState", "app", "build_state", "cli"]
