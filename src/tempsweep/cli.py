"""CLI interface for tempsweep."""

from concurrent.futures import Future
from pathlib import Path
from typing import Optional

import typer

from tempsweep import __version__
from tempsweep.categories import TargetCatalog, load_catalog
from tempsweep.display import (
    configure_logging,
    confirm_action,
    console,
    show_error,
    show_event,
    show_groups,
    show_measure_result,
    show_sweep_result,
    show_sweep_started,
)
from tempsweep.engine import SweepEngine
from tempsweep.errors import SweepError
from tempsweep.models import SweepState
from tempsweep.progress import ProgressSink

ALL_GROUPS = "ALL CATEGORIES"

app = typer.Typer(
    name="tempsweep",
    help="Empty temp, cache and browser folders and report the space reclaimed",
    add_completion=False,
)

PathsFileOption = typer.Option(
    None,
    "--paths-file",
    "-p",
    help="JSON file of group name -> paths, replacing the bundled catalog",
)
WorkersOption = typer.Option(
    None, "--workers", "-w", min=1, help="Parallel workers (default: CPU count)"
)
VerboseOption = typer.Option(False, "--verbose", help="Show debug logging")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"tempsweep version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """tempsweep - concurrent temp and cache folder cleanup."""


def _load(paths_file: Optional[Path]) -> TargetCatalog:
    try:
        return load_catalog(paths_file)
    except SweepError as e:
        show_error(str(e))
        raise typer.Exit(1)


def _stream(engine: SweepEngine, future: Future, sink: ProgressSink):
    """Print events until the run ends; Ctrl-C asks the run to stop."""
    while True:
        try:
            for event in sink:
                show_event(event)
            break
        except KeyboardInterrupt:
            if engine.request_cancel():
                console.print("[yellow]Cancelling - waiting for in-flight deletions...[/yellow]")
    return future.result()


@app.command(name="list")
def list_groups(paths_file: Optional[Path] = PathsFileOption) -> None:
    """List target groups and the folders they cover."""
    catalog = _load(paths_file)
    resolved = {group.name: catalog.resolve(group.name) for group in catalog.groups}
    show_groups(catalog, resolved)


@app.command()
def clean(
    group: Optional[str] = typer.Argument(None, help="Target group to clean"),
    all_groups: bool = typer.Option(False, "--all", "-a", help="Clean every group"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompt"),
    paths_file: Optional[Path] = PathsFileOption,
    workers: Optional[int] = WorkersOption,
    verbose: bool = VerboseOption,
) -> None:
    """Measure, empty and re-measure a target group."""
    configure_logging(verbose)

    if not group and not all_groups:
        console.print("[red]Error: Specify a GROUP or --all[/red]")
        console.print("  tempsweep clean Temp     # Clean one group")
        console.print("  tempsweep clean --all    # Clean every group")
        raise typer.Exit(1)

    catalog = _load(paths_file)

    if all_groups:
        name = ALL_GROUPS
        paths = catalog.resolve_all()
        if not yes and not confirm_action("Do you really want to delete all temporary folders?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)
    else:
        target = catalog.get_group(group)
        if target is None:
            console.print(f"[red]Unknown group: {group}[/red]")
            console.print("\nAvailable groups:")
            for group_name in catalog.group_names:
                console.print(f"  • {group_name}")
            raise typer.Exit(1)
        name = target.name
        paths = catalog.resolve(name)
        if not yes and not confirm_action(f"Delete the contents of {name}?"):
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(0)

    show_sweep_started(name)
    sink = ProgressSink()
    with SweepEngine(max_workers=workers) as engine:
        try:
            future = engine.start_sweep(name, paths, sink)
        except SweepError as e:
            show_error(str(e))
            raise typer.Exit(1)
        result = _stream(engine, future, sink)

    show_sweep_result(result)


@app.command()
def size(
    group: Optional[str] = typer.Option(None, "--group", "-g", help="Measure one group only"),
    paths_file: Optional[Path] = PathsFileOption,
    workers: Optional[int] = WorkersOption,
    verbose: bool = VerboseOption,
) -> None:
    """Calculate the total size of the target folders without deleting."""
    configure_logging(verbose)
    catalog = _load(paths_file)

    if group:
        if catalog.get_group(group) is None:
            console.print(f"[red]Unknown group: {group}[/red]")
            raise typer.Exit(1)
        paths = catalog.resolve(group)
    else:
        paths = catalog.resolve_all()

    console.print("[bold]🔎 Calculating total size of all folders...[/bold]\n")
    sink = ProgressSink()
    with SweepEngine(max_workers=workers) as engine:
        try:
            future = engine.start_measure_all(paths, sink)
        except SweepError as e:
            show_error(str(e))
            raise typer.Exit(1)
        total = _stream(engine, future, sink)
        cancelled = engine.state is SweepState.CANCELLED

    show_measure_result(total, cancelled=cancelled)


if __name__ == "__main__":
    app()
