"""Rich terminal display for tempsweep."""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tempsweep.categories import TargetCatalog
from tempsweep.models import EventKind, ProgressEvent, SweepResult

console = Console()

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(size_bytes: int) -> str:
    """Format bytes with binary units and up to two decimals (e.g. '1.5 KB')."""
    if size_bytes <= 0:
        return "0 B"

    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1

    number = f"{size:.2f}".rstrip("0").rstrip(".")
    return f"{number} {SIZE_UNITS[unit]}"


def event_text(event: ProgressEvent) -> Text:
    """Render a progress event as one log line."""
    if event.kind == EventKind.INFO:
        return Text.assemble(("[ℹ] ", "cyan"), f"Size: {format_bytes(event.size or 0)} - {event.path}")
    if event.kind == EventKind.DELETED:
        return Text.assemble(("[✓] ", "green"), f"Deleted: {event.path}")
    if event.kind == EventKind.DELETED_EMPTY_DIR:
        return Text.assemble(("[✓] ", "green"), f"Deleted empty folder: {event.path}")
    return Text.assemble(("[!] ", "yellow"), f"Skipped: {event.path} ({event.message})")


def show_event(event: ProgressEvent) -> None:
    console.print(event_text(event), highlight=False)


def show_sweep_started(group: str) -> None:
    console.print(f"[bold]🧹 Cleaning {group} started...[/bold]\n")


def show_sweep_result(result: SweepResult) -> None:
    """Display the terminal line and summary of a sweep."""
    console.print()
    if result.cancelled:
        console.print(
            f"[yellow]⚠️ Cleaning {result.group} was cancelled. "
            f"Cleaned {format_bytes(result.reclaimed)} before stopping.[/yellow]"
        )
    else:
        console.print(
            f"[bold green]✅ Cleaning {result.group} finished. "
            f"Cleaned {format_bytes(result.reclaimed)} "
            f"({format_bytes(result.deleted_bytes)} deleted).[/bold green]"
        )

    table = Table(show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Size before", format_bytes(result.size_before))
    table.add_row("Size after", format_bytes(result.size_after))
    table.add_row("Files deleted", format_bytes(result.deleted_bytes))
    table.add_row("Reclaimed", f"[bold green]{format_bytes(result.reclaimed)}[/bold green]")
    console.print(table)


def show_measure_result(total: int, cancelled: bool = False) -> None:
    console.print()
    if cancelled:
        console.print("[yellow]⚠️ Size calculation was cancelled.[/yellow]")
    console.print(f"[bold]📊 Total size: {format_bytes(total)}[/bold]")


def show_groups(catalog: TargetCatalog, resolved: dict[str, list[str]]) -> None:
    """Display every target group with its expanded paths."""
    for group in catalog.groups:
        table = Table(title=group.name, show_header=False, title_justify="left")
        table.add_column("Path")
        for path in resolved.get(group.name, []):
            table.add_row(path)
        console.print(table)

    console.print(f"[dim]Catalog: {catalog.source}[/dim]")


def show_error(message: str) -> None:
    console.print(Panel(message, title="[bold red]Error[/bold red]", border_style="red"))


def confirm_action(message: str) -> bool:
    """Ask for confirmation."""
    from rich.prompt import Confirm

    return Confirm.ask(message)


def configure_logging(verbose: bool = False) -> None:
    """Send log records to the shared console."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
