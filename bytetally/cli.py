"""Command-line interface for inspecting and editing persisted usage."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bytetally.config import TrackerSettings, configure_logging, load_tracker_settings
from bytetally.tracker.usage import DataUsageTracker

app = typer.Typer(
    name="bytetally",
    help="bytetally - durable byte usage counter",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


def format_size(size: int) -> str:
    """Format size in human-readable format."""
    value = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PB"


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[bold green]✓[/bold green] {message}")


def print_error(message: str) -> None:
    """Print error message."""
    console.print(f"[bold red]✗[/bold red] {message}")


def _load_settings(config: Optional[Path], directory: Optional[Path]) -> TrackerSettings:
    settings = load_tracker_settings(config)
    configure_logging(settings.log_level)
    if directory is not None:
        settings = settings.model_copy(update={"config_dir": directory})
    return settings


def _open_tracker(config: Optional[Path], directory: Optional[Path]) -> DataUsageTracker:
    tracker = DataUsageTracker(_load_settings(config, directory))
    tracker.start()
    return tracker


def _close_tracker(tracker: DataUsageTracker) -> None:
    """Stop (which flushes), exiting non-zero if the write failed."""
    if not tracker.stop():
        print_error(f"Could not write {tracker.path}")
        raise typer.Exit(1)


@app.command()
def show(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path (auto-discovered if not set)"),
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Directory holding the usage file"),
) -> None:
    """Show the persisted usage."""
    tracker = _open_tracker(config, directory)
    usage = tracker.get_bytes_sent()
    tracker.stop()

    table = Table(title="Data usage", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("File", str(tracker.path))
    table.add_row("Usage", format_size(usage))
    table.add_row("Bytes", str(usage))
    console.print(table)


@app.command()
def add(
    nbytes: int = typer.Argument(..., help="Bytes to add"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path (auto-discovered if not set)"),
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Directory holding the usage file"),
) -> None:
    """Add bytes to the persisted usage."""
    tracker = _open_tracker(config, directory)
    tracker.add_more_data(nbytes)
    _close_tracker(tracker)
    print_success(f"Usage is now {format_size(tracker.get_bytes_sent())} ({tracker.get_bytes_sent()} bytes)")


@app.command()
def reset(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path (auto-discovered if not set)"),
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Directory holding the usage file"),
) -> None:
    """Reset the persisted usage to zero."""
    tracker = _open_tracker(config, directory)
    tracker.reset()
    _close_tracker(tracker)
    print_success("Usage reset to 0")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
