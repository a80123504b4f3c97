"""CLI interface for diskdive."""

import logging
import os
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from diskdive import __version__
from diskdive.config import Settings, load_settings
from diskdive.display import console, format_size, show_scan_result, short_path
from diskdive.errors import DiskDiveError
from diskdive.scanner import ConcurrentScanner
from diskdive.sizing import SizeResolver
from diskdive.store import CacheStore

LOG_FILE = "diskdive.log"

# Create Typer app
app = typer.Typer(
    name="diskdive",
    help="Interactive disk usage analyzer - find what fills your disk",
    add_completion=False,
)

cache_app = typer.Typer(help="Manage the scan cache.")
app.add_typer(cache_app, name="cache")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"diskdive version {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool, log_file: Optional[str] = None) -> None:
    """Send diskdive logs to stderr, or to a file while the TUI owns the terminal."""
    if not verbose:
        return

    if log_file:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)

    root = logging.getLogger("diskdive")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)


def _absolute(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def _launch(ctx: typer.Context, path: Optional[str]) -> None:
    settings: Settings = ctx.obj["settings"]
    if ctx.obj["verbose"]:
        setup_logging(True, str(settings.cache_dir / LOG_FILE))

    if path is not None:
        path = _absolute(path)
        if not os.path.isdir(path):
            console.print(f"[red]Error: not a directory: {path}[/red]")
            raise typer.Exit(1)

    from diskdive.tui import run_tui

    run_tui(path=path, settings=settings)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """diskdive - interactive disk usage analyzer."""
    ctx.obj = {"settings": load_settings(), "verbose": verbose}

    # If no command specified, open the overview
    if ctx.invoked_subcommand is None:
        _launch(ctx, None)
    elif verbose and ctx.invoked_subcommand != "browse":
        setup_logging(True)


@app.command()
def browse(
    ctx: typer.Context,
    path: Optional[str] = typer.Argument(None, help="Directory to open (default: overview)"),
) -> None:
    """Browse a directory interactively."""
    _launch(ctx, path)


@app.command()
def scan(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Directory to scan"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show only the N largest entries"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Scan one directory level and rank its children by size."""
    settings: Settings = ctx.obj["settings"]
    path = _absolute(path)

    try:
        if as_json:
            result = ConcurrentScanner(settings).scan(path)
        else:
            with console.status(f"[bold blue]Scanning {short_path(path)}...[/bold blue]"):
                result = ConcurrentScanner(settings).scan(path)
    except DiskDiveError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        if limit:
            result = result.model_copy(
                update={"entries": result.entries[:limit], "large_files": result.large_files[:limit]}
            )
        typer.echo(result.model_dump_json(indent=2))
        return

    show_scan_result(result, path, limit)


@app.command()
def size(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Directory to measure"),
) -> None:
    """Measure the on-disk size of a directory."""
    settings: Settings = ctx.obj["settings"]
    store = CacheStore(settings.cache_dir, size_ttl=settings.overview_size_ttl)
    resolver = SizeResolver(store, settings)
    path = _absolute(path)

    try:
        measured = resolver.measure(path)
    except DiskDiveError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{format_size(measured)}[/bold]  {short_path(path)}")


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every cached scan and stored size."""
    settings: Settings = ctx.obj["settings"]
    store = CacheStore(settings.cache_dir)
    try:
        removed = store.clear()
    except OSError as e:
        console.print(f"[red]Error: could not clear cache: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Removed {removed} cache file(s) from {settings.cache_dir}")


if __name__ == "__main__":
    app()
