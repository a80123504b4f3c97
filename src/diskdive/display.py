"""Formatting helpers and rich terminal output for diskdive."""

import os
from datetime import datetime

from rich.console import Console
from rich.table import Table

from diskdive.models import ScanResult
from diskdive.rules import is_cleanable_dir

console = Console()

BAR_WIDTH = 20


def format_size(size_bytes: int) -> str:
    """Format bytes to a human-readable string (binary units)."""
    if size_bytes < 0:
        return "pending.."
    if size_bytes >= 1024**4:
        return f"{size_bytes / (1024**4):.1f} TB"
    elif size_bytes >= 1024**3:
        return f"{size_bytes / (1024**3):.1f} GB"
    elif size_bytes >= 1024**2:
        return f"{size_bytes / (1024**2):.1f} MB"
    elif size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes} B"


def format_number(n: int) -> str:
    return f"{n:,}"


def short_path(path: str, home: str | None = None) -> str:
    """Show paths under the home directory with a leading ``~``."""
    if home is None:
        home = os.path.expanduser("~")
    if home and home != os.sep:
        if path == home:
            return "~"
        if path.startswith(home + os.sep):
            return "~" + path[len(home) :]
    return path


def truncate_middle(text: str, width: int) -> str:
    """Shorten text to width characters by cutting out its middle."""
    if len(text) <= width:
        return text
    if width <= 3:
        return text[:width]
    keep = width - 3
    head = (keep + 1) // 2
    tail = keep - head
    return text[:head] + "..." + (text[-tail:] if tail else "")


def size_color(percent: float) -> str:
    """Style for a size given its share of the total."""
    if percent >= 50:
        return "red"
    elif percent >= 20:
        return "yellow"
    elif percent >= 5:
        return "cyan"
    return "grey50"


def progress_bar(value: int, max_value: int, percent: float, width: int = BAR_WIDTH) -> str:
    """Horizontal bar scaled against the largest value, as rich markup."""
    filled = 0
    if max_value > 0 and value > 0:
        filled = max(1, round(width * value / max_value))
        filled = min(filled, width)
    color = size_color(percent)
    return f"[{color}]{'█' * filled}[/{color}][grey30]{'░' * (width - filled)}[/grey30]"


def format_unused_time(last_access: datetime | None, now: datetime | None = None) -> str:
    """Short "unused for" hint; empty when recently used or unknown."""
    if last_access is None:
        return ""
    now = now or datetime.now()
    days = (now - last_access).days
    if days >= 365:
        return f">{days // 365}yr"
    if days >= 90:
        return f">{days // 30}mo"
    return ""


def entry_hint(path: str, is_dir: bool, last_access: datetime | None) -> str:
    """Cleanable marker for dependency/build dirs, otherwise the unused hint."""
    if is_dir and is_cleanable_dir(path):
        return "[yellow]🧹[/yellow]"
    unused = format_unused_time(last_access)
    return f"[grey50]{unused}[/grey50]" if unused else ""


def show_scan_result(result: ScanResult, path: str, limit: int | None = None) -> None:
    """Display a directory scan as a table."""
    entries = result.entries[:limit] if limit else result.entries
    max_size = max((e.size for e in entries), default=1) or 1

    table = Table(
        title=f"{short_path(path)}  |  Total: {format_size(result.total_size)}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Usage")
    table.add_column("%", justify="right")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("", justify="left")

    for i, entry in enumerate(entries, 1):
        percent = entry.size / result.total_size * 100 if result.total_size > 0 else 0.0
        color = size_color(percent)
        icon = "📁" if entry.is_dir else "📄"
        table.add_row(
            str(i),
            progress_bar(entry.size, max_size, percent),
            f"{percent:5.1f}%",
            f"{icon} {entry.name}",
            f"[{color}]{format_size(entry.size)}[/{color}]",
            entry_hint(entry.path, entry.is_dir, entry.last_access),
        )

    if entries:
        console.print(table)
    else:
        console.print(f"[dim]{short_path(path)}: Empty directory[/dim]")

    if result.large_files:
        console.print()
        files = Table(title="Large files", show_header=True, header_style="bold")
        files.add_column("#", justify="right", style="dim")
        files.add_column("Path")
        files.add_column("Size", justify="right")
        for i, record in enumerate(result.large_files[:limit] if limit else result.large_files, 1):
            files.add_row(str(i), truncate_middle(short_path(record.path), 60), format_size(record.size))
        console.print(files)
    console.print()
