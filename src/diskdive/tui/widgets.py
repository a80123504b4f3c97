"""Custom widgets for the diskdive TUI."""

from rich.markup import escape
from rich.text import Text
from textual.widgets import Static

from diskdive.display import (
    entry_hint,
    format_number,
    format_size,
    progress_bar,
    short_path,
    size_color,
    truncate_middle,
)
from diskdive.navigation import NavigationModel, NavigationState


def _selected_prefix(selected: bool) -> str:
    return " [bold cyan]▶[/bold cyan] " if selected else "   "


class BrowserView(Static):
    """Renders the whole navigation state as rich markup."""

    def __init__(self, model: NavigationModel, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.model = model

    def render(self) -> Text:
        return Text.from_markup(self.to_markup())

    def to_markup(self) -> str:
        """Current view as rich markup."""
        state = self.model.state
        lines = [self._header_line(state), ""]

        if state.in_overview and state.overview_scanning and all(e.is_pending for e in state.entries):
            lines.append(
                f"[bold cyan]{state.spinner_frame}[/bold cyan] Analyzing disk usage, please wait..."
            )
            return "\n".join(lines)

        if state.deleting:
            lines.append(
                f"[bold cyan]{state.spinner_frame}[/bold cyan] Deleting: "
                f"[yellow]{format_number(state.delete_count.value)} items[/yellow] removed, please wait..."
            )
            return "\n".join(lines)

        if state.scanning:
            files, dirs, scanned = state.progress.snapshot()
            lines.append(
                f"[bold cyan]{state.spinner_frame}[/bold cyan] Scanning: "
                f"[yellow]{format_number(files)} files[/yellow], "
                f"[yellow]{format_number(dirs)} dirs[/yellow], "
                f"[green]{format_size(scanned)}[/green]"
            )
            current = state.progress.current_path
            if current:
                lines.append(f"[grey50]{escape(truncate_middle(short_path(current), 50))}[/grey50]")
            return "\n".join(lines)

        if state.show_large_files:
            lines.extend(self._large_file_lines(state))
        else:
            lines.extend(self._entry_lines(state))

        lines.append("")
        lines.append(f"[grey50]{self._key_hints(state)}[/grey50]")
        if state.delete_confirm and state.delete_target is not None:
            target = state.delete_target
            lines.append("")
            lines.append(
                f"[red]Delete:[/red] {escape(target.name)} ({format_size(target.size)})  "
                "[grey50]Press ⌫ again  |  ESC cancel[/grey50]"
            )
        elif state.status:
            lines.append(f"[dim]{escape(state.status)}[/dim]")
        return "\n".join(lines)

    def _header_line(self, state: NavigationState) -> str:
        if state.in_overview:
            title = "[magenta]Analyze Disk[/magenta]"
            if state.overview_scanning or any(e.is_pending for e in state.entries):
                return (
                    f"{title}\n[grey50]Select a location to explore:[/grey50]  "
                    f"[bold cyan]{state.spinner_frame}[/bold cyan] Scanning..."
                )
            return f"{title}\n[grey50]Select a location to explore:[/grey50]"

        header = f"[magenta]Analyze Disk[/magenta]  [grey50]{escape(short_path(state.path))}[/grey50]"
        if not state.scanning:
            header += f"  |  Total: {format_size(state.total_size)}"
        return header

    def _entry_lines(self, state: NavigationState) -> list[str]:
        if not state.entries:
            return ["  Empty directory"]

        viewport = self.model.settings.entry_viewport
        if state.in_overview:
            start, end = 0, len(state.entries)
        else:
            start = max(state.offset, 0)
            end = min(start + viewport, len(state.entries))

        max_size = max([e.size for e in state.entries] + [1])
        total = state.total_size
        lines = []
        for idx in range(start, end):
            entry = state.entries[idx]
            pending = entry.is_pending
            percent = entry.size / total * 100 if total > 0 and not pending else 0.0
            percent_text = "  --  " if pending or total == 0 else f"{percent:5.1f}%"
            color = "cyan" if idx == state.selected else (size_color(percent) if not pending else "grey50")
            icon = "📁" if entry.is_dir else "📄"
            name = escape(truncate_middle(entry.name, 28)).ljust(28)
            hint = entry_hint(entry.path, entry.is_dir, entry.last_access)
            line = (
                f"{_selected_prefix(idx == state.selected)}{idx + 1:2d}. "
                f"{progress_bar(max(entry.size, 0), max_size, percent)} {percent_text}  |  "
                f"{icon} {name} [{color}]{format_size(entry.size):>10}[/{color}]"
            )
            if hint:
                line += f"  {hint}"
            lines.append(line)
        return lines

    def _large_file_lines(self, state: NavigationState) -> list[str]:
        if not state.large_files:
            threshold = format_size(self.model.settings.min_large_file_size)
            return [f"  No large files found (>={threshold})"]

        viewport = self.model.settings.large_viewport
        start = max(state.large_offset, 0)
        end = min(start + viewport, len(state.large_files))
        max_size = max([f.size for f in state.large_files] + [1])

        lines = []
        for idx in range(start, end):
            record = state.large_files[idx]
            color = "cyan" if idx == state.large_selected else "grey50"
            path = escape(truncate_middle(short_path(record.path), 35)).ljust(35)
            lines.append(
                f"{_selected_prefix(idx == state.large_selected)}{idx + 1:2d}. "
                f"{progress_bar(record.size, max_size, 0)}  |  📄 {path} "
                f"[{color}]{format_size(record.size):>10}[/{color}]"
            )
        return lines

    @staticmethod
    def _key_hints(state: NavigationState) -> str:
        if state.in_overview:
            return "↑↓→  |  Enter  |  O Open  |  F Reveal  |  R Refresh  |  Q Quit"
        if state.show_large_files:
            return "↑↓  |  O Open  |  F Reveal  |  ⌫ Delete  |  L Back  |  Q Quit"
        large = f"  |  L Large({len(state.large_files)})" if state.large_files else ""
        return f"↑↓←→  |  Enter  |  O Open  |  F Reveal  |  ⌫ Delete{large}  |  Q Quit"
