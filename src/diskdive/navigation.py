"""Navigation state machine for the interactive browser.

The model owns all mutable view state and changes it only in ``update``,
one message at a time. ``update`` never performs I/O: it returns effects
that the runtime carries out in the background, and the outcome of each
effect comes back later as another message.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Union

from diskdive.config import Settings
from diskdive.display import format_number, format_size, short_path
from diskdive.models import PENDING_SIZE, Entry, FileRecord, HistoryFrame, ScanResult
from diskdive.overview import (
    OverviewScheduler,
    has_pending,
    overview_shortcuts,
    sum_known_sizes,
)
from diskdive.progress import AtomicCounter, ScanProgress

OVERVIEW_PATH = os.sep

SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


class Key(str, Enum):
    """Symbolic key presses understood by the model."""

    UP = "up"
    DOWN = "down"
    ENTER = "enter"
    BACK = "back"
    REFRESH = "refresh"
    TOGGLE_LARGE = "toggle_large"
    OPEN = "open"
    REVEAL = "reveal"
    DELETE = "delete"
    CANCEL = "cancel"
    QUIT = "quit"
    OTHER = "other"


class Mode(str, Enum):
    SCANNING = "scanning"
    BROWSING = "browsing"
    BROWSING_LARGE_FILES = "browsing_large_files"
    OVERVIEW = "overview"
    DELETE_CONFIRM = "delete_confirm"
    DELETING = "deleting"


# =============================================================================
# Messages
# =============================================================================


@dataclass(frozen=True)
class KeyPressed:
    key: Key


@dataclass(frozen=True)
class ScanFinished:
    path: str
    result: ScanResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class OverviewMeasured:
    path: str
    size: int = 0
    error: str | None = None


@dataclass(frozen=True)
class DeleteFinished:
    path: str
    count: int = 0
    error: str | None = None


@dataclass(frozen=True)
class Tick:
    pass


Message = Union[KeyPressed, ScanFinished, OverviewMeasured, DeleteFinished, Tick]


# =============================================================================
# Effects
# =============================================================================


@dataclass(frozen=True)
class RunScan:
    """Scan path (cache first), dropping persisted data for ``invalidate`` beforehand."""

    path: str
    invalidate: tuple[str, ...] = ()


@dataclass(frozen=True)
class MeasureOverview:
    path: str
    invalidate: bool = False


@dataclass(frozen=True)
class RunDelete:
    path: str


@dataclass(frozen=True)
class StoreSize:
    path: str
    size: int


@dataclass(frozen=True)
class OpenExternal:
    path: str
    reveal: bool = False


@dataclass(frozen=True)
class ScheduleTick:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Effect = Union[RunScan, MeasureOverview, RunDelete, StoreSize, OpenExternal, ScheduleTick, Quit]


# =============================================================================
# State
# =============================================================================


@dataclass
class NavigationState:
    path: str
    entries: list[Entry] = field(default_factory=list)
    large_files: list[FileRecord] = field(default_factory=list)
    total_size: int = 0
    selected: int = 0
    offset: int = 0
    large_selected: int = 0
    large_offset: int = 0
    status: str = ""
    scanning: bool = False
    overview: bool = False
    overview_scanning: bool = False
    show_large_files: bool = False
    delete_confirm: bool = False
    delete_target: Entry | None = None
    deleting: bool = False
    spinner: int = 0
    ticking: bool = False
    progress: ScanProgress = field(default_factory=ScanProgress)
    delete_count: AtomicCounter = field(default_factory=AtomicCounter)
    history: list[HistoryFrame] = field(default_factory=list)
    snapshots: dict[str, HistoryFrame] = field(default_factory=dict)

    @property
    def in_overview(self) -> bool:
        return self.overview and self.path == OVERVIEW_PATH

    @property
    def mode(self) -> Mode:
        if self.deleting:
            return Mode.DELETING
        if self.delete_confirm:
            return Mode.DELETE_CONFIRM
        if self.scanning:
            return Mode.SCANNING
        if self.in_overview:
            return Mode.OVERVIEW
        if self.show_large_files:
            return Mode.BROWSING_LARGE_FILES
        return Mode.BROWSING

    @property
    def spinner_frame(self) -> str:
        return SPINNER_FRAMES[self.spinner % len(SPINNER_FRAMES)]

    def snapshot(self) -> HistoryFrame:
        return HistoryFrame(
            path=self.path,
            entries=tuple(self.entries),
            large_files=tuple(self.large_files),
            total_size=self.total_size,
            selected=self.selected,
            entry_offset=self.offset,
            large_selected=self.large_selected,
            large_offset=self.large_offset,
        )

    def restore(self, frame: HistoryFrame) -> None:
        self.path = frame.path
        self.entries = list(frame.entries)
        self.large_files = list(frame.large_files)
        self.total_size = frame.total_size
        self.selected = frame.selected
        self.offset = frame.entry_offset
        self.large_selected = frame.large_selected
        self.large_offset = frame.large_offset


def _clamp(selected: int, offset: int, length: int, viewport: int) -> tuple[int, int]:
    """Keep a selection inside its list and its viewport window."""
    if length == 0:
        return 0, 0
    selected = max(0, min(selected, length - 1))
    offset = max(0, min(offset, length - viewport))
    if selected < offset:
        offset = selected
    if selected >= offset + viewport:
        offset = selected - viewport + 1
    return selected, offset


def _is_within(path: str, parent: str) -> bool:
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


# =============================================================================
# Model
# =============================================================================


class NavigationModel:
    """
    Transition function for the browser.

    ``update(message)`` mutates ``self.state`` synchronously and returns the
    effects to run. It is meant to be called from a single thread only.
    """

    def __init__(
        self,
        path: str | None,
        settings: Settings | None = None,
        scheduler: OverviewScheduler | None = None,
        shortcuts: Callable[[], list[Entry]] = overview_shortcuts,
    ):
        self.settings = settings or Settings()
        self.scheduler = scheduler or OverviewScheduler(batch_size=self.settings.overview_batch)
        self.shortcuts = shortcuts
        self.state = NavigationState(
            path=path or OVERVIEW_PATH,
            overview=path is None,
            status="Preparing scan...",
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def start(self) -> list[Effect]:
        """Effects for the first frame."""
        if self.state.in_overview:
            return self._switch_to_overview()
        return self._begin_scan("Scanning...")

    def update(self, message: Message) -> list[Effect]:
        if isinstance(message, KeyPressed):
            return self._on_key(message.key)
        if isinstance(message, ScanFinished):
            return self._on_scan_finished(message)
        if isinstance(message, OverviewMeasured):
            return self._on_overview_measured(message)
        if isinstance(message, DeleteFinished):
            return self._on_delete_finished(message)
        if isinstance(message, Tick):
            return self._on_tick()
        return []

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _ensure_tick(self) -> list[Effect]:
        if self.state.ticking:
            return []
        self.state.ticking = True
        return [ScheduleTick()]

    def _begin_scan(self, status: str, invalidate: tuple[str, ...] = ()) -> list[Effect]:
        state = self.state
        state.scanning = True
        state.status = status
        state.progress.reset()
        return [RunScan(state.path, invalidate)] + self._ensure_tick()

    def clamp_entries(self) -> None:
        state = self.state
        state.selected, state.offset = _clamp(
            state.selected, state.offset, len(state.entries), self.settings.entry_viewport
        )

    def clamp_large_files(self) -> None:
        state = self.state
        state.large_selected, state.large_offset = _clamp(
            state.large_selected,
            state.large_offset,
            len(state.large_files),
            self.settings.large_viewport,
        )

    def _selected_item(self) -> Entry | FileRecord | None:
        state = self.state
        if state.show_large_files:
            if state.large_files:
                return state.large_files[state.large_selected]
            return None
        if state.entries:
            return state.entries[state.selected]
        return None

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def _on_key(self, key: Key) -> list[Effect]:
        state = self.state

        if state.delete_confirm:
            return self._on_delete_confirm_key(key)

        if key is Key.QUIT:
            return [Quit()]
        if state.deleting:
            return []

        if key is Key.CANCEL:
            if state.show_large_files:
                state.show_large_files = False
                return []
            return [Quit()]
        if key is Key.UP:
            self._move(-1)
        elif key is Key.DOWN:
            self._move(1)
        elif key is Key.ENTER:
            if not state.show_large_files:
                return self._enter_selected()
        elif key is Key.BACK:
            return self._go_back()
        elif key is Key.REFRESH:
            return self._refresh()
        elif key is Key.TOGGLE_LARGE:
            state.show_large_files = not state.show_large_files
            if state.show_large_files:
                state.large_selected = 0
                state.large_offset = 0
            self.clamp_large_files()
        elif key in (Key.OPEN, Key.REVEAL):
            return self._open_selected(reveal=key is Key.REVEAL)
        elif key is Key.DELETE:
            self._request_delete()
        return []

    def _move(self, delta: int) -> None:
        state = self.state
        if state.show_large_files:
            state.large_selected += delta
            self.clamp_large_files()
        else:
            state.selected += delta
            self.clamp_entries()

    def _enter_selected(self) -> list[Effect]:
        state = self.state
        if not state.entries:
            return []

        selected = state.entries[state.selected]
        if not selected.is_dir:
            state.status = f"File: {selected.name} ({format_size(selected.size)})"
            return []

        if not state.in_overview:
            state.history.append(state.snapshot())

        state.path = selected.path
        state.overview = False
        state.show_large_files = False
        state.selected = state.offset = 0
        state.large_selected = state.large_offset = 0
        state.progress.reset()

        cached = state.snapshots.get(state.path)
        if cached is not None and not cached.dirty:
            state.restore(cached)
            self.clamp_entries()
            self.clamp_large_files()
            state.scanning = False
            state.status = f"Cached view for {short_path(state.path)}"
            return []

        state.entries = []
        state.large_files = []
        state.total_size = 0
        return self._begin_scan("Scanning...")

    def _go_back(self) -> list[Effect]:
        state = self.state
        if state.show_large_files:
            state.show_large_files = False
            return []

        if not state.history:
            if not state.in_overview:
                return self._switch_to_overview()
            return []

        frame = state.history.pop()
        state.overview = False
        if frame.dirty:
            state.path = frame.path
            state.selected = frame.selected
            state.offset = frame.entry_offset
            state.large_selected = frame.large_selected
            state.large_offset = frame.large_offset
            state.entries = []
            state.large_files = []
            state.total_size = 0
            return self._begin_scan("Scanning...")

        state.restore(frame)
        self.clamp_entries()
        self.clamp_large_files()
        state.scanning = False
        state.status = f"Scanned {format_size(state.total_size)}"
        return []

    def _refresh(self) -> list[Effect]:
        state = self.state
        if state.in_overview:
            paths = [entry.path for entry in state.entries]
            self.scheduler.forget(paths)
            state.entries = [
                entry.model_copy(update={"size": PENDING_SIZE})
                if entry.path not in self.scheduler.in_flight
                else entry
                for entry in state.entries
            ]
            state.total_size = sum_known_sizes(state.entries)
            return self._schedule_overview(invalidate=True)
        return self._begin_scan("Refreshing...")

    def _open_selected(self, reveal: bool) -> list[Effect]:
        item = self._selected_item()
        if item is None:
            return []
        verb = "Revealing" if reveal else "Opening"
        self.state.status = f"{verb} {item.name}..."
        return [OpenExternal(item.path, reveal=reveal)]

    def _request_delete(self) -> None:
        state = self.state
        target: Entry | None = None
        if state.show_large_files:
            if state.large_files:
                record = state.large_files[state.large_selected]
                target = Entry(name=record.name, path=record.path, size=record.size)
        elif state.entries and not state.in_overview:
            target = state.entries[state.selected]

        if target is not None:
            state.delete_confirm = True
            state.delete_target = target
            state.status = f"Delete {target.name} ({format_size(target.size)})?"

    def _on_delete_confirm_key(self, key: Key) -> list[Effect]:
        state = self.state
        target = state.delete_target
        state.delete_confirm = False

        if key is Key.DELETE and target is not None:
            state.deleting = True
            state.delete_count.set(0)
            state.status = f"Deleting {target.name}..."
            return [RunDelete(target.path)] + self._ensure_tick()

        state.delete_target = None
        state.status = "Cancelled"
        return []

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    def _switch_to_overview(self) -> list[Effect]:
        state = self.state
        state.overview = True
        state.path = OVERVIEW_PATH
        state.scanning = False
        state.show_large_files = False
        state.large_files = []
        state.large_selected = state.large_offset = 0
        state.delete_confirm = False
        state.delete_target = None
        state.selected = state.offset = 0
        state.entries = self.scheduler.hydrate(self.shortcuts())
        state.total_size = sum_known_sizes(state.entries)
        return self._schedule_overview()

    def _schedule_overview(self, invalidate: bool = False) -> list[Effect]:
        state = self.state
        batch = self.scheduler.schedule(state.entries)

        if not batch:
            state.overview_scanning = False
            if not has_pending(state.entries):
                state.status = "Ready"
            return []

        state.overview_scanning = True
        remaining = sum(1 for entry in state.entries if entry.is_pending)
        if len(batch) == 1:
            name = next(e.name for e in state.entries if e.path == batch[0])
            state.status = f"Scanning {name}... ({remaining} left)"
        else:
            state.status = f"Scanning {len(batch)} directories... ({remaining} left)"

        effects: list[Effect] = [MeasureOverview(path, invalidate=invalidate) for path in batch]
        return effects + self._ensure_tick()

    def _on_overview_measured(self, msg: OverviewMeasured) -> list[Effect]:
        state = self.state
        entries = state.entries if state.in_overview else []
        updated, total = self.scheduler.complete(entries, msg.path, msg.size, msg.error)

        if not state.in_overview:
            return []

        state.entries = updated
        state.total_size = total
        effects = self._schedule_overview()
        if msg.error is not None:
            state.status = f"Unable to measure {short_path(msg.path)}: {msg.error}"
        return effects

    # -------------------------------------------------------------------------
    # Scan / delete results
    # -------------------------------------------------------------------------

    def _on_scan_finished(self, msg: ScanFinished) -> list[Effect]:
        state = self.state
        if msg.path != state.path or state.in_overview or not state.scanning:
            return []

        state.scanning = False
        if msg.error is not None or msg.result is None:
            state.entries = []
            state.large_files = []
            state.total_size = 0
            self.clamp_entries()
            self.clamp_large_files()
            state.status = f"Scan failed: {msg.error}"
            return []

        state.entries = list(msg.result.entries)
        state.large_files = list(msg.result.large_files)
        state.total_size = msg.result.total_size
        self.clamp_entries()
        self.clamp_large_files()
        state.status = f"Scanned {format_size(state.total_size)}"
        state.snapshots[state.path] = state.snapshot()

        if state.total_size > 0:
            self.scheduler.sizes[state.path] = state.total_size
            return [StoreSize(state.path, state.total_size)]
        return []

    def remove_path_from_view(self, path: str) -> int:
        """
        Drop a deleted path from the visible lists without rescanning.

        Returns the number of bytes taken off the total.
        """
        state = self.state
        removed = 0
        record_size = 0

        for record in state.large_files:
            if record.path == path:
                record_size = record.size
                break
        state.large_files = [r for r in state.large_files if not _is_within(r.path, path)]

        for i, entry in enumerate(state.entries):
            if entry.path == path:
                removed = max(entry.size, 0)
                del state.entries[i]
                break
        else:
            # A large file deep inside one of the listed directories
            if record_size > 0:
                for i, entry in enumerate(state.entries):
                    if entry.is_dir and _is_within(path, entry.path):
                        state.entries[i] = entry.model_copy(
                            update={"size": max(0, entry.size - record_size)}
                        )
                        state.entries.sort(key=lambda e: e.size, reverse=True)
                        removed = record_size
                        break

        if removed:
            state.total_size = max(0, state.total_size - removed)
        self.clamp_entries()
        self.clamp_large_files()
        return removed

    def _on_delete_finished(self, msg: DeleteFinished) -> list[Effect]:
        state = self.state
        state.deleting = False
        target = state.delete_target
        state.delete_target = None
        name = target.name if target is not None else os.path.basename(msg.path)

        if msg.error is not None:
            state.status = f"Failed to delete {name}: {msg.error}"
            return []

        self.remove_path_from_view(msg.path)

        # Any snapshot may include the deleted data in its totals
        for frame in state.history:
            frame.dirty = True
        for frame in state.snapshots.values():
            frame.dirty = True

        stale_roots = [p for p in self.scheduler.sizes if _is_within(msg.path, p)]
        self.scheduler.forget(stale_roots)
        invalidate = tuple(dict.fromkeys([msg.path, state.path, *stale_roots]))

        effects = self._begin_scan(
            f"Deleted {format_number(msg.count)} items", invalidate=invalidate
        )
        return effects

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def _on_tick(self) -> list[Effect]:
        state = self.state
        overview_busy = state.in_overview and (
            state.overview_scanning or has_pending(state.entries)
        )
        if not (state.scanning or state.deleting or overview_busy):
            state.ticking = False
            return []

        state.spinner = (state.spinner + 1) % len(SPINNER_FRAMES)
        if state.deleting:
            count = state.delete_count.value
            if count > 0:
                state.status = f"Deleting... {format_number(count)} items removed"
        return [ScheduleTick()]
