"""Whole-system overview: lazily measured top-level shortcuts."""

import os
from typing import Callable

from diskdive.models import PENDING_SIZE, Entry


def has_useful_volume_mounts(path: str) -> bool:
    """Check whether a volumes directory holds at least one real mounted folder."""
    try:
        with os.scandir(path) as it:
            for entry in it:
                # Hidden control entries (Spotlight, Time Machine) don't count
                if entry.name.startswith("."):
                    continue
                try:
                    # The boot volume shows up as a symlink
                    if entry.is_dir(follow_symlinks=False):
                        return True
                except OSError:
                    continue
    except OSError:
        return False
    return False


def overview_shortcuts(home: str | None = None, volumes: str = "/Volumes") -> list[Entry]:
    """Build the overview shortcut entries, each starting unmeasured."""
    if home is None:
        home = os.environ.get("HOME", "")

    candidates: list[tuple[str, str]] = []
    if home:
        candidates.append(("Home (~)", home))
        candidates.append(("Library (~/Library)", os.path.join(home, "Library")))
    candidates.append(("Applications", "/Applications"))
    candidates.append(("System Library", "/Library"))

    shortcuts = [
        Entry(name=name, path=path, size=PENDING_SIZE, is_dir=True)
        for name, path in candidates
        if os.path.isdir(path)
    ]
    if has_useful_volume_mounts(volumes):
        shortcuts.append(Entry(name="Volumes", path=volumes, size=PENDING_SIZE, is_dir=True))
    return shortcuts


def sum_known_sizes(entries: list[Entry]) -> int:
    """Total of every measured entry; pending entries are left out."""
    return sum(entry.size for entry in entries if entry.size > 0)


def has_pending(entries: list[Entry]) -> bool:
    return any(entry.is_pending for entry in entries)


class OverviewScheduler:
    """
    Decide which shortcuts to measure next.

    Holds no threads of its own: ``schedule`` returns the paths to measure
    and the caller dispatches them, then reports back through ``complete``.
    """

    def __init__(
        self,
        batch_size: int = 3,
        lookup: Callable[[str], int | None] | None = None,
    ):
        self.batch_size = batch_size
        self.lookup = lookup
        self.sizes: dict[str, int] = {}
        self.in_flight: set[str] = set()

    def hydrate(self, entries: list[Entry]) -> list[Entry]:
        """Fill in sizes already known in memory or in the persisted store."""
        hydrated = []
        for entry in entries:
            size = self.sizes.get(entry.path)
            if size is None and self.lookup is not None:
                size = self.lookup(entry.path)
                if size is not None:
                    self.sizes[entry.path] = size
            hydrated.append(entry.model_copy(update={"size": size}) if size is not None else entry)
        return hydrated

    def schedule(self, entries: list[Entry]) -> list[str]:
        """Pick the next batch of unmeasured shortcuts and mark them in flight."""
        batch = []
        for entry in entries:
            if entry.is_pending and entry.path not in self.in_flight:
                batch.append(entry.path)
                if len(batch) >= self.batch_size:
                    break
        self.in_flight.update(batch)
        return batch

    def complete(
        self, entries: list[Entry], path: str, size: int, error: str | None = None
    ) -> tuple[list[Entry], int]:
        """
        Record a finished measurement.

        A failed measurement counts as zero so it never blocks the view.

        Returns:
            Tuple of (updated entries, total of known sizes)
        """
        self.in_flight.discard(path)
        if error is None:
            self.sizes[path] = size
        measured = size if error is None else 0

        updated = [
            entry.model_copy(update={"size": measured}) if entry.path == path else entry
            for entry in entries
        ]
        return updated, sum_known_sizes(updated)

    def forget(self, paths) -> None:
        """Drop remembered sizes so those shortcuts are measured again."""
        for path in paths:
            self.sizes.pop(path, None)
