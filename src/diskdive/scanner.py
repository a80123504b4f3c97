"""Concurrent single-level directory scanner."""

import logging
import os
import queue
import shutil
import stat
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from diskdive.config import Settings
from diskdive.errors import MeasurementUnavailable, Unreadable
from diskdive.models import Entry, FileRecord, ScanResult
from diskdive.progress import AtomicCounter, ScanProgress
from diskdive.rules import (
    SKIP_SYSTEM_DIRS,
    is_in_folded_dir,
    should_fold_dir,
    should_skip_for_large_files,
)
from diskdive.sizing import disk_usage_of, du_size, fold_size, logical_size
from diskdive.topn import TopNTracker

logger = logging.getLogger(__name__)

# Marks the end of an aggregator queue
_DONE = object()

SYMLINK_TAG = " →"


def _last_access(st: os.stat_result) -> datetime | None:
    try:
        return datetime.fromtimestamp(st.st_atime)
    except (OverflowError, OSError, ValueError):
        return None


def find_large_files_with_spotlight(
    root: str,
    min_size: int,
    limit: int,
    timeout: float = 5.0,
) -> list[FileRecord]:
    """
    Ask the Spotlight index for files of at least ``min_size`` bytes under root.

    Results are filtered with the same rules as the scanner and returned
    largest first. Any failure yields an empty list.
    """
    if shutil.which("mdfind") is None:
        return []

    try:
        result = subprocess.run(
            ["mdfind", "-onlyin", root, f"kMDItemFSSize >= {min_size}"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug("mdfind failed for %s: %s", root, e)
        return []
    if result.returncode != 0:
        return []

    files: list[FileRecord] = []
    for line in result.stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        # String checks first, they need no I/O
        if should_skip_for_large_files(line) or is_in_folded_dir(line):
            continue
        try:
            st = os.lstat(line)
        except OSError:
            continue
        if not stat.S_ISREG(st.st_mode):
            continue
        files.append(FileRecord(name=os.path.basename(line), path=line, size=disk_usage_of(st)))

    files.sort(key=lambda f: f.size, reverse=True)
    return files[:limit]


class ConcurrentScanner:
    """
    Scan one directory level and rank its children by size.

    Child directories are measured on a bounded worker pool. Workers never
    touch the top-N trackers directly: entries and large files are streamed
    through queues to one aggregator thread per tracker.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def scan(self, root: str, progress: ScanProgress | None = None) -> ScanResult:
        """
        Scan the immediate children of root.

        Raises:
            Unreadable: if root itself cannot be listed. Every other
                per-child failure just omits that child.
        """
        settings = self.settings
        progress = progress or ScanProgress()

        try:
            with os.scandir(root) as it:
                children = list(it)
        except OSError as e:
            raise Unreadable(f"cannot read {root}: {e}") from e

        total = AtomicCounter()
        entries: TopNTracker[Entry] = TopNTracker(settings.max_entries)
        large_files: TopNTracker[FileRecord] = TopNTracker(settings.max_large_files)
        entry_queue: queue.Queue = queue.Queue()
        file_queue: queue.Queue = queue.Queue(maxsize=settings.max_large_files * 2)

        collectors = [
            threading.Thread(target=self._collect, args=(entry_queue, entries), daemon=True),
            threading.Thread(target=self._collect, args=(file_queue, large_files), daemon=True),
        ]
        for collector in collectors:
            collector.start()

        is_root_dir = root == os.sep
        dir_jobs: list[tuple[str, str, bool, datetime | None]] = []

        try:
            for child in children:
                name = child.name
                path = child.path
                try:
                    if child.is_symlink():
                        st = child.stat(follow_symlinks=False)
                        size = disk_usage_of(st)
                        total.add(size)
                        entry_queue.put(
                            Entry(
                                name=name + SYMLINK_TAG,
                                path=path,
                                size=size,
                                is_dir=False,
                                is_symlink=True,
                                last_access=_last_access(st),
                            )
                        )
                        continue

                    if child.is_dir(follow_symlinks=False):
                        if is_root_dir and name in SKIP_SYSTEM_DIRS:
                            continue
                        st = child.stat(follow_symlinks=False)
                        dir_jobs.append((name, path, should_fold_dir(name, path), _last_access(st)))
                        continue

                    st = child.stat(follow_symlinks=False)
                except OSError:
                    continue

                size = disk_usage_of(st)
                total.add(size)
                progress.files.add()
                progress.bytes.add(size)
                entry_queue.put(
                    Entry(name=name, path=path, size=size, last_access=_last_access(st))
                )
                if size >= settings.min_large_file_size and not should_skip_for_large_files(path):
                    file_queue.put(FileRecord(name=name, path=path, size=size))

            if dir_jobs:
                workers = settings.worker_count(len(dir_jobs))
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scan") as pool:
                    futures = [
                        pool.submit(
                            self._measure_child, job, entry_queue, file_queue, total, progress
                        )
                        for job in dir_jobs
                    ]
                for future in futures:
                    future.result()
        finally:
            entry_queue.put(_DONE)
            file_queue.put(_DONE)
            for collector in collectors:
                collector.join()

        ranked_files = large_files.drain_descending()
        if settings.use_spotlight:
            spotlight = find_large_files_with_spotlight(
                root,
                settings.min_large_file_size,
                settings.max_large_files,
                settings.spotlight_timeout,
            )
            if spotlight:
                ranked_files = spotlight

        return ScanResult(
            entries=entries.drain_descending(),
            large_files=ranked_files,
            total_size=total.value,
        )

    @staticmethod
    def _collect(source: queue.Queue, tracker: TopNTracker) -> None:
        while True:
            item = source.get()
            if item is _DONE:
                return
            tracker.push(item)

    def _measure_child(
        self,
        job: tuple[str, str, bool, datetime | None],
        entry_queue: queue.Queue,
        file_queue: queue.Queue,
        total: AtomicCounter,
        progress: ScanProgress,
    ) -> None:
        name, path, folded, last_access = job
        if folded:
            size = fold_size(path, self.settings, progress)
        else:
            size = self._subtree_size(path, file_queue, progress)

        total.add(size)
        progress.dirs.add()
        entry_queue.put(
            Entry(name=name, path=path, size=size, is_dir=True, last_access=last_access)
        )

    def _nested_fold_size(self, path: str) -> int:
        """Size of a folded directory found below the top level, without extra threads."""
        if self.settings.use_du:
            try:
                return du_size(path, self.settings.du_timeout)
            except MeasurementUnavailable as e:
                logger.debug("du failed for nested %s: %s", path, e)
        try:
            return logical_size(path)
        except MeasurementUnavailable:
            return 0

    def _subtree_size(self, root: str, file_queue: queue.Queue, progress: ScanProgress) -> int:
        """Walk an ordinary directory, streaming large files as they are found."""
        settings = self.settings
        total = 0
        stack = [root]

        while stack:
            current = stack.pop()
            try:
                with os.scandir(current) as it:
                    children = list(it)
            except OSError:
                continue

            for child in children:
                try:
                    if child.is_symlink():
                        size = disk_usage_of(child.stat(follow_symlinks=False))
                        total += size
                        progress.files.add()
                        progress.bytes.add(size)
                        continue

                    if child.is_dir(follow_symlinks=False):
                        if should_fold_dir(child.name, child.path):
                            size = self._nested_fold_size(child.path)
                            total += size
                            progress.bytes.add(size)
                        else:
                            stack.append(child.path)
                        progress.dirs.add()
                        continue

                    size = disk_usage_of(child.stat(follow_symlinks=False))
                except OSError:
                    continue

                total += size
                progress.files.add()
                progress.bytes.add(size)
                if size >= settings.min_large_file_size and not should_skip_for_large_files(
                    child.path
                ):
                    file_queue.put(FileRecord(name=child.name, path=child.path, size=size))
                progress.current_path = child.path

        return total
