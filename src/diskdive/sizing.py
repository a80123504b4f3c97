"""Directory size measurement with a chain of fallbacks."""

import logging
import os
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from diskdive.config import Settings
from diskdive.errors import InvalidInput, MeasurementUnavailable
from diskdive.progress import AtomicCounter, ScanProgress
from diskdive.store import CacheStore

logger = logging.getLogger(__name__)


def disk_usage_of(st: os.stat_result) -> int:
    """
    On-disk size of a file from its stat result.

    Uses allocated blocks when they are smaller than the logical length so
    sparse and cloud-placeholder files report what they really occupy.
    """
    blocks = getattr(st, "st_blocks", None)
    if blocks is None:
        return st.st_size
    return min(blocks * 512, st.st_size)


def du_size(path: str, timeout: float = 60.0) -> int:
    """
    Size of a directory according to ``du -sk``.

    Raises:
        MeasurementUnavailable: on timeout, a missing binary, a failed run,
            or output that is not a positive number.
    """
    try:
        result = subprocess.run(
            ["du", "-sk", path],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise MeasurementUnavailable(f"du timed out after {timeout:g}s") from e
    except OSError as e:
        raise MeasurementUnavailable(f"du unavailable: {e}") from e

    if result.returncode != 0:
        detail = result.stderr.strip()
        raise MeasurementUnavailable(f"du failed ({result.returncode}): {detail}")

    fields = result.stdout.split()
    if not fields:
        raise MeasurementUnavailable("du output empty")
    try:
        kb = int(fields[0])
    except ValueError as e:
        raise MeasurementUnavailable(f"failed to parse du output: {fields[0]!r}") from e
    if kb <= 0:
        raise MeasurementUnavailable(f"du size invalid: {kb}")
    return kb * 1024


def logical_size(path: str) -> int:
    """
    Walk a directory tree and sum the on-disk size of every file.

    Subdirectories that cannot be read are skipped. Only a failure to list
    ``path`` itself is an error.
    """
    total = 0
    stack = [path]
    is_root = True

    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            stack.append(entry.path)
                        else:
                            total += disk_usage_of(entry.stat(follow_symlinks=False))
                    except OSError:
                        continue
        except OSError as e:
            if is_root:
                raise MeasurementUnavailable(f"cannot list {path}: {e}") from e
        is_root = False

    return total


class _FanOutWalk:
    """Concurrent tree walk where every directory becomes one pool task."""

    def __init__(self, workers: int, progress: ScanProgress | None):
        self.total = AtomicCounter()
        self.progress = progress
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="walk")
        self._pending = 0
        self._done = threading.Condition()
        self._cancelled = threading.Event()

    def run(self, root: str, timeout: float) -> int:
        self._submit(root)
        deadline = time.monotonic() + timeout
        with self._done:
            while self._pending > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.debug("Fallback walk of %s timed out after %gs", root, timeout)
                    self._cancelled.set()
                    break
                self._done.wait(remaining)
        self._executor.shutdown(wait=False, cancel_futures=True)
        return self.total.value

    def _submit(self, path: str) -> None:
        if self._cancelled.is_set():
            return
        with self._done:
            self._pending += 1
        try:
            self._executor.submit(self._walk, path)
        except RuntimeError:
            # Pool already shut down after a timeout
            self._finish()

    def _finish(self) -> None:
        with self._done:
            self._pending -= 1
            if self._pending == 0:
                self._done.notify_all()

    def _walk(self, path: str) -> None:
        try:
            if self._cancelled.is_set():
                return
            if self.progress is not None:
                self.progress.current_path = path

            local_bytes = 0
            local_files = 0
            try:
                with os.scandir(path) as entries:
                    for entry in entries:
                        try:
                            if entry.is_dir(follow_symlinks=False):
                                self._submit(entry.path)
                                if self.progress is not None:
                                    self.progress.dirs.add()
                            else:
                                local_bytes += disk_usage_of(entry.stat(follow_symlinks=False))
                                local_files += 1
                        except OSError:
                            continue
            except OSError:
                return

            if local_bytes:
                self.total.add(local_bytes)
            if self.progress is not None:
                if local_bytes:
                    self.progress.bytes.add(local_bytes)
                if local_files:
                    self.progress.files.add(local_files)
        finally:
            self._finish()


def fast_walk_size(
    path: str,
    workers: int = 64,
    timeout: float = 300.0,
    progress: ScanProgress | None = None,
) -> int:
    """
    Concurrent directory size used when ``du`` is unavailable.

    Concurrency is capped at ``workers`` and the whole walk is bounded by
    ``timeout`` seconds; on timeout the partial total is returned.
    """
    workers = max(1, min((os.cpu_count() or 1) * 4, workers))
    return _FanOutWalk(workers, progress).run(path, timeout)


def fold_size(path: str, settings: Settings, progress: ScanProgress | None = None) -> int:
    """Size of a folded directory: ``du`` first, then the bounded fast walk."""
    if settings.use_du:
        try:
            return du_size(path, settings.du_timeout)
        except MeasurementUnavailable as e:
            logger.debug("du failed for %s, walking instead: %s", path, e)
    return fast_walk_size(
        path,
        workers=settings.fallback_walk_workers,
        timeout=settings.fallback_walk_timeout,
        progress=progress,
    )


class SizeResolver:
    """
    Measure a directory using the cheapest strategy that works.

    Order: stored measurement, ``du``, logical walk, then a previously
    persisted scan of the same path. Every fresh measurement is stored so
    repeated calls on an unchanged tree are cheap.
    """

    def __init__(self, store: CacheStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()

    def measure(self, path: str) -> int:
        """
        Return the on-disk size of path in bytes.

        Raises:
            InvalidInput: if path is empty or relative.
            MeasurementUnavailable: if every strategy failed.
        """
        if not path:
            raise InvalidInput("empty path")
        path = os.path.normpath(path)
        if not os.path.isabs(path):
            raise InvalidInput(f"path must be absolute: {path}")

        try:
            os.stat(path)
        except OSError as e:
            raise MeasurementUnavailable(f"cannot access path: {e}") from e

        stored = self.store.load_size(path)
        if stored is not None and stored > 0:
            return stored

        strategies = [self._walk]
        if self.settings.use_du:
            strategies.insert(0, self._du)

        for strategy in strategies:
            try:
                size = strategy(path)
            except MeasurementUnavailable as e:
                logger.debug("Size strategy %s failed for %s: %s", strategy.__name__, path, e)
                continue
            if size > 0:
                self._remember(path, size)
                return size

        record = self.store.load_scan(path)
        if record is not None:
            self._remember(path, record.result.total_size)
            return record.result.total_size

        raise MeasurementUnavailable(f"unable to measure {path}")

    def _du(self, path: str) -> int:
        return du_size(path, self.settings.du_timeout)

    def _walk(self, path: str) -> int:
        return logical_size(path)

    def _remember(self, path: str, size: int) -> None:
        try:
            self.store.save_size(path, size)
        except OSError as e:
            logger.debug("Could not store size for %s: %s", path, e)
