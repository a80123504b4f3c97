"""Scan cache: request deduplication in front of a persisted store."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Generic, Iterable, TypeVar

from diskdive.models import ScanResult
from diskdive.progress import ScanProgress
from diskdive.scanner import ConcurrentScanner
from diskdive.store import CacheStore

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Call(Generic[V]):
    def __init__(self) -> None:
        self.done = threading.Event()
        self.value: V | None = None
        self.error: BaseException | None = None


class InFlightGroup(Generic[V]):
    """
    Collapse concurrent calls for the same key into one execution.

    The first caller for a key runs the function; callers arriving while it
    runs wait and receive the same value, or the same exception.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, _Call[V]] = {}

    def do(self, key: str, fn: Callable[[], V]) -> tuple[V, bool]:
        """
        Run fn once per in-flight key.

        Returns:
            Tuple of (value, shared) where shared is True for callers that
            received another caller's result.
        """
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.value, True

        try:
            call.value = fn()
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()

        return call.value, False


class ScanCache:
    """
    Cache-first scanning.

    A persisted record short-circuits the scan. Otherwise one physical scan
    runs per path no matter how many callers ask concurrently, and only the
    caller that ran it persists the result, in the background.
    """

    def __init__(self, scanner: ConcurrentScanner, store: CacheStore):
        self.scanner = scanner
        self.store = store
        self._group: InFlightGroup[ScanResult] = InFlightGroup()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-writer")

    def get(self, path: str, progress: ScanProgress | None = None) -> ScanResult:
        """Return the scan result for path, scanning only if nothing is cached."""
        record = self.store.load_scan(path)
        if record is not None:
            return record.result

        result, shared = self._group.do(path, lambda: self.scanner.scan(path, progress))
        if not shared:
            self._writer.submit(self._persist, path, result)
        return result

    def _persist(self, path: str, result: ScanResult) -> None:
        try:
            self.store.save_scan(path, result)
        except (OSError, ValueError) as e:
            logger.warning("Failed to cache scan of %s: %s", path, e)

    def invalidate(self, paths: Iterable[str]) -> None:
        """Drop persisted data for each path."""
        # Let queued writes land first so none of them resurrects a record
        self._writer.submit(lambda: None).result()
        for path in paths:
            try:
                self.store.invalidate(path)
            except OSError as e:
                logger.warning("Failed to invalidate cache for %s: %s", path, e)

    def flush(self) -> None:
        """Wait for pending writes to finish."""
        self._writer.shutdown(wait=True)
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-writer")
