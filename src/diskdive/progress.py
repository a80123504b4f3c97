"""Shared scan progress counters."""

import threading


class AtomicCounter:
    """An integer that many worker threads may add to concurrently."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def add(self, delta: int = 1) -> int:
        with self._lock:
            self._value += delta
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> int:
        return self._value


class ScanProgress:
    """
    Counters updated by scan workers and read by the UI for display.

    ``current_path`` is a plain attribute: a single reference assignment,
    so readers always see some complete path.
    """

    def __init__(self) -> None:
        self.files = AtomicCounter()
        self.dirs = AtomicCounter()
        self.bytes = AtomicCounter()
        self.current_path = ""

    def reset(self) -> None:
        self.files.set(0)
        self.dirs.set(0)
        self.bytes.set(0)
        self.current_path = ""

    def snapshot(self) -> tuple[int, int, int]:
        """Return (files, dirs, bytes) scanned so far."""
        return self.files.value, self.dirs.value, self.bytes.value
