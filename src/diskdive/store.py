"""Persistent cache of scan results and overview sizes."""

import contextlib
import hashlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from diskdive.models import CacheRecord, ScanResult, StoredSize

logger = logging.getLogger(__name__)

OVERVIEW_FILE = "overview_sizes.json"
SCAN_SUFFIX = ".scan.json"

_sizes_adapter = TypeAdapter(dict[str, StoredSize])


def _to_json(data) -> str:
    # ASCII escapes keep undecodable file names (lone surrogates) intact
    return json.dumps(data, ensure_ascii=True)


def _atomic_write(target: Path, data: str) -> None:
    """Write data to target so readers never see a partial file."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(data)
        os.replace(tmp, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise


class CacheStore:
    """
    Disk-backed store keyed by absolute path.

    Scan records live in one JSON file per path. Overview measurements share
    a single JSON map and expire after ``size_ttl`` seconds. Scan records never
    expire on their own; callers invalidate them after deletions.
    """

    def __init__(self, cache_dir: Path, size_ttl: float = 7 * 24 * 3600):
        self.cache_dir = Path(cache_dir)
        self.size_ttl = timedelta(seconds=size_ttl)
        self._sizes_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Scan records
    # -------------------------------------------------------------------------

    def _record_file(self, path: str) -> Path:
        digest = hashlib.sha256(path.encode("utf-8", "surrogateescape")).hexdigest()
        return self.cache_dir / f"{digest[:32]}{SCAN_SUFFIX}"

    def load_scan(self, path: str) -> CacheRecord | None:
        """Return the persisted record for path, or None."""
        record_file = self._record_file(path)
        try:
            record = CacheRecord.model_validate(json.loads(record_file.read_text()))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError, ValueError) as e:
            logger.debug("Discarding unreadable cache record %s: %s", record_file, e)
            return None

        if record.path != path:
            return None
        return record

    def save_scan(self, path: str, result: ScanResult) -> None:
        """Persist a scan result for path."""
        try:
            mod_time = datetime.fromtimestamp(os.stat(path).st_mtime)
        except OSError:
            mod_time = None

        record = CacheRecord(path=path, result=result, source_mod_time=mod_time)
        _atomic_write(self._record_file(path), _to_json(record.model_dump(mode="json")))

    # -------------------------------------------------------------------------
    # Overview sizes
    # -------------------------------------------------------------------------

    def _sizes_file(self) -> Path:
        return self.cache_dir / OVERVIEW_FILE

    def _read_sizes(self) -> dict[str, StoredSize]:
        try:
            return _sizes_adapter.validate_python(json.loads(self._sizes_file().read_text()))
        except FileNotFoundError:
            return {}
        except (OSError, ValidationError, ValueError) as e:
            logger.debug("Discarding unreadable overview sizes: %s", e)
            return {}

    def _write_sizes(self, sizes: dict[str, StoredSize]) -> None:
        _atomic_write(self._sizes_file(), _to_json(_sizes_adapter.dump_python(sizes, mode="json")))

    def load_size(self, path: str) -> int | None:
        """Return a fresh stored size for path, or None."""
        with self._sizes_lock:
            stored = self._read_sizes().get(path)
        if stored is None:
            return None
        if datetime.now() - stored.updated_at > self.size_ttl:
            return None
        return stored.size

    def save_size(self, path: str, size: int) -> None:
        """Store a measured size for path."""
        with self._sizes_lock:
            sizes = self._read_sizes()
            sizes[path] = StoredSize(size=size)
            self._write_sizes(sizes)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def invalidate(self, path: str) -> None:
        """Forget everything persisted for path."""
        try:
            self._record_file(path).unlink()
        except FileNotFoundError:
            pass

        with self._sizes_lock:
            sizes = self._read_sizes()
            if sizes.pop(path, None) is not None:
                self._write_sizes(sizes)

    def clear(self) -> int:
        """Remove every persisted record. Returns the number of files removed."""
        if not self.cache_dir.is_dir():
            return 0
        count = 0
        for item in self.cache_dir.iterdir():
            if item.name.endswith(SCAN_SUFFIX) or item.name == OVERVIEW_FILE:
                item.unlink(missing_ok=True)
                count += 1
        return count
