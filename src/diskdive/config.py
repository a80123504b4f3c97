"""Runtime settings for diskdive."""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path("~/.diskdive").expanduser()
CONFIG_FILE = CONFIG_DIR / "config.json"


class Settings(BaseModel):
    """Tunable limits for scanning, caching and the UI."""

    # Result sizes
    max_entries: int = Field(30, ge=1, description="Entries kept per directory view")
    max_large_files: int = Field(30, ge=1, description="Large files kept per scan")
    min_large_file_size: int = Field(100 * 1024**2, ge=0, description="Large-file threshold in bytes")

    # Viewports
    entry_viewport: int = Field(10, ge=1)
    large_viewport: int = Field(10, ge=1)

    # Worker pool
    min_workers: int = Field(16, ge=1)
    max_workers: int = Field(128, ge=1)
    cpu_multiplier: int = Field(4, ge=1)
    fallback_walk_workers: int = Field(64, ge=1, description="Ceiling for the fallback walk pool")

    # External tools
    use_du: bool = True
    use_spotlight: bool = True
    du_timeout: float = Field(60.0, gt=0)
    spotlight_timeout: float = Field(5.0, gt=0)
    open_timeout: float = Field(10.0, gt=0)
    fallback_walk_timeout: float = Field(300.0, gt=0)

    # Overview mode
    overview_batch: int = Field(3, ge=1, description="Shortcuts measured per scheduling tick")
    overview_size_ttl: float = Field(7 * 24 * 3600, gt=0, description="Seconds a stored size stays valid")
    tick_interval: float = Field(0.12, gt=0)

    cache_dir: Path = Field(default_factory=lambda: Path("~/.cache/diskdive").expanduser())

    def worker_count(self, pending: int) -> int:
        """Workers for a scan with ``pending`` child directories."""
        workers = (os.cpu_count() or 1) * self.cpu_multiplier
        workers = max(self.min_workers, min(workers, self.max_workers))
        return max(1, min(workers, pending))


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a JSON config file, falling back to defaults."""
    if path is None:
        override = os.environ.get("DISKDIVE_CONFIG")
        path = Path(override).expanduser() if override else CONFIG_FILE

    if not path.exists():
        return Settings()

    try:
        with open(path) as f:
            data = json.load(f)
        return Settings.model_validate(data)
    except (json.JSONDecodeError, OSError, ValidationError) as e:
        logger.warning("Ignoring config file %s: %s", path, e)
        return Settings()
