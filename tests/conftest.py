"""Shared fixtures for diskdive tests."""

from pathlib import Path

import pytest

from diskdive.config import Settings


def make_file(path: Path, size: int) -> Path:
    """Create a file of exactly ``size`` bytes, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture
def settings(tmp_path):
    """Settings that never shell out and keep the cache inside tmp_path."""
    return Settings(
        cache_dir=tmp_path / "cache",
        use_du=False,
        use_spotlight=False,
        min_large_file_size=50_000,
    )
