"""Data models for diskdive."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Sentinel size for overview shortcuts that have not been measured yet
PENDING_SIZE = -1


class Entry(BaseModel):
    """One immediate child of a scanned directory, or an overview shortcut."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name")
    path: str = Field(..., description="Absolute path")
    size: int = Field(..., description="On-disk size in bytes, -1 while pending")
    is_dir: bool = Field(False, description="Whether the entry can be entered")
    is_symlink: bool = Field(False, description="Symlinks are listed but never followed")
    last_access: Optional[datetime] = Field(None, description="Last access time, if known")

    @property
    def is_pending(self) -> bool:
        """Size has not been measured yet (overview mode only)."""
        return self.size < 0


class FileRecord(BaseModel):
    """A large-file hit found anywhere below the scanned directory."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="File name")
    path: str = Field(..., description="Absolute path")
    size: int = Field(..., description="On-disk size in bytes")


class ScanResult(BaseModel):
    """Result of scanning one directory level."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[Entry, ...] = Field(default=(), description="Largest children, descending")
    large_files: tuple[FileRecord, ...] = Field(
        default=(), description="Largest files below the root, descending"
    )
    total_size: int = Field(0, description="Sum of every measured child size")


class CacheRecord(BaseModel):
    """A scan result persisted to disk for one path."""

    path: str = Field(..., description="Directory the result belongs to")
    result: ScanResult
    source_mod_time: Optional[datetime] = Field(
        None, description="Modification time of the directory when scanned"
    )
    cached_at: datetime = Field(default_factory=datetime.now)


class StoredSize(BaseModel):
    """A persisted overview measurement."""

    size: int
    updated_at: datetime = Field(default_factory=datetime.now)


class HistoryFrame(BaseModel):
    """Snapshot of a directory view, pushed when descending into a child."""

    path: str
    entries: tuple[Entry, ...] = ()
    large_files: tuple[FileRecord, ...] = ()
    total_size: int = 0
    selected: int = 0
    entry_offset: int = 0
    large_selected: int = 0
    large_offset: int = 0
    dirty: bool = Field(False, description="Underlying data may be stale after a deletion")


class DeleteResult(BaseModel):
    """Result of a delete operation."""

    path: str = Field(..., description="Path that was deleted")
    items_deleted: int = Field(0, description="Number of files removed")
    success: bool = Field(True, description="Whether the delete succeeded")
    error: Optional[str] = Field(None, description="Error message if failed")
