"""Deletion of files and directory trees with progress counting."""

import logging
import os
import shutil
from pathlib import Path

from diskdive.models import DeleteResult
from diskdive.progress import AtomicCounter

logger = logging.getLogger(__name__)


def delete_path(path: str, counter: AtomicCounter | None = None) -> DeleteResult:
    """
    Delete a file, symlink or directory tree.

    Files are unlinked one at a time so ``counter`` can be polled while a
    large tree is removed. A symlink is removed itself, never its target.
    Callers confirm the deletion first; no path is refused here.

    Args:
        path: Absolute path to delete
        counter: Incremented once per removed file

    Returns:
        DeleteResult with the number of files removed
    """
    counter = counter or AtomicCounter()

    target = Path(path)
    try:
        if target.is_symlink() or not target.is_dir():
            target.unlink()
            counter.add()
            return DeleteResult(path=path, items_deleted=counter.value)

        for dirpath, _dirnames, filenames in os.walk(target):
            for filename in filenames:
                try:
                    os.unlink(os.path.join(dirpath, filename))
                    counter.add()
                except OSError as e:
                    # Left for rmtree, which reports it if it still fails
                    logger.debug("Could not unlink %s: %s", filename, e)

        shutil.rmtree(target)
        return DeleteResult(path=path, items_deleted=counter.value)

    except FileNotFoundError:
        return DeleteResult(path=path, items_deleted=counter.value)
    except PermissionError as e:
        return DeleteResult(
            path=path, items_deleted=counter.value, success=False, error=f"Permission denied: {e}"
        )
    except OSError as e:
        return DeleteResult(path=path, items_deleted=counter.value, success=False, error=f"OS error: {e}")
