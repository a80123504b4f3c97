"""Hand paths to the desktop's file manager."""

import os
import subprocess
import sys


def open_command(path: str, reveal: bool = False) -> list[str]:
    """Command that opens path, or shows it in its folder when reveal is set."""
    if sys.platform == "darwin":
        return ["open", "-R", path] if reveal else ["open", path]
    # xdg-open cannot select a file, so revealing opens the parent folder
    return ["xdg-open", os.path.dirname(path) if reveal else path]


def open_external(path: str, reveal: bool = False, timeout: float = 10.0) -> None:
    """
    Open or reveal path with the platform opener.

    Raises:
        OSError: if the opener is missing or exits with an error.
        subprocess.TimeoutExpired: if it does not return within timeout.
    """
    result = subprocess.run(open_command(path, reveal), capture_output=True, text=True, timeout=timeout)
    if result.returncode != 0:
        raise OSError(result.stderr.strip() or f"opener exited with {result.returncode}")
