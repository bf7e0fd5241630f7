"""Create and remove a file holding the process ID of the running server."""

from __future__ import annotations

import os
from pathlib import Path

import psutil


class PIDFileExistsError(FileExistsError):
    """A PID file names a process that is still running."""


def process_exists(pid: int) -> bool:
    """Return whether a process with this ID is currently running."""
    if pid <= 0:
        return False
    return psutil.pid_exists(pid)


def _check_not_running(path: Path) -> None:
    try:
        content = path.read_text().strip()
    except (OSError, UnicodeDecodeError):
        return
    try:
        pid = int(content)
    except ValueError:
        return
    if process_exists(pid):
        raise PIDFileExistsError(
            f"pid file found, ensure the server is not running or delete {path}"
        )


class PIDFile:
    """A PID file written on creation and deleted by :meth:`remove`."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        _check_not_running(self.path)
        self.path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        with os.fdopen(fd, "w") as handle:
            handle.write(str(os.getpid()))

    def remove(self) -> None:
        """Delete the PID file; raises FileNotFoundError if it is gone."""
        os.remove(self.path)

    def __enter__(self) -> PIDFile:
        return self

    def __exit__(self, *args: object) -> None:
        self.remove()