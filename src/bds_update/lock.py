"""Exclusive per-install-directory lock so two update runs never interleave."""

import fcntl
import os
from typing import Optional, TextIO, TYPE_CHECKING

from bds_update.errors import BDSUpdateError, UpdateInProgress

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager


def lock_path_for(install_dir: str) -> str:
    """The lock lives beside the install directory, which gets emptied during a run."""
    install_dir = os.path.abspath(install_dir)
    parent, name = os.path.split(install_dir.rstrip(os.sep))
    return os.path.join(parent, f".{name}.update.lock")


class InstallLock:
    """Non-blocking flock held for the duration of one update run."""

    def __init__(self, install_dir: str, console: "ConsoleManager"):
        self.path = lock_path_for(install_dir)
        self.console = console
        self._fd: Optional[TextIO] = None

    def acquire(self) -> None:
        """Takes the lock or fails immediately.

        Raises:
            UpdateInProgress: If another run holds the lock.
            BDSUpdateError: If the lock file cannot be created.
        """
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            fd = open(self.path, "a+")
        except OSError as e:
            raise BDSUpdateError(f"Cannot create lock file '{self.path}': {e}") from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            fd.close()
            raise UpdateInProgress(
                f"Another update is already running (lock held: {self.path})"
            ) from e

        fd.seek(0)
        fd.truncate()
        fd.write(str(os.getpid()))
        fd.flush()
        self._fd = fd
        self.console.debug(f"Acquired update lock {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            self._fd.close()
            self._fd = None
        self.console.debug(f"Released update lock {self.path}")

    def __enter__(self) -> "InstallLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
