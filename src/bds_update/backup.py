"""Snapshots the server installation and restores it on rollback.

The snapshot is a plain directory copy rather than an archive, so a restore is
the reverse copy and reproduces the install tree exactly.
"""

import os
import traceback
from typing import TYPE_CHECKING

from bds_update.errors import BackupFailed, RestoreFailed
from bds_update.interfaces import IFileSystem

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager


class BackupManager:
    """Handles snapshot creation, restore and disposal.

    Attributes:
        filesystem (IFileSystem): Interface for filesystem interaction.
        console (ConsoleManager): Interface for logging and output.
    """

    def __init__(self, filesystem: IFileSystem, console: "ConsoleManager"):
        self.filesystem = filesystem
        self.console = console

    def snapshot(self, install_dir: str, backup_dir: str) -> None:
        """Copies the whole install directory into an empty backup directory.

        A missing install directory (clean install) yields an empty snapshot.

        Args:
            install_dir: The live server installation.
            backup_dir: Directory owned by this run for the snapshot.

        Raises:
            BackupFailed: On any I/O error. The install directory is untouched.
        """
        self.console.info(f"Backing up '{install_dir}' to '{backup_dir}'")
        try:
            self.filesystem.empty_dir(backup_dir)
            if self.filesystem.isdir(install_dir):
                self.filesystem.copy_contents(install_dir, backup_dir)
            else:
                self.console.info(
                    "Install directory does not exist yet; snapshot is empty."
                )
        except OSError as e:
            self.console.debug(traceback.format_exc())
            raise BackupFailed(
                f"Backup of '{install_dir}' to '{backup_dir}' failed: {e}"
            ) from e

        try:
            size = self.filesystem.calculate_dir_size(backup_dir)
            self.console.info(f"Backup completed ({format_size(size)}).")
        except OSError as e:
            self.console.warning(f"Could not calculate backup size: {e}")

    def restore(self, backup_dir: str, install_dir: str) -> None:
        """Replaces the install directory contents with the snapshot.

        Raises:
            RestoreFailed: If the snapshot is missing or any copy step fails.
        """
        self.console.warning(f"Restoring '{install_dir}' from backup '{backup_dir}'")
        if not self.filesystem.isdir(backup_dir):
            raise RestoreFailed(f"Backup directory '{backup_dir}' does not exist")

        try:
            self.filesystem.empty_dir(install_dir)
            self.filesystem.copy_contents(backup_dir, install_dir)
        except OSError as e:
            self.console.debug(traceback.format_exc())
            raise RestoreFailed(
                f"Restore of '{install_dir}' from '{backup_dir}' failed: {e}"
            ) from e

        self.console.info("Restore from backup completed.")

    def discard(self, backup_dir: str) -> None:
        """Removes the snapshot once it is no longer needed."""
        try:
            if self.filesystem.exists(backup_dir):
                self.console.debug(f"Removing backup snapshot: {backup_dir}")
                self.filesystem.rmtree(backup_dir)
        except OSError as e:
            self.console.warning(f"Failed to remove backup '{backup_dir}': {e}")

    def has_snapshot(self, backup_dir: str) -> bool:
        return self.filesystem.isdir(backup_dir) and bool(
            self.filesystem.listdir(backup_dir)
        )


def format_size(size_bytes: int) -> str:
    """Formats a byte count for display."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = float(size_bytes)
    for unit in ("KiB", "MiB", "GiB"):
        size /= 1024
        if size < 1024:
            break
    return f"{size:.1f} {unit}"
