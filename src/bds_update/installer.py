"""Swaps a staged update into the install directory and records its version."""

import json
import os
import stat
import tempfile
import traceback
from typing import List, TYPE_CHECKING

from bds_update.config import METADATA_FILENAME
from bds_update.curator import iter_matches
from bds_update.errors import InstallFailed
from bds_update.interfaces import IFileSystem

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager

METADATA_MODE = 0o644


class InstallManager:
    """Performs the destructive install step.

    Attributes:
        preserve_patterns (List[str]): Paths carried over from the previous
            install, overriding whatever the update ships at the same path.
        filesystem (IFileSystem): Interface for filesystem interaction.
        console (ConsoleManager): Interface for logging and output.
    """

    def __init__(
        self,
        preserve_patterns: List[str],
        filesystem: IFileSystem,
        console: "ConsoleManager",
    ):
        self.preserve_patterns = list(preserve_patterns)
        self.filesystem = filesystem
        self.console = console

    def swap(self, staging_dir: str, install_dir: str, backup_dir: str) -> None:
        """Replaces the install with the staged update, then re-merges user data.

        The order matters: preserved paths are copied last so user data wins
        over defaults shipped in the archive.

        Raises:
            InstallFailed: On any I/O error. The caller is expected to roll back.
        """
        self.console.info(f"Installing update from '{staging_dir}' into '{install_dir}'")
        try:
            self.filesystem.empty_dir(install_dir)
            self.filesystem.copy_contents(staging_dir, install_dir)
            preserved = self._merge_preserved(backup_dir, install_dir)
        except OSError as e:
            self.console.debug(traceback.format_exc())
            raise InstallFailed(f"Installing into '{install_dir}' failed: {e}") from e

        self.console.info(
            f"Update files installed; {preserved} preserved path(s) restored."
        )

    def _merge_preserved(self, backup_dir: str, install_dir: str) -> int:
        count = 0
        for src_path, rel_path in iter_matches(
            self.filesystem, backup_dir, self.preserve_patterns
        ):
            dst_path = os.path.join(install_dir, *rel_path.split("/"))
            self.console.debug(f"Preserving user data: {rel_path}")
            self.filesystem.copy(src_path, dst_path)
            count += 1
        return count

    def commit(self, install_dir: str, version: str) -> None:
        """Writes the metadata file via write-temp-then-rename.

        Raises:
            InstallFailed: If the metadata cannot be written.
        """
        metadata_path = os.path.join(install_dir, METADATA_FILENAME)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{METADATA_FILENAME}.", suffix=".tmp", dir=install_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"version": version}, f)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, self._metadata_mode(metadata_path))
            self.filesystem.replace(tmp_path, metadata_path)
            tmp_path = None
        except OSError as e:
            raise InstallFailed(
                f"Failed to write metadata file '{metadata_path}': {e}"
            ) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

        self.console.info(f"Recorded installed version {version} in {metadata_path}")

    @staticmethod
    def _metadata_mode(metadata_path: str) -> int:
        # mkstemp creates 0600; keep the previous file's mode, else 0644
        try:
            return stat.S_IMODE(os.stat(metadata_path).st_mode)
        except FileNotFoundError:
            return METADATA_MODE
