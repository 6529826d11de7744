"""Pattern matching over install trees and the exclude-list purge."""

import fnmatch
import os
from typing import Iterable, Iterator, List, Tuple, TYPE_CHECKING

from bds_update.errors import InstallFailed
from bds_update.interfaces import IFileSystem

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    """Checks a POSIX relative path against glob patterns.

    A pattern containing '/' is matched against the whole relative path, and a
    leading '/' anchors it to the root. A bare pattern also matches the
    basename at any depth. Trailing slashes are ignored.
    """
    rel_path = rel_path.strip("/")
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = pattern.rstrip("/")
        anchored = pattern.startswith("/")
        pattern = pattern.lstrip("/")
        if not pattern:
            continue
        if fnmatch.fnmatchcase(rel_path, pattern):
            return True
        if not anchored and "/" not in pattern and fnmatch.fnmatchcase(name, pattern):
            return True
    return False


def iter_matches(
    filesystem: IFileSystem, root: str, patterns: List[str]
) -> Iterator[Tuple[str, str]]:
    """Yields (absolute path, relative path) for every top-most match under root.

    Matching directories are yielded whole and not descended into.
    """
    if not patterns or not filesystem.isdir(root):
        return

    pending = [""]
    while pending:
        rel_dir = pending.pop()
        abs_dir = os.path.join(root, rel_dir) if rel_dir else root
        for name in sorted(filesystem.listdir(abs_dir)):
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            abs_path = os.path.join(abs_dir, name)
            if matches_any(rel_path, patterns):
                yield abs_path, rel_path
            elif filesystem.isdir(abs_path) and not os.path.islink(abs_path):
                pending.append(rel_path)


class FileSetCurator:
    """Removes files from a staged update that must never reach the install."""

    def __init__(self, filesystem: IFileSystem, console: "ConsoleManager"):
        self.filesystem = filesystem
        self.console = console

    def purge(self, directory: str, exclude_patterns: List[str]) -> List[str]:
        """Deletes every entry under directory matching an exclude pattern.

        An empty pattern list purges nothing. Running it twice is a no-op.

        Returns:
            The relative paths that were removed.

        Raises:
            InstallFailed: If a matching entry cannot be removed.
        """
        if not exclude_patterns:
            self.console.debug("No exclude patterns configured; nothing to purge.")
            return []

        # Collect first; deleting while walking would skip siblings
        matches = list(iter_matches(self.filesystem, directory, exclude_patterns))
        removed = []
        for abs_path, rel_path in matches:
            self.console.debug(f"Purging excluded path: {rel_path}")
            try:
                self.filesystem.remove(abs_path)
            except OSError as e:
                raise InstallFailed(
                    f"Failed to purge excluded path '{abs_path}': {e}"
                ) from e
            removed.append(rel_path)

        if removed:
            self.console.info(f"Purged {len(removed)} excluded path(s) from the update.")
        else:
            self.console.info("No excluded paths present in the update.")
        return removed
