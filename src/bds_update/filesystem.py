import os
import shutil
from pathlib import Path
from typing import Union, List

from bds_update.interfaces import IFileSystem


class OsFileSystem(IFileSystem):
    """Implementation of IFileSystem using os, shutil, and pathlib."""

    def copy(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        """Copy a file or directory, replacing anything already at dst.

        Metadata is preserved and symlinks are copied as links.

        Args:
            src: Source path
            dst: Destination path
        """
        if os.path.lexists(dst):
            self.remove(dst)
        if os.path.isdir(src) and not os.path.islink(src):
            shutil.copytree(src, dst, symlinks=True)
        else:
            parent = os.path.dirname(dst)
            if parent:
                os.makedirs(parent, exist_ok=True)
            shutil.copy2(src, dst, follow_symlinks=False)

    def copy_contents(
        self, src_dir: Union[str, Path], dst_dir: Union[str, Path]
    ) -> None:
        """Copy every entry of src_dir into dst_dir.

        Args:
            src_dir: Directory whose contents are copied
            dst_dir: Destination directory (created if missing)
        """
        os.makedirs(dst_dir, exist_ok=True)
        for name in os.listdir(src_dir):
            self.copy(os.path.join(src_dir, name), os.path.join(dst_dir, name))

    def empty_dir(self, path: Union[str, Path]) -> None:
        """Remove everything inside a directory, creating it if missing.

        Args:
            path: Directory to empty
        """
        if not os.path.isdir(path):
            os.makedirs(path, exist_ok=True)
            return
        for name in os.listdir(path):
            self.remove(os.path.join(path, name))

    def rmtree(self, path: Union[str, Path]) -> None:
        """Remove a directory tree.

        Args:
            path: Path to remove
        """
        shutil.rmtree(path)

    def remove(self, path: Union[str, Path]) -> None:
        """Remove a file, symlink or directory tree.

        Args:
            path: Path to remove
        """
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)

    def replace(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        """Atomically rename src over dst.

        Args:
            src: Source path
            dst: Destination path
        """
        os.replace(src, dst)

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if a path exists.

        Args:
            path: Path to check

        Returns:
            True if path exists, False otherwise
        """
        return os.path.lexists(path)

    def isdir(self, path: Union[str, Path]) -> bool:
        """Check if a path is a directory.

        Args:
            path: Path to check

        Returns:
            True if path is a directory, False otherwise
        """
        return os.path.isdir(path)

    def listdir(self, path: Union[str, Path]) -> List[str]:
        """List contents of a directory.

        Args:
            path: Path to list

        Returns:
            List of filenames in the directory
        """
        return os.listdir(path)

    def calculate_dir_size(self, path: Union[str, Path]) -> int:
        """Calculate the total size of a directory.

        Args:
            path: Path to calculate size for

        Returns:
            Size in bytes
        """
        total_size = 0
        for dirpath, dirnames, filenames in os.walk(path):
            for filename in filenames:
                file_path = os.path.join(dirpath, filename)
                # Skip if it's a symbolic link
                if not os.path.islink(file_path):
                    total_size += os.path.getsize(file_path)
        return total_size
