import os
import shutil
import stat
import zipfile
from pathlib import Path
from typing import Union

from bds_update.errors import ArchiveCorrupt
from bds_update.interfaces import IArchiver


class ZipfileArchiver(IArchiver):
    """Implementation of IArchiver using zipfile.

    Entries are written one by one so every destination can be checked
    against the extraction root before anything touches the disk.
    """

    def extractall(
        self, archive_path: Union[str, Path], dest_path: Union[str, Path]
    ) -> int:
        """Extract a zip archive.

        Args:
            archive_path: Path to the archive
            dest_path: Path to extract to

        Returns:
            Number of entries extracted

        Raises:
            ArchiveCorrupt: If the archive is unreadable or an entry would
                escape dest_path
        """
        os.makedirs(dest_path, exist_ok=True)
        root = os.path.realpath(dest_path)
        count = 0

        try:
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.infolist():
                    destination = self._safe_destination(root, member.filename)
                    if destination is None:
                        continue

                    if member.is_dir():
                        os.makedirs(destination, exist_ok=True)
                    else:
                        os.makedirs(os.path.dirname(destination), exist_ok=True)
                        with archive.open(member) as source, open(
                            destination, "wb"
                        ) as target:
                            shutil.copyfileobj(source, target)
                        self._apply_mode(member, destination)
                    count += 1
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise ArchiveCorrupt(f"Invalid zip archive {archive_path}: {e}") from e
        except (OSError, EOFError) as e:
            raise ArchiveCorrupt(f"Error extracting archive {archive_path}: {e}") from e

        return count

    @staticmethod
    def _safe_destination(root: str, name: str) -> Union[str, None]:
        """Resolve an entry name below root, rejecting traversal attempts."""
        normalized = name.replace("\\", "/")
        if not normalized.strip("/"):
            return None
        if normalized.startswith("/") or os.path.isabs(name) or (
            len(normalized) > 1 and normalized[1] == ":"
        ):
            raise ArchiveCorrupt(f"Archive entry has an absolute path: {name!r}")

        destination = os.path.realpath(os.path.join(root, *normalized.split("/")))
        if os.path.commonpath([root, destination]) != root:
            raise ArchiveCorrupt(f"Attempted path traversal in zip entry: {name!r}")
        return destination

    @staticmethod
    def _apply_mode(member: zipfile.ZipInfo, destination: str) -> None:
        # Unix permission bits live in the high word of external_attr
        mode = (member.external_attr >> 16) & 0o777
        if mode and member.create_system == 3:
            os.chmod(destination, mode | stat.S_IRUSR)
