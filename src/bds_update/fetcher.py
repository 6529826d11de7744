"""Downloads the update archive into the staging area and extracts it."""

import os
import posixpath
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import requests

from bds_update.errors import ArchiveCorrupt, DownloadFailed
from bds_update.interfaces import IArchiver, IFileSystem, IHttpClient

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager

DEFAULT_ARCHIVE_NAME = "update.zip"


class ArchiveFetcher:
    """Retrieves and unpacks the update archive.

    Attributes:
        staging_dir (str): Directory owned by the current run for the download.
        http_client (IHttpClient): Performs the HTTP download.
        archiver (IArchiver): Handles archive extraction.
        filesystem (IFileSystem): Performs filesystem operations.
        console (ConsoleManager): Handles logging and user output.
    """

    def __init__(
        self,
        staging_dir: str,
        http_client: IHttpClient,
        archiver: IArchiver,
        filesystem: IFileSystem,
        console: "ConsoleManager",
    ):
        self.staging_dir = staging_dir
        self.http_client = http_client
        self.archiver = archiver
        self.filesystem = filesystem
        self.console = console

    def fetch(self, uri: str) -> str:
        """Downloads the archive into a freshly emptied staging directory.

        Args:
            uri: The archive URL.

        Returns:
            The path of the downloaded archive.

        Raises:
            DownloadFailed: On transport errors, non-success status, or if the
                staging directory cannot be prepared.
        """
        archive_path = os.path.join(self.staging_dir, self.archive_name(uri))

        try:
            self.filesystem.empty_dir(self.staging_dir)
        except OSError as e:
            raise DownloadFailed(
                f"Failed to prepare staging directory '{self.staging_dir}': {e}"
            ) from e

        self.console.info(f"Downloading {uri}")
        try:
            self.http_client.download(uri, archive_path)
        except (requests.RequestException, OSError) as e:
            raise DownloadFailed(f"Download of {uri} failed: {e}") from e

        self.console.info(f"Download successful: {archive_path}")
        return archive_path

    def extract(self, archive_path: str, dest_dir: str) -> None:
        """Extracts every entry of the archive into dest_dir, replacing its contents.

        Raises:
            ArchiveCorrupt: If extraction fails or an entry escapes dest_dir.
        """
        self.console.info(
            f"Extracting archive '{os.path.basename(archive_path)}' to '{dest_dir}'"
        )
        try:
            self.filesystem.empty_dir(dest_dir)
        except OSError as e:
            raise ArchiveCorrupt(
                f"Failed to prepare extraction directory '{dest_dir}': {e}"
            ) from e

        count = self.archiver.extractall(archive_path, dest_dir)
        self.console.info(f"Extraction complete: {count} entries")

    @staticmethod
    def archive_name(uri: str) -> str:
        name = posixpath.basename(urlparse(uri).path)
        if not name or name in (".", ".."):
            return DEFAULT_ARCHIVE_NAME
        return name
