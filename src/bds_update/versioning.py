"""Determines the installed and the latest available Bedrock server versions.

The installed version is read from the metadata file that a committed update
writes next to the server. The latest version is discovered through a
:class:`VersionSource`; the default one scrapes the vendor's download page for
the platform archive link, so a markup change on that page only ever affects
the source, never the pipeline.
"""

import json
import os
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, TYPE_CHECKING

import requests

from bds_update.config import METADATA_FILENAME
from bds_update.errors import (
    MetadataCorrupt,
    NoLinkFound,
    SourceUnreachable,
    UnexpectedFormat,
)
from bds_update.interfaces import IHttpClient

if TYPE_CHECKING:
    from bds_update.config import UpdaterSettings
    from bds_update.ui import ConsoleManager


@dataclass(frozen=True)
class UpdateCandidate:
    """The latest published version and where to download it."""

    version: str
    download_uri: str


class VersionSource(Protocol):
    """Strategy for discovering the latest published version."""

    def latest(self) -> UpdateCandidate: ...


def version_from_link(link: str, prefix: str, suffix: str) -> str:
    """Derives the version tag by stripping the known prefix and suffix.

    Raises:
        UnexpectedFormat: If the link does not have the expected shape.
    """
    if not link.startswith(prefix) or not link.endswith(suffix):
        raise UnexpectedFormat(
            f"Download link '{link}' does not start with '{prefix}' and end with '{suffix}'"
        )
    version = link[len(prefix) : len(link) - len(suffix)]
    if not version or "/" in version or version.strip() != version:
        raise UnexpectedFormat(f"Could not extract a version from link '{link}'")
    return version


class DownloadPageSource:
    """Scrapes the vendor download page for the single platform archive link."""

    def __init__(
        self,
        http_client: IHttpClient,
        console: "ConsoleManager",
        page_url: str,
        link_pattern: str,
        link_prefix: str,
        link_suffix: str,
    ):
        self.http_client = http_client
        self.console = console
        self.page_url = page_url
        self.link_regex = re.compile(link_pattern)
        self.link_prefix = link_prefix
        self.link_suffix = link_suffix

    def latest(self) -> UpdateCandidate:
        """Fetches the download page and extracts the archive link and version.

        Raises:
            SourceUnreachable: On transport errors or a non-200 response.
            NoLinkFound: If no link on the page matches the pattern.
            UnexpectedFormat: If several different links match, or the version
                cannot be derived from the link.
        """
        page = self._fetch_page()
        links = self._find_links(page)

        if not links:
            raise NoLinkFound(
                f"No download link matching '{self.link_regex.pattern}' on {self.page_url}"
            )
        if len(links) > 1:
            raise UnexpectedFormat(
                f"Expected one download link on {self.page_url}, found {len(links)}: {', '.join(links)}"
            )

        link = links[0]
        self.console.debug(f"Found download link: {link}")
        version = version_from_link(link, self.link_prefix, self.link_suffix)
        return UpdateCandidate(version=version, download_uri=link)

    def _fetch_page(self) -> str:
        self.console.debug(f"Fetching download page: {self.page_url}")
        try:
            response = self.http_client.get(self.page_url)
        except requests.RequestException as e:
            raise SourceUnreachable(
                f"Request to download page {self.page_url} failed: {e}"
            ) from e

        if response.status_code != 200:
            raise SourceUnreachable(
                f"Download page request failed: {response.status_code} "
                f"{getattr(response, 'reason', '')}. URL: {self.page_url}"
            )
        return response.text

    def _find_links(self, page: str) -> List[str]:
        # The same link is usually repeated in several anchors
        links: List[str] = []
        for match in self.link_regex.finditer(page):
            link = match.group(0)
            if link not in links:
                links.append(link)
        return links


class StaticLinkSource:
    """Uses a configured download URI instead of scraping."""

    def __init__(self, download_uri: str, link_prefix: str, link_suffix: str):
        self.download_uri = download_uri
        self.link_prefix = link_prefix
        self.link_suffix = link_suffix

    def latest(self) -> UpdateCandidate:
        version = version_from_link(
            self.download_uri, self.link_prefix, self.link_suffix
        )
        return UpdateCandidate(version=version, download_uri=self.download_uri)


class VersionOracle:
    """Answers "what is installed" and "what is available".

    Attributes:
        source (VersionSource): Strategy used to discover the latest version.
        console (ConsoleManager): Interface for logging and console output.
    """

    def __init__(self, source: VersionSource, console: "ConsoleManager"):
        self.source = source
        self.console = console

    @classmethod
    def from_settings(
        cls,
        settings: "UpdaterSettings",
        http_client: IHttpClient,
        console: "ConsoleManager",
    ) -> "VersionOracle":
        """Builds an oracle with the source the settings ask for."""
        source: VersionSource
        if settings.download_uri:
            console.debug(f"Using configured download URI: {settings.download_uri}")
            source = StaticLinkSource(
                settings.download_uri, settings.link_prefix, settings.link_suffix
            )
        else:
            source = DownloadPageSource(
                http_client,
                console,
                page_url=settings.download_page_url,
                link_pattern=settings.link_pattern,
                link_prefix=settings.link_prefix,
                link_suffix=settings.link_suffix,
            )
        return cls(source, console)

    def current_version(self, install_dir: str) -> Optional[str]:
        """Reads the installed version from the metadata file.

        Args:
            install_dir: The server installation directory.

        Returns:
            The installed version tag, or None if no metadata file exists.

        Raises:
            MetadataCorrupt: If the file exists but is unreadable, is not JSON,
                or lacks a non-empty string "version".
        """
        metadata_path = os.path.join(install_dir, METADATA_FILENAME)
        if not os.path.exists(metadata_path):
            self.console.debug(f"No metadata file at {metadata_path}")
            return None

        try:
            with open(metadata_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MetadataCorrupt(
                f"Could not read metadata file '{metadata_path}': {e}"
            ) from e

        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str) or not version:
            raise MetadataCorrupt(
                f"Metadata file '{metadata_path}' has no valid 'version' field"
            )
        return version

    def has_server_files(self, install_dir: str) -> bool:
        """True if the install directory holds files not tracked by metadata."""
        return os.path.isdir(install_dir) and bool(os.listdir(install_dir))

    def latest_available(self) -> UpdateCandidate:
        """Discovers the latest published version.

        Raises:
            SourceUnreachable, NoLinkFound, UnexpectedFormat
        """
        candidate = self.source.latest()
        self.console.info(
            f"Latest available version: {candidate.version} ({candidate.download_uri})"
        )
        return candidate

    def compare(self, current: Optional[str], candidate: UpdateCandidate) -> bool:
        """Returns True if the installed version equals the candidate.

        The vendor only publishes the newest build, so any difference means
        the candidate is the newer one.
        """
        return current is not None and current == candidate.version
