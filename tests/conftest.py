"""Shared fixtures and in-memory fakes for the updater test suite."""

import json
import os
import zipfile
from pathlib import Path
from typing import Dict, Optional, Union

import pytest
import requests

from bds_update.archiver import ZipfileArchiver
from bds_update.backup import BackupManager
from bds_update.config import UpdaterSettings
from bds_update.curator import FileSetCurator
from bds_update.fetcher import ArchiveFetcher
from bds_update.filesystem import OsFileSystem
from bds_update.installer import InstallManager
from bds_update.ui import ConsoleManager
from bds_update.updater import UpdateOrchestrator
from bds_update.validator import LaunchResult
from bds_update.versioning import VersionOracle

LINK_PREFIX = "https://minecraft.azureedge.net/bin-linux/bedrock-server-"
PAGE_URL = "https://www.minecraft.net/en-us/download/server/bedrock"


def download_link(version: str) -> str:
    return f"{LINK_PREFIX}{version}.zip"


def download_page(*links: str) -> str:
    anchors = "\n".join(
        f'<a href="{link}" class="downloadlink" role="button">Download</a>'
        for link in links
    )
    return f"<html><body><h1>Bedrock Server</h1>\n{anchors}\n</body></html>"


def build_zip(path: Path, entries: Dict[str, Union[str, bytes]]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return path


def write_tree(root: Path, files: Dict[str, str]) -> None:
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)


def read_tree(root: Path) -> Dict[str, bytes]:
    tree = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for dirname in dirnames:
            rel = os.path.relpath(os.path.join(dirpath, dirname), root)
            tree[rel + "/"] = b""
        for filename in filenames:
            full = os.path.join(dirpath, filename)
            with open(full, "rb") as f:
                tree[os.path.relpath(full, root)] = f.read()
    return tree


def write_metadata(install_dir: Path, version: str) -> None:
    install_dir.mkdir(parents=True, exist_ok=True)
    (install_dir / "serverData.json").write_text(json.dumps({"version": version}))


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", reason: str = "OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason


class FakeHttpClient:
    """Serves canned pages and archives keyed by URL."""

    def __init__(self):
        self.pages: Dict[str, Union[FakeResponse, Exception]] = {}
        self.files: Dict[str, Union[bytes, Exception]] = {}
        self.downloads = []

    def get(self, url: str):
        page = self.pages.get(url)
        if page is None:
            return FakeResponse(404, "", "Not Found")
        if isinstance(page, Exception):
            raise page
        return page

    def download(self, url: str, dest_path) -> None:
        self.downloads.append(url)
        payload = self.files.get(url)
        if payload is None:
            raise requests.HTTPError(f"404 Client Error for url: {url}")
        if isinstance(payload, Exception):
            raise payload
        with open(dest_path, "wb") as f:
            f.write(payload)


class FakeValidator:
    """Stands in for LaunchValidator; records the directories it was asked to check."""

    def __init__(self, result: Optional[LaunchResult] = None):
        self.result = result or LaunchResult(True)
        self.calls = []
        self.seen_trees = []

    def validate(self, install_dir: str, timeout: float) -> LaunchResult:
        self.calls.append((install_dir, timeout))
        self.seen_trees.append(read_tree(Path(install_dir)))
        return self.result


@pytest.fixture
def console() -> ConsoleManager:
    console = ConsoleManager(verbose=True)
    console.setup_logging()
    return console


@pytest.fixture
def filesystem() -> OsFileSystem:
    return OsFileSystem()


@pytest.fixture
def settings(tmp_path: Path) -> UpdaterSettings:
    return UpdaterSettings(
        install_dir=str(tmp_path / "srv" / "bedrock"),
        temp_dir=str(tmp_path / "tmp" / "bds_update"),
        download_page_url=PAGE_URL,
        link_prefix=LINK_PREFIX,
        launch_timeout_seconds=5,
    )


@pytest.fixture
def http_client() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def publish(http_client: FakeHttpClient, tmp_path: Path):
    """Publishes a version on the fake vendor page with the given archive contents."""

    def _publish(version: str, entries: Optional[Dict[str, str]] = None) -> str:
        link = download_link(version)
        entries = entries if entries is not None else {
            "bedrock_server": f"binary {version}",
            "server.properties": "server-name=Default\n",
            "behavior_packs/vanilla/manifest.json": f'{{"version": "{version}"}}',
        }
        archive = build_zip(tmp_path / f"published-{version}.zip", entries)
        http_client.pages[PAGE_URL] = FakeResponse(200, download_page(link))
        http_client.files[link] = archive.read_bytes()
        return link

    return _publish


@pytest.fixture
def make_orchestrator(settings, http_client, filesystem, console):
    def _make(validator=None, backup_manager=None, install_manager=None, **overrides):
        effective = settings.model_copy(update=overrides) if overrides else settings
        return UpdateOrchestrator(
            settings=effective,
            version_oracle=VersionOracle.from_settings(effective, http_client, console),
            fetcher=ArchiveFetcher(
                staging_dir=effective.staging_dir,
                http_client=http_client,
                archiver=ZipfileArchiver(),
                filesystem=filesystem,
                console=console,
            ),
            curator=FileSetCurator(filesystem, console),
            backup_manager=backup_manager or BackupManager(filesystem, console),
            install_manager=install_manager
            or InstallManager(effective.preserve_patterns, filesystem, console),
            launch_validator=validator or FakeValidator(),
            filesystem=filesystem,
            console=console,
        )

    return _make
