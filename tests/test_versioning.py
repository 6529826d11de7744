import json

import pytest
import requests

from bds_update.errors import (
    MetadataCorrupt,
    NoLinkFound,
    SourceUnreachable,
    UnexpectedFormat,
)
from bds_update.versioning import (
    DownloadPageSource,
    StaticLinkSource,
    UpdateCandidate,
    VersionOracle,
    version_from_link,
)

from conftest import LINK_PREFIX, PAGE_URL, FakeResponse, download_link, download_page


@pytest.fixture
def oracle(settings, http_client, console):
    return VersionOracle.from_settings(settings, http_client, console)


class TestCurrentVersion:
    def test_reads_version_field(self, oracle, tmp_path):
        (tmp_path / "serverData.json").write_text(json.dumps({"version": "1.14.30.2"}))
        assert oracle.current_version(str(tmp_path)) == "1.14.30.2"

    def test_ignores_extra_fields(self, oracle, tmp_path):
        (tmp_path / "serverData.json").write_text(
            json.dumps({"version": "1.20.0.01", "installedAt": "yesterday"})
        )
        assert oracle.current_version(str(tmp_path)) == "1.20.0.01"

    def test_missing_file_is_not_installed(self, oracle, tmp_path):
        assert oracle.current_version(str(tmp_path)) is None

    def test_missing_directory_is_not_installed(self, oracle, tmp_path):
        assert oracle.current_version(str(tmp_path / "nowhere")) is None

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[]", '"1.2.3"', "{}", '{"version": ""}', '{"version": 12}'],
    )
    def test_corrupt_metadata(self, oracle, tmp_path, content):
        (tmp_path / "serverData.json").write_text(content)
        with pytest.raises(MetadataCorrupt):
            oracle.current_version(str(tmp_path))

    def test_has_server_files(self, oracle, tmp_path):
        install = tmp_path / "bedrock"
        assert not oracle.has_server_files(str(install))
        install.mkdir()
        assert not oracle.has_server_files(str(install))
        (install / "bedrock_server").write_text("x")
        assert oracle.has_server_files(str(install))


class TestCompare:
    def test_equal_versions_are_up_to_date(self, oracle):
        candidate = UpdateCandidate("1.14.30.2", download_link("1.14.30.2"))
        assert oracle.compare("1.14.30.2", candidate) is True

    def test_different_versions_are_not_up_to_date(self, oracle):
        candidate = UpdateCandidate("1.14.30.2", download_link("1.14.30.2"))
        assert oracle.compare("1.14.30.1", candidate) is False
        # No ordering: an "older" remote still counts as an update
        assert oracle.compare("1.14.30.3", candidate) is False

    def test_not_installed_is_never_up_to_date(self, oracle):
        candidate = UpdateCandidate("1.14.30.2", download_link("1.14.30.2"))
        assert oracle.compare(None, candidate) is False


class TestLatestAvailable:
    def test_extracts_version_from_page_link(self, oracle, http_client):
        link = download_link("1.14.30.2")
        http_client.pages[PAGE_URL] = FakeResponse(200, download_page(link))

        candidate = oracle.latest_available()

        assert candidate == UpdateCandidate("1.14.30.2", link)

    def test_repeated_identical_link_is_accepted(self, oracle, http_client):
        link = download_link("1.20.0.01")
        http_client.pages[PAGE_URL] = FakeResponse(200, download_page(link, link))
        assert oracle.latest_available().version == "1.20.0.01"

    def test_windows_and_preview_links_are_ignored(self, oracle, http_client):
        link = download_link("1.20.0.01")
        page = download_page(
            "https://minecraft.azureedge.net/bin-win/bedrock-server-1.20.0.01.zip",
            "https://minecraft.azureedge.net/bin-linux-preview/bedrock-server-1.20.10.21.zip",
            link,
        )
        http_client.pages[PAGE_URL] = FakeResponse(200, page)
        assert oracle.latest_available().version == "1.20.0.01"

    def test_no_matching_link(self, oracle, http_client):
        http_client.pages[PAGE_URL] = FakeResponse(200, "<html>maintenance</html>")
        with pytest.raises(NoLinkFound):
            oracle.latest_available()

    def test_several_distinct_links(self, oracle, http_client):
        page = download_page(download_link("1.0.0.1"), download_link("1.0.0.2"))
        http_client.pages[PAGE_URL] = FakeResponse(200, page)
        with pytest.raises(UnexpectedFormat):
            oracle.latest_available()

    def test_link_without_version_prefix(self, oracle, http_client):
        page = download_page("https://minecraft.azureedge.net/bin-linux/server-latest.zip")
        http_client.pages[PAGE_URL] = FakeResponse(200, page)
        with pytest.raises(UnexpectedFormat):
            oracle.latest_available()

    def test_transport_error(self, oracle, http_client):
        http_client.pages[PAGE_URL] = requests.ConnectionError("name resolution failed")
        with pytest.raises(SourceUnreachable):
            oracle.latest_available()

    def test_bad_status(self, oracle, http_client):
        http_client.pages[PAGE_URL] = FakeResponse(403, "denied", "Forbidden")
        with pytest.raises(SourceUnreachable, match="403"):
            oracle.latest_available()


class TestSources:
    def test_override_uri_skips_scraping(self, settings, http_client, console):
        link = download_link("1.19.83.01")
        overridden = settings.model_copy(update={"download_uri": link})

        oracle = VersionOracle.from_settings(overridden, http_client, console)

        assert isinstance(oracle.source, StaticLinkSource)
        assert oracle.latest_available() == UpdateCandidate("1.19.83.01", link)

    def test_default_source_scrapes_page(self, settings, http_client, console):
        oracle = VersionOracle.from_settings(settings, http_client, console)
        assert isinstance(oracle.source, DownloadPageSource)

    def test_custom_source(self, console):
        class FixedSource:
            def latest(self):
                return UpdateCandidate("9.9", "https://example.invalid/9.9.zip")

        oracle = VersionOracle(FixedSource(), console)
        assert oracle.latest_available().version == "9.9"


@pytest.mark.parametrize(
    "link",
    [
        LINK_PREFIX + ".zip",
        LINK_PREFIX + "1.2.3.tar.gz",
        LINK_PREFIX + "nested/1.2.3.zip",
        "https://elsewhere.example/bedrock-server-1.2.3.zip",
    ],
)
def test_version_from_link_rejects_malformed(link):
    with pytest.raises(UnexpectedFormat):
        version_from_link(link, LINK_PREFIX, ".zip")


def test_version_from_link():
    assert version_from_link(download_link("1.14.30.2"), LINK_PREFIX, ".zip") == "1.14.30.2"
