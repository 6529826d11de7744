import http.server
import threading

import pytest
import requests

from bds_update.archiver import ZipfileArchiver
from bds_update.errors import DownloadFailed
from bds_update.fetcher import ArchiveFetcher
from bds_update.filesystem import OsFileSystem
from bds_update.http_client import RequestsHttpClient


class StreamingResponse:
    def __init__(self, body: bytes = b"", status_code: int = 200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TruncatingHandler(http.server.BaseHTTPRequestHandler):
    """Promises a large body, sends a few bytes, then drops the connection."""

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/zip")
        self.send_header("Content-Length", "100000")
        self.end_headers()
        self.wfile.write(b"PK\x03\x04partial")
        self.wfile.flush()
        self.close_connection = True

    def log_message(self, format, *args):
        pass


@pytest.fixture
def truncating_server():
    server = http.server.HTTPServer(("127.0.0.1", 0), TruncatingHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/bedrock-server-1.2.zip"
    finally:
        server.shutdown()
        server.server_close()


def test_download_writes_file(tmp_path, monkeypatch):
    client = RequestsHttpClient()
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return StreamingResponse(b"archive bytes" * 1000)

    monkeypatch.setattr(client.session, "get", fake_get)
    dest = tmp_path / "staging" / "server.zip"

    client.download("https://example.invalid/server.zip", dest)

    assert dest.read_bytes() == b"archive bytes" * 1000
    assert not (tmp_path / "staging" / "server.zip.part").exists()
    assert calls[0][1]["stream"] is True


def test_dropped_connection_leaves_nothing(tmp_path, truncating_server):
    client = RequestsHttpClient(timeout=5)
    dest = tmp_path / "bedrock-server-1.2.zip"

    with pytest.raises(requests.RequestException):
        client.download(truncating_server, dest)

    assert list(tmp_path.iterdir()) == []


def test_dropped_connection_is_download_failed(tmp_path, truncating_server, console):
    staging = tmp_path / "staging"
    fetcher = ArchiveFetcher(
        staging_dir=str(staging),
        http_client=RequestsHttpClient(timeout=5),
        archiver=ZipfileArchiver(),
        filesystem=OsFileSystem(),
        console=console,
    )

    with pytest.raises(DownloadFailed, match="Connection broken|IncompleteRead"):
        fetcher.fetch(truncating_server)

    assert list(staging.iterdir()) == []


def test_interrupt_mid_download_removes_part_file(tmp_path, monkeypatch):
    client = RequestsHttpClient()

    class InterruptedResponse(StreamingResponse):
        def iter_content(self, chunk_size=1):
            yield b"first chunk"
            raise KeyboardInterrupt

    monkeypatch.setattr(
        client.session, "get", lambda url, **kwargs: InterruptedResponse()
    )

    with pytest.raises(KeyboardInterrupt):
        client.download("https://example.invalid/server.zip", tmp_path / "server.zip")

    assert list(tmp_path.iterdir()) == []


def test_http_error_status_raises(tmp_path, monkeypatch):
    client = RequestsHttpClient()
    monkeypatch.setattr(
        client.session,
        "get",
        lambda url, **kwargs: StreamingResponse(status_code=503),
    )

    with pytest.raises(requests.HTTPError):
        client.download("https://example.invalid/server.zip", tmp_path / "server.zip")

    assert list(tmp_path.iterdir()) == []


def test_user_agent_header():
    client = RequestsHttpClient(user_agent="bds-test/1.0")

    assert client.session.headers["User-Agent"] == "bds-test/1.0"
