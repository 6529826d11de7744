import requests
from typing import Union, Any, Optional
from pathlib import Path
import os

from bds_update.interfaces import IHttpClient

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) bds-update"
CHUNK_SIZE = 8192


class RequestsHttpClient(IHttpClient):
    """Implementation of IHttpClient using requests library."""

    def __init__(self, user_agent: Optional[str] = None, timeout: float = 30.0):
        """Initialize the client with a shared session.

        Args:
            user_agent: User-Agent header sent with every request. The vendor
                page refuses requests without a browser-like agent.
            timeout: Connect/read timeout in seconds for each request
        """
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["User-Agent"] = user_agent or DEFAULT_USER_AGENT

    def get(self, url: str) -> Any:
        """Perform HTTP GET request.

        Args:
            url: The URL to request

        Returns:
            Response object with text, status_code attributes
        """
        return self.session.get(url, timeout=self.timeout)

    def download(self, url: str, dest_path: Union[str, Path]) -> None:
        """Download a file from a URL to a destination path.

        Streams into ``<dest_path>.part`` and renames on completion so a failed
        transfer never leaves a file at ``dest_path``.

        Args:
            url: The URL to download from
            dest_path: The path to save the file to
        """
        dest_path = str(dest_path)
        part_path = dest_path + ".part"

        dest_dir = os.path.dirname(dest_path)
        if dest_dir and not os.path.exists(dest_dir):
            os.makedirs(dest_dir)

        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()

                with open(part_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)

            os.replace(part_path, dest_path)
        except BaseException:
            # Clean up partial download if it exists
            if os.path.exists(part_path):
                os.remove(part_path)
            raise
