from typing import Protocol, List, Any, Union, Optional, Dict
from pathlib import Path


class IHttpClient(Protocol):
    """Protocol for HTTP client operations."""

    def get(self, url: str) -> Any:
        """Perform HTTP GET request.

        Args:
            url: The URL to request

        Returns:
            Response object with text, status_code attributes
        """
        ...

    def download(self, url: str, dest_path: Union[str, Path]) -> None:
        """Download a file from a URL to a destination path.

        The file only appears at dest_path once the transfer completed.

        Args:
            url: The URL to download from
            dest_path: The path to save the file to

        Raises:
            requests.RequestException: On transport errors or non-success status
            OSError: If the file cannot be written
        """
        ...


class IProcessRunner(Protocol):
    """Protocol for spawning system processes."""

    def spawn(
        self,
        command_args: List[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Start a long running process with piped stdin/stdout.

        Args:
            command_args: List of command and arguments
            cwd: Working directory to run the command in
            env: Environment for the child process

        Returns:
            Popen-like object with stdin, stdout, poll(), wait(), terminate(), kill()
        """
        ...


class IFileSystem(Protocol):
    """Protocol for filesystem operations."""

    def copy(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        """Copy a file or directory, replacing anything at dst.

        Args:
            src: Source path
            dst: Destination path
        """
        ...

    def copy_contents(self, src_dir: Union[str, Path], dst_dir: Union[str, Path]) -> None:
        """Copy every entry of src_dir into dst_dir.

        Args:
            src_dir: Directory whose contents are copied
            dst_dir: Existing destination directory
        """
        ...

    def empty_dir(self, path: Union[str, Path]) -> None:
        """Remove everything inside a directory, creating it if missing.

        Args:
            path: Directory to empty
        """
        ...

    def rmtree(self, path: Union[str, Path]) -> None:
        """Remove a directory tree.

        Args:
            path: Path to remove
        """
        ...

    def remove(self, path: Union[str, Path]) -> None:
        """Remove a file or a directory tree.

        Args:
            path: Path to remove
        """
        ...

    def replace(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        """Atomically rename src over dst.

        Args:
            src: Source path
            dst: Destination path
        """
        ...

    def exists(self, path: Union[str, Path]) -> bool:
        """Check if a path exists."""
        ...

    def isdir(self, path: Union[str, Path]) -> bool:
        """Check if a path is a directory."""
        ...

    def listdir(self, path: Union[str, Path]) -> List[str]:
        """List contents of a directory."""
        ...

    def calculate_dir_size(self, path: Union[str, Path]) -> int:
        """Calculate the total size of a directory in bytes."""
        ...


class IArchiver(Protocol):
    """Protocol for archive operations."""

    def extractall(
        self, archive_path: Union[str, Path], dest_path: Union[str, Path]
    ) -> int:
        """Extract an archive.

        Args:
            archive_path: Path to the archive
            dest_path: Path to extract to

        Returns:
            Number of entries extracted

        Raises:
            ArchiveCorrupt: If the archive is unreadable or contains unsafe entries
        """
        ...
