import subprocess
from typing import List, Optional, Any, Dict

from bds_update.interfaces import IProcessRunner


class SubprocessProcessRunner(IProcessRunner):
    """Implementation of IProcessRunner using subprocess."""

    def spawn(
        self,
        command_args: List[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Start a long running process with piped stdin/stdout.

        stderr is merged into stdout so a single reader sees every line.

        Args:
            command_args: List of command and arguments
            cwd: Working directory to run the command in
            env: Environment for the child process

        Returns:
            Popen object

        Raises:
            OSError: If the executable cannot be started
        """
        return subprocess.Popen(
            command_args,
            cwd=cwd,
            env=env,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            errors="replace",
        )
