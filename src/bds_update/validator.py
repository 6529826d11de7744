"""Smoke-tests a freshly installed server by launching it once."""

import os
import queue
import re
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, List, Optional, TYPE_CHECKING

from bds_update.errors import ValidationFailed
from bds_update.interfaces import IProcessRunner

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager

STOP_GRACE_SECONDS = 10.0
KILL_GRACE_SECONDS = 5.0

_EOF = object()


@dataclass(frozen=True)
class LaunchResult:
    ok: bool
    reason: Optional[str] = None


class LaunchValidator:
    """Starts the server, waits for its ready line, then shuts it down.

    Attributes:
        launch_command (List[str]): Command run inside the install directory.
        ready_pattern (re.Pattern): Output line that marks a successful start.
        stop_command (str): Console command written to stdin for a clean stop.
        process_runner (IProcessRunner): Spawns the server process.
        console (ConsoleManager): Interface for logging and output.
    """

    def __init__(
        self,
        launch_command: List[str],
        ready_pattern: str,
        stop_command: str,
        process_runner: IProcessRunner,
        console: "ConsoleManager",
        stop_grace_seconds: float = STOP_GRACE_SECONDS,
    ):
        self.launch_command = list(launch_command)
        self.stop_grace_seconds = stop_grace_seconds
        self.ready_pattern = re.compile(ready_pattern)
        self.stop_command = stop_command
        self.process_runner = process_runner
        self.console = console

    def validate(self, install_dir: str, timeout: float) -> LaunchResult:
        """Launches the server and judges the start within ``timeout`` seconds.

        Crashes, early exits and timeouts are reported as ``ok=False``; the
        process is stopped in every case.

        Raises:
            ValidationFailed: Only if the process cannot be spawned at all.
        """
        self.console.info(
            f"Launch test: running {' '.join(self.launch_command)} (timeout {timeout}s)"
        )
        try:
            process = self.process_runner.spawn(
                self.launch_command, cwd=install_dir, env=self._environment(install_dir)
            )
        except OSError as e:
            raise ValidationFailed(
                f"Could not start '{self.launch_command[0]}' in '{install_dir}': {e}"
            ) from e

        lines: "queue.Queue[Any]" = queue.Queue()
        reader = threading.Thread(
            target=_pump_lines, args=(process.stdout, lines), daemon=True
        )
        reader.start()

        try:
            result = self._wait_for_ready(process, lines, timeout)
        finally:
            self._shutdown(process)
            reader.join(timeout=1.0)

        if result.ok:
            self.console.info("Launch test passed: server reported ready.")
        else:
            self.console.error(f"Launch test failed: {result.reason}")
        return result

    def _wait_for_ready(
        self, process: Any, lines: "queue.Queue[Any]", timeout: float
    ) -> LaunchResult:
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return LaunchResult(
                    False, f"no ready signal within {timeout} seconds"
                )
            try:
                line = lines.get(timeout=min(remaining, 0.5))
            except queue.Empty:
                continue

            if line is _EOF:
                try:
                    code = process.wait(timeout=max(remaining, 1.0))
                except subprocess.TimeoutExpired:
                    return LaunchResult(
                        False, "server closed its output without becoming ready"
                    )
                if code == 0:
                    return LaunchResult(False, "server exited before becoming ready")
                return LaunchResult(False, f"server exited with code {code}")

            self.console.debug(f"[server] {line.rstrip()}")
            if self.ready_pattern.search(line):
                return LaunchResult(True)

    def _shutdown(self, process: Any) -> None:
        if process.poll() is not None:
            return

        try:
            process.stdin.write(self.stop_command + "\n")
            process.stdin.flush()
        except (OSError, ValueError):
            pass
        try:
            process.wait(timeout=self.stop_grace_seconds)
            return
        except subprocess.TimeoutExpired:
            self.console.warning("Server did not stop on request; terminating.")

        process.terminate()
        try:
            process.wait(timeout=KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self.console.warning("Server did not terminate; killing.")
            process.kill()
            process.wait()

    @staticmethod
    def _environment(install_dir: str) -> dict:
        env = dict(os.environ)
        if sys.platform.startswith("linux"):
            # bedrock_server loads its bundled shared objects from the cwd
            existing = env.get("LD_LIBRARY_PATH")
            env["LD_LIBRARY_PATH"] = (
                f"{install_dir}{os.pathsep}{existing}" if existing else install_dir
            )
        return env


def _pump_lines(stream: Any, lines: "queue.Queue[Any]") -> None:
    try:
        for line in stream:
            lines.put(line)
    except (OSError, ValueError):
        pass
    finally:
        lines.put(_EOF)
