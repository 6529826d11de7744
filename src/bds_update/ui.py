import logging
import os
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "bds_update"


class ConsoleManager:
    """Manages console output and logging with rich formatting"""

    def __init__(self, verbose: bool = False):
        """Initialize ConsoleManager. Logging is set up separately via setup_logging."""
        self.console = Console()
        self.verbose = verbose
        self.log_dir: Optional[str] = None
        self.logger = logging.getLogger(LOGGER_NAME)
        self._logging_configured = False

        # Basic config in case setup_logging isn't called immediately
        logging.basicConfig(
            level=logging.INFO,
            handlers=[RichHandler(rich_tracebacks=True, console=self.console)],
        )

    def setup_logging(self, log_dir: Optional[str] = None):
        """Set up logging configuration, potentially with a file handler.

        Args:
            log_dir: Directory to store log files (optional). If provided, enables file logging.
        """
        if self._logging_configured and self.log_dir == log_dir:
            return

        self.log_dir = log_dir
        log_file = None
        handlers = [
            RichHandler(rich_tracebacks=True, console=self.console, show_path=False)
        ]

        if self.log_dir:
            log_file = os.path.join(self.log_dir, "bds_update.log")
            try:
                os.makedirs(self.log_dir, exist_ok=True)
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(
                    logging.Formatter("%(asctime)s [%(levelname)-8s] %(message)s")
                )
                handlers.append(file_handler)
            except OSError as e:
                self.console.print(
                    f"[yellow]Warning:[/yellow] Could not create log directory or file {log_file}: {e}",
                )
                log_file = None

        # Our logger owns its handlers; the root logger is left alone
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
        for handler in handlers:
            self.logger.addHandler(handler)

        self.logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)
        self.logger.propagate = False

        self._logging_configured = True

        if log_file:
            self.debug(
                f"Logging initialized. Console and file ({log_file}) handlers active."
            )
        else:
            self.debug("Logging initialized. Console handler active.")

    def print(self, message: str, style: Optional[str] = None, **kwargs):
        """Print a message directly to the console with optional styling.
           Use this for direct user feedback not necessarily meant for logs.

        Args:
            message: The message to print
            style: Rich style string (optional)
            **kwargs: Additional keyword arguments for Console.print
        """
        self.console.print(message, style=style, **kwargs)

    # --- Logging Methods ---

    def debug(self, message: str, **kwargs):
        """Log a DEBUG level message."""
        self.logger.debug(message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log an INFO level message."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log a WARNING level message."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, exc_info=False, **kwargs):
        """Log an ERROR level message.

        Args:
            message: The error message.
            exc_info: If True, include exception information in the log.
            **kwargs: Additional arguments for the logger.
        """
        self.logger.error(message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an ERROR level message with exception information included."""
        self.logger.exception(message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log a CRITICAL level message."""
        self.logger.critical(message, **kwargs)
