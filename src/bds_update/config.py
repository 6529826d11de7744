"""Manages loading and validation of updater configuration from TOML files."""

import os
import re
from typing import List, Optional, TYPE_CHECKING

import tomllib
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from bds_update.errors import ConfigError

if TYPE_CHECKING:
    from bds_update.ui import ConsoleManager


# --- Constants ---
XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
XDG_CONFIG_PATH = os.path.join(XDG_CONFIG_HOME, "bds_update", "config.toml")

# Configuration file search paths; the first one found wins
CONFIG_FILES = [
    "./bds_update.toml",
    XDG_CONFIG_PATH,
    "/etc/bds_update.toml",
]

METADATA_FILENAME = "serverData.json"

DEFAULT_PRESERVE_PATTERNS = [
    "worlds",
    "development_behavior_packs",
    "development_resource_packs",
    "server.properties",
    "permissions.json",
    "allowlist.json",
    "whitelist.json",
]


def _is_nested(inner: str, outer: str) -> bool:
    inner = os.path.abspath(inner)
    outer = os.path.abspath(outer)
    return os.path.commonpath([inner, outer]) == outer


# --- Pydantic Model ---
class UpdaterSettings(BaseModel):
    """Defines the structure and default values for updater configuration.

    Uses Pydantic for data validation.
    """

    # Directory settings
    install_dir: str = "/srv/bedrock"
    temp_dir: str = "/tmp/bds_update"
    log_dir: Optional[str] = None

    # Remote source
    download_page_url: str = "https://www.minecraft.net/en-us/download/server/bedrock"
    download_uri: Optional[str] = None
    link_pattern: str = r"https://minecraft\.azureedge\.net/bin-linux/[^\"'\s<>]*\.zip"
    link_prefix: str = "https://minecraft.azureedge.net/bin-linux/bedrock-server-"
    link_suffix: str = ".zip"
    user_agent: Optional[str] = None
    request_timeout_seconds: float = Field(default=60.0, gt=0)

    # File sets
    exclude_patterns: List[str] = Field(default_factory=list)
    preserve_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PRESERVE_PATTERNS)
    )

    # Launch test
    launch_command: List[str] = Field(default_factory=lambda: ["./bedrock_server"])
    launch_timeout_seconds: int = Field(default=60, gt=0)
    ready_pattern: str = r"Server started\."
    stop_command: str = "stop"

    # Retention
    keep_backup: bool = False
    keep_staging_on_failure: bool = False

    @field_validator("install_dir", "temp_dir")
    @classmethod
    def _non_empty_path(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("path must not be empty")
        return value

    @field_validator("link_pattern", "ready_pattern")
    @classmethod
    def _valid_regex(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}") from e
        return value

    @field_validator("launch_command")
    @classmethod
    def _non_empty_command(cls, value: List[str]) -> List[str]:
        if not value or not value[0]:
            raise ValueError("launch_command must name an executable")
        return value

    @model_validator(mode="after")
    def _separate_directories(self) -> "UpdaterSettings":
        if _is_nested(self.temp_dir, self.install_dir) or _is_nested(
            self.install_dir, self.temp_dir
        ):
            raise ValueError(
                "install_dir and temp_dir must be separate, non-nested directories"
            )
        return self

    @property
    def staging_dir(self) -> str:
        return os.path.join(self.temp_dir, "download")

    @property
    def backup_dir(self) -> str:
        return os.path.join(self.temp_dir, "backup")


# --- Configuration Management ---
class ConfigManager:
    """Handles loading configuration from files and generating a default config.

    Attributes:
        settings (UpdaterSettings): The validated configuration settings.
        console (ConsoleManager): Instance for logging and user output.
    """

    def __init__(self, console: "ConsoleManager"):
        self.settings = UpdaterSettings()
        self.console = console

    def load_config(self, config_path: Optional[str] = None) -> UpdaterSettings:
        """Loads configuration from an explicit path or the first TOML file found.

        Args:
            config_path: A file given on the command line. It must exist.

        Returns:
            The validated UpdaterSettings instance.

        Raises:
            ConfigError: If a config file is found but is invalid (parsing error,
                         validation error) or cannot be read.
        """
        if config_path is not None:
            if not os.path.isfile(config_path):
                raise ConfigError(f"Configuration file not found: {config_path}")
            candidates = [config_path]
        else:
            candidates = CONFIG_FILES

        for config_file in candidates:
            if not os.path.isfile(config_file):
                self.console.debug(f"Config file not found: {config_file}")
                continue

            self.console.debug(f"Attempting to load config: {config_file}")
            self.settings = self._load_file(config_file)
            self.console.info(f"Successfully loaded configuration from {config_file}")
            return self.settings

        self.console.info(
            "No configuration file found or loaded. Using default settings."
        )
        return self.settings

    def _load_file(self, config_file: str) -> UpdaterSettings:
        try:
            with open(config_file, "rb") as f:
                config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            err_msg = f"Error parsing TOML in config file '{config_file}': {e}"
            self.console.error(err_msg)
            raise ConfigError(err_msg) from e
        except OSError as e:
            err_msg = f"Could not read config file '{config_file}': {e}"
            self.console.error(err_msg)
            raise ConfigError(err_msg) from e

        try:
            return UpdaterSettings(**config_data)
        except ValidationError as validation_error:
            err_msg = f"Validation error in configuration file '{config_file}': {validation_error}"
            self.console.error(err_msg)
            raise ConfigError(err_msg) from validation_error

    def generate_config_file(self, config_file: str = XDG_CONFIG_PATH) -> str:
        """Generates a default configuration file.

        Creates the necessary directory if it doesn't exist.

        Returns:
            The absolute path to the generated configuration file.

        Raises:
            ConfigError: If the directory or file cannot be created.
        """
        config_dir = os.path.dirname(config_file)
        self.console.info(f"Attempting to generate default config at: {config_file}")

        try:
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)
        except OSError as e:
            err_msg = f"Failed to create configuration directory '{config_dir}': {e}"
            self.console.error(err_msg)
            raise ConfigError(err_msg) from e

        s = self.settings
        config_content = f"""# Bedrock Dedicated Server updater - Configuration File
# Configuration files are searched in this order, first match wins:
#   1. ./bds_update.toml
#   2. {XDG_CONFIG_PATH}
#   3. /etc/bds_update.toml

# Directory settings
install_dir = {_toml_str(s.install_dir)}
temp_dir = {_toml_str(s.temp_dir)}
# log_dir = "/var/log/bds_update"

# Remote source
download_page_url = {_toml_str(s.download_page_url)}
# Set to skip scraping and install this exact archive
# download_uri = "https://minecraft.azureedge.net/bin-linux/bedrock-server-1.20.0.01.zip"
link_pattern = {_toml_str(s.link_pattern)}
link_prefix = {_toml_str(s.link_prefix)}
link_suffix = {_toml_str(s.link_suffix)}
request_timeout_seconds = {s.request_timeout_seconds}

# Paths removed from the update before installing. Empty means nothing is purged.
exclude_patterns = {_toml_list(s.exclude_patterns)}
# Paths copied back from the previous install, overriding the update
preserve_patterns = {_toml_list(s.preserve_patterns)}

# Launch test
launch_command = {_toml_list(s.launch_command)}
launch_timeout_seconds = {s.launch_timeout_seconds}
ready_pattern = {_toml_str(s.ready_pattern)}
stop_command = {_toml_str(s.stop_command)}

# Retention
keep_backup = {str(s.keep_backup).lower()}
keep_staging_on_failure = {str(s.keep_staging_on_failure).lower()}
"""

        try:
            with open(config_file, "w", encoding="utf-8") as f:
                f.write(config_content)
        except OSError as e:
            err_msg = f"Failed to write configuration file '{config_file}': {e}"
            self.console.error(err_msg)
            raise ConfigError(err_msg) from e

        self.console.info(f"Successfully generated configuration file: {config_file}")
        self.console.print(
            f"Configuration file created: [bold cyan]{config_file}[/bold cyan]"
        )
        return config_file


def _toml_str(value: str) -> str:
    # Literal strings keep regex backslashes intact
    if "'" not in value and "\n" not in value:
        return f"'{value}'"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _toml_list(values: List[str]) -> str:
    return "[" + ", ".join(_toml_str(v) for v in values) + "]"
