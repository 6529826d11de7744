import signal
import sys

from bds_update.config import ConfigManager
from bds_update.errors import BDSUpdateError, ConfigError
from bds_update.ui import ConsoleManager
from bds_update.versioning import VersionOracle
from bds_update.fetcher import ArchiveFetcher
from bds_update.curator import FileSetCurator
from bds_update.backup import BackupManager
from bds_update.installer import InstallManager
from bds_update.validator import LaunchValidator
from bds_update.updater import UpdateOrchestrator

# Interface implementations
from bds_update.process_runner import SubprocessProcessRunner
from bds_update.filesystem import OsFileSystem
from bds_update.http_client import RequestsHttpClient
from bds_update.archiver import ZipfileArchiver

# Command handlers
from bds_update.commands import (
    EXIT_ERROR,
    cmd_check_version,
    cmd_info,
    cmd_update,
)
from bds_update.cli import setup_argument_parser


def main():
    parser = setup_argument_parser()
    args = parser.parse_args()

    console_mgr = ConsoleManager(verbose=args.verbose)
    config_mgr = ConfigManager(console=console_mgr)

    if args.generate_config:
        try:
            config_mgr.generate_config_file()
        except ConfigError as e:
            console_mgr.critical(f"Failed to generate configuration: {e}")
            return EXIT_ERROR
        console_mgr.info("Sample configuration file generated. Exiting.")
        return 0

    try:
        settings = config_mgr.load_config(args.config)
    except ConfigError as e:
        console_mgr.critical(f"Failed to load configuration: {e}")
        return EXIT_ERROR

    console_mgr.setup_logging(log_dir=settings.log_dir)

    if args.command is None:
        parser.print_help()
        return 0

    components = initialize_components(console_mgr, settings)
    setup_signal_handlers()

    return process_command(args, components, settings)


def initialize_components(console_mgr, settings):
    """Initialize all components, threading the settings through explicitly"""
    process_runner = SubprocessProcessRunner()
    http_client = RequestsHttpClient(
        user_agent=settings.user_agent, timeout=settings.request_timeout_seconds
    )
    filesystem = OsFileSystem()
    archiver = ZipfileArchiver()

    version_oracle = VersionOracle.from_settings(settings, http_client, console_mgr)

    fetcher = ArchiveFetcher(
        staging_dir=settings.staging_dir,
        http_client=http_client,
        archiver=archiver,
        filesystem=filesystem,
        console=console_mgr,
    )
    curator = FileSetCurator(filesystem=filesystem, console=console_mgr)
    backup_mgr = BackupManager(filesystem=filesystem, console=console_mgr)
    install_mgr = InstallManager(
        preserve_patterns=settings.preserve_patterns,
        filesystem=filesystem,
        console=console_mgr,
    )
    validator = LaunchValidator(
        launch_command=settings.launch_command,
        ready_pattern=settings.ready_pattern,
        stop_command=settings.stop_command,
        process_runner=process_runner,
        console=console_mgr,
    )

    orchestrator = UpdateOrchestrator(
        settings=settings,
        version_oracle=version_oracle,
        fetcher=fetcher,
        curator=curator,
        backup_manager=backup_mgr,
        install_manager=install_mgr,
        launch_validator=validator,
        filesystem=filesystem,
        console=console_mgr,
    )

    return {
        "console": console_mgr,
        "filesystem": filesystem,
        "version_oracle": version_oracle,
        "backup_mgr": backup_mgr,
        "orchestrator": orchestrator,
    }


def setup_signal_handlers():
    """Turn SIGTERM into KeyboardInterrupt so an interrupted install still rolls back"""

    def signal_handler(sig, frame):
        raise KeyboardInterrupt(f"Received signal {sig}")

    signal.signal(signal.SIGTERM, signal_handler)


def process_command(args, components, settings):
    """Process the command specified in args"""
    console = components["console"]

    try:
        if args.command == "update":
            return cmd_update(console, components["orchestrator"])

        if args.command == "check-version":
            return cmd_check_version(console, settings, components["version_oracle"])

        if args.command == "info":
            return cmd_info(
                console,
                settings,
                components["version_oracle"],
                components["backup_mgr"],
                components["filesystem"],
            )

        console.error(f"Unknown command: {args.command}")
        setup_argument_parser().print_help()
        return EXIT_ERROR

    except BDSUpdateError as e:
        console.error(f"Operation failed: {e}", exc_info=False)
        return EXIT_ERROR
    except KeyboardInterrupt:
        console.error("Interrupted.")
        return 130
    except Exception as e:
        console.exception(f"An unexpected error occurred: {e}")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
