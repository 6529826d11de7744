import argparse


def setup_argument_parser():
    """Set up and return the argument parser for the command-line interface"""
    parser = argparse.ArgumentParser(
        prog="bds-update",
        description="Bedrock Dedicated Server unattended updater",
        epilog="For command-specific help, use: %(prog)s <command> --help",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Load configuration from this TOML file instead of the search path",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    # Create subparsers for commands
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # 'update' command
    subparsers.add_parser(
        "update", help="Install the latest server version if it is newer"
    )

    # 'check-version' command
    subparsers.add_parser(
        "check-version",
        help="Compare the installed version with the latest published one",
    )

    # 'info' command
    subparsers.add_parser(
        "info", help="Display information about the current installation"
    )

    return parser
