from typing import TYPE_CHECKING

from bds_update.backup import BackupManager, format_size
from bds_update.errors import VersioningError
from bds_update.interfaces import IFileSystem
from bds_update.ui import ConsoleManager
from bds_update.updater import UpdateOrchestrator, UpdateOutcome
from bds_update.versioning import VersionOracle

if TYPE_CHECKING:
    from bds_update.config import UpdaterSettings

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ROLLED_BACK = 2
EXIT_ROLLBACK_FAILED = 3
EXIT_UPDATE_AVAILABLE = 10

OUTCOME_EXIT_CODES = {
    UpdateOutcome.UP_TO_DATE: EXIT_OK,
    UpdateOutcome.COMMITTED: EXIT_OK,
    UpdateOutcome.ABORTED_PRE_INSTALL: EXIT_ERROR,
    UpdateOutcome.ROLLED_BACK: EXIT_ROLLED_BACK,
    UpdateOutcome.ROLLBACK_FAILED: EXIT_ROLLBACK_FAILED,
}


def cmd_update(console: ConsoleManager, orchestrator: UpdateOrchestrator) -> int:
    """Run the update pipeline and map its outcome to an exit code"""
    report = orchestrator.run()

    style = "green" if report.succeeded else "red"
    if report.outcome is UpdateOutcome.ROLLED_BACK:
        style = "yellow"
    elif report.outcome is UpdateOutcome.ROLLBACK_FAILED:
        style = "bold red"

    console.print(f"Outcome:      {report.outcome.value}", style=style)
    console.print(f"From version: {report.from_version or 'none'}")
    console.print(f"To version:   {report.to_version or 'unknown'}")
    if report.error:
        console.print(f"Error:        {report.error}", style="red")
    if report.rollback_error:
        console.print(f"Rollback:     {report.rollback_error}", style="bold red")
        console.print(
            "Automatic recovery is no longer possible. Restore the server manually.",
            style="bold red",
        )

    return OUTCOME_EXIT_CODES[report.outcome]


def cmd_check_version(
    console: ConsoleManager,
    settings: "UpdaterSettings",
    version_oracle: VersionOracle,
) -> int:
    """Check if a new server version is available without changing anything"""
    console.print("=== Bedrock Server Version Check ===", style="green")

    try:
        current = version_oracle.current_version(settings.install_dir)
        candidate = version_oracle.latest_available()
    except VersioningError as e:
        console.error(f"Version check failed: {e}")
        console.print(f"Error: {e}", style="red")
        return EXIT_ERROR

    console.print(f"Installed version: {current or 'not installed'}")
    console.print(f"Latest version:    {candidate.version}")
    console.print(f"Download:          {candidate.download_uri}", style="dim")

    if version_oracle.compare(current, candidate):
        console.print("✓ Your server is up to date.", style="green")
        return EXIT_OK

    console.print(
        "! A newer version is available. Run: bds-update update", style="yellow"
    )
    return EXIT_UPDATE_AVAILABLE


def cmd_info(
    console: ConsoleManager,
    settings: "UpdaterSettings",
    version_oracle: VersionOracle,
    backup_mgr: BackupManager,
    filesystem: IFileSystem,
) -> int:
    """Display information about the current installation"""
    console.print("=== Bedrock Server Information ===", style="green")

    try:
        current = version_oracle.current_version(settings.install_dir)
    except VersioningError as e:
        console.warning(f"Could not read installed version: {e}")
        current = None
    if current:
        console.print(f"Server Version:   {current}", style="green")
    elif version_oracle.has_server_files(settings.install_dir):
        console.print("Server Version:   Unknown (no metadata)", style="yellow")
    else:
        console.print("Server Version:   Not installed", style="yellow")

    console.print(f"Install Directory: {settings.install_dir}")
    console.print(f"Temp Directory:    {settings.temp_dir}")

    if filesystem.isdir(settings.install_dir):
        try:
            size = filesystem.calculate_dir_size(settings.install_dir)
            console.print(f"Install size:      {format_size(size)}")
        except OSError as e:
            console.warning(f"Could not calculate install directory size: {e}")
            console.print("Install size:      N/A")

    if backup_mgr.has_snapshot(settings.backup_dir):
        console.print(f"Backup snapshot:   present ({settings.backup_dir})")
    else:
        console.print("Backup snapshot:   none")

    console.print(
        f"Exclude patterns:  {', '.join(settings.exclude_patterns) or '(none)'}"
    )
    console.print(
        f"Preserve patterns: {', '.join(settings.preserve_patterns) or '(none)'}"
    )
    return EXIT_OK
