"""Runs the Bedrock server update pipeline as an explicit state machine.

Checks versions, downloads and extracts the update, purges excluded files,
snapshots the current install, swaps the update in and launch-tests it.
Any failure after the destructive install step restores the snapshot.

Relies on injected components for each step so the pipeline itself only
decides ordering, transitions and reporting.
"""

import enum
import os
import time
import traceback
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from bds_update.errors import (
    BDSUpdateError,
    InstallFailed,
    RestoreFailed,
    ValidationFailed,
    VersioningError,
)
from bds_update.lock import InstallLock

if TYPE_CHECKING:
    from bds_update.backup import BackupManager
    from bds_update.config import UpdaterSettings
    from bds_update.curator import FileSetCurator
    from bds_update.fetcher import ArchiveFetcher
    from bds_update.installer import InstallManager
    from bds_update.interfaces import IFileSystem
    from bds_update.ui import ConsoleManager
    from bds_update.validator import LaunchValidator
    from bds_update.versioning import VersionOracle


class UpdateState(enum.Enum):
    IDLE = "idle"
    CHECKING_VERSIONS = "checking-versions"
    UP_TO_DATE = "up-to-date"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    CURATING = "curating"
    BACKING_UP = "backing-up"
    INSTALLING = "installing"
    VALIDATING = "validating"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling-back"
    ROLLED_BACK = "rolled-back"
    ROLLBACK_FAILED = "rollback-failed"
    ABORTED = "aborted"


class UpdateOutcome(enum.Enum):
    UP_TO_DATE = "up-to-date"
    COMMITTED = "committed"
    ABORTED_PRE_INSTALL = "aborted-pre-install"
    ROLLED_BACK = "rolled-back"
    ROLLBACK_FAILED = "rollback-failed"


@dataclass
class UpdateReport:
    """Result of one orchestration run."""

    outcome: UpdateOutcome
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    error: Optional[BDSUpdateError] = None
    rollback_error: Optional[BDSUpdateError] = None
    states: List[UpdateState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome in (UpdateOutcome.UP_TO_DATE, UpdateOutcome.COMMITTED)


class UpdateOrchestrator:
    """Sequences the update steps and drives rollback.

    Attributes:
        settings (UpdaterSettings): Paths, patterns and timeouts for the run.
        version_oracle (VersionOracle): Reads installed and latest versions.
        fetcher (ArchiveFetcher): Downloads and extracts the update archive.
        curator (FileSetCurator): Purges excluded files from the staged tree.
        backup_mgr (BackupManager): Snapshots and restores the install.
        install_mgr (InstallManager): Swaps the update in and commits metadata.
        validator (LaunchValidator): Launch-tests the new install.
        filesystem (IFileSystem): Used for staging cleanup.
        console (ConsoleManager): Handles logging and user output.
        state (UpdateState): Current state of the running (or last) run.
    """

    def __init__(
        self,
        settings: "UpdaterSettings",
        version_oracle: "VersionOracle",
        fetcher: "ArchiveFetcher",
        curator: "FileSetCurator",
        backup_manager: "BackupManager",
        install_manager: "InstallManager",
        launch_validator: "LaunchValidator",
        filesystem: "IFileSystem",
        console: "ConsoleManager",
    ):
        self.settings = settings
        self.version_oracle = version_oracle
        self.fetcher = fetcher
        self.curator = curator
        self.backup_mgr = backup_manager
        self.install_mgr = install_manager
        self.validator = launch_validator
        self.filesystem = filesystem
        self.console = console

        self.install_dir = settings.install_dir
        self.staging_dir = settings.staging_dir
        self.extracted_dir = os.path.join(settings.staging_dir, "extracted")
        self.backup_dir = settings.backup_dir

        self.state = UpdateState.IDLE
        self._history: List[UpdateState] = []
        self._from_version: Optional[str] = None
        self._to_version: Optional[str] = None

    # --- Main Update Orchestration --- #

    def run(self) -> UpdateReport:
        """Runs the pipeline once under the install lock.

        Returns:
            Exactly one report describing the terminal outcome.
        """
        self._reset()
        start_time = time.time()
        self.console.info(f"=== Checking for Bedrock server updates in {self.install_dir} ===")

        lock = InstallLock(self.install_dir, self.console)
        try:
            lock.acquire()
        except BDSUpdateError as e:
            report = self._abort(e)
            self._log_summary(report)
            return report

        try:
            report = self._run_locked()
        finally:
            lock.release()
            duration = time.time() - start_time
            self.console.info(f"Update run finished in {duration:.2f} seconds.")

        self._log_summary(report)
        return report

    def _run_locked(self) -> UpdateReport:
        self._transition(UpdateState.CHECKING_VERSIONS)
        try:
            current = self.version_oracle.current_version(self.install_dir)
            if current is None:
                if self.version_oracle.has_server_files(self.install_dir):
                    self.console.warning(
                        "Server files present but no version metadata; treating as an update from an unknown version."
                    )
                else:
                    self.console.info("No existing installation; performing a clean install.")
            else:
                self.console.info(f"Installed version: {current}")
            self._from_version = current

            candidate = self.version_oracle.latest_available()
            self._to_version = candidate.version
        except VersioningError as e:
            return self._abort(e)

        if self.version_oracle.compare(current, candidate):
            self._transition(UpdateState.UP_TO_DATE)
            self.console.info(f"Server is up to date ({current}). Nothing to do.")
            return self._report(UpdateOutcome.UP_TO_DATE)

        self.console.info(f"Updating from {current or 'nothing'} to {candidate.version}")

        # Nothing below touches the install directory until the snapshot exists
        try:
            self._transition(UpdateState.DOWNLOADING)
            archive_path = self.fetcher.fetch(candidate.download_uri)

            self._transition(UpdateState.EXTRACTING)
            self.fetcher.extract(archive_path, self.extracted_dir)

            self._transition(UpdateState.CURATING)
            self.curator.purge(self.extracted_dir, self.settings.exclude_patterns)

            self._transition(UpdateState.BACKING_UP)
            self.backup_mgr.snapshot(self.install_dir, self.backup_dir)
        except BDSUpdateError as e:
            self._cleanup_pre_install()
            return self._abort(e)
        except Exception as e:
            self.console.exception(f"UNEXPECTED ERROR before install: {e}")
            self._cleanup_pre_install()
            return self._abort(BDSUpdateError(f"Unexpected error before install: {e}"))

        try:
            self._transition(UpdateState.INSTALLING)
            self.install_mgr.swap(self.extracted_dir, self.install_dir, self.backup_dir)

            self._transition(UpdateState.VALIDATING)
            result = self.validator.validate(
                self.install_dir, self.settings.launch_timeout_seconds
            )
            if not result.ok:
                raise ValidationFailed(f"Launch test failed: {result.reason}")

            self.install_mgr.commit(self.install_dir, candidate.version)
        except BDSUpdateError as e:
            return self._roll_back(e)
        except KeyboardInterrupt:
            self.console.error("Interrupted during install; rolling back before exiting.")
            self._roll_back(InstallFailed("Update interrupted during install"))
            raise
        except Exception as e:
            self.console.exception(f"UNEXPECTED ERROR during install: {e}")
            return self._roll_back(InstallFailed(f"Unexpected error during install: {e}"))

        self._transition(UpdateState.COMMITTED)
        self._cleanup_staging(failed=False)
        if self.settings.keep_backup:
            self.console.info(f"Keeping backup snapshot at {self.backup_dir}")
        else:
            self.backup_mgr.discard(self.backup_dir)
        return self._report(UpdateOutcome.COMMITTED)

    # --- Terminal Paths --- #

    def _abort(self, error: BDSUpdateError) -> UpdateReport:
        self.console.error(f"UPDATE ABORTED: {error}")
        self.console.debug(traceback.format_exc())
        self._transition(UpdateState.ABORTED)
        return self._report(UpdateOutcome.ABORTED_PRE_INSTALL, error=error)

    def _roll_back(self, error: BDSUpdateError) -> UpdateReport:
        self.console.error(f"UPDATE FAILED: {error}")
        self.console.debug(traceback.format_exc())
        self._transition(UpdateState.ROLLING_BACK)

        try:
            self.backup_mgr.restore(self.backup_dir, self.install_dir)
        except RestoreFailed as restore_error:
            self._transition(UpdateState.ROLLBACK_FAILED)
            self.console.critical(
                f"ROLLBACK FAILED: {restore_error}. The installation in "
                f"'{self.install_dir}' is in an indeterminate state; the snapshot "
                f"is kept at '{self.backup_dir}'. Manual intervention required."
            )
            return self._report(
                UpdateOutcome.ROLLBACK_FAILED,
                error=error,
                rollback_error=restore_error,
            )

        self._transition(UpdateState.ROLLED_BACK)
        self.console.warning(
            f"Rolled back to the previous installation ({self._from_version or 'no version recorded'})."
        )
        self._cleanup_staging(failed=True)
        if not self.settings.keep_backup:
            self.backup_mgr.discard(self.backup_dir)
        return self._report(UpdateOutcome.ROLLED_BACK, error=error)

    # --- Helpers --- #

    def _reset(self) -> None:
        self.state = UpdateState.IDLE
        self._history = [UpdateState.IDLE]
        self._from_version = None
        self._to_version = None

    def _transition(self, new_state: UpdateState) -> None:
        self.console.debug(f"State: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self._history.append(new_state)

    def _report(
        self,
        outcome: UpdateOutcome,
        error: Optional[BDSUpdateError] = None,
        rollback_error: Optional[BDSUpdateError] = None,
    ) -> UpdateReport:
        return UpdateReport(
            outcome=outcome,
            from_version=self._from_version,
            to_version=self._to_version,
            error=error,
            rollback_error=rollback_error,
            states=list(self._history),
        )

    def _cleanup_pre_install(self) -> None:
        self._cleanup_staging(failed=True)
        if self.state is UpdateState.BACKING_UP:
            # A partial snapshot is useless and the install is untouched
            self.backup_mgr.discard(self.backup_dir)

    def _cleanup_staging(self, failed: bool) -> None:
        """Removes the staging area. Logs errors but does not raise them."""
        if failed and self.settings.keep_staging_on_failure:
            self.console.info(f"Keeping staging area for inspection: {self.staging_dir}")
            return
        try:
            if self.filesystem.exists(self.staging_dir):
                self.console.debug(f"Removing staging area: {self.staging_dir}")
                self.filesystem.rmtree(self.staging_dir)
        except OSError as e:
            self.console.warning(
                f"Failed to remove staging area '{self.staging_dir}': {e}"
            )

    def _log_summary(self, report: UpdateReport) -> None:
        versions = f"{report.from_version or '-'} -> {report.to_version or '-'}"
        if report.outcome is UpdateOutcome.ROLLBACK_FAILED:
            self.console.critical(f"=== Update {report.outcome.value} ({versions}) ===")
        elif report.succeeded:
            self.console.info(f"=== Update {report.outcome.value} ({versions}) ===")
        else:
            self.console.error(
                f"=== Update {report.outcome.value} ({versions}): {report.error} ==="
            )
