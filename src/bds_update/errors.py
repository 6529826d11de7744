class BDSUpdateError(Exception):
    """Base exception for bds-update application errors."""

    pass


class ConfigError(BDSUpdateError):
    """Exception related to configuration loading or validation."""

    pass


class UpdateInProgress(BDSUpdateError):
    """Another update run already holds the lock on the install directory."""

    pass


class VersioningError(BDSUpdateError):
    """Exception related to determining the installed or latest version."""

    pass


class MetadataCorrupt(VersioningError):
    """The install metadata file exists but cannot be read or lacks a version."""

    pass


class SourceUnreachable(VersioningError):
    """The vendor download page could not be fetched."""

    pass


class NoLinkFound(VersioningError):
    """The vendor download page contained no link matching the platform pattern."""

    pass


class UnexpectedFormat(VersioningError):
    """A download link was found but no version could be derived from it."""

    pass


class DownloadFailed(BDSUpdateError):
    """Exception related to downloading the update archive."""

    pass


class ArchiveCorrupt(BDSUpdateError):
    """The update archive could not be extracted safely."""

    pass


class BackupFailed(BDSUpdateError):
    """Exception related to snapshotting the install directory."""

    pass


class InstallFailed(BDSUpdateError):
    """Exception related to swapping the staged update into place."""

    pass


class ValidationFailed(BDSUpdateError):
    """The freshly installed server did not pass the launch test."""

    pass


class RestoreFailed(BDSUpdateError):
    """Restoring from the backup snapshot failed. Requires operator intervention."""

    pass
