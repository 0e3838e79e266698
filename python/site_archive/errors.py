"""
Exception hierarchy for the site archive pipeline.

Every failure aborts the whole dump; the CLI maps any SiteArchiveError to a
non-zero exit status with the message shown to the operator.
"""


class SiteArchiveError(Exception):
    """Base class for all archive pipeline failures."""

    pass


class NothingSelectedError(SiteArchiveError):
    """Raised when no component is selected for archiving."""

    pass


class UnresolvablePathError(SiteArchiveError):
    """Raised when the site root or files directory cannot be located."""

    pass


class DumpFailedError(SiteArchiveError):
    """Raised when the database dump provider reports failure."""

    pass


class SensitiveDataFoundError(SiteArchiveError):
    """Raised when a canonical settings file carries database credentials."""

    def __init__(self, relative_path: str):
        self.relative_path = relative_path
        super().__init__(
            f"Found database connection settings in {relative_path}. "
            "Move them to a settings.*.php file (for example settings.local.php) "
            f'or exclude the file with --exclude-code-paths="{relative_path}".'
        )


class SettingsEvaluationError(SiteArchiveError):
    """Raised when a settings file cannot be read or evaluated."""

    pass


class ArchiveIOError(SiteArchiveError):
    """Raised on unreadable sources, unwritable staging areas or containers."""

    pass


class DestinationExistsError(SiteArchiveError):
    """Raised when the destination exists and overwriting was not requested."""

    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(
            f"The destination file {destination} already exists. "
            'Use the "--overwrite" option for overwriting an existing file.'
        )


class MoveFailedError(SiteArchiveError):
    """Raised when the staged archive cannot be delivered to its destination."""

    pass


class UnsupportedManifestError(SiteArchiveError):
    """Raised when an archive manifest is missing or has an unknown format."""

    pass
