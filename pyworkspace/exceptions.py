"""Exceptions raised by pyworkspace."""

from typing import Optional


class WorkspaceError(Exception):
    """Base exception for all workspace errors."""


class InvalidInputError(WorkspaceError):
    """Raised when an identifier, name or option is malformed."""


class InvalidURLError(InvalidInputError):
    """Raised when a publish target is not a valid dat:// URL."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when no workspace record exists, or the record is incomplete."""


class LocalPathMissingError(WorkspaceNotFoundError):
    """Raised when the workspace's local folder no longer exists."""


class NotWritableError(WorkspaceError):
    """Raised when the target archive is not owned or has been deleted."""


class InvalidEncodingError(WorkspaceError):
    """Raised when binary content is presented to a textual diff."""


class SourceTooLargeError(WorkspaceError):
    """Raised when a file is too large to diff."""


class ArchiveTimeoutError(WorkspaceError):
    """Raised when an archive could not be loaded within the timeout."""


class TreeIOError(WorkspaceError):
    """Raised when a read, write or stat on a tree fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        """Initialize the error.

        Args:
            message: Error message
            path: Tree path the failure happened on
        """
        super().__init__(message)
        self.path = path
