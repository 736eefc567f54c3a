"""PyWorkspace - sync local folders with content-addressable archives."""

from .exceptions import (
    ArchiveTimeoutError,
    InvalidEncodingError,
    InvalidInputError,
    InvalidURLError,
    LocalPathMissingError,
    NotWritableError,
    SourceTooLargeError,
    TreeIOError,
    WorkspaceError,
    WorkspaceNotFoundError,
)
from .workspaces import JsonWorkspaceStore, WorkspaceRecord

__version__ = "0.1.0"

__all__ = [
    "JsonWorkspaceStore",
    "WorkspaceRecord",
    "WorkspaceError",
    "InvalidInputError",
    "InvalidURLError",
    "WorkspaceNotFoundError",
    "LocalPathMissingError",
    "NotWritableError",
    "InvalidEncodingError",
    "SourceTooLargeError",
    "ArchiveTimeoutError",
    "TreeIOError",
]
