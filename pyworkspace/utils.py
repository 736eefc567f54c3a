"""Utility functions for pyworkspace."""

import posixpath

# =============================================================================
# Constants
# =============================================================================

# Largest file (bytes) accepted by the single-file textual diff
MAX_DIFF_SIZE: int = 100_000

# Name of the ignore file at the root of a workspace folder
IGNORE_FILE_NAME: str = ".datignore"

# Bytes sampled when sniffing file content for binary data
CONTENT_SNIFF_SIZE: int = 1024


# =============================================================================
# Path utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a path to a platform independent form.

    Backslashes become forward slashes, duplicate separators and ``.``
    segments are collapsed and ``..`` is resolved. A trailing separator is
    preserved because it marks a directory.

    Args:
        path: Path to normalize

    Returns:
        Normalized path

    Examples:
        >>> normalize_path("docs//guide/./intro.md")
        'docs/guide/intro.md'
        >>> normalize_path("docs/")
        'docs/'
    """
    path = path.replace("\\", "/")
    if not path:
        return "."
    trailing = path.endswith("/")
    normalized = posixpath.normpath(path)
    # normpath keeps a leading '//' as-is
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if trailing and normalized != "/":
        normalized += "/"
    return normalized


def to_tree_path(path: str) -> str:
    """Convert a relative or absolute path to a tree path rooted at ``/``.

    Args:
        path: Path given by a caller (e.g. "docs/a.md" or "/docs/a.md")

    Returns:
        Normalized tree path starting with "/"

    Examples:
        >>> to_tree_path("docs/a.md")
        '/docs/a.md'
        >>> to_tree_path("docs/")
        '/docs/'
    """
    normalized = normalize_path(path)
    if normalized == ".":
        return "/"
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


def join_tree_path(parent: str, name: str) -> str:
    """Join a tree directory path and a child name."""
    if parent.endswith("/"):
        return parent + name
    return f"{parent}/{name}"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
