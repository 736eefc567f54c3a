"""Binary detection and size limits for textual diffs.

Classification happens in two stages. The file name is checked first; it
answers True (binary), False (text) or None (can't tell). Only when the
name is inconclusive is a bounded prefix of the content sniffed.
"""

import logging
import mimetypes
import posixpath
from typing import TYPE_CHECKING, Optional

from .exceptions import InvalidEncodingError, SourceTooLargeError
from .utils import CONTENT_SNIFF_SIZE, MAX_DIFF_SIZE, format_size

if TYPE_CHECKING:
    from .sync.tree import Tree

logger = logging.getLogger(__name__)

# Extensions that are text even though mimetypes does not say text/*
TEXT_EXTENSIONS = {
    ".cfg",
    ".conf",
    ".css",
    ".csv",
    ".datignore",
    ".gitignore",
    ".htm",
    ".html",
    ".ini",
    ".js",
    ".json",
    ".jsx",
    ".less",
    ".md",
    ".markdown",
    ".mjs",
    ".py",
    ".rst",
    ".sass",
    ".scss",
    ".sh",
    ".svg",
    ".toml",
    ".ts",
    ".tsx",
    ".txt",
    ".xml",
    ".yaml",
    ".yml",
}

TEXT_MIME_TYPES = {
    "application/javascript",
    "application/json",
    "application/ld+json",
    "application/manifest+json",
    "application/x-sh",
    "application/xml",
    "image/svg+xml",
}

BINARY_MIME_PREFIXES = ("image/", "audio/", "video/", "font/")

BINARY_EXTENSIONS = {
    ".7z",
    ".bin",
    ".bz2",
    ".dll",
    ".doc",
    ".docx",
    ".dmg",
    ".eot",
    ".exe",
    ".gif",
    ".gz",
    ".ico",
    ".iso",
    ".jar",
    ".jpeg",
    ".jpg",
    ".mp3",
    ".mp4",
    ".otf",
    ".pdf",
    ".png",
    ".ppt",
    ".pptx",
    ".rar",
    ".so",
    ".tar",
    ".ttf",
    ".wasm",
    ".webp",
    ".woff",
    ".woff2",
    ".xls",
    ".xlsx",
    ".zip",
}

# Share of control bytes in a sample above which content counts as binary
BINARY_CONTROL_RATIO = 0.3

_TEXT_CONTROL_BYTES = {0x08, 0x09, 0x0A, 0x0C, 0x0D, 0x1B}


def is_file_name_binary(name: str) -> Optional[bool]:
    """Classify a file as binary or text from its name alone.

    Args:
        name: File name or path

    Returns:
        True for known binary types, False for known text types and None
        when the name is inconclusive

    Examples:
        >>> is_file_name_binary("photo.png")
        True
        >>> is_file_name_binary("/docs/readme.md")
        False
        >>> is_file_name_binary("LICENSE") is None
        True
    """
    basename = posixpath.basename(name.replace("\\", "/")).lower()
    _, ext = posixpath.splitext(basename)
    if basename.startswith(".") and not ext:
        # dotfiles such as .datignore
        ext = basename
    if ext in TEXT_EXTENSIONS:
        return False
    if ext in BINARY_EXTENSIONS:
        return True
    mime_type, _ = mimetypes.guess_type(basename, strict=False)
    if mime_type is None:
        return None
    if mime_type.startswith("text/") or mime_type in TEXT_MIME_TYPES:
        return False
    if mime_type.startswith(BINARY_MIME_PREFIXES):
        return True
    return None


def is_content_binary(data: bytes) -> bool:
    """Sniff a content sample for binary data.

    A null byte, or more than BINARY_CONTROL_RATIO control bytes, means
    binary. Valid UTF-8 text is never binary.

    Args:
        data: Sample from the start of a file

    Returns:
        True if the sample looks binary
    """
    if not data:
        return False
    if b"\x00" in data:
        return True
    try:
        data.decode("utf-8")
        return False
    except UnicodeDecodeError as e:
        # a multi-byte sequence cut off by the sample boundary is fine
        if e.start >= len(data) - 3 and e.reason == "unexpected end of data":
            return False
    control = sum(1 for byte in data if byte < 0x20 and byte not in _TEXT_CONTROL_BYTES)
    return control / len(data) > BINARY_CONTROL_RATIO


async def is_file_content_binary(tree: "Tree", path: str) -> bool:
    """Sniff the beginning of a file in a tree for binary data."""
    sample = await tree.read_file(path, max_bytes=CONTENT_SNIFF_SIZE)
    return is_content_binary(sample)


async def assert_diffable(
    tree: "Tree", path: str, name_hint: Optional[bool]
) -> None:
    """Check that a file can be diffed line by line.

    The size is checked from stat before any content is read. A missing
    path or a directory passes, since it diffs as empty text.

    Args:
        tree: Tree holding the file
        path: Tree path of the file
        name_hint: Result of is_file_name_binary() for the path

    Raises:
        SourceTooLargeError: If the file is larger than MAX_DIFF_SIZE
        InvalidEncodingError: If the content is binary
    """
    st = await tree.stat(path)
    if st is None or not st.is_file:
        return
    if st.size > MAX_DIFF_SIZE:
        raise SourceTooLargeError(
            f"Cannot diff {path}: {format_size(st.size)} exceeds the "
            f"{format_size(MAX_DIFF_SIZE)} limit"
        )
    if name_hint is not False and await is_file_content_binary(tree, path):
        logger.debug(f"Content of {path} looks binary")
        raise InvalidEncodingError(f"Cannot diff a binary file: {path}")
