"""Validation of profile ids, workspace names and archive URLs.

These checks run before any record lookup or tree I/O so that a rejected
operation never leaves partial state behind.
"""

import re
from typing import Any

from .exceptions import InvalidInputError, InvalidURLError

WORKSPACE_VALID_NAME_REGEX = re.compile(r"^[a-z][a-z0-9-]*$", re.IGNORECASE)
DAT_HASH_REGEX = re.compile(r"^[0-9a-f]{64}$", re.IGNORECASE)
DAT_URL_PREFIX = "dat://"


def assert_valid_profile_id(profile_id: Any) -> None:
    """Check that a profile id is an integer.

    Raises:
        InvalidInputError: If the profile id is not an int
    """
    # bool is a subclass of int but never a valid id
    if not isinstance(profile_id, int) or isinstance(profile_id, bool):
        raise InvalidInputError("Must provide a valid profile id")


def assert_valid_name(name: Any) -> None:
    """Check that a workspace name is well formed.

    Raises:
        InvalidInputError: If the name is not a string matching
            WORKSPACE_VALID_NAME_REGEX
    """
    if not isinstance(name, str) or not WORKSPACE_VALID_NAME_REGEX.match(name):
        raise InvalidInputError(f"Invalid workspace name ({name})")


def is_archive_url(value: Any) -> bool:
    """Check whether a value looks like a dat:// URL."""
    return isinstance(value, str) and value.startswith(DAT_URL_PREFIX)


def assert_archive_url(url: Any) -> None:
    """Check that a publish target is a dat:// URL.

    Raises:
        InvalidURLError: If the URL does not use the dat:// scheme
    """
    if not is_archive_url(url):
        raise InvalidURLError("Invalid publishTargetUrl - must be a dat:// url.")


def archive_key_from_url(url: str) -> str:
    """Extract the 64 character hex key from a dat:// URL.

    Args:
        url: URL such as "dat://<key>/" or "dat://<key>+3"

    Returns:
        Lower-case archive key

    Raises:
        InvalidURLError: If the URL does not carry a valid key
    """
    assert_archive_url(url)
    host = url[len(DAT_URL_PREFIX) :].split("/", 1)[0]
    # strip a version suffix (dat://<key>+<version>)
    key = host.split("+", 1)[0]
    if not DAT_HASH_REGEX.match(key):
        raise InvalidURLError(f"Invalid archive key in {url}")
    return key.lower()
