"""Tests for identifier and URL validation."""

import pytest

from pyworkspace.exceptions import InvalidInputError, InvalidURLError
from pyworkspace.validation import (
    archive_key_from_url,
    assert_archive_url,
    assert_valid_name,
    assert_valid_profile_id,
    is_archive_url,
)

KEY = "ab" * 32


class TestProfileId:
    """Tests for assert_valid_profile_id."""

    def test_int_is_valid(self):
        assert_valid_profile_id(0)
        assert_valid_profile_id(7)

    @pytest.mark.parametrize("value", ["0", None, 1.5, True])
    def test_non_int_is_rejected(self, value):
        """Strings, floats, None and bools are not profile ids."""
        with pytest.raises(InvalidInputError):
            assert_valid_profile_id(value)


class TestWorkspaceName:
    """Tests for assert_valid_name."""

    @pytest.mark.parametrize("name", ["site", "my-site-2", "Blog"])
    def test_valid_names(self, name):
        assert_valid_name(name)

    @pytest.mark.parametrize("name", ["", "2site", "my site", "-site", "a/b", None])
    def test_invalid_names(self, name):
        """Names must start with a letter and use letters, digits and dashes."""
        with pytest.raises(InvalidInputError):
            assert_valid_name(name)


class TestArchiveUrl:
    """Tests for dat:// URL checks."""

    def test_is_archive_url(self):
        assert is_archive_url(f"dat://{KEY}/") is True
        assert is_archive_url("https://example.com") is False
        assert is_archive_url(None) is False

    def test_assert_archive_url_rejects_other_schemes(self):
        """Only dat:// URLs are publish targets."""
        with pytest.raises(InvalidURLError, match="must be a dat:// url"):
            assert_archive_url("https://example.com")

    def test_invalid_url_is_invalid_input(self):
        """URL errors are input errors."""
        assert issubclass(InvalidURLError, InvalidInputError)

    @pytest.mark.parametrize(
        "url",
        [f"dat://{KEY}", f"dat://{KEY}/", f"dat://{KEY}/docs/a.md", f"dat://{KEY}+12/"],
    )
    def test_key_from_url(self, url):
        """The key is extracted regardless of path and version suffix."""
        assert archive_key_from_url(url) == KEY

    def test_key_is_lowercased(self):
        assert archive_key_from_url(f"dat://{KEY.upper()}/") == KEY

    def test_short_key_is_rejected(self):
        with pytest.raises(InvalidURLError):
            archive_key_from_url("dat://abc123/")
