"""Tests for path and formatting helpers."""

import pytest

from pyworkspace.utils import format_size, join_tree_path, normalize_path, to_tree_path


class TestNormalizePath:
    """Tests for normalize_path."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("docs//guide/./intro.md", "docs/guide/intro.md"),
            ("docs\\guide\\intro.md", "docs/guide/intro.md"),
            ("docs/", "docs/"),
            ("/a/../b", "/b"),
            ("//a", "/a"),
            ("", "."),
            ("/", "/"),
        ],
    )
    def test_normalize(self, path, expected):
        """Separators, dots and trailing slashes are handled."""
        assert normalize_path(path) == expected


class TestTreePaths:
    """Tests for tree path helpers."""

    def test_to_tree_path_roots_relative_paths(self):
        """Relative paths gain a leading slash."""
        assert to_tree_path("docs/a.md") == "/docs/a.md"
        assert to_tree_path("/docs/a.md") == "/docs/a.md"

    def test_to_tree_path_keeps_directory_marker(self):
        """A trailing slash survives."""
        assert to_tree_path("docs/") == "/docs/"

    def test_to_tree_path_root(self):
        """Empty and dot paths are the root."""
        assert to_tree_path("") == "/"
        assert to_tree_path(".") == "/"

    def test_join_tree_path(self):
        """Children of the root and of folders are joined with one slash."""
        assert join_tree_path("/", "a.txt") == "/a.txt"
        assert join_tree_path("/docs", "a.txt") == "/docs/a.txt"


class TestFormatSize:
    """Tests for format_size."""

    def test_bytes(self):
        assert format_size(512) == "512 B"

    def test_kilobytes(self):
        assert format_size(100_000) == "97.7 KB"

    def test_megabytes(self):
        assert format_size(5 * 1024 * 1024) == "5.0 MB"
