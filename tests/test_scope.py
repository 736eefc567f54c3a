"""Tests for the path-scope filter."""

from pyworkspace.sync.scope import make_path_scope_filter


class TestPathScopeFilter:
    """Tests for make_path_scope_filter."""

    def test_directory_target_includes_descendants(self):
        """A target ending with / covers the folder and everything below."""
        include = make_path_scope_filter(["docs/"])
        assert include("/docs/") is True
        assert include("/docs/a.md") is True
        assert include("/docs/deep/b.md") is True

    def test_directory_target_excludes_siblings(self):
        """Paths outside the folder are excluded, including name prefixes."""
        include = make_path_scope_filter(["docs/"])
        assert include("/index.html") is False
        assert include("/docsx/") is False
        assert include("/docs.md") is False

    def test_file_target_matches_exactly(self):
        """A file target does not cover siblings."""
        include = make_path_scope_filter(["/docs/guide/intro.md"])
        assert include("/docs/guide/intro.md") is True
        assert include("/docs/guide/other.md") is False

    def test_ancestors_are_included(self):
        """Folders on the way to a target are in scope."""
        include = make_path_scope_filter(["/docs/guide/intro.md"])
        assert include("/") is True
        assert include("/docs/") is True
        assert include("/docs/guide/") is True

    def test_multiple_targets(self):
        """A path in scope of any target is included."""
        include = make_path_scope_filter(["index.html", "assets/"])
        assert include("/index.html") is True
        assert include("/assets/logo.svg") is True
        assert include("/about.html") is False

    def test_empty_target_list(self):
        """No targets means only the root passes."""
        include = make_path_scope_filter([])
        assert include("/a.txt") is False
