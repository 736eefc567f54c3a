"""Restrict a diff to an explicit list of paths."""

from typing import Callable

from ..utils import to_tree_path


def make_path_scope_filter(target_paths: list[str]) -> Callable[[str], bool]:
    """Build a filter predicate limited to the given paths.

    A target ending with "/" denotes a directory: the directory itself and
    everything below it are in scope. Any other target matches exactly.
    Every ancestor directory of a target is in scope as well, so that a
    diff restricted to a deep file still reports its containing folders.

    Args:
        target_paths: Paths to diff (e.g. ["docs/", "/index.html"])

    Returns:
        Predicate returning True for paths in scope. Directory paths may be
        passed with a trailing "/".

    Examples:
        >>> include = make_path_scope_filter(["docs/guide/"])
        >>> include("/docs/")
        True
        >>> include("/docs/guide/intro.md")
        True
        >>> include("/index.html")
        False
    """
    targets = [to_tree_path(path) for path in target_paths]

    def include(path: str) -> bool:
        filepath = to_tree_path(path).rstrip("/") or "/"
        for target in targets:
            if target.endswith("/"):
                directory = target.rstrip("/")
                if filepath == directory:
                    return True
                if filepath.startswith(target):
                    return True
            elif filepath == target:
                return True
            if filepath == "/" or target.startswith(filepath + "/"):
                # an ancestor folder
                return True
        return False

    return include
