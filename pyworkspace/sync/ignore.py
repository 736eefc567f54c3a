"""Ignore file handling for workspace diffs.

The ``.datignore`` file at the root of a workspace folder lists glob
patterns, one per line. Patterns that are not rooted with a leading "/"
match at any depth. The version control and archive metadata folders are
always ignored.

Examples:
    >>> rules = compile_ignore_rules("*.log\\n/build/\\n")
    >>> rules
    ['**/*.log', '/build/', '/.git', '/.dat']
    >>> include = build_ignore_filter(rules)
    >>> include("/logs/today.log")
    False
    >>> include("/src/app.py")
    True
"""

import logging
from typing import Optional

import pathspec

from ..utils import IGNORE_FILE_NAME, normalize_path
from .tree import Tree

logger = logging.getLogger(__name__)

IGNORE_FILE_PATH = "/" + IGNORE_FILE_NAME

# Appended to every rule set regardless of the ignore file's content
IMPLICIT_IGNORE_RULES = ["/.git", "/.dat"]


def compile_ignore_rules(raw: Optional[str]) -> list[str]:
    """Turn the content of an ignore file into normalized glob patterns.

    Args:
        raw: Content of the ignore file (None when the file is absent)

    Returns:
        Ordered list of patterns ending with IMPLICIT_IGNORE_RULES
    """
    rules = []
    for line in (raw or "").splitlines():
        rule = line.strip()
        if not rule or rule.startswith("#"):
            continue
        negate = rule.startswith("!")
        if negate:
            rule = rule[1:]
        if not rule.startswith("/"):
            rule = "**/" + rule
        rules.append(("!" if negate else "") + rule)
    rules.extend(IMPLICIT_IGNORE_RULES)
    return [_normalize_rule(rule) for rule in rules]


def _normalize_rule(rule: str) -> str:
    if rule.startswith("!"):
        return "!" + normalize_path(rule[1:])
    return normalize_path(rule)


def build_ignore_filter(rules: list[str]):
    """Build a filter predicate from compiled ignore rules.

    Args:
        rules: Patterns from compile_ignore_rules()

    Returns:
        Predicate returning True for paths to include in a diff and False
        for ignored paths. Directory paths are passed with a trailing "/".
    """
    spec = pathspec.GitIgnoreSpec.from_lines(rules)

    def include(path: str) -> bool:
        relative = path.lstrip("/")
        if not relative:
            return True
        return not spec.match_file(relative)

    return include


async def read_ignore_rules(tree: Tree) -> list[str]:
    """Read and compile the ignore file of a tree.

    A missing or unreadable ignore file counts as empty.

    Args:
        tree: Tree holding the ignore file at its root

    Returns:
        Compiled ignore rules
    """
    raw = ""
    try:
        st = await tree.stat(IGNORE_FILE_PATH)
        if st is not None and st.is_file:
            raw = (await tree.read_file(IGNORE_FILE_PATH)).decode("utf-8", "replace")
    except OSError as e:
        logger.debug(f"Could not read {IGNORE_FILE_NAME}: {e}")
    return compile_ignore_rules(raw)


def append_ignore_line(raw: Optional[str], line: str) -> str:
    """Add a line to ignore file content.

    Blank lines are dropped and the result ends with a newline.

    Args:
        raw: Current content of the ignore file (None when absent)
        line: Pattern to add

    Returns:
        New content of the ignore file

    Examples:
        >>> append_ignore_line("*.log\\n\\n", "build/")
        '*.log\\nbuild/\\n'
    """
    lines = (raw or "").split("\n")
    lines.append(line)
    return "\n".join(item for item in lines if item.strip()) + "\n"
