"""Line level diffs of text files."""

import difflib
from dataclasses import dataclass


@dataclass(frozen=True)
class LineChange:
    """A run of lines that were kept, added or removed."""

    value: str
    """The lines, joined, including their line endings"""

    count: int
    """Number of lines"""

    added: bool = False
    """Lines only present in the new text"""

    removed: bool = False
    """Lines only present in the old text"""

    def to_dict(self) -> dict:
        """Convert change to dictionary for JSON serialization."""
        return {
            "value": self.value,
            "count": self.count,
            "added": self.added,
            "removed": self.removed,
        }


def diff_lines(old: str, new: str) -> list[LineChange]:
    """Diff two texts line by line.

    Replaced runs are reported as a removal followed by an addition.

    Args:
        old: Previous text
        new: Current text

    Returns:
        Ordered list of LineChange covering both texts

    Examples:
        >>> [(c.value, c.added, c.removed) for c in diff_lines("a\\nb\\n", "a\\nc\\n")]
        [('a\\n', False, False), ('b\\n', False, True), ('c\\n', True, False)]
    """
    old_lines = old.splitlines(keepends=True)
    new_lines = new.splitlines(keepends=True)
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)

    changes: list[LineChange] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            changes.append(LineChange("".join(old_lines[i1:i2]), i2 - i1))
            continue
        if tag in ("replace", "delete"):
            changes.append(
                LineChange("".join(old_lines[i1:i2]), i2 - i1, removed=True)
            )
        if tag in ("replace", "insert"):
            changes.append(LineChange("".join(new_lines[j1:j2]), j2 - j1, added=True))
    return changes
