"""Structural diff of two trees."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..exceptions import InvalidInputError, TreeIOError
from ..utils import join_tree_path
from .tree import Tree, TreeStat

logger = logging.getLogger(__name__)

FilterPredicate = Callable[[str], bool]
"""Returns True for paths to include in a diff"""


class ChangeKind(str, Enum):
    """Kinds of difference between two trees."""

    ADD = "add"
    """Path exists only in the source (left) tree"""

    REMOVE = "del"
    """Path exists only in the destination (right) tree"""

    MODIFY = "mod"
    """Path exists in both trees but differs"""


@dataclass(frozen=True)
class DiffEntry:
    """One difference between two trees."""

    path: str
    """Normalized tree path (e.g. "/docs/index.md")"""

    change: ChangeKind
    """Kind of change"""

    is_directory: bool = False
    """Whether the entry is a directory (in the tree it exists in)"""

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON serialization."""
        return {
            "change": self.change.value,
            "type": "dir" if self.is_directory else "file",
            "path": self.path,
        }


@dataclass
class DiffOptions:
    """Settings of a diff run."""

    shallow: bool = True
    """Report an added/removed folder as one entry without its contents"""

    compare_content: bool = True
    """Compare file bodies instead of size and modification time"""

    paths: Optional[list[str]] = field(default=None)
    """Restrict the diff to these paths (and their ancestors)"""

    def __post_init__(self) -> None:
        if not isinstance(self.shallow, bool):
            raise InvalidInputError(f"shallow must be a bool, got {self.shallow!r}")
        if not isinstance(self.compare_content, bool):
            raise InvalidInputError(
                f"compare_content must be a bool, got {self.compare_content!r}"
            )
        if self.paths is not None:
            if not isinstance(self.paths, list) or not all(
                isinstance(p, str) for p in self.paths
            ):
                raise InvalidInputError("paths must be a list of strings")

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "DiffOptions":
        """Create DiffOptions from a loosely typed option mapping.

        Non-bool flags fall back to their defaults, non-string paths are
        dropped and a ``paths`` value that is not a list means no path
        restriction. Both snake_case and camelCase keys are accepted.

        Args:
            data: Option mapping (may be None)

        Returns:
            DiffOptions instance
        """
        data = data or {}
        compare_content = data.get("compare_content", data.get("compareContent"))
        shallow = data.get("shallow")
        paths = data.get("paths")
        return cls(
            shallow=shallow if isinstance(shallow, bool) else True,
            compare_content=(
                compare_content if isinstance(compare_content, bool) else True
            ),
            paths=(
                [p for p in paths if isinstance(p, str)]
                if isinstance(paths, list)
                else None
            ),
        )


class TreeComparator:
    """Computes the changes needed to turn a destination tree into a source.

    The walk is lexicographic by name. Additions list a folder before its
    contents, removals list the contents before the folder, so the result
    can be applied in order. A path appears at most once.
    """

    def __init__(
        self,
        options: Optional[DiffOptions] = None,
        filter: Optional[FilterPredicate] = None,
    ):
        """Initialize tree comparator.

        Args:
            options: Diff settings (defaults to DiffOptions())
            filter: Predicate deciding which paths take part in the diff
        """
        self.options = options or DiffOptions()
        self.filter = filter

    async def diff(self, source: Tree, dest: Tree) -> list[DiffEntry]:
        """Diff two trees.

        Args:
            source: Tree holding the wanted state (left)
            dest: Tree to compare against (right)

        Returns:
            Ordered list of DiffEntry

        Raises:
            TreeIOError: If reading either tree fails; no partial result
                is returned
        """
        self._source = source
        self._dest = dest
        self._entries: list[DiffEntry] = []
        try:
            await self._walk("/")
        except OSError as e:
            path = e.filename if isinstance(e.filename, str) else None
            raise TreeIOError(f"Diff failed at {path or '/'}: {e}", path=path) from e
        logger.debug(f"Diff found {len(self._entries)} change(s)")
        return self._entries

    def _includes(self, path: str, is_directory: bool) -> bool:
        if self.filter is None:
            return True
        return self.filter(path + "/" if is_directory else path)

    async def _stat(self, tree: Tree, path: str) -> Optional[TreeStat]:
        try:
            return await tree.stat(path)
        except OSError as e:
            if e.filename is None:
                e.filename = path
            raise

    async def _readdir(self, tree: Tree, path: str) -> list[str]:
        try:
            return await tree.readdir(path)
        except OSError as e:
            if e.filename is None:
                e.filename = path
            raise

    async def _walk(self, path: str) -> None:
        source_names = await self._readdir(self._source, path)
        dest_names = await self._readdir(self._dest, path)
        for name in sorted(set(source_names) | set(dest_names)):
            child = join_tree_path(path, name)
            source_stat = await self._stat(self._source, child)
            dest_stat = await self._stat(self._dest, child)
            if source_stat is not None and dest_stat is None:
                await self._add(child, source_stat)
            elif source_stat is None and dest_stat is not None:
                await self._remove(child, dest_stat)
            elif source_stat is not None and dest_stat is not None:
                await self._compare(child, source_stat, dest_stat)

    async def _add(self, path: str, st: TreeStat) -> None:
        if not self._includes(path, st.is_directory):
            return
        self._entries.append(DiffEntry(path, ChangeKind.ADD, st.is_directory))
        if st.is_directory and not self.options.shallow:
            await self._add_children(path)

    async def _add_children(self, path: str) -> None:
        for name in await self._readdir(self._source, path):
            child = join_tree_path(path, name)
            st = await self._stat(self._source, child)
            if st is not None:
                await self._add(child, st)

    async def _remove(self, path: str, st: TreeStat) -> None:
        if not self._includes(path, st.is_directory):
            return
        if st.is_directory and not self.options.shallow:
            await self._remove_children(path)
        self._entries.append(DiffEntry(path, ChangeKind.REMOVE, st.is_directory))

    async def _remove_children(self, path: str) -> None:
        for name in await self._readdir(self._dest, path):
            child = join_tree_path(path, name)
            child_stat = await self._stat(self._dest, child)
            if child_stat is not None:
                await self._remove(child, child_stat)

    async def _compare(
        self, path: str, source_stat: TreeStat, dest_stat: TreeStat
    ) -> None:
        if not self._includes(path, source_stat.is_directory):
            return

        if source_stat.is_directory and dest_stat.is_directory:
            await self._walk(path)
            return

        if source_stat.is_directory != dest_stat.is_directory:
            # type changed: one entry carrying the source's type, preceded by
            # the removal of a folder's contents and followed by their addition
            if dest_stat.is_directory and not self.options.shallow:
                await self._remove_children(path)
            self._entries.append(
                DiffEntry(path, ChangeKind.MODIFY, source_stat.is_directory)
            )
            if source_stat.is_directory and not self.options.shallow:
                await self._add_children(path)
            return

        if await self._files_differ(path, source_stat, dest_stat):
            self._entries.append(DiffEntry(path, ChangeKind.MODIFY, False))

    async def _files_differ(
        self, path: str, source_stat: TreeStat, dest_stat: TreeStat
    ) -> bool:
        if source_stat.size != dest_stat.size:
            return True
        if not self.options.compare_content:
            return source_stat.mtime > dest_stat.mtime
        try:
            source_digest = await self._source.digest(path)
            dest_digest = await self._dest.digest(path)
        except OSError as e:
            if e.filename is None:
                e.filename = path
            raise
        return source_digest != dest_digest


async def diff_trees(
    source: Tree,
    dest: Tree,
    options: Optional[DiffOptions] = None,
    filter: Optional[FilterPredicate] = None,
) -> list[DiffEntry]:
    """Diff two trees with a fresh TreeComparator.

    Args:
        source: Tree holding the wanted state (left)
        dest: Tree to compare against (right)
        options: Diff settings
        filter: Predicate deciding which paths take part in the diff

    Returns:
        Ordered list of DiffEntry
    """
    return await TreeComparator(options, filter).diff(source, dest)
