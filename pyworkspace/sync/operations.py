"""Applying diffs to trees."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import TreeIOError
from .comparator import ChangeKind, DiffEntry
from .modes import ApplyDirection
from .tree import Tree

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of applying a diff.

    Application is per entry and not transactional: entries before the
    failed one stay applied, entries after it are skipped.
    """

    applied: list[DiffEntry] = field(default_factory=list)
    """Entries applied successfully, in application order"""

    failed: Optional[DiffEntry] = None
    """Entry whose application failed"""

    error: Optional[Exception] = None
    """Error raised by the failed entry"""

    skipped: list[DiffEntry] = field(default_factory=list)
    """Entries not attempted because of the failure"""

    @property
    def ok(self) -> bool:
        """Whether every entry was applied."""
        return self.failed is None

    def raise_for_failure(self) -> None:
        """Raise TreeIOError naming the failed path, if any entry failed."""
        if self.failed is not None:
            raise TreeIOError(
                f"Failed to apply {self.failed.change.value} {self.failed.path}: "
                f"{self.error}",
                path=self.failed.path,
            ) from self.error

    def to_dict(self) -> dict:
        """Convert result to dictionary for JSON serialization."""
        return {
            "applied": [entry.to_dict() for entry in self.applied],
            "failed": self.failed.to_dict() if self.failed else None,
            "error": str(self.error) if self.error else None,
            "skipped": [entry.to_dict() for entry in self.skipped],
        }


def filter_additions(entries: list[DiffEntry]) -> list[DiffEntry]:
    """Keep only ADD entries, for applies that must never delete or overwrite."""
    return [entry for entry in entries if entry.change == ChangeKind.ADD]


class SyncOperations:
    """Applies diff entries to one side of a tree pair."""

    async def apply(
        self,
        direction: ApplyDirection,
        left: Tree,
        right: Tree,
        entries: list[DiffEntry],
    ) -> ApplyResult:
        """Apply a diff computed as ``diff(left, right)``.

        LEFT_TO_RIGHT makes the right tree match the left one; entries are
        applied in order. RIGHT_TO_LEFT makes the left tree match the right
        one; entries are applied in reverse order so that folders are
        emptied before they are removed and created before they are filled.

        Args:
            direction: Which side to write
            left: Left (source) tree of the diff
            right: Right (destination) tree of the diff
            entries: Entries returned by the diff

        Returns:
            ApplyResult listing applied, failed and skipped entries
        """
        if direction == ApplyDirection.LEFT_TO_RIGHT:
            source, dest, ordered = left, right, list(entries)
        else:
            source, dest, ordered = right, left, list(reversed(entries))

        result = ApplyResult()
        for index, entry in enumerate(ordered):
            try:
                await self._apply_entry(direction, source, dest, entry)
            except OSError as e:
                logger.debug(f"Failed to apply {entry.change.value} {entry.path}: {e}")
                result.failed = entry
                result.error = e
                result.skipped = ordered[index + 1 :]
                break
            result.applied.append(entry)

        logger.debug(
            f"Applied {len(result.applied)}/{len(ordered)} change(s) "
            f"({direction.value})"
        )
        return result

    async def _apply_entry(
        self, direction: ApplyDirection, source: Tree, dest: Tree, entry: DiffEntry
    ) -> None:
        if direction == ApplyDirection.LEFT_TO_RIGHT:
            if entry.change == ChangeKind.REMOVE:
                await self.delete(dest, entry.path, entry.is_directory)
            else:
                await self.copy(source, dest, entry)
            return

        # the right tree is the source of truth
        if entry.change == ChangeKind.ADD:
            await self.delete(dest, entry.path, entry.is_directory)
        else:
            await self.copy(source, dest, entry)

    async def copy(self, source: Tree, dest: Tree, entry: DiffEntry) -> None:
        """Make ``entry.path`` in dest match the source.

        Files are copied in full; folders are created without content.
        An existing entry of the other type is removed first.

        Args:
            source: Tree to read from
            dest: Tree to write to
            entry: Entry to copy
        """
        source_stat = await source.stat(entry.path)
        if source_stat is None:
            raise FileNotFoundError(2, "No such file or directory", entry.path)
        dest_stat = await dest.stat(entry.path)
        if dest_stat is not None and dest_stat.is_directory != source_stat.is_directory:
            await dest.remove_recursive(entry.path)

        if source_stat.is_directory:
            logger.debug(f"Creating folder {entry.path}")
            await dest.mkdir(entry.path)
        else:
            logger.debug(f"Copying {entry.path}")
            await dest.write_file(entry.path, await source.read_file(entry.path))

    async def delete(self, dest: Tree, path: str, is_directory: bool) -> None:
        """Remove a file or a folder. Missing paths are ignored.

        A folder is removed with whatever it still holds, such as files
        the diff filter left out.

        Args:
            dest: Tree to delete from
            path: Tree path
            is_directory: Whether the entry is a folder
        """
        st = await dest.stat(path)
        if st is None:
            return
        logger.debug(f"Deleting {path}")
        if is_directory and st.is_directory:
            await dest.remove_recursive(path)
        elif not st.is_directory:
            await dest.unlink(path)
        else:
            raise IsADirectoryError(21, "Is a directory", path)
