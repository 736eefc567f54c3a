"""Workspace sync engine.

Ties workspace records to their local folder and archive trees and runs
diff, apply and watch operations between the two.
"""

import asyncio
import dataclasses
import logging
from typing import Any, Optional, Union, cast

from ..config import config
from ..exceptions import (
    ArchiveTimeoutError,
    InvalidEncodingError,
    InvalidInputError,
    WorkspaceNotFoundError,
)
from ..mime import assert_diffable, is_file_name_binary
from ..utils import to_tree_path
from ..validation import (
    assert_archive_url,
    assert_valid_name,
    assert_valid_profile_id,
    is_archive_url,
)
from ..workspaces import WorkspaceRecord, WorkspaceStore
from .archive import ArchiveProvider
from .comparator import DiffEntry, DiffOptions, FilterPredicate, TreeComparator
from .ignore import (
    IGNORE_FILE_PATH,
    append_ignore_line,
    build_ignore_filter,
    read_ignore_rules,
)
from .local import LocalTreeRegistry
from .modes import ApplyDirection
from .operations import ApplyResult, SyncOperations, filter_additions
from .scope import make_path_scope_filter
from .textdiff import LineChange, diff_lines
from .tree import Tree
from .watcher import ChangeStream

logger = logging.getLogger(__name__)

OptionsLike = Union[DiffOptions, dict[str, Any], None]


def _coerce_options(opts: OptionsLike) -> DiffOptions:
    if isinstance(opts, DiffOptions):
        return opts
    if opts is None or isinstance(opts, dict):
        return DiffOptions.from_dict(opts)
    raise InvalidInputError(f"Invalid diff options: {opts!r}")


class WorkspaceSyncEngine:
    """Synchronizes workspace folders with their archives.

    Every operation validates its inputs and the workspace record before
    any tree is read, and loads the archive under a timeout before any
    tree is written. Operations on the same workspace are not serialized.
    """

    def __init__(
        self,
        workspaces: WorkspaceStore,
        archives: ArchiveProvider,
        local_trees: Optional[LocalTreeRegistry] = None,
        archive_timeout: Optional[float] = None,
    ):
        """Initialize workspace sync engine.

        Args:
            workspaces: Store of workspace records
            archives: Provider loading archive trees
            local_trees: Registry of local folder trees (a private one is
                created when omitted)
            archive_timeout: Seconds to wait for an archive to load
                (defaults to the configured timeout)
        """
        self.workspaces = workspaces
        self.archives = archives
        self.local_trees = local_trees or LocalTreeRegistry()
        self.archive_timeout = (
            config.archive_timeout if archive_timeout is None else archive_timeout
        )
        self.operations = SyncOperations()

    # -- records -----------------------------------------------------------

    def _lookup(self, profile_id: int, name: str) -> Optional[WorkspaceRecord]:
        if is_archive_url(name):
            return self.workspaces.get_by_publish_target_url(profile_id, name)
        return self.workspaces.get(profile_id, name)

    async def get(self, profile_id: int, name: str) -> Optional[WorkspaceRecord]:
        """Look up a workspace by name or by the dat:// URL it publishes to.

        A local folder that is unset or gone is flagged on the record
        instead of failing the lookup.

        Args:
            profile_id: Browsing profile
            name: Workspace name or dat:// URL

        Returns:
            The record, or None if there is no such workspace
        """
        assert_valid_profile_id(profile_id)
        if not is_archive_url(name):
            assert_valid_name(name)
        record = self._lookup(profile_id, name)
        if record is None:
            return None
        path = record.local_files_path
        if not path:
            record.local_files_path_is_missing = True
        elif path not in self.local_trees:
            try:
                self.local_trees.get(path)
            except WorkspaceNotFoundError:
                record.local_files_path_is_missing = True
                record.missing_local_files_path = path
        return record

    def _load_record(self, profile_id: int, name: str) -> WorkspaceRecord:
        """Fetch a workspace record that is complete and writable."""
        assert_valid_profile_id(profile_id)
        assert_valid_name(name)
        record = self.workspaces.get(profile_id, name)
        if record is None:
            raise WorkspaceNotFoundError(f"No workspace found at {name}")
        if not record.local_files_path:
            raise WorkspaceNotFoundError(f"No files path set for {name}")
        if not record.publish_target_url:
            raise WorkspaceNotFoundError(f"No target site set for {name}")
        assert_archive_url(record.publish_target_url)
        self.archives.assert_writable(record.publish_target_url)
        return record

    async def _open_trees(self, record: WorkspaceRecord) -> tuple[Tree, Tree]:
        """Get the local and archive trees of a workspace.

        Raises:
            LocalPathMissingError: If the local folder does not exist
            ArchiveTimeoutError: If the archive does not load in time
        """
        url = cast(str, record.publish_target_url)
        local = self.local_trees.get(cast(str, record.local_files_path))
        try:
            archive = await asyncio.wait_for(
                self.archives.get_or_load_archive(url),
                timeout=self.archive_timeout,
            )
        except asyncio.TimeoutError:
            raise ArchiveTimeoutError(
                f"Timed out after {self.archive_timeout}s searching for {url}"
            ) from None
        return local, archive

    async def _make_filter(self, local: Tree, opts: DiffOptions) -> FilterPredicate:
        # explicit paths take precedence over the ignore file
        if opts.paths:
            return make_path_scope_filter(opts.paths)
        return build_ignore_filter(await read_ignore_rules(local))

    async def _diff(
        self, local: Tree, archive: Tree, opts: DiffOptions
    ) -> list[DiffEntry]:
        filter = await self._make_filter(local, opts)
        return await TreeComparator(opts, filter).diff(local, archive)

    # -- operations --------------------------------------------------------

    async def list_changes(
        self, profile_id: int, name: str, opts: OptionsLike = None
    ) -> list[DiffEntry]:
        """List the changes in the local folder that are not published yet.

        Args:
            profile_id: Browsing profile
            name: Workspace name
            opts: DiffOptions or an option mapping

        Returns:
            Entries of ``diff(local, archive)``; ADD means the path only
            exists locally
        """
        opts = _coerce_options(opts)
        record = self._load_record(profile_id, name)
        local, archive = await self._open_trees(record)
        changes = await self._diff(local, archive, opts)
        logger.debug(f"{name}: {len(changes)} unpublished change(s)")
        return changes

    async def diff_file(
        self, profile_id: int, name: str, path: str
    ) -> list[LineChange]:
        """Line diff of one file between the archive (old) and local folder (new).

        A missing file on either side diffs as empty text.

        Args:
            profile_id: Browsing profile
            name: Workspace name
            path: Path of the file within the workspace

        Returns:
            Ordered list of LineChange

        Raises:
            InvalidEncodingError: If the file is binary
            SourceTooLargeError: If either version exceeds MAX_DIFF_SIZE
        """
        if not isinstance(path, str) or not path:
            raise InvalidInputError("Must provide a file path to diff")
        name_hint = is_file_name_binary(path)
        if name_hint:
            raise InvalidEncodingError(f"Cannot diff a binary file: {path}")

        record = self._load_record(profile_id, name)
        local, archive = await self._open_trees(record)
        tree_path = to_tree_path(path).rstrip("/") or "/"

        await assert_diffable(local, tree_path, name_hint)
        await assert_diffable(archive, tree_path, name_hint)

        new_text = await self._read_text(local, tree_path)
        old_text = await self._read_text(archive, tree_path)
        return diff_lines(old_text, new_text)

    async def _read_text(self, tree: Tree, path: str) -> str:
        st = await tree.stat(path)
        if st is None or st.is_directory:
            return ""
        return (await tree.read_file(path)).decode("utf-8", "replace")

    async def publish(
        self, profile_id: int, name: str, opts: OptionsLike = None
    ) -> ApplyResult:
        """Copy local changes into the archive.

        Folders are always diffed recursively. When ``paths`` is set only
        those paths are published and the ignore file is not consulted.

        Returns:
            ApplyResult of the archive writes
        """
        opts = dataclasses.replace(_coerce_options(opts), shallow=False)
        record = self._load_record(profile_id, name)
        local, archive = await self._open_trees(record)
        changes = await self._diff(local, archive, opts)
        result = await self.operations.apply(
            ApplyDirection.LEFT_TO_RIGHT, local, archive, changes
        )
        logger.info(
            f"Published {len(result.applied)} change(s) from {name} "
            f"to {record.publish_target_url}"
        )
        return result

    async def revert(
        self, profile_id: int, name: str, opts: OptionsLike = None
    ) -> ApplyResult:
        """Discard local changes by restoring the archive's state.

        Local-only files are deleted and changed files are overwritten
        with the archive's version.

        Returns:
            ApplyResult of the local writes
        """
        opts = dataclasses.replace(_coerce_options(opts), shallow=False)
        record = self._load_record(profile_id, name)
        local, archive = await self._open_trees(record)
        changes = await self._diff(local, archive, opts)
        result = await self.operations.apply(
            ApplyDirection.RIGHT_TO_LEFT, local, archive, changes
        )
        logger.info(f"Reverted {len(result.applied)} change(s) in {name}")
        return result

    async def setup_folder(self, profile_id: int, name: str) -> bool:
        """Populate the local folder with the archive's content.

        Only files and folders missing locally are written; nothing local
        is overwritten or deleted.

        Returns:
            True once the folder is set up

        Raises:
            TreeIOError: If writing a file fails
        """
        record = self._load_record(profile_id, name)
        local, archive = await self._open_trees(record)
        opts = DiffOptions(shallow=False)
        changes = filter_additions(await TreeComparator(opts).diff(archive, local))
        result = await self.operations.apply(
            ApplyDirection.LEFT_TO_RIGHT, archive, local, changes
        )
        result.raise_for_failure()
        logger.info(f"Set up {record.local_files_path} with {len(changes)} entries")
        return True

    async def watch(self, profile_id: int, name: str) -> ChangeStream:
        """Stream change events from the workspace's local folder.

        Must be awaited from the event loop that consumes the stream.
        """
        record = self._load_record(profile_id, name)
        local = self.local_trees.get(cast(str, record.local_files_path))
        return ChangeStream(local, "/")

    async def add_ignore_line(self, profile_id: int, name: str, line: str) -> None:
        """Append a pattern to the workspace's ignore file.

        Args:
            profile_id: Browsing profile
            name: Workspace name
            line: Pattern to add

        Raises:
            InvalidInputError: If line is empty or not a string
        """
        if not isinstance(line, str) or not line.strip():
            raise InvalidInputError("Must provide a pattern to add to the .datignore")
        record = self._load_record(profile_id, name)
        local = self.local_trees.get(cast(str, record.local_files_path))

        raw = ""
        try:
            st = await local.stat(IGNORE_FILE_PATH)
            if st is not None and st.is_file:
                raw = (await local.read_file(IGNORE_FILE_PATH)).decode(
                    "utf-8", "replace"
                )
        except OSError as e:
            logger.debug(f"Starting a new ignore file for {name}: {e}")
        content = append_ignore_line(raw, line.strip())
        await local.write_file(IGNORE_FILE_PATH, content.encode("utf-8"))
        logger.debug(f"Added {line.strip()!r} to the ignore file of {name}")
