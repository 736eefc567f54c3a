"""Local folder backed trees and their registry."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from watchfiles import awatch

from ..exceptions import LocalPathMissingError
from ..utils import normalize_path
from .tree import ChangeCallback, EndCallback, StopWatching, Tree, TreeStat

logger = logging.getLogger(__name__)


class LocalTree(Tree):
    """Tree scoped to a directory on the local filesystem.

    Tree paths are resolved below ``root`` and can never escape it.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize local tree.

        Args:
            root: Directory the tree is scoped to
        """
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalTree({str(self.root)!r})"

    def _resolve(self, path: str) -> Path:
        """Map a tree path onto the filesystem."""
        # normalizing an absolute path drops any leading ".."
        normalized = normalize_path("/" + path.lstrip("/")).strip("/")
        if not normalized:
            return self.root
        return self.root.joinpath(*normalized.split("/"))

    async def stat(self, path: str) -> Optional[TreeStat]:
        try:
            st = self._resolve(path).stat()
        except FileNotFoundError:
            return None
        except NotADirectoryError:
            # a parent component is a file
            return None
        is_directory = self._resolve(path).is_dir()
        return TreeStat(
            is_directory=is_directory,
            size=0 if is_directory else st.st_size,
            mtime=st.st_mtime,
        )

    async def readdir(self, path: str) -> list[str]:
        return sorted(item.name for item in self._resolve(path).iterdir())

    async def read_file(self, path: str, max_bytes: Optional[int] = None) -> bytes:
        with open(self._resolve(path), "rb") as f:
            if max_bytes is None:
                return f.read()
            return f.read(max_bytes)

    async def write_file(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def mkdir(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    async def unlink(self, path: str) -> None:
        self._resolve(path).unlink()

    async def rmdir(self, path: str) -> None:
        self._resolve(path).rmdir()

    async def digest(self, path: str) -> str:
        sha = hashlib.sha256()
        with open(self._resolve(path), "rb") as f:
            for chunk in iter(lambda: f.read(64 * 1024), b""):
                sha.update(chunk)
        return sha.hexdigest()

    def _to_tree_path(self, fs_path: str) -> str:
        try:
            relative = Path(fs_path).relative_to(self.root).as_posix()
        except ValueError:
            return fs_path
        return "/" if relative == "." else "/" + relative

    def watch(
        self,
        path: str,
        on_change: ChangeCallback,
        on_end: Optional[EndCallback] = None,
    ) -> StopWatching:
        """Watch the folder with watchfiles.

        Must be called from a running event loop. watchfiles groups changes
        into batches and reports each filesystem path once per batch; each
        batch is reported sorted by path. If watching fails, for instance
        because the folder was removed, the error is logged and ``on_end``
        is called.
        """
        target = self._resolve(path)
        stop_event = asyncio.Event()

        async def run() -> None:
            async for changes in awatch(target, stop_event=stop_event, recursive=True):
                for change, fs_path in sorted(changes, key=lambda c: c[1]):
                    logger.debug(f"{change.name}: {fs_path}")
                    on_change(self._to_tree_path(fs_path))

        def finished(task: "asyncio.Task[None]") -> None:
            if task.cancelled():
                return
            error = task.exception()
            if stop_event.is_set():
                return
            if error is not None:
                logger.warning(f"Stopped watching {target}: {error}")
            if on_end is not None:
                on_end()

        task = asyncio.get_running_loop().create_task(run())
        task.add_done_callback(finished)

        def stop() -> None:
            stop_event.set()
            if not task.done():
                task.cancel()

        return stop


class LocalTreeRegistry:
    """Cache of local trees keyed by root path.

    A tree is created on the first request for its root and shared by all
    operations on workspaces using that root until it is evicted.
    """

    def __init__(self) -> None:
        self._trees: dict[str, LocalTree] = {}

    def __contains__(self, root: object) -> bool:
        return isinstance(root, (str, Path)) and self._key(root) in self._trees

    def __len__(self) -> int:
        return len(self._trees)

    @staticmethod
    def _key(root: Union[str, Path]) -> str:
        return str(Path(root).expanduser().absolute())

    def get(self, root: Union[str, Path]) -> LocalTree:
        """Get the tree for a root directory, creating it on first use.

        Args:
            root: Local folder path

        Returns:
            Cached LocalTree

        Raises:
            LocalPathMissingError: If the folder does not exist
        """
        key = self._key(root)
        tree = self._trees.get(key)
        if tree is not None:
            return tree
        if not Path(key).is_dir():
            raise LocalPathMissingError(f"Local folder does not exist: {root}")
        tree = LocalTree(Path(key))
        self._trees[key] = tree
        logger.debug(f"Created local tree for {key}")
        return tree

    def discard(self, root: Union[str, Path]) -> None:
        """Evict the tree for a root, if cached."""
        self._trees.pop(self._key(root), None)

    def prune(self, active_roots: Iterable[Union[str, Path]]) -> list[str]:
        """Evict trees whose root is no longer referenced by any workspace.

        Args:
            active_roots: Local folder paths still in use

        Returns:
            Evicted root paths
        """
        keep = {self._key(root) for root in active_roots}
        evicted = [key for key in self._trees if key not in keep]
        for key in evicted:
            del self._trees[key]
        if evicted:
            logger.debug(f"Evicted {len(evicted)} local tree(s)")
        return evicted
