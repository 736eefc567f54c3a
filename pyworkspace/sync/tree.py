"""Abstract tree interface shared by local folders and archives.

The diff, apply and watch components only depend on :class:`Tree`; they
never know which backend they operate on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

ChangeCallback = Callable[[str], None]
"""Called with the tree path of a changed entry"""

StopWatching = Callable[[], None]
"""Releases a watch subscription"""

EndCallback = Callable[[], None]
"""Called once when a watch ends on its own"""


@dataclass(frozen=True)
class TreeStat:
    """Metadata of a tree entry."""

    is_directory: bool
    """Whether the entry is a directory"""

    size: int = 0
    """File size in bytes (0 for directories)"""

    mtime: float = 0.0
    """Last modification time (Unix timestamp)"""

    @property
    def is_file(self) -> bool:
        """Whether the entry is a regular file."""
        return not self.is_directory


class Tree(ABC):
    """Hierarchical file store addressed by POSIX paths rooted at "/".

    All I/O methods are coroutines. Implementations raise ``OSError``
    subclasses (``FileNotFoundError``, ``IsADirectoryError``, ...) on failure.
    """

    @abstractmethod
    async def stat(self, path: str) -> Optional[TreeStat]:
        """Stat a path.

        Args:
            path: Tree path

        Returns:
            TreeStat, or None if the path does not exist
        """

    @abstractmethod
    async def readdir(self, path: str) -> list[str]:
        """List the names of a directory's children, sorted."""

    @abstractmethod
    async def read_file(self, path: str, max_bytes: Optional[int] = None) -> bytes:
        """Read a file body.

        Args:
            path: Tree path
            max_bytes: Read at most this many bytes from the start

        Returns:
            File content
        """

    @abstractmethod
    async def write_file(self, path: str, data: bytes) -> None:
        """Write a file, creating parent directories as needed."""

    @abstractmethod
    async def mkdir(self, path: str) -> None:
        """Create a directory (and missing parents). Existing is fine."""

    @abstractmethod
    async def unlink(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    async def rmdir(self, path: str) -> None:
        """Delete an empty directory."""

    @abstractmethod
    async def digest(self, path: str) -> str:
        """Return the sha256 hex digest of a file body."""

    @abstractmethod
    def watch(
        self,
        path: str,
        on_change: ChangeCallback,
        on_end: Optional[EndCallback] = None,
    ) -> StopWatching:
        """Subscribe to recursive change notifications below ``path``.

        Args:
            path: Tree path to watch
            on_change: Callback receiving the tree path of each change
            on_end: Callback invoked if the watch stops without being
                released, for instance because the folder was removed

        Returns:
            Function releasing the subscription
        """

    async def remove_recursive(self, path: str) -> None:
        """Delete a file or a directory with all its descendants.

        Missing paths are ignored.
        """
        st = await self.stat(path)
        if st is None:
            return
        if not st.is_directory:
            await self.unlink(path)
            return
        for name in await self.readdir(path):
            await self.remove_recursive(f"{path.rstrip('/')}/{name}")
        await self.rmdir(path)
