"""Streams of tree change notifications."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .tree import StopWatching, Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """A change reported by a tree."""

    path: str
    """Tree path of the changed entry"""


class ChangeStream:
    """Cancelable stream of change events for one subscriber.

    Subscribes to the tree on creation. Events are delivered in arrival
    order without batching or de-duplication. ``close()`` releases the
    subscription exactly once and never raises. Iteration ends after the
    stream is closed or once the tree stops watching on its own.

    Examples:
        >>> async with ChangeStream(tree) as stream:
        ...     async for event in stream:
        ...         print(event.path)
    """

    def __init__(self, tree: Tree, root: str = "/"):
        """Subscribe to a tree.

        Args:
            tree: Tree to watch
            root: Tree path to watch recursively
        """
        self.tree = tree
        self.root = root
        self._queue: asyncio.Queue[Optional[ChangeEvent]] = asyncio.Queue()
        self._closed = False
        self._stop: Optional[StopWatching] = tree.watch(
            root, self._on_change, self._on_end
        )
        logger.debug(f"Watching {tree!r} at {root}")

    @property
    def closed(self) -> bool:
        """Whether the stream has been closed."""
        return self._closed

    def _on_change(self, path: str) -> None:
        if not self._closed:
            self._queue.put_nowait(ChangeEvent(path))

    def _on_end(self) -> None:
        # the tree stopped watching; nothing is left to release
        if not self._closed:
            self._closed = True
            self._stop = None
            self._queue.put_nowait(None)

    def close(self) -> None:
        """Stop watching and end the stream.

        Errors raised while unsubscribing (for instance because the watched
        folder no longer exists) are logged and swallowed.
        """
        if self._closed:
            return
        self._closed = True
        stop, self._stop = self._stop, None
        try:
            if stop is not None:
                stop()
        except Exception as e:
            logger.debug(f"Ignoring error while closing watch on {self.tree!r}: {e}")
        self._queue.put_nowait(None)

    async def get(self) -> Optional[ChangeEvent]:
        """Wait for the next event; None once the stream is closed."""
        if self._closed and self._queue.empty():
            return None
        event = await self._queue.get()
        if event is None:
            # keep the end marker for other waiters
            self._queue.put_nowait(None)
        return event

    def __aiter__(self) -> "ChangeStream":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "ChangeStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
