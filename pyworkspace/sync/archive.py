"""Content-addressable archive trees and the archive library.

An archive stores file bodies by their sha256 digest in a blob store and
keeps a manifest mapping tree paths to digests. Every mutation bumps the
archive's version counter and notifies watchers.
"""

import asyncio
import hashlib
import json
import logging
import posixpath
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union, cast

from ..exceptions import NotWritableError
from ..utils import normalize_path
from ..validation import DAT_URL_PREFIX, archive_key_from_url
from .tree import ChangeCallback, EndCallback, StopWatching, Tree, TreeStat

logger = logging.getLogger(__name__)


@dataclass
class ArchiveEntry:
    """Manifest record of a path in an archive."""

    hash: Optional[str]
    """sha256 of the body, None for directories"""

    size: int = 0
    """File size in bytes"""

    mtime: float = 0.0
    """Time the entry was written (Unix timestamp)"""

    @property
    def is_directory(self) -> bool:
        return self.hash is None

    def to_dict(self) -> dict:
        """Convert entry to dictionary for JSON serialization."""
        return {"hash": self.hash, "size": self.size, "mtime": self.mtime}

    @classmethod
    def from_dict(cls, data: dict) -> "ArchiveEntry":
        """Create ArchiveEntry from dictionary."""
        return cls(
            hash=data.get("hash"),
            size=data.get("size", 0),
            mtime=data.get("mtime", 0.0),
        )


class BlobStore:
    """In-memory blob store keyed by sha256 digest."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def put(self, data: bytes) -> str:
        """Store data and return its digest."""
        digest = hashlib.sha256(data).hexdigest()
        self._blobs.setdefault(digest, data)
        return digest

    def get(self, digest: str) -> bytes:
        """Get the data stored under a digest."""
        return self._blobs[digest]


class DirectoryBlobStore(BlobStore):
    """Blob store persisting blobs as ``objects/<ab>/<cdef...>`` files."""

    def __init__(self, objects_dir: Path):
        """Initialize directory blob store.

        Args:
            objects_dir: Directory holding the blob files
        """
        self.objects_dir = objects_dir

    def _blob_path(self, digest: str) -> Path:
        return self.objects_dir / digest[:2] / digest[2:]

    def put(self, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()
        blob_path = self._blob_path(digest)
        if not blob_path.exists():
            blob_path.parent.mkdir(parents=True, exist_ok=True)
            blob_path.write_bytes(data)
        return digest

    def get(self, digest: str) -> bytes:
        return self._blob_path(digest).read_bytes()


class ArchiveTree(Tree):
    """Versioned, content-addressable tree.

    When ``storage_dir`` is given the manifest is written to
    ``<storage_dir>/manifest.json`` after each mutation and blobs are kept
    under ``<storage_dir>/objects``; otherwise everything lives in memory.
    """

    def __init__(self, key: str, storage_dir: Optional[Path] = None):
        """Initialize archive tree.

        Args:
            key: Archive key (64 hex characters)
            storage_dir: Directory to persist the archive in
        """
        self.key = key
        self.storage_dir = storage_dir
        self.version = 0
        self._entries: dict[str, ArchiveEntry] = {}
        self._watchers: list[tuple[str, ChangeCallback]] = []
        if storage_dir is not None:
            self._blobs: BlobStore = DirectoryBlobStore(storage_dir / "objects")
            self._load_manifest()
        else:
            self._blobs = BlobStore()

    def __repr__(self) -> str:
        return f"ArchiveTree({self.url!r}, version={self.version})"

    @property
    def url(self) -> str:
        """dat:// URL of the archive."""
        return f"{DAT_URL_PREFIX}{self.key}/"

    # -- persistence -------------------------------------------------------

    def _manifest_path(self) -> Path:
        return cast(Path, self.storage_dir) / "manifest.json"

    def _load_manifest(self) -> None:
        manifest_path = self._manifest_path()
        if not manifest_path.exists():
            return
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
        self.version = data.get("version", 0)
        self._entries = {
            path: ArchiveEntry.from_dict(entry)
            for path, entry in data.get("entries", {}).items()
        }
        logger.debug(
            f"Loaded archive {self.key} v{self.version} "
            f"with {len(self._entries)} entries"
        )

    def _commit(self, path: str) -> None:
        """Bump the version, persist the manifest and notify watchers."""
        self.version += 1
        if self.storage_dir is not None:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            data = {
                "version": self.version,
                "entries": {p: e.to_dict() for p, e in sorted(self._entries.items())},
            }
            with open(self._manifest_path(), "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        for root, callback in list(self._watchers):
            if root == "/" or path == root or path.startswith(root + "/"):
                callback(path)

    # -- tree interface ----------------------------------------------------

    @staticmethod
    def _key_path(path: str) -> str:
        normalized = normalize_path("/" + path.lstrip("/"))
        return normalized.rstrip("/") or "/"

    def _get(self, path: str) -> Optional[ArchiveEntry]:
        key = self._key_path(path)
        if key == "/":
            return ArchiveEntry(hash=None)
        return self._entries.get(key)

    def _require_directory(self, path: str) -> None:
        entry = self._get(path)
        if entry is None:
            raise FileNotFoundError(path)
        if not entry.is_directory:
            raise NotADirectoryError(path)

    def _require_file(self, path: str) -> ArchiveEntry:
        entry = self._get(path)
        if entry is None:
            raise FileNotFoundError(path)
        if entry.is_directory:
            raise IsADirectoryError(path)
        return entry

    def _make_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        missing = []
        while parent != "/":
            entry = self._entries.get(parent)
            if entry is not None:
                if not entry.is_directory:
                    raise NotADirectoryError(parent)
                break
            missing.append(parent)
            parent = posixpath.dirname(parent)
        now = time.time()
        for directory in reversed(missing):
            self._entries[directory] = ArchiveEntry(hash=None, mtime=now)

    def _children(self, path: str) -> list[str]:
        prefix = "/" if path == "/" else path + "/"
        return sorted(
            p[len(prefix) :]
            for p in self._entries
            if p.startswith(prefix) and "/" not in p[len(prefix) :]
        )

    async def stat(self, path: str) -> Optional[TreeStat]:
        entry = self._get(path)
        if entry is None:
            return None
        return TreeStat(
            is_directory=entry.is_directory, size=entry.size, mtime=entry.mtime
        )

    async def readdir(self, path: str) -> list[str]:
        self._require_directory(path)
        return self._children(self._key_path(path))

    async def read_file(self, path: str, max_bytes: Optional[int] = None) -> bytes:
        entry = self._require_file(path)
        data = self._blobs.get(cast(str, entry.hash))
        return data if max_bytes is None else data[:max_bytes]

    async def write_file(self, path: str, data: bytes) -> None:
        key = self._key_path(path)
        existing = self._entries.get(key)
        if key == "/" or (existing is not None and existing.is_directory):
            raise IsADirectoryError(path)
        self._make_parents(key)
        digest = self._blobs.put(data)
        self._entries[key] = ArchiveEntry(
            hash=digest, size=len(data), mtime=time.time()
        )
        self._commit(key)

    async def mkdir(self, path: str) -> None:
        key = self._key_path(path)
        existing = self._get(key)
        if existing is not None:
            if not existing.is_directory:
                raise FileExistsError(path)
            return
        self._make_parents(key)
        self._entries[key] = ArchiveEntry(hash=None, mtime=time.time())
        self._commit(key)

    async def unlink(self, path: str) -> None:
        self._require_file(path)
        key = self._key_path(path)
        del self._entries[key]
        self._commit(key)

    async def rmdir(self, path: str) -> None:
        self._require_directory(path)
        key = self._key_path(path)
        if key == "/":
            raise PermissionError("Cannot remove the archive root")
        if self._children(key):
            raise OSError(f"Directory not empty: {path}")
        del self._entries[key]
        self._commit(key)

    async def digest(self, path: str) -> str:
        return cast(str, self._require_file(path).hash)

    def watch(
        self,
        path: str,
        on_change: ChangeCallback,
        on_end: Optional[EndCallback] = None,
    ) -> StopWatching:
        # archive subscriptions only end when released
        subscription = (self._key_path(path), on_change)
        self._watchers.append(subscription)

        def stop() -> None:
            # raises ValueError when already released
            self._watchers.remove(subscription)

        return stop


@dataclass
class ArchiveMeta:
    """Ownership and retention flags of an archive."""

    is_owner: bool = True
    is_saved: bool = True


class ArchiveProvider(Protocol):
    """Resolves archive URLs to trees and checks write access."""

    async def get_or_load_archive(self, url: str) -> Tree:
        """Load (or return the cached) archive for a dat:// URL."""
        ...

    def assert_writable(self, url: str) -> None:
        """Raise NotWritableError unless the caller owns the archive."""
        ...


class ArchiveLibrary:
    """Archive provider backed by a directory of archives.

    Each archive lives in ``<archives_dir>/<key>/`` with its blobs,
    ``manifest.json`` and ``meta.json``. Loaded archives are cached.
    """

    def __init__(self, archives_dir: Optional[Union[str, Path]] = None):
        """Initialize archive library.

        Args:
            archives_dir: Directory holding archives. When None, archives
                are kept in memory for the lifetime of the library.
        """
        self.archives_dir = Path(archives_dir) if archives_dir is not None else None
        self._archives: dict[str, ArchiveTree] = {}
        self._meta: dict[str, ArchiveMeta] = {}

    def _storage_dir(self, key: str) -> Optional[Path]:
        if self.archives_dir is None:
            return None
        return self.archives_dir / key

    def create_archive(self, key: Optional[str] = None) -> ArchiveTree:
        """Create a new, owned archive.

        Args:
            key: Archive key; a random key is generated when omitted

        Returns:
            The new ArchiveTree
        """
        key = (key or secrets.token_hex(32)).lower()
        archive = ArchiveTree(key, self._storage_dir(key))
        self._archives[key] = archive
        self.set_meta(key, ArchiveMeta(is_owner=True, is_saved=True))
        logger.debug(f"Created archive {archive.url}")
        return archive

    async def get_or_load_archive(self, url: str) -> ArchiveTree:
        """Get a cached archive or load it from storage.

        Args:
            url: dat:// URL of the archive

        Returns:
            ArchiveTree for the URL
        """
        key = archive_key_from_url(url)
        archive = self._archives.get(key)
        if archive is None:
            # give other tasks a turn while loading
            await asyncio.sleep(0)
            archive = ArchiveTree(key, self._storage_dir(key))
            self._archives[key] = archive
        return archive

    def get_meta(self, key: str) -> Optional[ArchiveMeta]:
        """Get ownership flags for an archive key."""
        meta = self._meta.get(key)
        if meta is not None:
            return meta
        storage_dir = self._storage_dir(key)
        if storage_dir is None:
            return None
        meta_path = storage_dir / "meta.json"
        if not meta_path.exists():
            return None
        with open(meta_path, encoding="utf-8") as f:
            data = json.load(f)
        meta = ArchiveMeta(
            is_owner=bool(data.get("is_owner")), is_saved=bool(data.get("is_saved"))
        )
        self._meta[key] = meta
        return meta

    def set_meta(self, key: str, meta: ArchiveMeta) -> None:
        """Store ownership flags for an archive key."""
        self._meta[key] = meta
        storage_dir = self._storage_dir(key)
        if storage_dir is not None:
            storage_dir.mkdir(parents=True, exist_ok=True)
            with open(storage_dir / "meta.json", "w", encoding="utf-8") as f:
                json.dump({"is_owner": meta.is_owner, "is_saved": meta.is_saved}, f)

    def assert_writable(self, url: str) -> None:
        """Check that the archive is owned and still saved.

        Raises:
            NotWritableError: If the archive is not owned or was deleted
        """
        meta = self.get_meta(archive_key_from_url(url))
        if meta is None or not meta.is_owner:
            raise NotWritableError(f"You can't edit a dat you don't own ({url}).")
        if not meta.is_saved:
            raise NotWritableError(f"The workspace's dat has been deleted ({url}).")
