"""Shared fixtures for pyworkspace tests."""

import tempfile
from pathlib import Path

import pytest

from pyworkspace.sync import ArchiveLibrary, LocalTree, WorkspaceSyncEngine
from pyworkspace.workspaces import JsonWorkspaceStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_dir(temp_dir):
    """Create an empty workspace folder."""
    path = temp_dir / "site"
    path.mkdir()
    return path


@pytest.fixture
def local_tree(local_dir):
    """Create a tree over the workspace folder."""
    return LocalTree(local_dir)


@pytest.fixture
def library():
    """Create an in-memory archive library."""
    return ArchiveLibrary()


@pytest.fixture
def archive(library):
    """Create an owned, empty archive."""
    return library.create_archive()


@pytest.fixture
def store(temp_dir):
    """Create a workspace store with one workspace named "site"."""
    return JsonWorkspaceStore(temp_dir / "workspaces.json")


@pytest.fixture
def engine(store, library, archive, local_dir):
    """Create a sync engine for the "site" workspace of profile 0."""
    store.set(
        0,
        "site",
        local_files_path=str(local_dir),
        publish_target_url=archive.url,
    )
    return WorkspaceSyncEngine(store, library, archive_timeout=1.0)


def _write_files(root: Path, files: dict) -> None:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)


@pytest.fixture
def write_files():
    """Provide a helper writing {relative path: text or bytes} below a root."""
    return _write_files
