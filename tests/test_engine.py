"""Tests for the workspace sync engine."""

import asyncio

import pytest

from pyworkspace.exceptions import (
    ArchiveTimeoutError,
    InvalidEncodingError,
    InvalidInputError,
    LocalPathMissingError,
    NotWritableError,
    SourceTooLargeError,
    WorkspaceNotFoundError,
)
from pyworkspace.sync import (
    ArchiveMeta,
    ChangeKind,
    ChangeStream,
    DiffEntry,
    DiffOptions,
    LineChange,
    WorkspaceSyncEngine,
)
from pyworkspace.utils import MAX_DIFF_SIZE

ADD, REMOVE, MODIFY = ChangeKind.ADD, ChangeKind.REMOVE, ChangeKind.MODIFY


def paths(entries):
    return [entry.path for entry in entries]


class HangingLibrary:
    """Archive provider whose archives never finish loading."""

    def __init__(self):
        self.requested = []

    async def get_or_load_archive(self, url):
        self.requested.append(url)
        await asyncio.Event().wait()

    def assert_writable(self, url):
        pass


class TestGet:
    """Tests for workspace lookup."""

    def test_get_by_name(self, engine, local_dir):
        record = asyncio.run(engine.get(0, "site"))
        assert record.name == "site"
        assert record.local_files_path == str(local_dir)
        assert record.local_files_path_is_missing is False

    def test_get_by_url(self, engine, archive):
        """A workspace can be found by the archive it publishes to."""
        record = asyncio.run(engine.get(0, archive.url))
        assert record.name == "site"

    def test_get_unknown(self, engine):
        assert asyncio.run(engine.get(0, "nope")) is None
        assert asyncio.run(engine.get(1, "site")) is None

    def test_get_flags_missing_folder(self, engine, store, temp_dir, archive):
        """A gone folder is flagged rather than failing the lookup."""
        missing = str(temp_dir / "gone")
        store.set(0, "gone", local_files_path=missing, publish_target_url=archive.url)
        record = asyncio.run(engine.get(0, "gone"))
        assert record.local_files_path_is_missing is True
        assert record.missing_local_files_path == missing

    def test_get_flags_unset_folder(self, engine, store):
        store.set(0, "bare")
        record = asyncio.run(engine.get(0, "bare"))
        assert record.local_files_path_is_missing is True

    def test_get_validates_inputs(self, engine):
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.get("0", "site"))
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.get(0, "not a name"))


class TestListChanges:
    """Tests for list_changes."""

    def test_ignore_rules_exclude_paths(self, engine, local_dir, write_files):
        """.datignore patterns and .git are left out."""
        write_files(
            local_dir,
            {
                ".datignore": "*.log\n",
                ".git/config": "[core]",
                "debug.log": "noise",
                "logs/today.log": "noise",
                "index.html": "<h1>",
            },
        )
        changes = asyncio.run(engine.list_changes(0, "site"))
        assert changes == [
            DiffEntry("/.datignore", ADD),
            DiffEntry("/index.html", ADD),
            DiffEntry("/logs", ADD, is_directory=True),
        ]

    def test_paths_override_ignore_rules(self, engine, local_dir, write_files):
        """Explicit paths limit the diff and bypass .datignore."""
        write_files(
            local_dir,
            {
                ".datignore": "*.log\n",
                "docs/a.md": "a",
                "docs/b.log": "b",
                "index.html": "<h1>",
            },
        )
        shallow = asyncio.run(engine.list_changes(0, "site", {"paths": ["docs/"]}))
        assert shallow == [DiffEntry("/docs", ADD, is_directory=True)]

        deep = asyncio.run(
            engine.list_changes(0, "site", DiffOptions(shallow=False, paths=["docs/"]))
        )
        assert paths(deep) == ["/docs", "/docs/a.md", "/docs/b.log"]

    def test_reports_unpublished_edits(self, engine, archive, local_dir):
        asyncio.run(archive.write_file("/index.html", b"old"))
        asyncio.run(archive.write_file("/removed.txt", b"r"))
        (local_dir / "index.html").write_text("new!")
        changes = asyncio.run(engine.list_changes(0, "site"))
        assert changes == [
            DiffEntry("/index.html", MODIFY),
            DiffEntry("/removed.txt", REMOVE),
        ]

    def test_rejects_bad_options(self, engine):
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.list_changes(0, "site", "shallow"))


class TestPublish:
    """Tests for publish."""

    def test_publish_converges(self, engine, archive, local_dir, write_files):
        """After publishing there are no changes left."""
        write_files(
            local_dir,
            {
                ".datignore": "*.log\n",
                "index.html": "<h1>",
                "docs/a.md": "a",
                "debug.log": "noise",
            },
        )

        result = asyncio.run(engine.publish(0, "site"))

        assert result.ok
        assert asyncio.run(engine.list_changes(0, "site")) == []
        assert asyncio.run(archive.read_file("/docs/a.md")) == b"a"
        assert asyncio.run(archive.stat("/debug.log")) is None

    def test_publish_is_always_deep(self, engine, archive, local_dir, write_files):
        """shallow=True is overridden so folder contents are published."""
        write_files(local_dir, {"docs/a.md": "a"})
        asyncio.run(engine.publish(0, "site", {"shallow": True}))
        assert asyncio.run(archive.read_file("/docs/a.md")) == b"a"

    def test_publish_selected_paths(self, engine, archive, local_dir, write_files):
        write_files(local_dir, {"docs/a.md": "a", "index.html": "<h1>"})
        result = asyncio.run(engine.publish(0, "site", {"paths": ["docs/"]}))
        assert paths(result.applied) == ["/docs", "/docs/a.md"]
        assert asyncio.run(archive.stat("/index.html")) is None

    def test_publish_deletes_removed_files(self, engine, archive, local_dir):
        asyncio.run(archive.write_file("/old/page.html", b"x"))
        asyncio.run(engine.publish(0, "site"))
        assert asyncio.run(archive.readdir("/")) == []

    def test_publish_bumps_archive_version(self, engine, archive, local_dir):
        (local_dir / "a.txt").write_text("a")
        before = archive.version
        asyncio.run(engine.publish(0, "site"))
        assert archive.version > before


class TestRevert:
    """Tests for revert."""

    def test_revert_restores_archive_state(
        self, engine, archive, local_dir, write_files
    ):
        """Edits are undone, new files deleted and removed files restored."""
        write_files(
            local_dir,
            {".datignore": "*.log\n", "index.html": "v1", "docs/a.md": "a"},
        )
        asyncio.run(engine.publish(0, "site"))

        (local_dir / "index.html").write_text("v2 edited")
        (local_dir / "docs" / "a.md").unlink()
        write_files(local_dir, {"new.txt": "n", "scratch/x.txt": "x", "debug.log": "d"})

        result = asyncio.run(engine.revert(0, "site"))

        assert result.ok
        assert (local_dir / "index.html").read_text() == "v1"
        assert (local_dir / "docs" / "a.md").read_text() == "a"
        assert not (local_dir / "new.txt").exists()
        assert not (local_dir / "scratch").exists()
        # ignored files are left alone
        assert (local_dir / "debug.log").exists()
        assert asyncio.run(engine.list_changes(0, "site")) == []

    def test_revert_removes_new_folder_with_ignored_files(
        self, engine, local_dir, write_files
    ):
        """A new folder goes away even when it holds ignored files."""
        write_files(local_dir, {".datignore": "*.log\n"})
        asyncio.run(engine.publish(0, "site"))
        write_files(local_dir, {"build/out.js": "js", "build/debug.log": "log"})

        result = asyncio.run(engine.revert(0, "site"))

        assert result.ok
        assert not (local_dir / "build").exists()
        assert (local_dir / ".datignore").exists()

    def test_revert_selected_paths(self, engine, local_dir, write_files):
        write_files(local_dir, {"keep.txt": "k", "drop.txt": "d"})
        asyncio.run(engine.revert(0, "site", {"paths": ["drop.txt"]}))
        assert (local_dir / "keep.txt").exists()
        assert not (local_dir / "drop.txt").exists()


class TestDiffFile:
    """Tests for diff_file."""

    def test_line_diff(self, engine, archive, local_dir):
        """The archive version is old, the local version is new."""
        asyncio.run(archive.write_file("/notes.txt", b"hello\n"))
        (local_dir / "notes.txt").write_text("hello\nworld\n")
        changes = asyncio.run(engine.diff_file(0, "site", "notes.txt"))
        assert changes == [
            LineChange("hello\n", 1),
            LineChange("world\n", 1, added=True),
        ]

    def test_file_missing_in_archive(self, engine, local_dir):
        (local_dir / "new.md").write_text("a\nb\n")
        changes = asyncio.run(engine.diff_file(0, "site", "/new.md"))
        assert changes == [LineChange("a\nb\n", 2, added=True)]

    def test_file_missing_locally(self, engine, archive):
        asyncio.run(archive.write_file("/old.md", b"a\n"))
        changes = asyncio.run(engine.diff_file(0, "site", "old.md"))
        assert changes == [LineChange("a\n", 1, removed=True)]

    def test_binary_name_fails_before_lookup(self, engine):
        """A binary file name is rejected even for unknown workspaces."""
        with pytest.raises(InvalidEncodingError):
            asyncio.run(engine.diff_file(0, "nope", "photo.png"))

    def test_binary_content(self, engine, local_dir):
        (local_dir / "blob").write_bytes(b"\x00\x01\x02\x03")
        with pytest.raises(InvalidEncodingError):
            asyncio.run(engine.diff_file(0, "site", "blob"))

    def test_size_ceiling(self, engine, local_dir):
        """MAX_DIFF_SIZE bytes are accepted, one more is not."""
        (local_dir / "big.txt").write_bytes(b"a" * MAX_DIFF_SIZE)
        asyncio.run(engine.diff_file(0, "site", "big.txt"))

        (local_dir / "big.txt").write_bytes(b"a" * (MAX_DIFF_SIZE + 1))
        with pytest.raises(SourceTooLargeError):
            asyncio.run(engine.diff_file(0, "site", "big.txt"))

    def test_oversized_archive_version(self, engine, archive, local_dir):
        (local_dir / "big.txt").write_text("small\n")
        asyncio.run(archive.write_file("/big.txt", b"a" * (MAX_DIFF_SIZE + 1)))
        with pytest.raises(SourceTooLargeError):
            asyncio.run(engine.diff_file(0, "site", "big.txt"))

    def test_empty_path(self, engine):
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.diff_file(0, "site", ""))


class TestSetupFolder:
    """Tests for setup_folder."""

    def test_add_only(self, engine, archive, local_dir):
        """Missing files are added, local files are never touched."""

        async def seed():
            await archive.write_file("/a.txt", b"archive")
            await archive.write_file("/docs/b.md", b"b")

        asyncio.run(seed())
        (local_dir / "a.txt").write_text("local")
        (local_dir / "mine.txt").write_text("mine")

        assert asyncio.run(engine.setup_folder(0, "site")) is True

        assert (local_dir / "a.txt").read_text() == "local"
        assert (local_dir / "mine.txt").read_text() == "mine"
        assert (local_dir / "docs" / "b.md").read_text() == "b"


class TestPreconditions:
    """Tests for checks that run before any tree I/O."""

    def test_unknown_workspace(self, engine):
        with pytest.raises(WorkspaceNotFoundError, match="No workspace found at nope"):
            asyncio.run(engine.list_changes(0, "nope"))

    def test_missing_files_path(self, engine, store, archive):
        store.set(0, "bare", publish_target_url=archive.url)
        with pytest.raises(WorkspaceNotFoundError, match="No files path set for bare"):
            asyncio.run(engine.publish(0, "bare"))

    @pytest.mark.parametrize(
        "call",
        [
            lambda engine: engine.list_changes(0, "bare"),
            lambda engine: engine.diff_file(0, "bare", "a.txt"),
            lambda engine: engine.revert(0, "bare"),
            lambda engine: engine.setup_folder(0, "bare"),
            lambda engine: engine.watch(0, "bare"),
            lambda engine: engine.add_ignore_line(0, "bare", "*.tmp"),
        ],
    )
    def test_every_operation_needs_files_path(self, engine, store, archive, call):
        """Incomplete records are rejected before any tree is opened."""
        store.set(0, "bare", publish_target_url=archive.url)
        with pytest.raises(WorkspaceNotFoundError, match="No files path set"):
            asyncio.run(call(engine))
        assert len(engine.local_trees) == 0

    def test_missing_target(self, engine, store, local_dir):
        store.set(0, "bare", local_files_path=str(local_dir))
        with pytest.raises(WorkspaceNotFoundError, match="No target site set for bare"):
            asyncio.run(engine.publish(0, "bare"))

    def test_missing_local_folder(self, engine, store, temp_dir, archive):
        store.set(
            0,
            "gone",
            local_files_path=str(temp_dir / "gone"),
            publish_target_url=archive.url,
        )
        with pytest.raises(LocalPathMissingError):
            asyncio.run(engine.list_changes(0, "gone"))

    def test_invalid_profile_id(self, engine):
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.list_changes(None, "site"))

    def test_not_owned(self, engine, library, archive, local_dir):
        """Publishing to an archive we don't own writes nothing."""
        library.set_meta(archive.key, ArchiveMeta(is_owner=False))
        (local_dir / "a.txt").write_text("a")
        with pytest.raises(NotWritableError):
            asyncio.run(engine.publish(0, "site"))
        assert asyncio.run(archive.readdir("/")) == []

    def test_archive_timeout_leaves_trees_untouched(self, store, local_dir):
        """A slow archive aborts revert before the folder is modified."""
        store.set(
            0,
            "site",
            local_files_path=str(local_dir),
            publish_target_url="dat://" + "ef" * 32 + "/",
        )
        (local_dir / "a.txt").write_text("local only")
        library = HangingLibrary()
        engine = WorkspaceSyncEngine(store, library, archive_timeout=0.05)

        with pytest.raises(ArchiveTimeoutError):
            asyncio.run(engine.revert(0, "site"))

        assert library.requested
        assert (local_dir / "a.txt").read_text() == "local only"


class TestAddIgnoreLine:
    """Tests for add_ignore_line."""

    def test_creates_and_appends(self, engine, local_dir):
        asyncio.run(engine.add_ignore_line(0, "site", "*.tmp"))
        assert (local_dir / ".datignore").read_text() == "*.tmp\n"

        asyncio.run(engine.add_ignore_line(0, "site", "  build/  "))
        assert (local_dir / ".datignore").read_text() == "*.tmp\nbuild/\n"

    def test_rule_takes_effect(self, engine, local_dir):
        (local_dir / "cache.tmp").write_text("x")
        asyncio.run(engine.add_ignore_line(0, "site", "*.tmp"))
        changes = asyncio.run(engine.list_changes(0, "site"))
        assert paths(changes) == ["/.datignore"]

    @pytest.mark.parametrize("line", ["", "   ", None, 42])
    def test_rejects_empty_lines(self, engine, line):
        with pytest.raises(InvalidInputError):
            asyncio.run(engine.add_ignore_line(0, "site", line))


class TestWatch:
    """Tests for watch."""

    def test_returns_closable_stream(self, engine):
        async def run():
            stream = await engine.watch(0, "site")
            stream.close()
            return stream

        stream = asyncio.run(run())
        assert isinstance(stream, ChangeStream)
        assert stream.closed

    def test_watch_unknown_workspace(self, engine):
        with pytest.raises(WorkspaceNotFoundError):
            asyncio.run(engine.watch(0, "nope"))
