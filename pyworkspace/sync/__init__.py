"""Sync engine for PyWorkspace - diff, apply and watch folder/archive trees."""

from .archive import ArchiveLibrary, ArchiveMeta, ArchiveProvider, ArchiveTree
from .comparator import (
    ChangeKind,
    DiffEntry,
    DiffOptions,
    FilterPredicate,
    TreeComparator,
    diff_trees,
)
from .engine import WorkspaceSyncEngine
from .ignore import (
    IGNORE_FILE_PATH,
    IMPLICIT_IGNORE_RULES,
    append_ignore_line,
    build_ignore_filter,
    compile_ignore_rules,
    read_ignore_rules,
)
from .local import LocalTree, LocalTreeRegistry
from .modes import ApplyDirection
from .operations import ApplyResult, SyncOperations, filter_additions
from .scope import make_path_scope_filter
from .textdiff import LineChange, diff_lines
from .tree import Tree, TreeStat
from .watcher import ChangeEvent, ChangeStream

__all__ = [
    "WorkspaceSyncEngine",
    "Tree",
    "TreeStat",
    "LocalTree",
    "LocalTreeRegistry",
    "ArchiveTree",
    "ArchiveLibrary",
    "ArchiveMeta",
    "ArchiveProvider",
    "ChangeKind",
    "DiffEntry",
    "DiffOptions",
    "FilterPredicate",
    "TreeComparator",
    "diff_trees",
    "ApplyDirection",
    "ApplyResult",
    "SyncOperations",
    "filter_additions",
    "IGNORE_FILE_PATH",
    "IMPLICIT_IGNORE_RULES",
    "compile_ignore_rules",
    "build_ignore_filter",
    "read_ignore_rules",
    "append_ignore_line",
    "make_path_scope_filter",
    "LineChange",
    "diff_lines",
    "ChangeEvent",
    "ChangeStream",
]
