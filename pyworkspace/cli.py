"""CLI interface for PyWorkspace."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar, cast

import click
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import Config, config
from .exceptions import InvalidInputError, WorkspaceError
from .output import OutputFormatter
from .sync import ArchiveLibrary, DiffEntry, DiffOptions, WorkspaceSyncEngine
from .sync.operations import ApplyResult
from .sync.textdiff import LineChange
from .validation import assert_archive_url, assert_valid_name
from .workspaces import JsonWorkspaceStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run(out: OutputFormatter, description: str, coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, with a spinner unless output is quiet or JSON."""
    if out.quiet or out.json_output:
        return asyncio.run(coro)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=out.console,
    ) as progress:
        progress.add_task(description, total=None)
        return asyncio.run(coro)


def _build_engine(cfg: Config) -> WorkspaceSyncEngine:
    return WorkspaceSyncEngine(
        JsonWorkspaceStore(cfg.workspaces_path),
        ArchiveLibrary(cfg.archives_dir),
        archive_timeout=cfg.archive_timeout,
    )


def _format_entry(entry: DiffEntry) -> str:
    path = entry.path + "/" if entry.is_directory else entry.path
    return f"{entry.change.value:>3}  {path}"


def _print_changes(out: OutputFormatter, changes: list[DiffEntry]) -> None:
    if out.json_output:
        out.output_json([entry.to_dict() for entry in changes])
        return
    if not changes:
        out.info("No changes.")
        return
    for entry in changes:
        out.print(_format_entry(entry))


def _print_line_diff(out: OutputFormatter, changes: list[LineChange]) -> None:
    if out.json_output:
        out.output_json([change.to_dict() for change in changes])
        return
    for change in changes:
        if change.added:
            prefix, style = "+", "green"
        elif change.removed:
            prefix, style = "-", "red"
        else:
            prefix, style = " ", None
        for line in change.value.splitlines():
            out.console.print(
                f"{prefix}{line}", style=style, markup=False, soft_wrap=True
            )


def _report_apply(out: OutputFormatter, verb: str, result: ApplyResult) -> None:
    if out.json_output:
        out.output_json(result.to_dict())
    else:
        for entry in result.applied:
            out.print(_format_entry(entry))
        out.success(f"{verb} {len(result.applied)} change(s)")
    # surfaces the failed path; the applied entries above stay applied
    result.raise_for_failure()


def _diff_options(
    paths: tuple[str, ...], content: bool = True, shallow: bool = True
) -> DiffOptions:
    return DiffOptions(
        shallow=shallow, compare_content=content, paths=list(paths) or None
    )


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="PYWORKSPACE_CONFIG_DIR",
    help="Directory holding workspace records and archives",
)
@click.option("--profile", "-p", type=int, help="Browsing profile id")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyworkspace")
@click.pass_context
def main(
    ctx: Any,
    config_dir: Optional[Path],
    profile: Optional[int],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyWorkspace - Sync local folders with dat:// archives."""
    cfg = Config(config_dir) if config_dir is not None else config
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["config"] = cfg
    ctx.obj["profile_id"] = profile if profile is not None else cfg.default_profile_id
    if "engine" not in ctx.obj:
        ctx.obj["engine"] = _build_engine(cfg)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyworkspace").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("name", required=False)
@click.option(
    "--path",
    "local_path",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Local folder of the workspace (created if missing)",
)
@click.option("--url", help="dat:// URL to publish to (a new archive if omitted)")
@click.pass_context
def create(
    ctx: Any, name: Optional[str], local_path: Path, url: Optional[str]
) -> None:
    """Create a workspace binding a local folder to an archive."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]
    profile_id: int = ctx.obj["profile_id"]
    store = cast(JsonWorkspaceStore, engine.workspaces)

    try:
        name = name or store.get_unused_name(profile_id)
        assert_valid_name(name)
        if store.get(profile_id, name) is not None:
            raise InvalidInputError(f"A workspace named {name} already exists")
        if url is None:
            url = cast(ArchiveLibrary, engine.archives).create_archive().url
        else:
            assert_archive_url(url)

        local_path = local_path.expanduser().absolute()
        local_path.mkdir(parents=True, exist_ok=True)
        record = store.set(
            profile_id,
            name,
            local_files_path=str(local_path),
            publish_target_url=url,
        )
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(record.to_dict())
    else:
        out.success(f"Created workspace {record.name}")
        out.info(f"  Folder: {record.local_files_path}")
        out.info(f"  Target: {record.publish_target_url}")


@main.command(name="list")
@click.pass_context
def list_workspaces(ctx: Any) -> None:
    """List workspaces."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]
    store = cast(JsonWorkspaceStore, engine.workspaces)

    records = store.list(ctx.obj["profile_id"])
    if out.json_output:
        out.output_json([record.to_dict() for record in records])
        return
    if not records:
        out.info("No workspaces.")
        return
    for record in records:
        out.print(
            f"{record.name}  {record.local_files_path}  {record.publish_target_url}"
        )


@main.command()
@click.argument("name")
@click.pass_context
def info(ctx: Any, name: str) -> None:
    """Show a workspace, by name or dat:// URL."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    try:
        record = asyncio.run(engine.get(ctx.obj["profile_id"], name))
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    if record is None:
        out.error(f"No workspace found at {name}")
        ctx.exit(1)

    if out.json_output:
        data = record.to_dict()
        data["localFilesPathIsMissing"] = record.local_files_path_is_missing
        out.output_json(data)
        return
    out.print_summary(
        f"Workspace {record.name}",
        [
            ("Folder", record.local_files_path or "-"),
            ("Target", record.publish_target_url or "-"),
            ("Folder missing", "yes" if record.local_files_path_is_missing else "no"),
        ],
    )
    if record.missing_local_files_path:
        out.warning(f"Local folder not found: {record.missing_local_files_path}")


@main.command()
@click.argument("name")
@click.option(
    "--path",
    "paths",
    multiple=True,
    help="Only check this path (folders end with /). Repeatable.",
)
@click.option(
    "--content/--no-content",
    default=True,
    help="Compare file contents, or only sizes and modification times",
)
@click.option("--deep", is_flag=True, help="List the contents of new folders")
@click.pass_context
def status(
    ctx: Any, name: str, paths: tuple[str, ...], content: bool, deep: bool
) -> None:
    """List local changes not yet published."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    opts = _diff_options(paths, content, shallow=not deep)
    try:
        changes = _run(
            out,
            "Comparing...",
            engine.list_changes(ctx.obj["profile_id"], name, opts),
        )
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    _print_changes(out, changes)


@main.command()
@click.argument("name")
@click.argument("path")
@click.pass_context
def diff(ctx: Any, name: str, path: str) -> None:
    """Show the line diff of a file against the published version."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    try:
        changes = asyncio.run(engine.diff_file(ctx.obj["profile_id"], name, path))
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    _print_line_diff(out, changes)


@main.command()
@click.argument("name")
@click.option(
    "--path",
    "paths",
    multiple=True,
    help="Only publish this path (folders end with /). Repeatable.",
)
@click.pass_context
def publish(ctx: Any, name: str, paths: tuple[str, ...]) -> None:
    """Publish local changes to the workspace's archive."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    try:
        result = _run(
            out,
            "Publishing...",
            engine.publish(ctx.obj["profile_id"], name, _diff_options(paths)),
        )
        _report_apply(out, "Published", result)
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("name")
@click.option(
    "--path",
    "paths",
    multiple=True,
    help="Only revert this path (folders end with /). Repeatable.",
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def revert(ctx: Any, name: str, paths: tuple[str, ...], yes: bool) -> None:
    """Discard local changes, restoring the published version."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    if not yes:
        click.confirm(
            f"Discard unpublished changes in {name}?", default=False, abort=True
        )
    try:
        result = _run(
            out,
            "Reverting...",
            engine.revert(ctx.obj["profile_id"], name, _diff_options(paths)),
        )
        _report_apply(out, "Reverted", result)
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("name")
@click.pass_context
def setup(ctx: Any, name: str) -> None:
    """Fill the local folder with the archive's files (add-only)."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]
    profile_id: int = ctx.obj["profile_id"]

    try:
        record = engine.workspaces.get(profile_id, name)
        if record is not None and record.local_files_path:
            Path(record.local_files_path).mkdir(parents=True, exist_ok=True)
        _run(out, "Copying files...", engine.setup_folder(profile_id, name))
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Set up {name}")


async def _watch(
    engine: WorkspaceSyncEngine, out: OutputFormatter, profile_id: int, name: str
) -> None:
    async with await engine.watch(profile_id, name) as stream:
        async for event in stream:
            if out.json_output:
                out.output_json({"path": event.path})
            else:
                out.print(f"changed  {event.path}")


@main.command()
@click.argument("name")
@click.pass_context
def watch(ctx: Any, name: str) -> None:
    """Print changes in the local folder until interrupted."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    out.info(f"Watching {name} (Ctrl+C to stop)")
    try:
        asyncio.run(_watch(engine, out, ctx.obj["profile_id"], name))
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    except KeyboardInterrupt:
        out.info("Stopped watching")


@main.command()
@click.argument("name")
@click.argument("pattern")
@click.pass_context
def ignore(ctx: Any, name: str, pattern: str) -> None:
    """Add a pattern to the workspace's .datignore file."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]

    try:
        asyncio.run(engine.add_ignore_line(ctx.obj["profile_id"], name, pattern))
    except WorkspaceError as e:
        out.error(str(e))
        ctx.exit(1)
    out.success(f"Ignoring {pattern.strip()}")


@main.command()
@click.argument("name")
@click.pass_context
def remove(ctx: Any, name: str) -> None:
    """Remove a workspace record. Files and archive are kept."""
    out: OutputFormatter = ctx.obj["out"]
    engine: WorkspaceSyncEngine = ctx.obj["engine"]
    store = cast(JsonWorkspaceStore, engine.workspaces)

    if not store.remove(ctx.obj["profile_id"], name):
        out.error(f"No workspace found at {name}")
        ctx.exit(1)
    engine.local_trees.prune(store.list_local_paths())
    out.success(f"Removed workspace {name}")


if __name__ == "__main__":
    main()
