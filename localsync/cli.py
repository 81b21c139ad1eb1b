"""Click-based CLI for localsync - local folder connector."""

from __future__ import annotations

import functools
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import click
import httpx

from localsync import __version__
from localsync.api.client import LocalSyncClient
from localsync.api.models import ManualMerge, PushItem, SourceMode, parse_resolution
from localsync.config import (
    ensure_config_exists,
    get_config_path,
    load_config,
    require_credentials,
    validate_config_file,
)
from localsync.config.schema import LocalSyncConfig
from localsync.conflicts import ConflictWorkflow, has_conflict_markers
from localsync.exceptions import LocalSyncError
from localsync.logger import setup_logging
from localsync.output import Console, edit_in_editor, show_merge_template, show_preview
from localsync.sync.daemon import Daemon
from localsync.sync.state import new_operation_id
from localsync.utils.hashing import content_hash

logger = logging.getLogger(__name__)

DEFAULT_CONNECTOR_NAME = "local-connector"
DEFAULT_DELTA_LIMIT = 100


@dataclass
class CliState:
    """Per-invocation options shared by all commands."""

    config_path: Optional[Path] = None
    table: bool = False
    verbose: bool = False
    colored: bool = True
    transport: Optional[httpx.BaseTransport] = None
    _config: Optional[LocalSyncConfig] = None
    _console: Optional[Console] = None

    @property
    def console(self) -> Console:
        if self._console is None:
            self._console = Console(verbose=self.verbose, colored=self.colored)
        return self._console

    def config(self) -> LocalSyncConfig:
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    def client(self) -> LocalSyncClient:
        config = require_credentials(self.config())
        return LocalSyncClient(
            config.connector,
            timeout=config.daemon.request_timeout,
            transport=self.transport,
        )


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Print localsync errors and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (LocalSyncError, ValueError) as e:
            state = click.get_current_context().find_object(CliState)
            console = state.console if state else Console()
            console.print_error(str(e))
            sys.exit(1)

    return wrapper


def _emit(state: CliState, data: Any, table: Optional[Callable[[Any], None]] = None) -> None:
    if state.table and table is not None:
        table(data)
    else:
        state.console.print_json(data)


pass_state = click.make_pass_decorator(CliState)


@click.group()
@click.version_option(version=__version__, prog_name="localsync")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Configuration file (default: ~/.config/localsync/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--table", is_flag=True, help="Print results as tables instead of JSON")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool, table: bool, no_color: bool) -> None:
    """localsync - sync a local Markdown folder with a document server.

    \b
    Credentials come from the environment or the config file:
      LOCALSYNC_SERVER_URL, LOCALSYNC_WORKSPACE, LOCALSYNC_TOKEN
    """
    state = ctx.ensure_object(CliState)
    state.config_path = config_path or state.config_path
    state.verbose = verbose
    state.table = table
    state.colored = not no_color
    setup_logging(verbose, colored=state.colored)


# Connectors


@cli.command()
@click.argument("name", required=False, default=DEFAULT_CONNECTOR_NAME)
@pass_state
@handle_errors
def register(state: CliState, name: str) -> None:
    """Register this machine as a connector."""
    with state.client() as client:
        _emit(state, client.register(name, platform_name=sys.platform))


@cli.command()
@click.argument("connector_id")
@pass_state
@handle_errors
def heartbeat(state: CliState, connector_id: str) -> None:
    """Report a connector as alive."""
    with state.client() as client:
        _emit(state, client.heartbeat(connector_id))


# Sources


@cli.command("create-source")
@click.argument("connector_id")
@click.argument("name")
@click.argument(
    "mode",
    required=False,
    default=SourceMode.IMPORT_ONLY.value,
    type=click.Choice([m.value for m in SourceMode]),
)
@click.option("--include", "include_patterns", multiple=True, help="Include glob (repeatable)")
@click.option("--exclude", "exclude_patterns", multiple=True, help="Exclude glob (repeatable)")
@pass_state
@handle_errors
def create_source(
    state: CliState,
    connector_id: str,
    name: str,
    mode: str,
    include_patterns: tuple[str, ...],
    exclude_patterns: tuple[str, ...],
) -> None:
    """Create a sync source for a connector."""
    settings = state.config().daemon
    with state.client() as client:
        result = client.create_source(
            connector_id,
            name,
            mode,
            list(include_patterns) or list(settings.default_include),
            list(exclude_patterns) or list(settings.default_exclude),
        )
    _emit(state, result)


@cli.command("list-sources")
@pass_state
@handle_errors
def list_sources(state: CliState) -> None:
    """List sources in the workspace."""
    with state.client() as client:
        _emit(state, client.list_sources(), state.console.print_sources)


@cli.command()
@click.argument("source_id")
@pass_state
@handle_errors
def pause(state: CliState, source_id: str) -> None:
    """Pause a source; pushes are rejected until it is resumed."""
    with state.client() as client:
        _emit(state, client.pause_source(source_id))


@cli.command()
@click.argument("source_id")
@pass_state
@handle_errors
def resume(state: CliState, source_id: str) -> None:
    """Resume a paused source."""
    with state.client() as client:
        _emit(state, client.resume_source(source_id))


# Files


@cli.command()
@click.argument("source_id")
@pass_state
@handle_errors
def files(state: CliState, source_id: str) -> None:
    """List files tracked for a source."""
    with state.client() as client:
        _emit(state, ConflictWorkflow(client).file_tree(source_id), state.console.print_files)


@cli.command()
@click.argument("source_id")
@click.argument("relative_path")
@pass_state
@handle_errors
def history(state: CliState, source_id: str, relative_path: str) -> None:
    """Show the version history of one file."""
    with state.client() as client:
        _emit(state, client.file_history(source_id, relative_path))


@cli.command("push-batch")
@click.argument("source_id")
@click.argument("relative_path")
@click.argument("content", required=False, default="")
@pass_state
@handle_errors
def push_batch(state: CliState, source_id: str, relative_path: str, content: str) -> None:
    """Push literal content for one path, without a base hash."""
    item = PushItem(
        operation_id=new_operation_id(relative_path),
        relative_path=relative_path,
        content=content,
        content_hash=content_hash(content),
    )
    with state.client() as client:
        _emit(state, client.push_batch_raw(source_id, [item]))


@cli.command("sync-file")
@click.argument("source_id")
@click.argument("relative_path")
@click.argument("local_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("base_hash", required=False)
@pass_state
@handle_errors
def sync_file(
    state: CliState,
    source_id: str,
    relative_path: str,
    local_file: Path,
    base_hash: Optional[str],
) -> None:
    """Push a local file's content for one path.

    With BASE_HASH the push is guarded: if the server copy has changed
    since, a conflict is opened instead of overwriting.
    """
    content = local_file.read_bytes().decode("utf-8")
    with state.client() as client:
        result = ConflictWorkflow(client).save_file(source_id, relative_path, content, base_hash)
    _emit(
        state,
        {
            "relativePath": result.relative_path,
            "hash": result.hash,
            "applied": result.applied,
            "conflict": result.conflict,
        },
    )
    if result.conflict:
        state.console.print_warning(f"{relative_path} changed on the server; a conflict was opened")


@cli.command()
@click.argument("source_id")
@click.argument("cursor", required=False, default=0, type=click.IntRange(min=0))
@click.argument("limit", required=False, default=DEFAULT_DELTA_LIMIT, type=click.IntRange(1, 500))
@pass_state
@handle_errors
def deltas(state: CliState, source_id: str, cursor: int, limit: int) -> None:
    """Show remote change events after CURSOR."""
    with state.client() as client:
        _emit(state, client.pull_deltas_raw(source_id, cursor, limit))


# Conflicts


@cli.command()
@click.argument("source_id")
@pass_state
@handle_errors
def conflicts(state: CliState, source_id: str) -> None:
    """List open conflicts for a source."""
    with state.client() as client:
        if state.table:
            state.console.print_conflicts(client.list_conflicts(source_id))
        else:
            _emit(state, client.list_conflicts_raw(source_id))


@cli.command()
@click.argument("source_id")
@click.argument("conflict_id")
@click.option("--merge", "show_merge", is_flag=True, help="Also show the conflict-marker merge template")
@pass_state
@handle_errors
def preview(state: CliState, source_id: str, conflict_id: str, show_merge: bool) -> None:
    """Compare both sides of an open conflict line by line."""
    with state.client() as client:
        if not state.table:
            _emit(state, client.conflict_preview_raw(source_id, conflict_id))
            return

        workflow = ConflictWorkflow(client)
        show_preview(workflow.preview(source_id, conflict_id), state.console.rich)
        if show_merge:
            conflict = workflow.find_conflict(source_id, conflict_id)
            if conflict is not None:
                show_merge_template(workflow.merge_template(conflict), conflict.relative_path, state.console.rich)


@cli.command()
@click.argument("source_id")
@click.argument("conflict_id")
@click.option(
    "--keep",
    type=click.Choice(["local", "remote", "merge"]),
    required=True,
    help="Which side to keep, or merge manually",
)
@click.option(
    "--content-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Merged content for --keep merge",
)
@click.option("--editor", "use_editor", is_flag=True, help="Edit the merge template in $EDITOR")
@pass_state
@handle_errors
def resolve(
    state: CliState,
    source_id: str,
    conflict_id: str,
    keep: str,
    content_file: Optional[Path],
    use_editor: bool,
) -> None:
    """Resolve an open conflict.

    \b
    local   adopt the content that triggered the conflict
    remote  keep the server content
    merge   adopt merged content from --content-file or --editor
    """
    with state.client() as client:
        workflow = ConflictWorkflow(client)
        content: Optional[str] = None

        if keep == "merge":
            if content_file is not None:
                content = content_file.read_bytes().decode("utf-8")
            elif use_editor:
                conflict = workflow.find_conflict(source_id, conflict_id)
                if conflict is None:
                    raise LocalSyncError("Open conflict not found")
                content = edit_in_editor(workflow.merge_template(conflict))
                if content is None:
                    raise LocalSyncError("Editor failed or is not available; nothing was resolved")
            if content and has_conflict_markers(content):
                raise LocalSyncError("Merged content still contains conflict markers")

        resolution = parse_resolution(keep, content)
        result = workflow.resolve(source_id, conflict_id, resolution)

    _emit(state, result)
    if isinstance(resolution, ManualMerge):
        state.console.print_success(f"Conflict {conflict_id} resolved with merged content")


# Daemon


@cli.command()
@click.argument("source_id")
@click.argument("root_dir", type=click.Path(file_okay=False, path_type=Path))
@click.argument("interval_ms", required=False, type=click.IntRange(min=1))
@pass_state
@handle_errors
def daemon(state: CliState, source_id: str, root_dir: Path, interval_ms: Optional[int]) -> None:
    """Continuously synchronize ROOT_DIR with a source."""
    config = state.config()
    settings = config.daemon
    if interval_ms is not None:
        settings = settings.model_copy(update={"interval_ms": interval_ms})

    if config.output.log_file or config.output.verbose:
        setup_logging(state.verbose or config.output.verbose, config.output.log_file, colored=state.colored)

    with state.client() as client:
        runner = Daemon(client, source_id, root_dir.expanduser().resolve(), settings)
        source = runner.start()
        state.console.print_daemon_banner(source, runner.root, settings, runner.state_path)
        runner.run(start=False)


# Configuration


@cli.group()
def config() -> None:
    """Manage the localsync configuration file."""


@config.command("init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file")
@pass_state
def config_init(state: CliState, force: bool) -> None:
    """Write a default configuration file."""
    path = state.config_path or get_config_path()
    if force and path.exists():
        path.unlink()
    path, created = ensure_config_exists(path)
    if created:
        state.console.print_success(f"Created {path}")
    else:
        state.console.print_info(f"Configuration already exists: {path}")


@config.command("show")
@pass_state
@handle_errors
def config_show(state: CliState) -> None:
    """Print the effective configuration, token masked."""
    data = state.config().model_dump()
    token = data["connector"].get("token") or ""
    if token:
        data["connector"]["token"] = token[:4] + "****" if len(token) > 8 else "****"
    state.console.print_json(data)


@config.command("validate")
@pass_state
def config_validate(state: CliState) -> None:
    """Validate the configuration file."""
    path = state.config_path or get_config_path()
    valid, errors = validate_config_file(path)
    if valid:
        state.console.print_success(f"{path} is valid")
        return
    for error in errors:
        state.console.print_error(error)
    sys.exit(1)


if __name__ == "__main__":
    cli()
