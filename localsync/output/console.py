# LocalSync Console Output
# Rich-based console output for command results

import json
from pathlib import Path
from typing import Any, Optional

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from localsync.api.models import ConflictRecord, SourceDescriptor
from localsync.config.schema import DaemonSettings


class Console:
    """
    Console output manager using Rich.

    Results go to stdout as JSON or tables; errors and warnings too, so
    that scripted callers see a single stream.
    """

    def __init__(self, *, verbose: bool = False, colored: bool = True):
        """
        Initialize console.

        Args:
            verbose: Enable verbose output.
            colored: Enable colored output.
        """
        self.verbose = verbose
        self._console = RichConsole(no_color=not colored, highlight=colored)

    @property
    def rich(self) -> RichConsole:
        return self._console

    def print(self, *args, **kwargs) -> None:
        """Print to console."""
        self._console.print(*args, **kwargs)

    def print_error(self, message: str) -> None:
        """Print error message."""
        self._console.print(f"[red]Error:[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print warning message."""
        self._console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self._console.print(f"[green]{message}[/green]")

    def print_info(self, message: str) -> None:
        """Print info message."""
        self._console.print(f"[blue]{message}[/blue]")

    def print_json(self, data: Any) -> None:
        """Print a result as indented JSON."""
        # Soft wrap keeps long values on one line so the output stays parseable
        text = json.dumps(data, indent=2, default=str, ensure_ascii=False)
        self._console.print(text, soft_wrap=True, markup=False, highlight=False, emoji=False)

    def print_sources(self, sources: list[dict[str, Any]]) -> None:
        """Print sources as a table."""
        if not sources:
            self._console.print("[dim]No sources[/dim]")
            return

        table = Table(title="Sources", show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Mode", style="magenta")
        table.add_column("Status")
        table.add_column("Cursor", justify="right")

        for raw in sources:
            source = SourceDescriptor.from_dict(raw)
            status = "[yellow]paused[/yellow]" if source.is_paused else "[green]active[/green]"
            table.add_row(source.id, source.name, source.mode.value, status, str(source.last_remote_cursor))

        self._console.print(table)

    def print_files(self, files: list[dict[str, Any]]) -> None:
        """Print tracked files as a table."""
        if not files:
            self._console.print("[dim]No files tracked[/dim]")
            return

        table = Table(title="Files", show_header=True, header_style="bold")
        table.add_column("Path", style="cyan")
        table.add_column("State")
        table.add_column("Hash", style="dim")

        for item in files:
            state = item.get("state") or "ok"
            state_text = f"[red]{state}[/red]" if state == "conflict" else f"[green]{state}[/green]"
            table.add_row(item.get("relativePath") or "", state_text, (item.get("lastSyncedHash") or "")[:12])

        self._console.print(table)

    def print_conflicts(self, conflicts: list[ConflictRecord]) -> None:
        """Print open conflicts as a table."""
        if not conflicts:
            self._console.print("[green]No open conflicts[/green]")
            return

        table = Table(title="Open Conflicts", show_header=True, header_style="bold")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Path")
        table.add_column("Local", style="yellow")
        table.add_column("Remote", style="blue")
        table.add_column("Opened", style="dim")

        for conflict in conflicts:
            table.add_row(
                conflict.id,
                conflict.relative_path,
                conflict.local_hash[:12],
                conflict.remote_hash[:12],
                conflict.created_at[:19],
            )

        self._console.print(table)

    def print_daemon_banner(
        self,
        source: SourceDescriptor,
        root: Path,
        settings: DaemonSettings,
        state_path: Optional[Path] = None,
    ) -> None:
        """Print the daemon start summary."""
        lines = [
            f"[bold]Source:[/bold] {source.id} ({source.name or 'unnamed'})",
            f"[bold]Mode:[/bold] {source.mode.value}",
            f"[bold]Root:[/bold] {root}",
            f"[bold]Interval:[/bold] {settings.interval_ms} ms",
            f"[bold]Limits:[/bold] {settings.max_file_bytes:,} bytes/file, {settings.max_files_per_scan:,} files/scan",
        ]
        if state_path is not None:
            lines.append(f"[bold]State:[/bold] {state_path}")
        if source.is_paused:
            lines.append("[yellow]Source is paused; nothing will be pushed until it is resumed[/yellow]")

        self._console.print(Panel("\n".join(lines), title="localsync daemon", border_style="cyan"))


def create_console(*, verbose: bool = False, colored: bool = True) -> Console:
    """
    Create a console instance.

    Args:
        verbose: Enable verbose output.
        colored: Enable colored output.

    Returns:
        Console instance.
    """
    return Console(verbose=verbose, colored=colored)
