# LocalSync Conflict Display
# Preview tables, merge templates and external-editor merges

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from localsync.api.models import ConflictPreview

FALLBACK_EDITORS = ("nano", "vim", "vi")


def _detect_syntax(path: str) -> str:
    """
    Detect syntax type from file extension.

    Args:
        path: File path or name.

    Returns:
        Syntax identifier for Rich.
    """
    ext = Path(path).suffix.lower()
    syntax_map = {
        ".md": "markdown",
        ".markdown": "markdown",
        ".yaml": "yaml",
        ".yml": "yaml",
        ".json": "json",
    }
    return syntax_map.get(ext, "text")


def show_preview(preview: ConflictPreview, console: Optional[RichConsole] = None) -> None:
    """
    Display a conflict preview as a line table.

    Args:
        preview: Server-computed line comparison.
        console: Optional Rich console for output.
    """
    if console is None:
        console = RichConsole()

    console.print(f"\n[bold red]Conflict:[/bold red] {preview.relative_path} [dim]({preview.conflict_id})[/dim]")
    console.print(
        f"  Local {preview.local_lines} lines, remote {preview.remote_lines} lines, "
        f"[yellow]{preview.different_lines} differ[/yellow]\n"
    )

    if not preview.changes:
        console.print("[dim]Both sides are identical line by line[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Local", style="yellow")
    table.add_column("Remote", style="cyan")

    for change in preview.changes:
        table.add_row(str(change.line), change.local, change.remote)

    console.print(table)
    if preview.different_lines > len(preview.changes):
        console.print(f"[dim]... {preview.different_lines - len(preview.changes)} more differing lines[/dim]")


def show_merge_template(template: str, path: str, console: Optional[RichConsole] = None) -> None:
    """
    Display a merge template with syntax highlighting.

    Args:
        template: Conflict-marker document.
        path: Document path, used to pick the highlighter.
        console: Optional Rich console for output.
    """
    if console is None:
        console = RichConsole()

    console.print(
        Panel(
            Syntax(template, _detect_syntax(path), theme="monokai", line_numbers=True),
            title=f"Merge: {path}",
            border_style="yellow",
        )
    )


def find_editor() -> Optional[str]:
    """Pick the editor from $EDITOR, $VISUAL or a common fallback."""
    editor = os.environ.get("EDITOR") or os.environ.get("VISUAL")
    if editor:
        return editor
    for candidate in FALLBACK_EDITORS:
        if shutil.which(candidate):
            return candidate
    return None


def edit_in_editor(content: str, suffix: str = ".md") -> Optional[str]:
    """
    Open content in external editor for manual editing.

    Args:
        content: Content to edit.
        suffix: File suffix for syntax detection.

    Returns:
        Edited content, or None if no editor is available or it failed.
    """
    editor = find_editor()
    if not editor:
        return None

    fd, temp_path = tempfile.mkstemp(suffix=suffix, prefix="localsync_merge_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)

        result = subprocess.run([*editor.split(), temp_path])
        if result.returncode != 0:
            return None

        with open(temp_path, encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, subprocess.SubprocessError):
        return None
    finally:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
