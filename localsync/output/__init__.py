# LocalSync Output Module
# Rich console output and conflict display

from localsync.output.console import Console, create_console
from localsync.output.diff import edit_in_editor, show_merge_template, show_preview

__all__ = [
    "Console",
    "create_console",
    "show_preview",
    "show_merge_template",
    "edit_in_editor",
]
