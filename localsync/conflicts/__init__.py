# LocalSync Conflicts Module
# Conflict inspection, merge templates and guarded single-file saves

from localsync.conflicts.workflow import (
    ConflictWorkflow,
    RemoteFile,
    RemoteFileNotFoundError,
    SaveResult,
    has_conflict_markers,
    merge_template,
)

__all__ = [
    "ConflictWorkflow",
    "RemoteFile",
    "RemoteFileNotFoundError",
    "SaveResult",
    "has_conflict_markers",
    "merge_template",
]
