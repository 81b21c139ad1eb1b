# LocalSync Conflict Workflow
# Inspect, preview and resolve conflicts; fetch and save single files

import difflib
import logging
from dataclasses import dataclass
from typing import Any, Optional

from localsync.api.client import LocalSyncClient
from localsync.api.models import ConflictPreview, ConflictRecord, PushItem, Resolution
from localsync.exceptions import LocalSyncError
from localsync.sync.scanner import CONTENT_TYPE
from localsync.sync.state import new_operation_id
from localsync.utils.hashing import content_hash

logger = logging.getLogger(__name__)

LOCAL_MARKER = "<<<<<<< LOCAL"
SEPARATOR_MARKER = "======="
REMOTE_MARKER = ">>>>>>> REMOTE"


class RemoteFileNotFoundError(LocalSyncError):
    """Raised when the server does not track a requested path."""


@dataclass
class RemoteFile:
    """A document as stored on the server."""

    relative_path: str
    content: str
    hash: str
    state: str = "ok"
    content_type: str = CONTENT_TYPE


@dataclass
class SaveResult:
    """Outcome of saving one edited file."""

    relative_path: str
    hash: str
    applied: int = 0
    conflict: bool = False


def _terminated(lines: list[str]) -> list[str]:
    if lines and not lines[-1].endswith("\n"):
        return lines[:-1] + [lines[-1] + "\n"]
    return lines


def merge_template(local_content: str, remote_content: str) -> str:
    """
    Build a conflict-marker document from both sides.

    Unchanged runs appear once; each differing run is wrapped in
    LOCAL / REMOTE markers for manual editing.

    Args:
        local_content: Content that triggered the conflict.
        remote_content: Content held by the server.

    Returns:
        Merge template text.
    """
    local_lines = local_content.splitlines(keepends=True)
    remote_lines = remote_content.splitlines(keepends=True)

    matcher = difflib.SequenceMatcher(None, remote_lines, local_lines)
    out: list[str] = []

    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.extend(remote_lines[i1:i2])
            continue
        if out and not out[-1].endswith("\n"):
            out[-1] += "\n"
        out.append(f"{LOCAL_MARKER}\n")
        out.extend(_terminated(local_lines[j1:j2]))
        out.append(f"{SEPARATOR_MARKER}\n")
        out.extend(_terminated(remote_lines[i1:i2]))
        out.append(f"{REMOTE_MARKER}\n")

    return "".join(out)


def has_conflict_markers(content: str) -> bool:
    """Check whether text still contains unresolved conflict markers."""
    return any(
        line.startswith((LOCAL_MARKER, REMOTE_MARKER)) or line == SEPARATOR_MARKER
        for line in content.splitlines()
    )


class ConflictWorkflow:
    """
    Operator-facing conflict handling for one server.

    Request/response only; runs independently of the daemon loop.
    """

    def __init__(self, client: LocalSyncClient):
        self.client = client

    def list_conflicts(self, source_id: str) -> list[ConflictRecord]:
        return self.client.list_conflicts(source_id)

    def file_tree(self, source_id: str) -> list[dict[str, Any]]:
        """All tracked files with fingerprints and state, sorted by path."""
        files = self.client.list_source_files(source_id)
        return sorted(files, key=lambda f: f.get("relativePath") or "")

    def preview(self, source_id: str, conflict_id: str) -> ConflictPreview:
        return self.client.conflict_preview(source_id, conflict_id)

    def resolve(self, source_id: str, conflict_id: str, resolution: Resolution) -> Any:
        """
        Resolve an open conflict.

        Raises:
            ApiError: If the conflict is unknown or already resolved, or a
                manual merge has no content.
        """
        result = self.client.resolve_conflict(source_id, conflict_id, resolution)
        logger.info("Resolved conflict %s with %s", conflict_id, resolution.wire_name)
        return result

    def merge_template(self, conflict: ConflictRecord) -> str:
        return merge_template(conflict.local_content, conflict.remote_content)

    def find_conflict(self, source_id: str, conflict_id: str) -> Optional[ConflictRecord]:
        for conflict in self.list_conflicts(source_id):
            if conflict.id == conflict_id:
                return conflict
        return None

    def get_file(self, source_id: str, relative_path: str) -> RemoteFile:
        """
        Fetch one document with its latest content.

        Raises:
            RemoteFileNotFoundError: If the server does not track the path.
        """
        entry = next((f for f in self.client.list_source_files(source_id) if f.get("relativePath") == relative_path), None)
        if entry is None:
            raise RemoteFileNotFoundError(f"File not found: {relative_path}")

        history = self.client.file_history(source_id, relative_path)
        versions = history.get("versions") if isinstance(history, dict) else None
        content = versions[-1].get("content", "") if versions else ""

        return RemoteFile(
            relative_path=relative_path,
            content=content,
            hash=entry.get("lastSyncedHash") or content_hash(content),
            state=entry.get("state") or "ok",
            content_type=entry.get("contentType") or CONTENT_TYPE,
        )

    def save_file(self, source_id: str, relative_path: str, content: str, base_hash: Optional[str]) -> SaveResult:
        """
        Push edited content guarded by the hash it was based on.

        When the server copy has moved past base_hash the push opens a
        conflict instead of overwriting, reported through SaveResult.conflict.
        """
        digest = content_hash(content)
        item = PushItem(
            operation_id=new_operation_id(relative_path),
            relative_path=relative_path,
            content=content,
            content_hash=digest,
            content_type=CONTENT_TYPE,
            base_hash=base_hash,
        )
        result = self.client.push_batch(source_id, [item])
        if result.conflicts:
            logger.warning("Save of %s conflicted with a newer server version", relative_path)
        return SaveResult(
            relative_path=relative_path,
            hash=digest,
            applied=result.applied,
            conflict=result.conflicts > 0,
        )
