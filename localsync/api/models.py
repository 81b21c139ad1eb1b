# LocalSync API Models
# Typed views of server payloads: sources, push results, delta events, conflicts

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class SourceMode(str, Enum):
    """Synchronization direction of a source."""

    IMPORT_ONLY = "import_only"
    LOCAL_TO_CLOUD = "local_to_cloud"
    BIDIRECTIONAL = "bidirectional"

    @property
    def pulls(self) -> bool:
        """Whether the connector applies server changes locally."""
        return self is SourceMode.BIDIRECTIONAL


class SourceStatus(str, Enum):
    """Lifecycle status of a source."""

    ACTIVE = "active"
    PAUSED = "paused"


@dataclass
class SourceDescriptor:
    """Server-owned description of one sync relationship."""

    id: str
    mode: SourceMode = SourceMode.IMPORT_ONLY
    status: SourceStatus = SourceStatus.ACTIVE
    name: str = ""
    connector_id: Optional[str] = None
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    last_remote_cursor: int = 0

    @property
    def is_paused(self) -> bool:
        return self.status == SourceStatus.PAUSED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceDescriptor":
        """Create from a server payload."""
        return cls(
            id=str(data["id"]),
            mode=SourceMode(data.get("mode") or SourceMode.IMPORT_ONLY.value),
            status=SourceStatus(data.get("status") or SourceStatus.ACTIVE.value),
            name=data.get("name") or "",
            connector_id=data.get("connectorId"),
            include_patterns=list(data.get("includePatterns") or []),
            exclude_patterns=list(data.get("excludePatterns") or []),
            last_remote_cursor=int(data.get("lastRemoteCursor") or 0),
        )


@dataclass
class PushItem:
    """One operation as submitted in a push batch."""

    operation_id: str
    relative_path: str
    content: str
    content_hash: str
    content_type: str = "text/markdown"
    base_hash: Optional[str] = None
    is_delete: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "operationId": self.operation_id,
            "relativePath": self.relative_path,
            "content": self.content,
            "contentType": self.content_type,
            "contentHash": self.content_hash,
        }
        if self.base_hash is not None:
            payload["baseHash"] = self.base_hash
        if self.is_delete:
            payload["isDelete"] = True
        return payload


@dataclass
class PushResult:
    """Server response to a push batch."""

    applied: int = 0
    conflicts: int = 0
    event_cursor: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PushResult":
        cursor = data.get("eventCursor")
        return cls(
            applied=int(data.get("applied") or 0),
            conflicts=int(data.get("conflicts") or 0),
            event_cursor=int(cursor) if cursor is not None else None,
        )


# Delta events


@dataclass(frozen=True)
class UpsertEvent:
    """Remote create or update of a document."""

    cursor: int
    relative_path: str
    content: str
    hash: Optional[str] = None
    content_type: str = "text/markdown"
    operation_id: Optional[str] = None


@dataclass(frozen=True)
class DeleteEvent:
    """Remote removal of a document."""

    cursor: int
    relative_path: str


@dataclass(frozen=True)
class OtherEvent:
    """An event the connector records but does not apply."""

    cursor: int
    type: str
    relative_path: Optional[str] = None


DeltaEvent = Union[UpsertEvent, DeleteEvent, OtherEvent]


def parse_delta_event(data: dict[str, Any]) -> DeltaEvent:
    """
    Parse one raw delta event into its tagged variant.

    Upserts without string content and file events without a path fall back
    to OtherEvent, so the applier never sees a half-formed change.

    Args:
        data: Raw event payload.

    Returns:
        UpsertEvent, DeleteEvent or OtherEvent.
    """
    cursor = int(data.get("cursor") or 0)
    event_type = str(data.get("type") or "")
    rel = data.get("relativePath")
    payload = data.get("payload") or {}

    if event_type == "file.upsert" and rel and isinstance(payload.get("content"), str):
        return UpsertEvent(
            cursor=cursor,
            relative_path=rel,
            content=payload["content"],
            hash=payload.get("hash"),
            content_type=payload.get("contentType") or "text/markdown",
            operation_id=payload.get("operationId"),
        )
    if event_type == "file.delete" and rel:
        return DeleteEvent(cursor=cursor, relative_path=rel)
    return OtherEvent(cursor=cursor, type=event_type, relative_path=rel)


@dataclass
class DeltaPage:
    """One page of the remote change feed."""

    events: list[DeltaEvent]
    next_cursor: int

    @classmethod
    def from_dict(cls, data: dict[str, Any], current_cursor: int) -> "DeltaPage":
        raw_events = data.get("events")
        events = [parse_delta_event(e) for e in raw_events] if isinstance(raw_events, list) else []
        next_cursor = data.get("nextCursor")
        return cls(
            events=events,
            next_cursor=int(next_cursor) if next_cursor else current_cursor,
        )


# Conflict resolutions


@dataclass(frozen=True)
class KeepLocal:
    """Adopt the content that triggered the conflict."""

    wire_name = "keep_local"


@dataclass(frozen=True)
class KeepRemote:
    """Keep the server's content and discard the conflicting push."""

    wire_name = "keep_raven"


@dataclass(frozen=True)
class ManualMerge:
    """Adopt operator-supplied merged content."""

    content: str
    wire_name = "manual_merge"


Resolution = Union[KeepLocal, KeepRemote, ManualMerge]


def resolution_payload(resolution: Resolution) -> dict[str, Any]:
    """Encode a resolution for the resolve endpoint."""
    if isinstance(resolution, ManualMerge):
        return {"resolution": ManualMerge.wire_name, "resolvedContent": resolution.content}
    if isinstance(resolution, KeepLocal):
        return {"resolution": KeepLocal.wire_name}
    if isinstance(resolution, KeepRemote):
        return {"resolution": KeepRemote.wire_name}
    raise TypeError(f"Unknown resolution: {resolution!r}")


def parse_resolution(name: str, content: Optional[str] = None) -> Resolution:
    """
    Decode a resolution name.

    Accepts the wire names and the short forms "local", "remote", "merge".

    Raises:
        ValueError: On an unknown name or a merge without content.
    """
    key = name.strip().lower()
    if key in ("local", "keep_local", "keep-local"):
        return KeepLocal()
    if key in ("remote", "keep_remote", "keep-remote", "keep_raven"):
        return KeepRemote()
    if key in ("merge", "manual_merge", "manual-merge"):
        if not content:
            raise ValueError("resolvedContent is required for manual_merge")
        return ManualMerge(content=content)
    raise ValueError(f"Unknown resolution: {name}")


@dataclass
class ConflictRecord:
    """An open or resolved divergence between local and server content."""

    id: str
    source_id: str
    relative_path: str
    base_hash: str = ""
    local_hash: str = ""
    remote_hash: str = ""
    local_content: str = ""
    remote_content: str = ""
    status: str = "open"
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictRecord":
        return cls(
            id=str(data["id"]),
            source_id=str(data.get("sourceId") or ""),
            relative_path=data.get("relativePath") or "",
            base_hash=data.get("baseHash") or "",
            local_hash=data.get("localHash") or "",
            remote_hash=data.get("remoteHash") or "",
            local_content=data.get("localContent") or "",
            remote_content=data.get("remoteContent") or "",
            status=data.get("status") or "open",
            created_at=data.get("createdAt") or "",
        )


@dataclass
class LineChange:
    line: int
    local: str
    remote: str


@dataclass
class ConflictPreview:
    """Line-level comparison of both sides of a conflict."""

    conflict_id: str
    relative_path: str
    local_lines: int
    remote_lines: int
    different_lines: int
    changes: list[LineChange]
    base_hash: str = ""
    local_hash: str = ""
    remote_hash: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictPreview":
        summary = data.get("summary") or {}
        return cls(
            conflict_id=str(data.get("conflictId") or ""),
            relative_path=data.get("relativePath") or "",
            local_lines=int(summary.get("localLines") or 0),
            remote_lines=int(summary.get("remoteLines") or 0),
            different_lines=int(summary.get("differentLines") or 0),
            changes=[
                LineChange(line=int(c["line"]), local=c.get("local", ""), remote=c.get("remote", ""))
                for c in data.get("changes") or []
            ],
            base_hash=data.get("baseHash") or "",
            local_hash=data.get("localHash") or "",
            remote_hash=data.get("remoteHash") or "",
        )
