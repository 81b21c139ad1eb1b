# LocalSync Reference Server
# In-memory implementation of the server side of the sync protocol

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from localsync.server.dto import (
    CreateSourceRequest,
    PushBatchRequest,
    RegisterConnectorRequest,
    ResolveRequest,
)
from localsync.utils.hashing import content_hash

logger = logging.getLogger(__name__)

PREVIEW_CHANGE_LIMIT = 500


class ServiceError(Exception):
    """Request rejected by the service, carrying an HTTP status."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Connector:
    id: str
    workspace_id: str
    name: str
    platform: str
    version: Optional[str] = None
    status: str = "online"
    last_heartbeat_at: str = field(default_factory=_now)
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "name": self.name,
            "platform": self.platform,
            "version": self.version,
            "status": self.status,
            "lastHeartbeatAt": self.last_heartbeat_at,
            "createdAt": self.created_at,
        }


@dataclass
class Source:
    id: str
    workspace_id: str
    name: str
    mode: str
    connector_id: str
    status: str = "active"
    last_remote_cursor: int = 0
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workspaceId": self.workspace_id,
            "name": self.name,
            "mode": self.mode,
            "connectorId": self.connector_id,
            "status": self.status,
            "lastRemoteCursor": self.last_remote_cursor,
            "includePatterns": list(self.include_patterns),
            "excludePatterns": list(self.exclude_patterns),
            "createdAt": self.created_at,
        }


@dataclass
class FileEntry:
    """Server copy of one synchronized document."""

    id: str
    source_id: str
    relative_path: str
    content_type: str
    content: str
    last_synced_hash: str
    state: str = "ok"
    last_synced_at: str = field(default_factory=_now)
    versions: list[dict[str, Any]] = field(default_factory=list)

    def add_version(self, content: str, digest: str, origin: str) -> None:
        self.versions.append({"hash": digest, "content": content, "recordedAt": _now(), "origin": origin})

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "relativePath": self.relative_path,
            "contentType": self.content_type,
            "lastSyncedHash": self.last_synced_hash,
            "lastSyncedAt": self.last_synced_at,
            "state": self.state,
        }


@dataclass
class Event:
    cursor: int
    source_id: str
    type: str
    relative_path: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "cursor": self.cursor,
            "type": self.type,
            "relativePath": self.relative_path,
            "payload": dict(self.payload),
            "createdAt": self.created_at,
        }


@dataclass
class Conflict:
    id: str
    source_id: str
    file_id: str
    relative_path: str
    base_hash: str
    local_hash: str
    remote_hash: str
    local_content: str
    remote_content: str
    status: str = "open"
    resolution: Optional[str] = None
    resolved_content: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "sourceId": self.source_id,
            "fileId": self.file_id,
            "relativePath": self.relative_path,
            "baseHash": self.base_hash,
            "localHash": self.local_hash,
            "remoteHash": self.remote_hash,
            "localContent": self.local_content,
            "remoteContent": self.remote_content,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.resolution:
            data["resolution"] = self.resolution
            data["resolvedAt"] = self.resolved_at
        return data


def line_changes(local_content: str, remote_content: str) -> list[dict[str, Any]]:
    """Compare two documents line by line at the same positions."""
    local_lines = local_content.split("\n")
    remote_lines = remote_content.split("\n")
    changes = []
    for i in range(max(len(local_lines), len(remote_lines))):
        local = local_lines[i] if i < len(local_lines) else ""
        remote = remote_lines[i] if i < len(remote_lines) else ""
        if local != remote:
            changes.append({"line": i + 1, "local": local, "remote": remote})
    return changes


class LocalSyncService:
    """
    In-memory document server.

    Holds connectors, sources, files with version history, an append-only
    event log with a global cursor, conflicts and processed operation ids.
    Every call is scoped to a workspace.
    """

    def __init__(self):
        self.connectors: dict[str, Connector] = {}
        self.sources: dict[str, Source] = {}
        self.files: dict[tuple[str, str], FileEntry] = {}
        self.events: list[Event] = []
        self.conflicts: dict[str, Conflict] = {}
        self.processed: set[tuple[str, str]] = set()
        self._cursor = 0

    # Internal helpers

    def _require_source(self, source_id: str, workspace_id: str) -> Source:
        source = self.sources.get(source_id)
        if source is None or source.workspace_id != workspace_id:
            raise NotFoundError("Local sync source not found")
        return source

    def _append_event(
        self,
        source_id: str,
        event_type: str,
        relative_path: Optional[str] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Event:
        self._cursor += 1
        event = Event(
            cursor=self._cursor,
            source_id=source_id,
            type=event_type,
            relative_path=relative_path,
            payload=payload or {},
        )
        self.events.append(event)
        return event

    def _current_cursor(self, source_id: str) -> int:
        cursors = [e.cursor for e in self.events if e.source_id == source_id]
        return max(cursors) if cursors else 0

    def _open_conflict(self, source_id: str, conflict_id: str) -> Conflict:
        conflict = self.conflicts.get(conflict_id)
        if conflict is None or conflict.source_id != source_id or conflict.status != "open":
            raise NotFoundError("Open conflict not found")
        return conflict

    # Connectors

    def register_connector(self, request: RegisterConnectorRequest, workspace_id: str) -> dict[str, Any]:
        connector = Connector(
            id=_new_id(),
            workspace_id=workspace_id,
            name=request.name,
            platform=request.platform,
            version=request.version,
        )
        self.connectors[connector.id] = connector
        return connector.to_dict()

    def heartbeat(self, connector_id: str, workspace_id: str) -> dict[str, Any]:
        connector = self.connectors.get(connector_id)
        if connector is None or connector.workspace_id != workspace_id:
            raise NotFoundError("Connector not found")
        connector.status = "online"
        connector.last_heartbeat_at = _now()
        return {
            "connectorId": connector.id,
            "status": connector.status,
            "lastHeartbeatAt": connector.last_heartbeat_at,
        }

    # Sources

    def create_source(self, request: CreateSourceRequest, workspace_id: str) -> dict[str, Any]:
        connector = self.connectors.get(request.connector_id)
        if connector is None or connector.workspace_id != workspace_id:
            raise BadRequestError("Invalid connectorId for this workspace")

        source = Source(
            id=_new_id(),
            workspace_id=workspace_id,
            name=request.name,
            mode=request.mode,
            connector_id=request.connector_id,
            include_patterns=list(request.include_patterns),
            exclude_patterns=list(request.exclude_patterns),
        )
        self.sources[source.id] = source
        return source.to_dict()

    def list_sources(self, workspace_id: str) -> list[dict[str, Any]]:
        sources = [s for s in self.sources.values() if s.workspace_id == workspace_id]
        return [s.to_dict() for s in reversed(sources)]

    def set_source_status(self, source_id: str, workspace_id: str, status: str) -> dict[str, Any]:
        source = self._require_source(source_id, workspace_id)
        source.status = status
        self._append_event(source.id, "source.paused" if status == "paused" else "source.resumed")
        return source.to_dict()

    # Files

    def get_files(self, source_id: str, workspace_id: str) -> list[dict[str, Any]]:
        self._require_source(source_id, workspace_id)
        entries = [f for (sid, _), f in self.files.items() if sid == source_id]
        return [f.to_dict() for f in sorted(entries, key=lambda f: f.relative_path)]

    def get_file_history(self, source_id: str, workspace_id: str, relative_path: str) -> dict[str, Any]:
        source = self._require_source(source_id, workspace_id)
        entry = self.files.get((source.id, relative_path))
        if entry is None:
            raise NotFoundError("File not found")
        return {"sourceId": source.id, "relativePath": entry.relative_path, "versions": list(entry.versions)}

    def edit_file(self, source_id: str, relative_path: str, content: str, origin: str = "web") -> FileEntry:
        """
        Change a document on the server side, as a collaborator would.

        Appends a version and a file.upsert event.
        """
        digest = content_hash(content)
        entry = self.files.get((source_id, relative_path))
        if entry is None:
            entry = FileEntry(
                id=_new_id(),
                source_id=source_id,
                relative_path=relative_path,
                content_type="text/markdown",
                content=content,
                last_synced_hash=digest,
            )
            self.files[(source_id, relative_path)] = entry
        entry.content = content
        entry.last_synced_hash = digest
        entry.last_synced_at = _now()
        entry.add_version(content, digest, origin)
        self._append_event(
            source_id,
            "file.upsert",
            relative_path,
            {"operationId": f"{origin}-{_new_id()}", "hash": digest, "contentType": entry.content_type, "content": content},
        )
        return entry

    def push_batch(self, request: PushBatchRequest, workspace_id: str) -> dict[str, Any]:
        source = self._require_source(request.source_id, workspace_id)
        if source.status == "paused":
            raise BadRequestError("Source is paused")

        applied = 0
        opened = 0

        for item in request.items:
            if (source.id, item.operation_id) in self.processed:
                continue

            key = (source.id, item.relative_path)
            current = self.files.get(key)
            next_hash = item.content_hash or content_hash(item.content)

            if current and item.base_hash and current.last_synced_hash and item.base_hash != current.last_synced_hash:
                conflict = Conflict(
                    id=_new_id(),
                    source_id=source.id,
                    file_id=current.id,
                    relative_path=item.relative_path,
                    base_hash=item.base_hash,
                    local_hash=next_hash,
                    remote_hash=current.last_synced_hash,
                    local_content=item.content,
                    remote_content=current.content,
                )
                self.conflicts[conflict.id] = conflict
                current.state = "conflict"
                self._append_event(
                    source.id,
                    "conflict.opened",
                    item.relative_path,
                    {"conflictId": conflict.id, "localHash": conflict.local_hash, "remoteHash": conflict.remote_hash},
                )
                self.processed.add((source.id, item.operation_id))
                opened += 1
                continue

            if item.is_delete:
                self.files.pop(key, None)
                self._append_event(source.id, "file.delete", item.relative_path, {"operationId": item.operation_id})
            else:
                if current is None:
                    current = FileEntry(
                        id=_new_id(),
                        source_id=source.id,
                        relative_path=item.relative_path,
                        content_type=item.content_type or "text/markdown",
                        content=item.content,
                        last_synced_hash=next_hash,
                    )
                    self.files[key] = current
                current.content = item.content
                current.content_type = item.content_type or current.content_type
                current.last_synced_hash = next_hash
                current.last_synced_at = _now()
                current.state = "ok"
                current.add_version(item.content, next_hash, "connector")
                self._append_event(
                    source.id,
                    "file.upsert",
                    item.relative_path,
                    {
                        "operationId": item.operation_id,
                        "hash": next_hash,
                        "contentType": current.content_type,
                        "content": item.content,
                    },
                )

            self.processed.add((source.id, item.operation_id))
            applied += 1

        logger.debug("Processed push batch for source %s: applied=%d, conflicts=%d", source.id, applied, opened)
        return {
            "sourceId": source.id,
            "applied": applied,
            "conflicts": opened,
            "eventCursor": self._current_cursor(source.id),
        }

    def get_deltas(self, source_id: str, workspace_id: str, cursor: int = 0, limit: int = 100) -> dict[str, Any]:
        source = self._require_source(source_id, workspace_id)
        events = [e for e in self.events if e.source_id == source.id and e.cursor > cursor][:limit]
        next_cursor = events[-1].cursor if events else cursor
        source.last_remote_cursor = next_cursor
        return {
            "sourceId": source.id,
            "cursor": cursor,
            "nextCursor": next_cursor,
            "events": [e.to_dict() for e in events],
        }

    # Conflicts

    def get_conflicts(self, source_id: str, workspace_id: str) -> list[dict[str, Any]]:
        source = self._require_source(source_id, workspace_id)
        open_conflicts = [c for c in self.conflicts.values() if c.source_id == source.id and c.status == "open"]
        return [c.to_dict() for c in reversed(open_conflicts)]

    def get_conflict_preview(self, source_id: str, conflict_id: str, workspace_id: str) -> dict[str, Any]:
        source = self._require_source(source_id, workspace_id)
        conflict = self._open_conflict(source.id, conflict_id)
        changes = line_changes(conflict.local_content, conflict.remote_content)
        return {
            "conflictId": conflict.id,
            "relativePath": conflict.relative_path,
            "baseHash": conflict.base_hash,
            "localHash": conflict.local_hash,
            "remoteHash": conflict.remote_hash,
            "summary": {
                "localLines": len(conflict.local_content.split("\n")),
                "remoteLines": len(conflict.remote_content.split("\n")),
                "differentLines": len(changes),
            },
            "changes": changes[:PREVIEW_CHANGE_LIMIT],
        }

    def resolve_conflict(self, request: ResolveRequest, workspace_id: str) -> dict[str, Any]:
        source = self._require_source(request.source_id, workspace_id)
        conflict = self._open_conflict(source.id, request.conflict_id)

        entry = self.files.get((source.id, conflict.relative_path))
        if entry is None:
            raise NotFoundError("File not found for conflict")

        resolved = conflict.remote_content
        if request.resolution == "keep_local":
            resolved = conflict.local_content
        elif request.resolution == "manual_merge":
            if not request.resolved_content:
                raise BadRequestError("resolvedContent is required for manual_merge")
            resolved = request.resolved_content

        digest = content_hash(resolved)
        entry.content = resolved
        entry.last_synced_hash = digest
        entry.last_synced_at = _now()
        entry.state = "ok"
        entry.add_version(resolved, digest, "merge")

        conflict.status = "resolved"
        conflict.resolution = request.resolution
        conflict.resolved_content = resolved
        conflict.resolved_at = _now()

        self._append_event(
            source.id,
            "conflict.resolved",
            conflict.relative_path,
            {"conflictId": conflict.id, "resolution": request.resolution, "hash": digest, "content": resolved},
        )
        self._append_event(
            source.id,
            "file.upsert",
            conflict.relative_path,
            {
                "operationId": f"resolve-{conflict.id}",
                "hash": digest,
                "contentType": entry.content_type,
                "content": resolved,
            },
        )
        return {
            "conflictId": conflict.id,
            "status": conflict.status,
            "resolution": conflict.resolution,
            "resolvedAt": conflict.resolved_at,
        }
