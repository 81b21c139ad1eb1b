"""HTTP client for the local-sync server API."""

from __future__ import annotations

import json
import logging
import platform
from typing import Any, Optional

import httpx

from localsync import __version__
from localsync.api.models import (
    ConflictPreview,
    ConflictRecord,
    DeltaPage,
    PushItem,
    PushResult,
    Resolution,
    SourceDescriptor,
    resolution_payload,
)
from localsync.config.schema import ConnectorConfig
from localsync.exceptions import ApiError, SourceNotFoundError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/local-sync"
ERROR_BODY_LIMIT = 500


class LocalSyncClient:
    """Client for the local-sync endpoints of a document server.

    Every call is a JSON POST authenticated with a bearer token and scoped
    to one workspace. Non-2xx responses and transport failures raise
    ApiError.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        self.client = httpx.Client(
            base_url=config.server_url,
            headers={
                "Authorization": f"Bearer {config.token}",
                "x-workspace-id": config.workspace_id,
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> LocalSyncClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def post(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON body to an API path and decode the reply.

        Raises:
            ApiError: On transport failure or a non-2xx status.
        """
        url = f"{API_PREFIX}/{path}"
        try:
            resp = self.client.post(url, json=body)
        except httpx.HTTPError as e:
            raise ApiError(f"POST {url} failed: {e}") from e

        text = resp.text
        if resp.is_error:
            raise ApiError(
                f"HTTP {resp.status_code} {resp.reason_phrase}: {text[:ERROR_BODY_LIMIT]}",
                status_code=resp.status_code,
                body=text[:ERROR_BODY_LIMIT],
            )

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return {"ok": True, "raw": text}

    # Connectors

    def register(self, name: str, *, platform_name: Optional[str] = None, version: str = __version__) -> Any:
        return self.post(
            "connectors/register",
            {"name": name, "platform": platform_name or platform.system().lower(), "version": version},
        )

    def heartbeat(self, connector_id: str) -> Any:
        return self.post("connectors/heartbeat", {"connectorId": connector_id})

    # Sources

    def create_source(
        self,
        connector_id: str,
        name: str,
        mode: str,
        include_patterns: list[str],
        exclude_patterns: list[str],
    ) -> Any:
        return self.post(
            "sources",
            {
                "connectorId": connector_id,
                "name": name,
                "mode": mode,
                "includePatterns": include_patterns,
                "excludePatterns": exclude_patterns,
            },
        )

    def list_sources(self) -> list[dict[str, Any]]:
        result = self.post("sources/list", {})
        return result if isinstance(result, list) else []

    def get_source(self, source_id: str) -> SourceDescriptor:
        """Look up one source by id.

        Raises:
            SourceNotFoundError: If the server does not list the source.
        """
        for item in self.list_sources():
            if item.get("id") == source_id:
                return SourceDescriptor.from_dict(item)
        raise SourceNotFoundError(f"Source not found: {source_id}")

    def pause_source(self, source_id: str) -> Any:
        return self.post("sources/pause", {"sourceId": source_id})

    def resume_source(self, source_id: str) -> Any:
        return self.post("sources/resume", {"sourceId": source_id})

    # Files

    def list_source_files(self, source_id: str) -> list[dict[str, Any]]:
        result = self.post("sources/files", {"sourceId": source_id})
        return result if isinstance(result, list) else []

    def remote_file_map(self, source_id: str) -> dict[str, str]:
        """Map each tracked path to the server's current fingerprint."""
        remote: dict[str, str] = {}
        for item in self.list_source_files(source_id):
            rel = item.get("relativePath")
            synced = item.get("lastSyncedHash")
            if rel and synced:
                remote[rel] = synced
        return remote

    def file_history(self, source_id: str, relative_path: str) -> Any:
        return self.post("sources/history", {"sourceId": source_id, "relativePath": relative_path})

    def push_batch_raw(self, source_id: str, items: list[PushItem]) -> Any:
        return self.post(
            "sources/push-batch",
            {"sourceId": source_id, "items": [item.to_payload() for item in items]},
        )

    def push_batch(self, source_id: str, items: list[PushItem]) -> PushResult:
        result = self.push_batch_raw(source_id, items)
        return PushResult.from_dict(result if isinstance(result, dict) else {})

    def pull_deltas_raw(self, source_id: str, cursor: int, limit: int) -> Any:
        return self.post("sources/deltas", {"sourceId": source_id, "cursor": cursor, "limit": limit})

    def pull_deltas(self, source_id: str, cursor: int, limit: int = 200) -> DeltaPage:
        result = self.pull_deltas_raw(source_id, cursor, limit)
        return DeltaPage.from_dict(result if isinstance(result, dict) else {}, cursor)

    # Conflicts

    def list_conflicts_raw(self, source_id: str) -> Any:
        return self.post("sources/conflicts", {"sourceId": source_id})

    def list_conflicts(self, source_id: str) -> list[ConflictRecord]:
        result = self.list_conflicts_raw(source_id)
        return [ConflictRecord.from_dict(item) for item in result] if isinstance(result, list) else []

    def conflict_preview_raw(self, source_id: str, conflict_id: str) -> Any:
        return self.post(
            "sources/conflicts/preview",
            {"sourceId": source_id, "conflictId": conflict_id},
        )

    def conflict_preview(self, source_id: str, conflict_id: str) -> ConflictPreview:
        result = self.conflict_preview_raw(source_id, conflict_id)
        return ConflictPreview.from_dict(result if isinstance(result, dict) else {})

    def resolve_conflict(self, source_id: str, conflict_id: str, resolution: Resolution) -> Any:
        body = {"sourceId": source_id, "conflictId": conflict_id, **resolution_payload(resolution)}
        return self.post("sources/conflicts/resolve", body)
