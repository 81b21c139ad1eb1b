# LocalSync Reference Server Requests
# Pydantic models validating request bodies of the local-sync endpoints

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Mode = Literal["import_only", "local_to_cloud", "bidirectional"]
ResolutionName = Literal["keep_local", "keep_raven", "manual_merge"]


class Request(BaseModel):
    """Base request: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RegisterConnectorRequest(Request):
    name: str
    platform: str
    version: Optional[str] = None


class HeartbeatRequest(Request):
    connector_id: str = Field(alias="connectorId")


class CreateSourceRequest(Request):
    name: str
    mode: Mode
    connector_id: str = Field(alias="connectorId")
    include_patterns: list[str] = Field(default_factory=list, alias="includePatterns")
    exclude_patterns: list[str] = Field(default_factory=list, alias="excludePatterns")


class SourceRequest(Request):
    source_id: str = Field(alias="sourceId")


class DeltasRequest(SourceRequest):
    cursor: int = Field(default=0, ge=0)
    limit: int = Field(default=100, ge=1, le=500)


class PushItemRequest(Request):
    operation_id: str = Field(alias="operationId")
    relative_path: str = Field(alias="relativePath")
    content: str
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_hash: Optional[str] = Field(default=None, alias="contentHash")
    base_hash: Optional[str] = Field(default=None, alias="baseHash")
    is_delete: bool = Field(default=False, alias="isDelete")


class PushBatchRequest(SourceRequest):
    items: list[PushItemRequest] = Field(max_length=100)


class ConflictRequest(SourceRequest):
    conflict_id: str = Field(alias="conflictId")


class ResolveRequest(ConflictRequest):
    resolution: ResolutionName
    resolved_content: Optional[str] = Field(default=None, alias="resolvedContent")


class HistoryRequest(SourceRequest):
    relative_path: str = Field(alias="relativePath")
