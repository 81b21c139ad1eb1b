# LocalSync API Module
# Server client and typed payloads

from localsync.api.client import LocalSyncClient
from localsync.api.models import (
    ConflictPreview,
    ConflictRecord,
    DeleteEvent,
    DeltaEvent,
    DeltaPage,
    KeepLocal,
    KeepRemote,
    LineChange,
    ManualMerge,
    OtherEvent,
    PushItem,
    PushResult,
    Resolution,
    SourceDescriptor,
    SourceMode,
    SourceStatus,
    UpsertEvent,
    parse_delta_event,
    parse_resolution,
)

__all__ = [
    # Client
    "LocalSyncClient",
    # Sources
    "SourceDescriptor",
    "SourceMode",
    "SourceStatus",
    # Push
    "PushItem",
    "PushResult",
    # Deltas
    "DeltaEvent",
    "DeltaPage",
    "UpsertEvent",
    "DeleteEvent",
    "OtherEvent",
    "parse_delta_event",
    # Conflicts
    "ConflictRecord",
    "ConflictPreview",
    "LineChange",
    "Resolution",
    "KeepLocal",
    "KeepRemote",
    "ManualMerge",
    "parse_resolution",
]
