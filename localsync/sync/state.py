# LocalSync Daemon State
# Known fingerprints, outbound queue and remote cursor, persisted every tick

import logging
import re
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from localsync.utils.paths import atomic_write

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _snake_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Accept camelCase keys (localHashes, nextAttemptAt) alongside snake_case ones."""
    result = dict(data)
    for key, value in list(result.items()):
        if isinstance(key, str):
            result.setdefault(_CAMEL_BOUNDARY.sub(r"_\1", key).lower(), value)
    return result


def new_operation_id(relative_path: str = "") -> str:
    """Generate a unique operation id, tagged with the file name for readability."""
    name = Path(relative_path).name if relative_path else "op"
    return f"{uuid.uuid4().hex}-{name}"


@dataclass
class OutboundOperation:
    """A queued change waiting to be pushed to the server."""

    operation_id: str
    relative_path: str
    content: str
    content_hash: str
    content_type: str = "text/markdown"
    base_hash: Optional[str] = None
    is_delete: bool = False
    attempts: int = 0
    next_attempt_at: int = 0  # epoch milliseconds
    last_error: Optional[str] = None

    def is_ready(self, now_ms: int) -> bool:
        """Check whether the retry schedule allows delivery."""
        return self.next_attempt_at <= now_ms

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OutboundOperation":
        """Create from dictionary."""
        data = _snake_keys(data)
        return cls(
            operation_id=str(data["operation_id"]),
            relative_path=str(data["relative_path"]),
            content=data.get("content") or "",
            content_hash=data.get("content_hash") or "",
            content_type=data.get("content_type") or "text/markdown",
            base_hash=data.get("base_hash"),
            is_delete=bool(data.get("is_delete", False)),
            attempts=int(data.get("attempts", 0)),
            next_attempt_at=int(data.get("next_attempt_at", 0)),
            last_error=data.get("last_error"),
        )


@dataclass
class DaemonState:
    """
    Complete daemon state.

    Owned by a single daemon and passed by reference to every tick step.
    """

    version: str = STATE_VERSION
    last_saved: Optional[str] = None  # ISO format datetime
    local_hashes: dict[str, str] = field(default_factory=dict)
    queue: list[OutboundOperation] = field(default_factory=list)
    remote_cursor: int = 0

    def has_pending(self, relative_path: str) -> bool:
        """Check whether any operation for a path is still queued."""
        return any(op.relative_path == relative_path for op in self.queue)

    def find_queued(self, relative_path: str, content_hash: str) -> Optional[OutboundOperation]:
        """Find a queued operation for the same path and content."""
        for op in self.queue:
            if op.relative_path == relative_path and op.content_hash == content_hash:
                return op
        return None

    def has_queued_delete(self, relative_path: str) -> bool:
        return any(op.relative_path == relative_path and op.is_delete for op in self.queue)

    def ready_operations(self, now_ms: int, limit: int) -> list[OutboundOperation]:
        """Get up to limit ready operations in queue order."""
        return [op for op in self.queue if op.is_ready(now_ms)][:limit]

    def dequeue(self, operation_ids: set[str]) -> None:
        """Remove delivered operations."""
        self.queue = [op for op in self.queue if op.operation_id not in operation_ids]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "version": self.version,
            "last_saved": self.last_saved,
            "remote_cursor": self.remote_cursor,
            "local_hashes": dict(self.local_hashes),
            "queue": [op.to_dict() for op in self.queue],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DaemonState":
        """Create from dictionary, dropping malformed entries."""
        data = _snake_keys(data)
        hashes = data.get("local_hashes") or {}
        if not isinstance(hashes, dict):
            hashes = {}

        queue: list[OutboundOperation] = []
        raw_queue = data.get("queue") or []
        if isinstance(raw_queue, list):
            for entry in raw_queue:
                try:
                    queue.append(OutboundOperation.from_dict(entry))
                except (KeyError, TypeError, ValueError):
                    logger.warning("Dropping malformed queue entry: %r", entry)

        try:
            cursor = int(data.get("remote_cursor") or 0)
        except (TypeError, ValueError):
            cursor = 0

        return cls(
            version=str(data.get("version", STATE_VERSION)),
            last_saved=data.get("last_saved"),
            local_hashes={str(k): str(v) for k, v in hashes.items()},
            queue=queue,
            remote_cursor=cursor,
        )


class StateManager:
    """
    Manages daemon state persistence.

    Loading never fails: a missing, unreadable or corrupted file yields
    empty state. Saving replaces the file atomically.
    """

    def __init__(self, state_path: Path):
        """
        Initialize state manager.

        Args:
            state_path: Path to the state file inside the sync root.
        """
        self.state_path = state_path
        self._state: Optional[DaemonState] = None

    @property
    def state(self) -> DaemonState:
        """Get current state, loading if necessary."""
        if self._state is None:
            self._state = self.load()
        return self._state

    def load(self) -> DaemonState:
        """Load state from file."""
        if not self.state_path.exists():
            return DaemonState()

        try:
            raw = self.state_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot read state file %s: %s", self.state_path, e)
            return DaemonState()

        # JSON state files parse as YAML too
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError:
            logger.warning("Corrupted state file %s, starting empty", self.state_path)
            return DaemonState()

        if not isinstance(data, dict):
            return DaemonState()
        return DaemonState.from_dict(data)

    def save(self, state: Optional[DaemonState] = None) -> None:
        """Save state to file."""
        if state is not None:
            self._state = state
        current = self.state
        current.last_saved = datetime.now().isoformat()

        document = yaml.safe_dump(
            current.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        atomic_write(self.state_path, document)

    def reset(self) -> None:
        """Reset state to empty."""
        self._state = DaemonState()
        self.save()
