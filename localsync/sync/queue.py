# LocalSync Outbound Queue
# Diff scanned files against known fingerprints, deliver queued operations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Optional

from localsync.api.client import LocalSyncClient
from localsync.api.models import PushItem
from localsync.exceptions import ApiError
from localsync.sync.scanner import CONTENT_TYPE, ScannedFile
from localsync.sync.state import DaemonState, OutboundOperation, new_operation_id
from localsync.utils.hashing import EMPTY_HASH

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 25
MAX_BACKOFF_MS = 60_000
BASE_BACKOFF_MS = 1_000


def backoff_ms(attempts: int) -> int:
    """
    Delay before the next delivery attempt.

    Doubles from one second per failed attempt, capped at one minute.
    """
    return min(MAX_BACKOFF_MS, BASE_BACKOFF_MS * 2 ** max(0, attempts - 1))


@dataclass
class FlushResult:
    """Outcome of one delivery attempt."""

    attempted: int = 0
    applied: int = 0
    conflicts: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


def enqueue_changes(
    state: DaemonState,
    scanned: Iterable[ScannedFile],
    remote_hashes: Mapping[str, str],
) -> list[OutboundOperation]:
    """
    Queue operations for everything that changed since the last tick.

    Changed files become upserts whose base hash is the server's current
    fingerprint. Known paths missing from the scan become deletes.

    Args:
        state: Daemon state, updated in place.
        scanned: Result of the current scan.
        remote_hashes: Server fingerprint per tracked path.

    Returns:
        Operations added to the queue.
    """
    added: list[OutboundOperation] = []
    seen: set[str] = set()

    for item in scanned:
        seen.add(item.relative_path)
        if state.local_hashes.get(item.relative_path) == item.fingerprint:
            continue

        if state.find_queued(item.relative_path, item.fingerprint) is None:
            op = OutboundOperation(
                operation_id=new_operation_id(item.relative_path),
                relative_path=item.relative_path,
                content=item.content,
                content_hash=item.fingerprint,
                content_type=CONTENT_TYPE,
                base_hash=remote_hashes.get(item.relative_path),
            )
            state.queue.append(op)
            added.append(op)
            logger.debug("Queued upsert %s (%s)", item.relative_path, item.fingerprint[:12])

        state.local_hashes[item.relative_path] = item.fingerprint

    for rel, known_hash in list(state.local_hashes.items()):
        if rel in seen or state.has_queued_delete(rel):
            continue
        op = OutboundOperation(
            operation_id=new_operation_id(rel),
            relative_path=rel,
            content="",
            content_hash=EMPTY_HASH,
            content_type=CONTENT_TYPE,
            base_hash=remote_hashes.get(rel) or known_hash,
            is_delete=True,
        )
        state.queue.append(op)
        added.append(op)
        logger.debug("Queued delete %s", rel)

    return added


def _to_push_item(op: OutboundOperation) -> PushItem:
    return PushItem(
        operation_id=op.operation_id,
        relative_path=op.relative_path,
        content=op.content,
        content_hash=op.content_hash,
        content_type=op.content_type,
        base_hash=op.base_hash,
        is_delete=op.is_delete,
    )


def flush_queue(
    client: LocalSyncClient,
    source_id: str,
    state: DaemonState,
    now_ms: int,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> FlushResult:
    """
    Submit up to batch_size ready operations as one batch.

    On success every submitted operation is dequeued, conflicted ones
    included, and the known fingerprints follow what was sent. On failure
    the operations stay queued with a later next_attempt_at.

    Args:
        client: Server client.
        source_id: Target source.
        state: Daemon state, updated in place.
        now_ms: Current time in epoch milliseconds.
        batch_size: Maximum operations per batch.

    Returns:
        FlushResult describing the attempt.
    """
    ready = state.ready_operations(now_ms, batch_size)
    if not ready:
        return FlushResult()

    try:
        result = client.push_batch(source_id, [_to_push_item(op) for op in ready])
    except ApiError as e:
        message = str(e)
        for op in ready:
            op.attempts += 1
            op.last_error = message
            op.next_attempt_at = now_ms + backoff_ms(op.attempts)
        logger.debug("Push of %d operation(s) failed: %s", len(ready), message)
        return FlushResult(attempted=len(ready), error=message)

    for op in ready:
        if op.is_delete:
            state.local_hashes.pop(op.relative_path, None)
        else:
            state.local_hashes[op.relative_path] = op.content_hash
    state.dequeue({op.operation_id for op in ready})

    return FlushResult(attempted=len(ready), applied=result.applied, conflicts=result.conflicts)
