# LocalSync Delta Applier
# Pull remote change events and apply them to the local tree

import logging
from dataclasses import dataclass
from pathlib import Path

from localsync.api.client import LocalSyncClient
from localsync.api.models import DeleteEvent, DeltaEvent, OtherEvent, UpsertEvent
from localsync.exceptions import UnsafePathError
from localsync.sync.ignore import IgnoreRules
from localsync.sync.scanner import ScanLimits, is_sync_candidate
from localsync.sync.state import DaemonState
from localsync.utils.hashing import content_hash
from localsync.utils.paths import atomic_write, normalize_relative_path, resolve_within_root, safe_delete

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200


@dataclass
class PullResult:
    """Outcome of one delta pull."""

    pulled: int = 0
    applied: int = 0
    skipped: int = 0
    next_cursor: int = 0


def apply_delta_event(root: Path, state: DaemonState, event: DeltaEvent) -> bool:
    """
    Apply one remote event to disk.

    Events for paths with queued outbound operations are left alone; the
    local change wins until it has been delivered.

    Args:
        root: Sync root directory.
        state: Daemon state, updated in place.
        event: Parsed delta event.

    Returns:
        True if the event changed the local tree.

    Raises:
        UnsafePathError: If the event path escapes root.
    """
    if isinstance(event, OtherEvent):
        return False

    rel = normalize_relative_path(event.relative_path)
    if state.has_pending(rel):
        logger.debug("Skipping remote change for %s: local operation pending", rel)
        return False

    target = resolve_within_root(root, rel)

    if isinstance(event, UpsertEvent):
        atomic_write(target, event.content)
        state.local_hashes[rel] = event.hash or content_hash(event.content)
        logger.debug("Applied remote upsert %s", rel)
        return True

    if isinstance(event, DeleteEvent):
        safe_delete(target, missing_ok=True)
        state.local_hashes.pop(rel, None)
        logger.debug("Applied remote delete %s", rel)
        return True

    raise TypeError(f"Unhandled delta event: {event!r}")


def is_locally_excluded(
    event: DeltaEvent,
    rules: IgnoreRules | None = None,
    limits: ScanLimits | None = None,
    state_file_name: str | None = None,
) -> bool:
    """Check whether the local scan would never see the event's path."""
    if isinstance(event, OtherEvent):
        return False

    rel = normalize_relative_path(event.relative_path)
    if not is_sync_candidate(rel) or (state_file_name and rel == state_file_name):
        return True
    if rules is not None and not rules.is_included(rel):
        return True
    if limits is not None and isinstance(event, UpsertEvent):
        return len(event.content.encode("utf-8")) > limits.max_file_bytes
    return False


def pull_and_apply(
    client: LocalSyncClient,
    source_id: str,
    root: Path,
    state: DaemonState,
    limit: int = DEFAULT_PAGE_SIZE,
    *,
    rules: IgnoreRules | None = None,
    limits: ScanLimits | None = None,
    state_file_name: str | None = None,
) -> PullResult:
    """
    Fetch one page of remote events after the stored cursor and apply it.

    Events for paths the local rules exclude are skipped, so an excluded
    file is never written locally and later mistaken for a local delete.
    A single event that cannot be written is skipped with a warning. The
    cursor advances to the server's next cursor once the page has been
    processed.

    Args:
        client: Server client.
        source_id: Source being synchronized.
        root: Sync root directory.
        state: Daemon state, updated in place.
        limit: Maximum events per page.
        rules: Include/exclude/ignore rules of the current scan.
        limits: Byte limit of the current scan.
        state_file_name: Reserved state file name.

    Returns:
        PullResult with counts and the new cursor.
    """
    page = client.pull_deltas(source_id, state.remote_cursor, limit)
    result = PullResult(pulled=len(page.events))

    for event in page.events:
        if is_locally_excluded(event, rules, limits, state_file_name):
            logger.debug("Skipping remote change for excluded path %s", event.relative_path)
            result.skipped += 1
            continue
        try:
            changed = apply_delta_event(root, state, event)
        except UnsafePathError as e:
            logger.warning("Ignoring remote event at cursor %d: %s", event.cursor, e)
            changed = False
        except OSError as e:
            logger.warning("Cannot apply remote event at cursor %d: %s", event.cursor, e)
            changed = False
        if changed:
            result.applied += 1
        else:
            result.skipped += 1

    state.remote_cursor = page.next_cursor
    result.next_cursor = page.next_cursor
    return result
