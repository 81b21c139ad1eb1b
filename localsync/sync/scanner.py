# LocalSync Local Scanner
# Bounded walk of the sync root producing fingerprinted documents

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from localsync.sync.ignore import IgnoreRules
from localsync.utils.hashing import content_hash
from localsync.utils.paths import relative_key

logger = logging.getLogger(__name__)

SYNC_EXTENSION = ".md"
CONTENT_TYPE = "text/markdown"
SKIP_DIRECTORIES = frozenset({".git", "node_modules"})


@dataclass
class ScannedFile:
    """A synchronized document observed during a scan."""

    relative_path: str
    fingerprint: str
    content: str
    size: int
    path: Path


@dataclass
class ScanLimits:
    """Bounds applied to one scan."""

    max_file_bytes: int = 1_000_000
    max_files: int = 10_000


def is_sync_candidate(name: str) -> bool:
    """Check whether a file name has the synchronized extension."""
    return name.lower().endswith(SYNC_EXTENSION)


def scan_tree(
    root: Path,
    rules: IgnoreRules,
    *,
    limits: ScanLimits | None = None,
    state_file_name: str | None = None,
) -> list[ScannedFile]:
    """
    Walk the sync root and collect synchronized documents.

    Version-control and dependency directories are skipped by name. Files
    over the byte limit, files rejected by the ignore rules, and the
    reserved state file are left out. The walk stops once the file cap is
    reached.

    Args:
        root: Sync root directory.
        rules: Compiled include/exclude/ignore rules.
        limits: Byte and file-count limits.
        state_file_name: Reserved state file name, never synchronized.

    Returns:
        Scanned files in walk order.
    """
    limits = limits or ScanLimits()
    found: list[ScannedFile] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRECTORIES)

        for filename in sorted(filenames):
            if len(found) >= limits.max_files:
                logger.debug("Scan stopped at %d files", limits.max_files)
                return found

            if not is_sync_candidate(filename):
                continue

            full_path = Path(dirpath) / filename
            if not full_path.is_file():
                continue

            rel = relative_key(full_path, root)
            if state_file_name and rel == state_file_name:
                continue

            try:
                size = full_path.stat().st_size
            except OSError as e:
                logger.warning("Cannot stat %s: %s", rel, e)
                continue
            if size > limits.max_file_bytes:
                logger.debug("Skipping %s: %d bytes exceeds limit", rel, size)
                continue

            if not rules.is_included(rel):
                continue

            try:
                raw = full_path.read_bytes()
                content = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable file %s: %s", rel, e)
                continue

            found.append(
                ScannedFile(
                    relative_path=rel,
                    fingerprint=content_hash(raw),
                    content=content,
                    size=size,
                    path=full_path,
                )
            )

    return found
