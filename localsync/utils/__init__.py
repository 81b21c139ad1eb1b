# LocalSync Utilities Module
# Helper functions for path handling and content hashing

from localsync.utils.hashing import (
    EMPTY_HASH,
    content_hash,
)
from localsync.utils.paths import (
    atomic_write,
    ensure_dir,
    normalize_relative_path,
    relative_key,
    resolve_within_root,
    safe_delete,
)

__all__ = [
    # Paths
    "normalize_relative_path",
    "relative_key",
    "resolve_within_root",
    "ensure_dir",
    "safe_delete",
    "atomic_write",
    # Hashing
    "EMPTY_HASH",
    "content_hash",
]
