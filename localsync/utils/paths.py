# LocalSync Path Utilities
# Path normalization, root confinement and atomic writes

import os
import re
import tempfile
from pathlib import Path

from localsync.exceptions import UnsafePathError

_LEADING_DOT_SLASH = re.compile(r"^\.?/")


def normalize_relative_path(path: str | Path) -> str:
    """
    Convert a relative path to its canonical form.

    Backslashes become forward slashes and a single leading "./" or "/"
    is stripped, so the same logical file yields the same key on every OS.

    Args:
        path: Relative path string or Path object.

    Returns:
        Canonical "/"-separated relative path.
    """
    path_str = str(path).replace("\\", "/")
    return _LEADING_DOT_SLASH.sub("", path_str, count=1)


def relative_key(path: Path, root: Path) -> str:
    """
    Get the canonical key of a file below root.

    Args:
        path: Absolute or root-anchored file path.
        root: Synced root directory.

    Returns:
        Canonical relative path.
    """
    return normalize_relative_path(os.path.relpath(path, root))


def resolve_within_root(root: Path, relative_path: str) -> Path:
    """
    Resolve a server-provided relative path inside root.

    Args:
        root: Synced root directory.
        relative_path: Relative path as reported by the server.

    Returns:
        Absolute path inside root.

    Raises:
        UnsafePathError: If the path escapes root.
    """
    root_resolved = root.resolve()
    target = (root_resolved / normalize_relative_path(relative_path)).resolve()
    if target == root_resolved or not target.is_relative_to(root_resolved):
        raise UnsafePathError(f"Path escapes sync root: {relative_path}")
    return target


def ensure_dir(path: Path) -> Path:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path.

    Returns:
        The path that was ensured.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_delete(path: Path, *, missing_ok: bool = False) -> bool:
    """
    Delete a single file.

    Args:
        path: File to delete.
        missing_ok: If True, don't raise error if path doesn't exist.

    Returns:
        True if something was deleted, False if path didn't exist.

    Raises:
        FileNotFoundError: If path doesn't exist and missing_ok is False.
    """
    if not path.exists():
        if missing_ok:
            return False
        raise FileNotFoundError(f"Path does not exist: {path}")

    path.unlink()
    return True


def atomic_write(path: Path, content: str | bytes, *, encoding: str = "utf-8") -> None:
    """
    Atomically write content to file.

    Uses a temporary file in the same directory and an atomic rename, so
    readers never observe a truncated file.

    Args:
        path: Target file path.
        content: Content to write (str or bytes).
        encoding: Encoding for string content (default utf-8).
    """
    ensure_dir(path.parent)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if isinstance(content, str):
            # newline="" keeps content byte-for-byte, fingerprints depend on it
            with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
                f.write(content)
        else:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
