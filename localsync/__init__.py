"""localsync - Local folder connector for a collaborative document server.

Watches a local directory tree of Markdown files, pushes changes to the
server with optimistic concurrency, and in bidirectional mode applies
remote changes back to disk.
"""

__version__ = "0.1.0"
__author__ = "localsync contributors"

__all__ = [
    "__version__",
    "Daemon",
    "DaemonState",
    "StateManager",
    "LocalSyncClient",
    "ConflictWorkflow",
    "load_config",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name == "Daemon":
        from localsync.sync.daemon import Daemon

        return Daemon
    if name in ("DaemonState", "StateManager"):
        from localsync.sync import state

        return getattr(state, name)
    if name == "LocalSyncClient":
        from localsync.api.client import LocalSyncClient

        return LocalSyncClient
    if name == "ConflictWorkflow":
        from localsync.conflicts.workflow import ConflictWorkflow

        return ConflictWorkflow
    if name == "load_config":
        from localsync.config.loader import load_config

        return load_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
