# LocalSync Sync Module
# Scanning, outbound queue, delta application and the daemon loop

from localsync.sync.daemon import Daemon, TickResult
from localsync.sync.deltas import PullResult, apply_delta_event, pull_and_apply
from localsync.sync.ignore import IgnoreRules, glob_to_regex
from localsync.sync.queue import FlushResult, backoff_ms, enqueue_changes, flush_queue
from localsync.sync.scanner import ScanLimits, ScannedFile, scan_tree
from localsync.sync.state import DaemonState, OutboundOperation, StateManager

__all__ = [
    # Daemon
    "Daemon",
    "TickResult",
    # State
    "DaemonState",
    "OutboundOperation",
    "StateManager",
    # Scanning
    "IgnoreRules",
    "glob_to_regex",
    "ScanLimits",
    "ScannedFile",
    "scan_tree",
    # Queue
    "FlushResult",
    "backoff_ms",
    "enqueue_changes",
    "flush_queue",
    # Deltas
    "PullResult",
    "apply_delta_event",
    "pull_and_apply",
]
