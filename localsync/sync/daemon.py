# LocalSync Daemon
# Fixed-interval tick loop: scan, enqueue, flush, pull, persist

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from localsync.api.client import LocalSyncClient
from localsync.api.models import SourceDescriptor, SourceMode, SourceStatus
from localsync.config.schema import DaemonSettings
from localsync.exceptions import ApiError, LocalSyncError, SourceNotFoundError
from localsync.sync.deltas import PullResult, pull_and_apply
from localsync.sync.ignore import IgnoreRules
from localsync.sync.queue import FlushResult, enqueue_changes, flush_queue
from localsync.sync.scanner import ScanLimits, scan_tree
from localsync.sync.state import DaemonState, StateManager

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Summary of one tick."""

    scanned: int = 0
    enqueued: int = 0
    flush: Optional[FlushResult] = None
    pull: Optional[PullResult] = None
    paused: bool = False
    error: Optional[str] = None

    @property
    def pushed(self) -> int:
        return self.flush.attempted if self.flush and self.flush.success else 0

    @property
    def pulled(self) -> int:
        return self.pull.applied if self.pull else 0


class Daemon:
    """
    Synchronization loop for one source and one local root.

    Owns the daemon state and hands it to every step of a tick. Only one
    tick runs at a time; a firing that arrives while a tick is running is
    skipped.
    """

    def __init__(
        self,
        client: LocalSyncClient,
        source_id: str,
        root: Path,
        settings: Optional[DaemonSettings] = None,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the daemon.

        Args:
            client: Server client.
            source_id: Source to synchronize.
            root: Local directory tree.
            settings: Loop, scan and delivery settings.
            clock: Wall clock in seconds, injectable for tests.
            sleep: Sleep function, injectable for tests.
        """
        self.client = client
        self.source_id = source_id
        self.root = Path(root).expanduser()
        self.settings = settings or DaemonSettings()
        self.clock = clock
        self.sleep = sleep

        self.state_manager = StateManager(self.root / self.settings.state_file_name)

        self.mode = SourceMode.IMPORT_ONLY
        self.status = SourceStatus.ACTIVE
        self.connector_id: Optional[str] = None
        self.include_patterns = list(self.settings.default_include)
        self.exclude_patterns = list(self.settings.default_exclude)

        self._ticking = False
        self._stopped = False
        self._last_heartbeat_ms = 0

    @property
    def state(self) -> DaemonState:
        return self.state_manager.state

    @property
    def state_path(self) -> Path:
        return self.state_manager.state_path

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def start(self) -> SourceDescriptor:
        """
        Load state and fetch the source descriptor.

        Raises:
            SourceNotFoundError: If the server does not know the source.
        """
        _ = self.state
        source = self.client.get_source(self.source_id)
        self._apply_source(source)
        logger.info(
            "Daemon started: source=%s mode=%s root=%s interval=%dms max_file_bytes=%d "
            "max_files_per_scan=%d state=%s",
            self.source_id,
            self.mode.value,
            self.root,
            self.settings.interval_ms,
            self.settings.max_file_bytes,
            self.settings.max_files_per_scan,
            self.state_path,
        )
        return source

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        self._stopped = True

    def _apply_source(self, source: SourceDescriptor) -> None:
        self.mode = source.mode
        self.status = source.status
        self.connector_id = source.connector_id
        # An empty list from the server keeps what we had
        if source.include_patterns:
            self.include_patterns = list(source.include_patterns)
        if source.exclude_patterns:
            self.exclude_patterns = list(source.exclude_patterns)

    def _refresh_source(self) -> None:
        try:
            self._apply_source(self.client.get_source(self.source_id))
        except SourceNotFoundError:
            logger.warning("Source %s no longer listed, keeping previous settings", self.source_id)

    def _maybe_heartbeat(self, now_ms: int) -> None:
        if not self.connector_id:
            return
        if now_ms - self._last_heartbeat_ms < self.settings.heartbeat_interval_ms:
            return
        try:
            self.client.heartbeat(self.connector_id)
        except ApiError as e:
            logger.warning("Heartbeat failed: %s", e)
            return
        self._last_heartbeat_ms = now_ms

    def _persist(self) -> None:
        if not self.root.is_dir():
            return
        try:
            self.state_manager.save()
        except OSError as e:
            logger.error("Cannot save state to %s: %s", self.state_path, e)

    def _run_tick(self, result: TickResult) -> None:
        if not self.root.is_dir():
            raise LocalSyncError(f"Sync root is not a directory: {self.root}")

        self._refresh_source()
        self._maybe_heartbeat(self.now_ms())

        if self.status == SourceStatus.PAUSED:
            result.paused = True
            return

        state = self.state
        remote_hashes = self.client.remote_file_map(self.source_id)

        rules = IgnoreRules.for_root(self.root, self.include_patterns, self.exclude_patterns)
        limits = ScanLimits(
            max_file_bytes=self.settings.max_file_bytes,
            max_files=self.settings.max_files_per_scan,
        )
        scanned = scan_tree(self.root, rules, limits=limits, state_file_name=self.settings.state_file_name)
        result.scanned = len(scanned)
        result.enqueued = len(enqueue_changes(state, scanned, remote_hashes))

        result.flush = flush_queue(
            self.client,
            self.source_id,
            state,
            self.now_ms(),
            batch_size=self.settings.batch_size,
        )

        if self.mode.pulls:
            result.pull = pull_and_apply(
                self.client,
                self.source_id,
                self.root,
                state,
                limit=self.settings.delta_page_size,
                rules=rules,
                limits=limits,
                state_file_name=self.settings.state_file_name,
            )

    def tick(self) -> Optional[TickResult]:
        """
        Run one synchronization pass.

        Errors are logged and never propagate; state is persisted whatever
        the outcome.

        Returns:
            TickResult, or None if a tick was already running.
        """
        if self._ticking:
            logger.debug("Tick already running, skipping")
            return None

        self._ticking = True
        result = TickResult()
        try:
            self._run_tick(result)
        except Exception as e:
            result.error = str(e)
            logger.error("Tick failed: %s", e)
        finally:
            self._persist()
            self._ticking = False

        self._log_tick(result)
        return result

    def _log_tick(self, result: TickResult) -> None:
        if result.paused:
            logger.debug("Source %s is paused", self.source_id)
            return
        if result.flush and result.flush.error:
            logger.warning(
                "Push failed for %d operation(s), %d queued: %s",
                result.flush.attempted,
                len(self.state.queue),
                result.flush.error,
            )
        elif result.pushed or result.pulled:
            logger.info(
                "Tick: scanned=%d enqueued=%d pushed=%d conflicts=%d pulled=%d queue=%d",
                result.scanned,
                result.enqueued,
                result.pushed,
                result.flush.conflicts if result.flush else 0,
                result.pulled,
                len(self.state.queue),
            )
        else:
            logger.debug("Tick: scanned=%d, nothing to do", result.scanned)

    def run(self, max_ticks: Optional[int] = None, *, start: bool = True) -> None:
        """
        Start the daemon and tick on a fixed interval until stopped.

        The first tick runs immediately. Firings missed while a tick ran
        long are dropped rather than run back to back.

        Args:
            max_ticks: Stop after this many ticks (unbounded when None).
            start: Call start() first; pass False when it already ran.

        Raises:
            SourceNotFoundError: If the source does not exist at startup.
        """
        if start:
            self.start()
        interval = self.settings.interval_ms / 1000.0
        next_fire = self.clock()
        ticks = 0

        try:
            while not self._stopped:
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break

                next_fire += interval
                now = self.clock()
                if next_fire <= now:
                    missed = int((now - next_fire) // interval) + 1
                    logger.debug("Dropping %d missed firing(s)", missed)
                    next_fire += missed * interval
                self.sleep(next_fire - now)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping daemon")
        finally:
            self._persist()
            self._stopped = True
