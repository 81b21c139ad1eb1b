# Tests for localsync.sync.daemon
# End-to-end ticks against the in-memory server

import shutil
from unittest.mock import patch

import httpx
import pytest

from localsync.api.client import LocalSyncClient
from localsync.api.models import KeepRemote, SourceMode
from localsync.config.schema import DaemonSettings
from localsync.exceptions import ApiError, SourceNotFoundError
from localsync.server import make_handler
from localsync.sync.daemon import Daemon
from localsync.sync.state import StateManager
from localsync.utils.hashing import content_hash


def _make_daemon(client, source_id, root, settings, clock) -> Daemon:
    daemon = Daemon(client, source_id, root, settings, clock=clock, sleep=clock.sleep)
    daemon.start()
    return daemon


class TestDaemonStartup:
    """Tests for Daemon.start."""

    def test_unknown_source_is_fatal(self, client, sync_root, settings, clock):
        daemon = Daemon(client, "missing", sync_root, settings, clock=clock)
        with pytest.raises(SourceNotFoundError):
            daemon.start()

    def test_adopts_source_settings(self, client, bidi_source_id, sync_root, settings, clock):
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        assert daemon.mode == SourceMode.BIDIRECTIONAL
        assert daemon.include_patterns == ["**/*.md"]
        assert daemon.connector_id is not None

    def test_empty_server_patterns_keep_defaults(self, client, connector_id, sync_root, settings, clock):
        source_id = client.create_source(connector_id, "bare", "import_only", [], [])["id"]
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        assert daemon.include_patterns == ["**/*.md"]
        assert daemon.exclude_patterns == ["**/.git/**", "**/node_modules/**"]


class TestDaemonTick:
    """Tests for Daemon.tick."""

    def test_scenario_new_file_pushed(self, client, source_id, service, sync_root, settings, clock):
        """A new file is pushed without a base hash and becomes known."""
        (sync_root / "notes").mkdir()
        (sync_root / "notes" / "a.md").write_text("hello", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        with patch.object(client, "push_batch", wraps=client.push_batch) as push:
            result = daemon.tick()

        (items,) = [call.args[1] for call in push.call_args_list]
        assert items[0].relative_path == "notes/a.md"
        assert items[0].base_hash is None

        assert result.error is None
        assert result.pushed == 1
        assert daemon.state.local_hashes == {"notes/a.md": content_hash("hello")}
        assert daemon.state.queue == []
        assert service.files[(source_id, "notes/a.md")].content == "hello"

    def test_idempotent_second_tick(self, client, source_id, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        daemon.tick()
        second = daemon.tick()

        assert second.enqueued == 0
        assert second.pushed == 0

    def test_deletion_symmetry(self, client, source_id, service, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        daemon.tick()

        (sync_root / "a.md").unlink()
        result = daemon.tick()

        assert result.enqueued == 1
        assert "a.md" not in daemon.state.local_hashes
        assert (source_id, "a.md") not in service.files
        assert daemon.tick().enqueued == 0

    def test_scenario_oversized_file_ignored(self, client, source_id, service, sync_root, clock):
        """A file over the byte limit is never enqueued or reported."""
        settings = DaemonSettings(max_file_bytes=1_000_000)
        (sync_root / "big.md").write_text("x" * 2_000_000, encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        result = daemon.tick()

        assert result.enqueued == 0
        assert daemon.state.queue == []
        assert service.files == {}

    def test_state_persisted_each_tick(self, client, source_id, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        daemon.tick()

        saved = StateManager(sync_root / settings.state_file_name).load()
        assert saved.local_hashes == {"a.md": content_hash("x")}

    def test_state_survives_restart(self, client, source_id, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        _make_daemon(client, source_id, sync_root, settings, clock).tick()

        restarted = _make_daemon(client, source_id, sync_root, settings, clock)
        assert restarted.tick().enqueued == 0

    def test_paused_source_pushes_nothing(self, client, source_id, service, sync_root, settings, clock):
        client.pause_source(source_id)
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        result = daemon.tick()

        assert result.paused
        assert daemon.state.queue == []
        assert service.files == {}
        assert (sync_root / settings.state_file_name).exists()

    def test_resumed_source_pushes(self, client, source_id, service, sync_root, settings, clock):
        client.pause_source(source_id)
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        daemon.tick()

        client.resume_source(source_id)
        result = daemon.tick()

        assert not result.paused
        assert (source_id, "a.md") in service.files

    def test_missing_root_aborts_tick(self, client, source_id, sync_root, settings, clock):
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        shutil.rmtree(sync_root)

        result = daemon.tick()

        assert result.error is not None
        assert not sync_root.exists()

    def test_push_failure_is_recovered(self, connector_config, service, source_id, sync_root, settings, clock):
        healthy = make_handler(service)
        outage = {"on": False}

        def handler(request: httpx.Request) -> httpx.Response:
            if outage["on"] and request.url.path.endswith("push-batch"):
                return httpx.Response(500, json={"message": "database down"})
            return healthy(request)

        with LocalSyncClient(connector_config, transport=httpx.MockTransport(handler)) as flaky:
            (sync_root / "a.md").write_text("x", encoding="utf-8")
            daemon = _make_daemon(flaky, source_id, sync_root, settings, clock)

            outage["on"] = True
            failed = daemon.tick()
            assert failed.flush.error is not None
            (op,) = daemon.state.queue
            assert op.attempts == 1
            assert "database down" in op.last_error

            outage["on"] = False
            clock.advance(0.5)
            assert daemon.tick().flush.attempted == 0

            clock.advance(1)
            recovered = daemon.tick()
            assert recovered.pushed == 1
            assert daemon.state.queue == []

    def test_tick_exception_is_contained(self, client, source_id, sync_root, settings, clock):
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        with patch.object(client, "remote_file_map", side_effect=RuntimeError("boom")):
            result = daemon.tick()
        assert result.error == "boom"
        assert (sync_root / settings.state_file_name).exists()

    def test_overlapping_tick_skipped(self, client, source_id, sync_root, settings, clock):
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        daemon._ticking = True
        assert daemon.tick() is None


class TestHeartbeat:
    """Tests for heartbeat scheduling."""

    def test_heartbeat_throttled(self, client, source_id, sync_root, settings, clock):
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        with patch.object(client, "heartbeat", wraps=client.heartbeat) as beat:
            daemon.tick()
            clock.advance(10)
            daemon.tick()
            clock.advance(25)
            daemon.tick()

        assert beat.call_count == 2

    def test_heartbeat_failure_non_fatal(self, client, source_id, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)

        with patch.object(client, "heartbeat", side_effect=ApiError("HTTP 404 Not Found")):
            result = daemon.tick()

        assert result.error is None
        assert result.pushed == 1


class TestBidirectional:
    """Tests for pulling remote changes."""

    def test_remote_edit_applied(self, client, bidi_source_id, service, sync_root, settings, clock):
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        service.edit_file(bidi_source_id, "web.md", "written in the browser")

        result = daemon.tick()

        assert result.pulled == 1
        assert (sync_root / "web.md").read_text(encoding="utf-8") == "written in the browser"
        assert daemon.tick().enqueued == 0

    def test_import_only_does_not_pull(self, client, source_id, service, sync_root, settings, clock):
        daemon = _make_daemon(client, source_id, sync_root, settings, clock)
        service.edit_file(source_id, "web.md", "remote")

        result = daemon.tick()

        assert result.pull is None
        assert not (sync_root / "web.md").exists()

    def test_remote_file_in_ignored_directory_kept_on_server(
        self, client, bidi_source_id, service, sync_root, settings, clock
    ):
        (sync_root / ".gitignore").write_text("drafts/\n", encoding="utf-8")
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        service.edit_file(bidi_source_id, "drafts/shared.md", "collaborator draft")

        for _ in range(3):
            result = daemon.tick()
            assert result.enqueued == 0

        assert not (sync_root / "drafts" / "shared.md").exists()
        assert "drafts/shared.md" not in daemon.state.local_hashes
        assert service.files[(bidi_source_id, "drafts/shared.md")].content == "collaborator draft"

    def test_oversized_remote_file_kept_on_server(self, client, bidi_source_id, service, sync_root, clock):
        settings = DaemonSettings(max_file_bytes=10)
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        service.edit_file(bidi_source_id, "big.md", "x" * 50)

        daemon.tick()
        assert daemon.tick().enqueued == 0

        assert not (sync_root / "big.md").exists()
        assert (bidi_source_id, "big.md") in service.files

    def test_unwritable_remote_event_does_not_block_pulls(
        self, client, bidi_source_id, service, sync_root, settings, clock
    ):
        (sync_root / "dir.md").mkdir()
        (sync_root / "dir.md" / "inner.md").write_text("local", encoding="utf-8")
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        daemon.tick()

        service.edit_file(bidi_source_id, "dir.md", "x")
        service.edit_file(bidi_source_id, "b.md", "later change")
        result = daemon.tick()

        assert result.error is None
        assert (sync_root / "b.md").read_text(encoding="utf-8") == "later change"

    def test_remote_delete_applied(self, client, bidi_source_id, service, sync_root, settings, clock):
        (sync_root / "a.md").write_text("x", encoding="utf-8")
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        daemon.tick()

        service.files.pop((bidi_source_id, "a.md"))
        service._append_event(bidi_source_id, "file.delete", "a.md")
        daemon.tick()

        assert not (sync_root / "a.md").exists()
        assert "a.md" not in daemon.state.local_hashes

    def test_scenario_conflict_keep_remote(self, client, bidi_source_id, service, sync_root, settings, clock):
        """A stale push conflicts; keeping the remote side replaces the local edit."""
        note = sync_root / "notes" / "a.md"
        note.parent.mkdir()
        note.write_text("hello", encoding="utf-8")
        daemon = _make_daemon(client, bidi_source_id, sync_root, settings, clock)
        daemon.tick()

        # Local edit based on H1 while the server moves to H2
        note.write_text("local edit", encoding="utf-8")
        with patch.object(client, "remote_file_map", return_value={"notes/a.md": content_hash("hello")}):
            service.edit_file(bidi_source_id, "notes/a.md", "server edit")
            result = daemon.tick()

        assert result.flush.conflicts == 1
        conflicts = client.list_conflicts(bidi_source_id)
        assert len(conflicts) == 1
        assert conflicts[0].local_content == "local edit"
        assert conflicts[0].remote_content == "server edit"

        client.resolve_conflict(bidi_source_id, conflicts[0].id, KeepRemote())
        daemon.tick()

        assert note.read_text(encoding="utf-8") == "server edit"
        assert client.list_conflicts(bidi_source_id) == []
        assert daemon.tick().enqueued == 0


class TestRunLoop:
    """Tests for Daemon.run."""

    def test_fixed_interval(self, client, source_id, sync_root, clock):
        settings = DaemonSettings(interval_ms=2000)
        daemon = Daemon(client, source_id, sync_root, settings, clock=clock, sleep=clock.sleep)

        daemon.run(max_ticks=3)

        assert clock.sleeps == [2.0, 2.0]

    def test_missed_firings_dropped(self, client, source_id, sync_root, clock):
        settings = DaemonSettings(interval_ms=1000)
        daemon = Daemon(client, source_id, sync_root, settings, clock=clock, sleep=clock.sleep)

        original_tick = daemon.tick

        def slow_tick():
            result = original_tick()
            clock.advance(3.5)
            return result

        with patch.object(daemon, "tick", side_effect=slow_tick):
            daemon.run(max_ticks=2)

        # Tick ended 3.5 s after the first firing; the 1 s, 2 s and 3 s firings are dropped
        assert clock.sleeps == [pytest.approx(0.5)]

    def test_keyboard_interrupt_stops(self, client, source_id, sync_root, settings, clock):
        daemon = Daemon(client, source_id, sync_root, settings, clock=clock, sleep=clock.sleep)

        with patch.object(daemon, "tick", side_effect=KeyboardInterrupt):
            daemon.run()

        assert (sync_root / settings.state_file_name).exists()

    def test_stop(self, client, source_id, sync_root, settings, clock):
        daemon = Daemon(client, source_id, sync_root, settings, clock=clock, sleep=clock.sleep)
        calls = []

        def tick_then_stop():
            calls.append(1)
            daemon.stop()

        with patch.object(daemon, "tick", side_effect=tick_then_stop):
            daemon.run()

        assert calls == [1]
