# Tests for localsync.sync.state
# Daemon state model and persistence

import json

import yaml

from localsync.sync.state import DaemonState, OutboundOperation, StateManager, new_operation_id


def _op(rel: str = "a.md", content_hash: str = "h1", **kwargs) -> OutboundOperation:
    return OutboundOperation(
        operation_id=new_operation_id(rel),
        relative_path=rel,
        content="x",
        content_hash=content_hash,
        **kwargs,
    )


class TestNewOperationId:
    """Tests for new_operation_id."""

    def test_unique(self):
        assert new_operation_id("a.md") != new_operation_id("a.md")

    def test_tagged_with_name(self):
        assert new_operation_id("notes/a.md").endswith("-a.md")


class TestOutboundOperation:
    """Tests for OutboundOperation."""

    def test_is_ready(self):
        op = _op(next_attempt_at=1000)
        assert not op.is_ready(999)
        assert op.is_ready(1000)

    def test_round_trip_drops_none(self):
        op = _op(base_hash=None)
        data = op.to_dict()
        assert "base_hash" not in data
        assert OutboundOperation.from_dict(data) == op


class TestDaemonState:
    """Tests for DaemonState."""

    def test_find_queued(self):
        state = DaemonState(queue=[_op("a.md", "h1")])
        assert state.find_queued("a.md", "h1") is not None
        assert state.find_queued("a.md", "h2") is None

    def test_has_pending(self):
        state = DaemonState(queue=[_op("a.md")])
        assert state.has_pending("a.md")
        assert not state.has_pending("b.md")

    def test_ready_operations_respects_order_and_limit(self):
        ops = [_op(f"{i}.md") for i in range(5)]
        ops[1].next_attempt_at = 10_000
        state = DaemonState(queue=ops)

        ready = state.ready_operations(now_ms=5_000, limit=3)
        assert [o.relative_path for o in ready] == ["0.md", "2.md", "3.md"]

    def test_dequeue(self):
        ops = [_op("a.md"), _op("b.md")]
        state = DaemonState(queue=ops)
        state.dequeue({ops[0].operation_id})
        assert [o.relative_path for o in state.queue] == ["b.md"]

    def test_from_dict_drops_malformed_entries(self):
        state = DaemonState.from_dict(
            {
                "local_hashes": {"a.md": "h"},
                "queue": [{"relative_path": "missing-id.md"}, _op("ok.md").to_dict()],
                "remote_cursor": "not-a-number",
            }
        )
        assert [o.relative_path for o in state.queue] == ["ok.md"]
        assert state.remote_cursor == 0
        assert state.local_hashes == {"a.md": "h"}


class TestStateManager:
    """Tests for StateManager."""

    def test_missing_file_is_empty(self, temp_dir):
        manager = StateManager(temp_dir / "state.yaml")
        state = manager.load()
        assert state.local_hashes == {}
        assert state.queue == []
        assert state.remote_cursor == 0

    def test_save_and_load(self, temp_dir):
        path = temp_dir / "state.yaml"
        manager = StateManager(path)
        manager.state.local_hashes["a.md"] = "h1"
        manager.state.queue.append(_op("b.md", attempts=2, last_error="boom"))
        manager.state.remote_cursor = 42
        manager.save()

        loaded = StateManager(path).load()
        assert loaded.local_hashes == {"a.md": "h1"}
        assert loaded.remote_cursor == 42
        assert loaded.queue[0].attempts == 2
        assert loaded.queue[0].last_error == "boom"
        assert loaded.last_saved is not None

    def test_saved_as_yaml(self, temp_dir):
        path = temp_dir / "state.yaml"
        StateManager(path).save(DaemonState(local_hashes={"a.md": "h"}))
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["local_hashes"] == {"a.md": "h"}

    def test_json_state_accepted(self, temp_dir):
        path = temp_dir / "state.json"
        path.write_text(json.dumps({"local_hashes": {"a.md": "h"}, "remote_cursor": 3}), encoding="utf-8")
        state = StateManager(path).load()
        assert state.remote_cursor == 3

    def test_camel_case_state_accepted(self, temp_dir):
        path = temp_dir / "state.json"
        path.write_text(
            json.dumps(
                {
                    "localHashes": {"notes/a.md": "h1"},
                    "remoteCursor": 7,
                    "queue": [
                        {
                            "operationId": "op-1",
                            "relativePath": "notes/a.md",
                            "content": "x",
                            "contentHash": "h1",
                            "contentType": "text/markdown",
                            "baseHash": "h0",
                            "attempts": 1,
                            "nextAttemptAt": 5,
                            "lastError": "timeout",
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )

        state = StateManager(path).load()

        assert state.local_hashes == {"notes/a.md": "h1"}
        assert state.remote_cursor == 7
        op = state.queue[0]
        assert op.operation_id == "op-1"
        assert op.base_hash == "h0"
        assert op.next_attempt_at == 5
        assert op.last_error == "timeout"

    def test_corrupted_file_is_empty(self, temp_dir):
        path = temp_dir / "state.yaml"
        path.write_text("{{{ not: [valid", encoding="utf-8")
        state = StateManager(path).load()
        assert state.local_hashes == {}
        assert state.queue == []

    def test_non_mapping_is_empty(self, temp_dir):
        path = temp_dir / "state.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert StateManager(path).load().queue == []

    def test_reset(self, temp_dir):
        path = temp_dir / "state.yaml"
        manager = StateManager(path)
        manager.state.local_hashes["a.md"] = "h"
        manager.save()
        manager.reset()
        assert StateManager(path).load().local_hashes == {}
