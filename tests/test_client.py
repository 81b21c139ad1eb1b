# Tests for localsync.api.client
# HTTP client behavior against mock transports and the in-memory server

import json

import httpx
import pytest

from localsync.api.client import LocalSyncClient
from localsync.api.models import PushItem, SourceMode, SourceStatus
from localsync.config.schema import ConnectorConfig
from localsync.exceptions import ApiError, SourceNotFoundError
from localsync.server import transport
from localsync.utils.hashing import content_hash


def _client(connector_config, handler) -> LocalSyncClient:
    return LocalSyncClient(connector_config, transport=httpx.MockTransport(handler))


class TestRequests:
    """Tests for request construction and reply decoding."""

    def test_headers_and_url(self, connector_config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        with _client(connector_config, handler) as client:
            client.heartbeat("conn-1")

        (request,) = seen
        assert request.method == "POST"
        assert str(request.url) == "http://testserver/api/local-sync/connectors/heartbeat"
        assert request.headers["authorization"] == "Bearer test-token"
        assert request.headers["x-workspace-id"] == "ws-test"
        assert request.headers["content-type"] == "application/json"
        assert json.loads(request.content) == {"connectorId": "conn-1"}

    def test_trailing_slash_in_server_url(self, connector_config):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json=[])

        config = ConnectorConfig(server_url="http://testserver/", workspace_id="ws-test", token="test-token")
        assert config.server_url == "http://testserver"
        with _client(config, handler) as client:
            client.list_sources()

        assert seen == ["http://testserver/api/local-sync/sources/list"]

    def test_non_json_reply(self, connector_config):
        with _client(connector_config, lambda r: httpx.Response(200, text="accepted")) as client:
            assert client.heartbeat("c") == {"ok": True, "raw": "accepted"}

    def test_error_status_raises(self, connector_config):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"statusCode": 404, "message": "Connector not found"})

        with _client(connector_config, handler) as client:
            with pytest.raises(ApiError) as exc_info:
                client.heartbeat("c")

        err = exc_info.value
        assert err.status_code == 404
        assert "HTTP 404" in str(err)
        assert "Connector not found" in err.body

    def test_error_body_truncated(self, connector_config):
        with _client(connector_config, lambda r: httpx.Response(500, text="x" * 2000)) as client:
            with pytest.raises(ApiError) as exc_info:
                client.list_sources()
        assert len(exc_info.value.body) == 500

    def test_transport_failure(self, connector_config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _client(connector_config, handler) as client:
            with pytest.raises(ApiError) as exc_info:
                client.list_sources()
        assert exc_info.value.status_code is None
        assert "connection refused" in str(exc_info.value)

    def test_non_list_reply_is_empty(self, connector_config):
        with _client(connector_config, lambda r: httpx.Response(200, json={"unexpected": 1})) as client:
            assert client.list_sources() == []
            assert client.list_conflicts("s") == []


class TestSources:
    """Tests for source operations against the in-memory server."""

    def test_register(self, client):
        connector = client.register("laptop", platform_name="darwin")
        assert connector["name"] == "laptop"
        assert connector["platform"] == "darwin"
        assert connector["status"] == "online"

    def test_get_source(self, client, bidi_source_id):
        source = client.get_source(bidi_source_id)
        assert source.id == bidi_source_id
        assert source.mode == SourceMode.BIDIRECTIONAL
        assert source.status == SourceStatus.ACTIVE

    def test_get_unknown_source(self, client):
        with pytest.raises(SourceNotFoundError):
            client.get_source("missing")

    def test_create_source_unknown_connector(self, client):
        with pytest.raises(ApiError) as exc_info:
            client.create_source("nobody", "x", "import_only", [], [])
        assert exc_info.value.status_code == 400
        assert "Invalid connectorId" in str(exc_info.value)

    def test_list_newest_first(self, client, connector_id):
        first = client.create_source(connector_id, "first", "import_only", [], [])["id"]
        second = client.create_source(connector_id, "second", "import_only", [], [])["id"]
        assert [s["id"] for s in client.list_sources()] == [second, first]

    def test_pause_rejects_push(self, client, source_id):
        client.pause_source(source_id)
        assert client.get_source(source_id).is_paused

        item = PushItem(operation_id="op-1", relative_path="a.md", content="x", content_hash=content_hash("x"))
        with pytest.raises(ApiError) as exc_info:
            client.push_batch(source_id, [item])
        assert exc_info.value.status_code == 400
        assert "Source is paused" in str(exc_info.value)

        client.resume_source(source_id)
        assert client.push_batch(source_id, [item]).applied == 1

    def test_other_workspace_cannot_see_source(self, service, connector_config, source_id):
        other = connector_config.model_copy(update={"workspace_id": "ws-other"})
        with LocalSyncClient(other, transport=transport(service)) as client:
            assert client.list_sources() == []
            with pytest.raises(ApiError) as exc_info:
                client.list_source_files(source_id)
        assert exc_info.value.status_code == 404


class TestFiles:
    """Tests for file listing and history."""

    def test_remote_file_map(self, client, source_id):
        item = PushItem(operation_id="op-1", relative_path="a.md", content="x", content_hash=content_hash("x"))
        client.push_batch(source_id, [item])
        assert client.remote_file_map(source_id) == {"a.md": content_hash("x")}

    def test_history(self, client, source_id, service):
        service.edit_file(source_id, "a.md", "one")
        service.edit_file(source_id, "a.md", "two")

        history = client.file_history(source_id, "a.md")
        assert [v["content"] for v in history["versions"]] == ["one", "two"]

    def test_history_unknown_file(self, client, source_id):
        with pytest.raises(ApiError) as exc_info:
            client.file_history(source_id, "missing.md")
        assert exc_info.value.status_code == 404
