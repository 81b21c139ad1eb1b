# LocalSync Test Fixtures
# Pytest fixtures for localsync tests

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from localsync.api.client import LocalSyncClient
from localsync.config.schema import ConnectorConfig, DaemonSettings
from localsync.server import LocalSyncService, transport

WORKSPACE = "ws-test"
TOKEN = "test-token"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sync_root(temp_dir: Path) -> Path:
    """Create an empty sync root."""
    root = temp_dir / "notes"
    root.mkdir()
    return root


@pytest.fixture
def service() -> LocalSyncService:
    """Create an in-memory server."""
    return LocalSyncService()


@pytest.fixture
def connector_config() -> ConnectorConfig:
    return ConnectorConfig(server_url="http://testserver", workspace_id=WORKSPACE, token=TOKEN)


@pytest.fixture
def client(service: LocalSyncService, connector_config: ConnectorConfig) -> Generator[LocalSyncClient, None, None]:
    """Create a client wired to the in-memory server."""
    with LocalSyncClient(connector_config, transport=transport(service)) as c:
        yield c


@pytest.fixture
def connector_id(client: LocalSyncClient) -> str:
    return client.register("test-connector", platform_name="linux")["id"]


def _create_source(client: LocalSyncClient, connector_id: str, mode: str) -> str:
    return client.create_source(connector_id, f"{mode}-source", mode, ["**/*.md"], ["**/.git/**", "**/node_modules/**"])["id"]


@pytest.fixture
def source_id(client: LocalSyncClient, connector_id: str) -> str:
    """Create an import_only source."""
    return _create_source(client, connector_id, "import_only")


@pytest.fixture
def bidi_source_id(client: LocalSyncClient, connector_id: str) -> str:
    """Create a bidirectional source."""
    return _create_source(client, connector_id, "bidirectional")


@pytest.fixture
def settings() -> DaemonSettings:
    return DaemonSettings(interval_ms=1000)


class FakeClock:
    """Manually advanced wall clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
