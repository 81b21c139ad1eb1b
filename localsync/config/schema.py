# LocalSync Configuration Schema
# Pydantic models for YAML configuration validation

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class ConnectorConfig(BaseModel):
    """Server connection and credentials."""

    server_url: str = Field(default="http://localhost:3000", description="Document server base URL")
    workspace_id: str = Field(default="", description="Workspace the connector acts in")
    token: str = Field(default="", description="Bearer access token")

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Drop trailing slashes so paths join cleanly."""
        return v.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return bool(self.workspace_id and self.token)


class DaemonSettings(BaseModel):
    """Tick loop, scan and delivery settings."""

    interval_ms: int = Field(default=5000, gt=0, description="Fixed tick interval in milliseconds")
    max_file_bytes: int = Field(default=1_000_000, gt=0, description="Largest file that is synchronized")
    max_files_per_scan: int = Field(default=10_000, gt=0, description="Soft cap on files per scan")
    batch_size: int = Field(default=25, gt=0, description="Operations submitted per push batch")
    delta_page_size: int = Field(default=200, gt=0, description="Remote events pulled per tick")
    heartbeat_interval_ms: int = Field(default=30_000, ge=0, description="Minimum gap between heartbeats")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    state_file_name: str = Field(default=".localsync-state.yaml", description="Reserved state file at the root")
    default_include: list[str] = Field(
        default_factory=lambda: ["**/*.md"],
        description="Include patterns used until the server provides some",
    )
    default_exclude: list[str] = Field(
        default_factory=lambda: ["**/.git/**", "**/node_modules/**"],
        description="Exclude patterns used until the server provides some",
    )


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    verbose: bool = Field(default=False, description="Enable debug logging")
    colored: bool = Field(default=True, description="Enable colored output")
    log_file: str | None = Field(default=None, description="Path to log file")

    @field_validator("log_file")
    @classmethod
    def expand_optional_paths(cls, v: str | None) -> str | None:
        """Expand ~ in optional paths."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class LocalSyncConfig(BaseModel):
    """Root configuration model for localsync."""

    connector: ConnectorConfig = Field(default_factory=ConnectorConfig, description="Server connection")
    daemon: DaemonSettings = Field(default_factory=DaemonSettings, description="Daemon settings")
    output: OutputConfig = Field(default_factory=OutputConfig, description="Output settings")
