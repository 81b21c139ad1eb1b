# LocalSync Configuration Module
# Handles YAML-based configuration loading, environment overrides and defaults

from localsync.config.defaults import DEFAULT_CONFIG, generate_default_config
from localsync.config.loader import (
    ensure_config_exists,
    get_config_path,
    load_config,
    require_credentials,
    validate_config_file,
)
from localsync.config.schema import (
    ConnectorConfig,
    DaemonSettings,
    LocalSyncConfig,
    OutputConfig,
)

__all__ = [
    # Schema
    "LocalSyncConfig",
    "ConnectorConfig",
    "DaemonSettings",
    "OutputConfig",
    # Loader
    "load_config",
    "require_credentials",
    "get_config_path",
    "ensure_config_exists",
    "validate_config_file",
    # Defaults
    "DEFAULT_CONFIG",
    "generate_default_config",
]
