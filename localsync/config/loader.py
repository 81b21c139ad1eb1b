# LocalSync Configuration Loader
# Load YAML configuration, apply environment overrides, validate

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from localsync.config.defaults import default_config, generate_default_config
from localsync.config.schema import LocalSyncConfig
from localsync.exceptions import ConfigError

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "LOCALSYNC_SERVER_URL": ("connector", "server_url"),
    "LOCALSYNC_WORKSPACE": ("connector", "workspace_id"),
    "LOCALSYNC_TOKEN": ("connector", "token"),
    "LOCALSYNC_MAX_FILE_BYTES": ("daemon", "max_file_bytes"),
    "LOCALSYNC_MAX_FILES_PER_SCAN": ("daemon", "max_files_per_scan"),
    "LOCALSYNC_REQUEST_TIMEOUT": ("daemon", "request_timeout"),
}


def get_config_dir() -> Path:
    """Get the localsync configuration directory."""
    return Path.home() / ".config" / "localsync"


def get_config_path() -> Path:
    """Get the path to the configuration file."""
    # Allow override via environment variable
    env_path = os.environ.get("LOCALSYNC_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / "config.yaml"


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {config_path}")
    return data


def _merge_with_defaults(data: Mapping[str, Any]) -> dict[str, Any]:
    """Merge loaded data with default values for missing keys."""
    result = default_config()
    for section, values in data.items():
        if isinstance(values, Mapping) and isinstance(result.get(section), dict):
            result[section] = {**result[section], **values}
        else:
            result[section] = values
    return result


def _apply_env(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        loc = " -> ".join(str(part) for part in err["loc"])
        lines.append(f"{loc}: {err['msg']}")
    return "Invalid configuration:\n" + "\n".join(lines)


def load_config(
    config_path: Optional[Path] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
) -> LocalSyncConfig:
    """
    Load configuration from defaults, YAML file and environment.

    The YAML file is optional; environment variables override it.

    Args:
        config_path: Optional path to config file. Uses default if not provided.
        env: Environment mapping (defaults to os.environ).

    Returns:
        LocalSyncConfig: Validated configuration object.

    Raises:
        ConfigError: If the file or the resulting configuration is invalid.
    """
    if config_path is None:
        config_path = get_config_path()
    if env is None:
        env = os.environ

    data = _read_yaml(config_path) if config_path.exists() else {}
    merged = _apply_env(_merge_with_defaults(data), env)

    try:
        return LocalSyncConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e


def require_credentials(config: LocalSyncConfig) -> LocalSyncConfig:
    """
    Ensure the connector has a workspace and token.

    Raises:
        ConfigError: If either credential is missing.
    """
    if not config.connector.has_credentials:
        raise ConfigError("Missing config: set LOCALSYNC_WORKSPACE and LOCALSYNC_TOKEN environment variables")
    return config


def ensure_config_exists(config_path: Optional[Path] = None) -> tuple[Path, bool]:
    """
    Ensure configuration file exists, creating default if needed.

    Returns:
        Tuple of (config_path, was_created).
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists():
        return config_path, False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(generate_default_config(), encoding="utf-8")
    return config_path, True


def validate_config_file(config_path: Optional[Path] = None) -> tuple[bool, list[str]]:
    """
    Validate a configuration file without applying environment overrides.

    Args:
        config_path: Path to config file to validate.

    Returns:
        Tuple of (is_valid, error_messages).
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        return False, [f"Configuration file not found: {config_path}"]

    try:
        data = _read_yaml(config_path)
    except ConfigError as e:
        return False, [str(e)]

    try:
        LocalSyncConfig.model_validate(_merge_with_defaults(data))
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        return False, errors

    return True, []
